"""
Exception hierarchy for fund document composition.

Centralized exception classes with specific types for template
versioning, diffing, layout, extraction and storage failures.
"""
from typing import Optional, Any


class FundDocsError(Exception):
    """
    Base exception for all fund document errors.

    All custom exceptions in the package inherit from this class
    to enable consistent error handling across the application.
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        """
        Initialize FundDocsError.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class DatabaseError(FundDocsError):
    """
    Database-related errors.

    Raised when template or document store operations fail.
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        """
        Initialize DatabaseError.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
            original_error: The original exception that caused this error
        """
        super().__init__(message, details)
        self.original_error = original_error

    def __str__(self) -> str:
        """Return string representation including original error if present."""
        base = super().__str__()
        if self.original_error:
            return f"{base} | Caused by: {type(self.original_error).__name__}: {self.original_error}"
        return base


class TemplateNotFoundError(FundDocsError):
    """
    Template lookup errors.

    Raised when a template id does not exist or no active template
    resolves for a document type.
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        template_id: Optional[str] = None,
        doc_type: Optional[str] = None,
    ):
        super().__init__(message, details)
        self.template_id = template_id
        self.doc_type = doc_type

    def __str__(self) -> str:
        base = super().__str__()
        parts = [base]
        if self.template_id:
            parts.append(f"Template: {self.template_id}")
        if self.doc_type:
            parts.append(f"Type: {self.doc_type}")
        return " | ".join(parts) if len(parts) > 1 else base


class DuplicateTemplateVersionError(FundDocsError):
    """Raised when (doc_type, version, scope) already exists."""

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        version: Optional[str] = None,
    ):
        super().__init__(message, details)
        self.version = version

    def __str__(self) -> str:
        base = super().__str__()
        if self.version:
            return f"{base} | Version: {self.version}"
        return base


class TemplateDiffError(FundDocsError):
    """
    Template comparison errors.

    Raised when two templates cannot be diffed, e.g. different document types.
    """


class ValidationError(FundDocsError):
    """
    Data validation errors.

    Raised when template content or context data is malformed.
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        field_name: Optional[str] = None,
        field_value: Optional[Any] = None,
    ):
        """
        Initialize ValidationError.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
            field_name: The field that failed validation
            field_value: The invalid value
        """
        super().__init__(message, details)
        self.field_name = field_name
        self.field_value = field_value

    def __str__(self) -> str:
        """Return string representation including field name and value if present."""
        base = super().__str__()
        parts = [base]
        if self.field_name:
            parts.append(f"Field: {self.field_name}")
        if self.field_value is not None:
            parts.append(f"Value: {self.field_value}")
        return " | ".join(parts) if len(parts) > 1 else base


class LayoutError(FundDocsError):
    """
    Composition errors.

    Raised when a PDF cannot be composed: missing font asset, malformed
    section tree, or an unresolvable required field. Nothing is persisted.
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        doc_type: Optional[str] = None,
    ):
        super().__init__(message, details)
        self.doc_type = doc_type

    def __str__(self) -> str:
        base = super().__str__()
        if self.doc_type:
            return f"{base} | Type: {self.doc_type}"
        return base


class CompositionCancelled(FundDocsError):
    """Raised when a composition run is cancelled between work items."""


class PageRangeError(FundDocsError):
    """
    Page extraction errors.

    Raised when requested page numbers fall outside the source document.
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        page_number: Optional[int] = None,
        page_count: Optional[int] = None,
    ):
        super().__init__(message, details)
        self.page_number = page_number
        self.page_count = page_count

    def __str__(self) -> str:
        base = super().__str__()
        parts = [base]
        if self.page_number is not None:
            parts.append(f"Page: {self.page_number}")
        if self.page_count is not None:
            parts.append(f"Pages in document: {self.page_count}")
        return " | ".join(parts) if len(parts) > 1 else base


class StorageError(FundDocsError):
    """
    Blob storage errors.

    Raised when artifact bytes cannot be written, read or deleted.
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        path: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, details)
        self.path = path
        self.original_error = original_error

    def __str__(self) -> str:
        base = super().__str__()
        parts = [base]
        if self.path:
            parts.append(f"Path: {self.path}")
        if self.original_error:
            parts.append(f"Caused by: {type(self.original_error).__name__}: {self.original_error}")
        return " | ".join(parts) if len(parts) > 1 else base


class ConfigurationError(FundDocsError):
    """
    Configuration errors.

    Raised when configuration is invalid or missing.
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        config_key: Optional[str] = None,
    ):
        """
        Initialize ConfigurationError.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
            config_key: The configuration key that is invalid
        """
        super().__init__(message, details)
        self.config_key = config_key

    def __str__(self) -> str:
        """Return string representation including config key if present."""
        base = super().__str__()
        if self.config_key:
            return f"{base} | Config: {self.config_key}"
        return base
