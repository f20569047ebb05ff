"""
Template Version Manager.

This module manages the lifecycle of document template versions:
- Create immutable versions (edits always create a new version)
- Activate exactly one version per (document type, scope)
- Resolve the active template, fund scope shadowing global scope
- Detect and repair scopes left with more than one active row

States: draft (never activated) -> active -> superseded (re-activatable).

Activation is two sequential writes without a transaction: deactivate the
scope's active rows, then activate the target. A failure between them
leaves the scope with no active row until activation is retried.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from fund_docs.core.exceptions import (
    DatabaseError,
    DuplicateTemplateVersionError,
    TemplateNotFoundError,
    ValidationError,
)
from fund_docs.templating.diff_engine import (
    TemplateDiff,
    TemplateDiffEngine,
    describe_changes,
    suggest_next_version,
)
from fund_docs.templating.sections import TemplateContent
from fund_docs.templating.template_store import TemplateRecord, TemplateStore, new_template_id

logger = logging.getLogger(__name__)

# Appendix template_ref values that name a stored document type
EXTERNAL_TEMPLATE_TYPES = {
    "lpa-consent-form-template": "lpa_consent_form",
    "personal-info-consent-form-template": "personal_info_consent_form",
}


class TemplateState(Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    SUPERSEDED = "superseded"


@dataclass
class ScopeCheck:
    """Active rows found for one (doc_type, scope)."""
    doc_type: str
    fund_id: Optional[str]
    active_ids: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return len(self.active_ids) <= 1

    @property
    def has_active(self) -> bool:
        return bool(self.active_ids)


class VersionManager:
    """
    Manages template versions and the single-active-per-scope invariant.

    Usage:
        manager = VersionManager(TemplateStore(engine))
        record = manager.create("lpa", "1.0.0", content, activate=True)
        active = manager.resolve_active("lpa", fund_id="fund-1")
    """

    def __init__(
        self,
        store: Optional[TemplateStore] = None,
        clock: Callable[[], datetime] = datetime.now,
        diff_engine: Optional[TemplateDiffEngine] = None,
    ):
        """
        Initialize version manager.

        Args:
            store: Template store (defaults to the configured database)
            clock: Source of creation/activation timestamps
            diff_engine: Engine used for diff_versions and create_revision
        """
        self.store = store or TemplateStore()
        self.clock = clock
        self.diff_engine = diff_engine or TemplateDiffEngine()

    def create(
        self,
        doc_type: str,
        version: str,
        content: Any,
        fund_id: Optional[str] = None,
        activate: bool = False,
        description: str = "",
        created_by: Optional[str] = None,
    ) -> TemplateRecord:
        """
        Create a new template version.

        Args:
            doc_type: Document type (e.g. 'lpa', 'lpa_consent_form')
            version: Version string, unique per (doc_type, scope)
            content: TemplateContent or its dict form
            fund_id: Fund scope (None = global)
            activate: Run the activation transition after insert
            description: Free-text change description
            created_by: Author id

        Returns:
            The stored TemplateRecord (active when activate=True)

        Raises:
            DuplicateTemplateVersionError: If the version exists in the scope
        """
        if not version or not version.strip():
            raise ValidationError("Template version is required", field_name="version")

        if not isinstance(content, TemplateContent):
            content = TemplateContent.from_dict(content, doc_type=doc_type)
        if content.doc_type != doc_type:
            raise ValidationError(
                "Template content type does not match",
                field_name="doc_type",
                field_value=content.doc_type,
            )

        if self.store.version_exists(doc_type, version, fund_id):
            raise DuplicateTemplateVersionError(
                "Template version already exists",
                details={"doc_type": doc_type, "fund_id": fund_id},
                version=version,
            )

        record = TemplateRecord(
            id=new_template_id(),
            doc_type=doc_type,
            version=version,
            content=content,
            fund_id=fund_id,
            is_active=False,
            description=description,
            created_by=created_by,
            created_at=self.clock(),
        )
        self.store.insert(record)
        logger.info(f"Created template {doc_type} {version} ({record.scope})")

        if activate:
            return self.activate(record.id)
        return record

    def activate(self, template_id: str) -> TemplateRecord:
        """
        Make a template the single active version of its scope.

        Raises:
            TemplateNotFoundError: If the id does not exist (nothing is written)
            DatabaseError: If either write fails; retry activation explicitly
        """
        target = self.store.get(template_id)
        if target is None:
            raise TemplateNotFoundError("Template not found", template_id=template_id)

        deactivated = self.store.deactivate_scope(
            target.doc_type, target.fund_id, exclude_id=target.id
        )

        activated_at = self.clock()
        try:
            updated = self.store.set_active(target.id, activated_at)
        except DatabaseError:
            logger.error(
                f"Activation of {target.doc_type} {target.version} failed after "
                f"deactivating {deactivated} row(s); {target.scope} has no active template"
            )
            raise
        if updated != 1:
            raise DatabaseError(
                "Template disappeared during activation",
                details={"id": template_id, "rows": updated},
            )

        logger.info(
            f"Activated template {target.doc_type} {target.version} ({target.scope}), "
            f"superseded {deactivated}"
        )
        target.is_active = True
        target.activated_at = activated_at
        return target

    def get(self, template_id: str) -> TemplateRecord:
        record = self.store.get(template_id)
        if record is None:
            raise TemplateNotFoundError("Template not found", template_id=template_id)
        return record

    def resolve_active(self, doc_type: str, fund_id: Optional[str] = None) -> TemplateRecord:
        """
        Find the template to use for a document type.

        Prefers the fund-scoped active row, then the global active row.

        Raises:
            TemplateNotFoundError: If neither exists
        """
        if fund_id is not None:
            fund_rows = self.store.find(doc_type, fund_id, is_active=True)
            if fund_rows:
                return fund_rows[0]

        global_rows = self.store.find(doc_type, None, is_active=True)
        if global_rows:
            return global_rows[0]

        raise TemplateNotFoundError(
            "No active template",
            details={"fund_id": fund_id},
            doc_type=doc_type,
        )

    def list_versions(self, doc_type: str, fund_id: Optional[str] = None) -> list[TemplateRecord]:
        """All versions of one (doc_type, scope), newest first."""
        return self.store.find(doc_type, fund_id)

    @staticmethod
    def state_of(record: TemplateRecord) -> TemplateState:
        if record.is_active:
            return TemplateState.ACTIVE
        if record.activated_at is not None:
            return TemplateState.SUPERSEDED
        return TemplateState.DRAFT

    def load_external(self, template_ref: str, fund_id: Optional[str] = None) -> TemplateRecord:
        """
        Resolve an appendix's external template reference.

        Known references map to a stored document type; any other value is
        used as the document type directly.
        """
        doc_type = EXTERNAL_TEMPLATE_TYPES.get(template_ref, template_ref)
        return self.resolve_active(doc_type, fund_id)

    def diff_versions(self, from_id: str, to_id: str) -> TemplateDiff:
        return self.diff_engine.compare(self.get(from_id), self.get(to_id))

    def create_revision(
        self,
        base_id: str,
        content: Any,
        created_by: Optional[str] = None,
        activate: bool = False,
    ) -> TemplateRecord:
        """
        Create the next version of a template from edited content.

        The version number is derived from the change severity and the
        description lists the changes.
        """
        base = self.get(base_id)
        if not isinstance(content, TemplateContent):
            content = TemplateContent.from_dict(content, doc_type=base.doc_type)

        draft = TemplateRecord(
            id="", doc_type=base.doc_type, version="", content=content, fund_id=base.fund_id
        )
        diff = self.diff_engine.compare(base, draft)
        if not diff.has_changes:
            raise ValidationError("Revision has no changes", field_name="content")
        version = suggest_next_version(base.version, diff.changes)

        return self.create(
            base.doc_type,
            version,
            content,
            fund_id=base.fund_id,
            activate=activate,
            description=describe_changes(diff.changes),
            created_by=created_by,
        )

    def check_scope(self, doc_type: str, fund_id: Optional[str] = None) -> ScopeCheck:
        active = self.store.find(doc_type, fund_id, is_active=True)
        return ScopeCheck(doc_type=doc_type, fund_id=fund_id, active_ids=[r.id for r in active])

    def find_violations(self) -> list[ScopeCheck]:
        """Scopes with more than one active template."""
        violations = []
        for doc_type, fund_id, count in self.store.active_scope_counts():
            if count > 1:
                violations.append(self.check_scope(doc_type, fund_id))
        if violations:
            logger.warning(f"Found {len(violations)} scope(s) with multiple active templates")
        return violations

    def reconcile_scope(self, doc_type: str, fund_id: Optional[str] = None) -> ScopeCheck:
        """
        Restore at most one active row in a scope.

        Keeps the most recently activated row and deactivates the others.
        """
        active = self.store.find(doc_type, fund_id, is_active=True)
        if len(active) <= 1:
            return ScopeCheck(doc_type, fund_id, [r.id for r in active])

        def activation_order(record: TemplateRecord):
            return (record.activated_at or datetime.min, record.created_at or datetime.min)

        keep = max(active, key=activation_order)
        stale = [r.id for r in active if r.id != keep.id]
        self.store.set_inactive(stale)
        logger.warning(
            f"Reconciled {doc_type} ({fund_id or 'global'}): kept {keep.version}, "
            f"deactivated {len(stale)}"
        )
        return self.check_scope(doc_type, fund_id)
