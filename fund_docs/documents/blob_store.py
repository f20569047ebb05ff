"""
Blob storage for generated PDF artifacts.

BlobStore is the interface the document service writes through; the local
implementation keeps artifacts under BLOB_STORAGE_DIR using the artifact
path as a relative file path.
"""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from fund_docs.core.config import BLOB_STORAGE_DIR, BLOB_WRITE_MAX_RETRIES
from fund_docs.core.exceptions import ConfigurationError, StorageError
from fund_docs.utils.retry import fetch_with_retry

logger = logging.getLogger(__name__)


class BlobStore(ABC):
    """Key/value byte storage addressed by artifact path."""

    @abstractmethod
    def write(self, path: str, data: bytes) -> str:
        """Store data and return the path it was stored under."""

    @abstractmethod
    def read(self, path: str) -> bytes:
        pass

    @abstractmethod
    def delete(self, path: str) -> bool:
        pass

    @abstractmethod
    def exists(self, path: str) -> bool:
        pass


class LocalBlobStore(BlobStore):
    """
    Filesystem-backed blob store.

    Usage:
        store = LocalBlobStore()
        store.write("fund-1/lpa_consent_form/abc.pdf", pdf_bytes)
    """

    def __init__(self, root: Optional[Path] = None, max_retries: int = BLOB_WRITE_MAX_RETRIES):
        """
        Args:
            root: Storage root directory (defaults to BLOB_STORAGE_DIR)
            max_retries: Attempts per write before giving up

        Raises:
            ConfigurationError: If the root is an existing non-directory or max_retries < 1
        """
        self.root = Path(root or BLOB_STORAGE_DIR)
        if self.root.exists() and not self.root.is_dir():
            raise ConfigurationError(
                "Blob storage root is not a directory",
                details={"root": str(self.root)},
                config_key="BLOB_STORAGE_DIR",
            )
        if max_retries < 1:
            raise ConfigurationError(
                "Blob writes need at least one attempt",
                details={"max_retries": max_retries},
                config_key="BLOB_WRITE_MAX_RETRIES",
            )
        self.max_retries = max_retries

    def _resolve(self, path: str) -> Path:
        resolved = (self.root / path).resolve()
        if self.root.resolve() not in resolved.parents:
            raise StorageError("Artifact path escapes the storage root", path=path)
        return resolved

    def write(self, path: str, data: bytes) -> str:
        target = self._resolve(path)

        def _write():
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        try:
            fetch_with_retry(_write, max_retries=self.max_retries, operation_name=f"write blob {path}")
        except OSError as e:
            raise StorageError("Failed to write artifact", path=path, original_error=e)
        logger.debug(f"Wrote {len(data)} bytes to {path}")
        return path

    def read(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except OSError as e:
            raise StorageError("Failed to read artifact", path=path, original_error=e)

    def delete(self, path: str) -> bool:
        target = self._resolve(path)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError("Failed to delete artifact", path=path, original_error=e)
        logger.debug(f"Deleted {path}")
        return True

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()
