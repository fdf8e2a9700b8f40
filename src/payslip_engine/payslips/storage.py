"""Document storage for rendered payslips."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol
from uuid import UUID

logger = logging.getLogger(__name__)


class DocumentStorageError(Exception):
    """Raised when a document cannot be stored or read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Document storage failed for '{path}': {reason}")


class DocumentStorage(Protocol):
    """Protocol for document storage backends."""

    def store(self, data: bytes, path: str) -> str:
        """Store bytes at path, overwriting; return a retrievable URL."""
        ...

    def read(self, path: str) -> bytes:
        ...

    def check_writable(self) -> None:
        """Raise DocumentStorageError if new documents cannot be stored."""
        ...


def payslip_storage_path(
    company_id: UUID,
    payroll_period_id: UUID,
    payslip_id: UUID,
    extension: str = "pdf",
) -> str:
    """Stable storage path; re-rendering the same payslip overwrites it."""
    return f"payslips/{company_id}/{payroll_period_id}/payslip-{payslip_id}.{extension}"


class LocalDocumentStorage:
    """Stores documents on the local filesystem under a root directory."""

    def __init__(self, root: str | os.PathLike[str], base_url: str):
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root):
            raise DocumentStorageError(path, "path escapes storage root")
        return target

    def store(self, data: bytes, path: str) -> str:
        target = self._resolve(path)
        tmp = target.with_name(target.name + ".tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            os.replace(tmp, target)
        except OSError as e:
            raise DocumentStorageError(path, str(e)) from e

        logger.debug("Stored %d bytes at %s", len(data), target)
        return f"{self.base_url}/{path}"

    def read(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except OSError as e:
            raise DocumentStorageError(path, str(e)) from e

    def check_writable(self) -> None:
        marker = self.root / ".write-check"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            marker.write_bytes(b"")
            marker.unlink()
        except OSError as e:
            raise DocumentStorageError(str(self.root), str(e)) from e
