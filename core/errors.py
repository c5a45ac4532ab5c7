"""Error taxonomy for path validation and lock operations.

Every error carries the offending path, its category and the underlying OS
error code (when there is one) so callers can render diagnostics without
re-deriving them.
"""

from __future__ import annotations

import errno as _errno
from enum import StrEnum
from pathlib import Path
from typing import Any


class ErrorCategory(StrEnum):
    SECURITY = "security"
    VALIDATION = "validation"
    FILESYSTEM = "filesystem"
    PERMISSION = "permission"


class LockGuardError(Exception):
    """Base class for all lockguard failures."""

    category: ErrorCategory = ErrorCategory.FILESYSTEM

    def __init__(
        self,
        message: str,
        *,
        path: str | Path | None = None,
        errno: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = str(path) if path is not None else None
        self.errno = errno

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": str(self.category),
            "message": self.message,
            "path": self.path,
            "errno": self.errno,
            "code": _errno.errorcode.get(self.errno, None) if self.errno else None,
        }


class SecurityError(LockGuardError):
    """Path escapes the allowed roots or carries hostile input. Never recovered."""

    category = ErrorCategory.SECURITY


class ValidationError(LockGuardError):
    """Malformed pattern or invalid argument."""

    category = ErrorCategory.VALIDATION


class FilesystemError(LockGuardError):
    """Missing path, unsupported attribute, or I/O failure."""

    category = ErrorCategory.FILESYSTEM


class AccessDeniedError(LockGuardError):
    """Insufficient rights to read, write, or change attributes."""

    category = ErrorCategory.PERMISSION


_DENIED_ERRNOS = frozenset({_errno.EACCES, _errno.EPERM})


def from_os_error(exc: OSError, path: str | Path | None = None) -> LockGuardError:
    """Translate an ``OSError`` into the matching lockguard error."""
    target = path if path is not None else exc.filename
    detail = exc.strerror or str(exc)
    if exc.errno in _DENIED_ERRNOS:
        return AccessDeniedError(
            f"Permission denied: {target} ({detail})", path=target, errno=exc.errno
        )
    return FilesystemError(
        f"Filesystem error on {target}: {detail}", path=target, errno=exc.errno
    )
