"""Path sanitization — normalize raw input and resolve it against a root.

Sanitizing never touches the filesystem. Resolution and the type/access
checks only ``stat``; nothing here mutates.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Literal
from urllib.parse import unquote

from core.errors import AccessDeniedError, FilesystemError, SecurityError, ValidationError

logger = logging.getLogger(__name__)

PathKind = Literal["file", "directory"]

_MAX_DECODE_ROUNDS = 3
_CONTROL_CHARS = re.compile(r"[\x01-\x1f\x7f]")
_DUPLICATE_SEPARATORS = re.compile(r"/{2,}")
# %2f, %5c, %2e%2e and %00 in any case, including double-encoded forms (%252f)
_ENCODED_SEPARATOR = re.compile(r"%(?:25)*(?:2f|5c|00)", re.IGNORECASE)
_ENCODED_DOT = re.compile(r"%(?:25)*2e", re.IGNORECASE)

_MODE_NAMES = {os.R_OK: "read", os.W_OK: "write", os.X_OK: "execute"}


def _mode_string(mode: int) -> str:
    if mode == os.F_OK:
        return "existence"
    return "+".join(name for bit, name in _MODE_NAMES.items() if mode & bit) or "unknown"


class PathSanitizer:
    """Normalizes user-supplied path strings and resolves them to real paths."""

    def sanitize(self, raw: str) -> str:
        """Return a normalized candidate path or raise.

        Rejects null bytes and URL-encoded traversal before any resolution,
        strips remaining control characters, converts backslashes to ``/``,
        collapses duplicate separators and drops a trailing separator.
        """
        if not isinstance(raw, str):
            raise ValidationError(f"Path must be a string, got {type(raw).__name__}")

        candidate = raw.strip()
        if not candidate:
            raise ValidationError("Path cannot be empty or whitespace only")

        if "\x00" in candidate:
            raise SecurityError("Null byte in path", path=raw)

        self._reject_encoded_traversal(candidate)

        candidate = _CONTROL_CHARS.sub("", candidate)
        candidate = candidate.replace("\\", "/")
        # Keep a leading "//" so UNC-style input still reaches the security check
        unc = candidate.startswith("//")
        candidate = _DUPLICATE_SEPARATORS.sub("/", candidate)
        if unc:
            candidate = "/" + candidate
        if len(candidate) > 1 and candidate.endswith("/"):
            candidate = candidate.rstrip("/") or "/"

        if not candidate:
            raise ValidationError("Path is empty after sanitization", path=raw)
        return candidate

    def _reject_encoded_traversal(self, candidate: str) -> None:
        if _ENCODED_SEPARATOR.search(candidate) or _ENCODED_DOT.search(candidate):
            raise SecurityError(
                f"Encoded traversal sequence in path: {candidate!r}", path=candidate
            )

        decoded = candidate
        for _ in range(_MAX_DECODE_ROUNDS):
            nxt = unquote(decoded)
            if nxt == decoded:
                break
            decoded = nxt
        if decoded != candidate and (".." in decoded or "\x00" in decoded):
            raise SecurityError(
                f"Encoded traversal sequence in path: {candidate!r}", path=candidate
            )

    def join(self, candidate: str, root: str | Path | None = None) -> Path:
        """Join *candidate* to *root* (or the cwd) without resolving symlinks."""
        base = Path(root) if root is not None else Path.cwd()
        path = Path(candidate)
        if not path.is_absolute():
            path = base / path
        return Path(os.path.normpath(path))

    def resolve(self, candidate: str, root: str | Path | None = None) -> Path:
        """Resolve *candidate* to an absolute, symlink-free path.

        A path that does not exist yet resolves to where it would be. A
        dangling symlink resolves to its (missing) final target, so a later
        ``validate_type`` call fails instead of passing silently.
        """
        base = Path(root).resolve() if root is not None else Path.cwd()
        path = Path(candidate)
        if not path.is_absolute():
            path = base / path
        try:
            return path.resolve(strict=False)
        except RuntimeError as exc:
            # Symlink loop
            raise SecurityError(f"Cannot resolve path: {exc}", path=candidate) from exc
        except OSError as exc:
            raise FilesystemError(
                f"Cannot resolve path: {exc.strerror or exc}", path=candidate, errno=exc.errno
            ) from exc

    def validate_type(self, path: str | Path, expected: PathKind) -> None:
        p = Path(path)
        if not p.exists():
            raise FilesystemError(f"Path does not exist: {p}", path=p)
        if expected == "file" and not p.is_file():
            raise FilesystemError(f"Expected a file: {p}", path=p)
        if expected == "directory" and not p.is_dir():
            raise FilesystemError(f"Expected a directory: {p}", path=p)

    def validate_access(self, path: str | Path, mode: int = os.F_OK) -> None:
        p = Path(path)
        if not p.exists():
            raise FilesystemError(f"Path does not exist: {p}", path=p)
        if not os.access(p, mode):
            raise AccessDeniedError(
                f"Cannot access {p} with {_mode_string(mode)} permission", path=p
            )
