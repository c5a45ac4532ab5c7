"""Allowed-root enforcement — the security boundary for every file operation.

Roots are normalized and symlink-resolved once at construction and never
change afterwards. Containment is checked on path segments, never on raw
string prefixes, so ``/allowed-evil`` does not satisfy the root ``/allowed``.

An empty root set rejects everything unless the validator was explicitly
built with ``fail_closed=False``, in which case every path is allowed.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from core.errors import SecurityError

logger = logging.getLogger(__name__)

MAX_PATH_LENGTH = 4096
MAX_COMPONENT_LENGTH = 255

_WINDOWS_RESERVED: frozenset[str] = frozenset(
    {
        "CON", "PRN", "AUX", "NUL",
        *(f"COM{i}" for i in range(1, 10)),
        *(f"LPT{i}" for i in range(1, 10)),
    }
)

# Characters and sequences that only show up when someone is trying to break
# out of quoting in a downstream command or filename context.
_QUOTE_ESCAPE = re.compile(r"[`\"<>|]|\$\(|\$\{")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_DRIVE = re.compile(r"^[A-Za-z]:$")


class SecurityValidator:
    """Holds the allowed roots and rejects paths falling outside all of them."""

    def __init__(
        self,
        allowed_roots: Iterable[str | Path] = (),
        *,
        fail_closed: bool = True,
        case_sensitive: bool = True,
    ) -> None:
        roots: list[Path] = []
        lexical: list[Path] = []
        for root in allowed_roots:
            given = Path(os.path.abspath(Path(root).expanduser()))
            resolved = given.resolve()
            if resolved not in roots:
                roots.append(resolved)
            if given not in lexical:
                lexical.append(given)
        self._roots: tuple[Path, ...] = tuple(roots)
        # Unresolved spellings of the same roots, for checks made before
        # symlink expansion (e.g. /var vs /private/var on macOS)
        self._lexical_roots: tuple[Path, ...] = tuple(lexical)
        self._fail_closed = fail_closed
        self._case_sensitive = case_sensitive

        if not self._roots and not fail_closed:
            logger.warning(
                "SecurityValidator built with no allowed roots and fail_closed=False: "
                "every path is allowed"
            )

    @property
    def allowed_roots(self) -> tuple[Path, ...]:
        return self._roots

    @property
    def unrestricted(self) -> bool:
        return not self._roots and not self._fail_closed

    def is_path_allowed(self, resolved: str | Path) -> bool:
        """True iff *resolved* equals or sits below at least one allowed root."""
        return self._contained(resolved, self._roots)

    def is_lexically_allowed(self, path: str | Path) -> bool:
        """Containment check for a normalized but not yet resolved path."""
        return self._contained(path, self._roots + self._lexical_roots)

    def _contained(self, path: str | Path, roots: tuple[Path, ...]) -> bool:
        if not self._roots:
            return not self._fail_closed

        p = Path(path)
        if not p.is_absolute():
            return False
        parts = self._normalize_parts(p)
        for root in roots:
            root_parts = self._normalize_parts(root)
            if parts[: len(root_parts)] == root_parts:
                return True
        return False

    def _normalize_parts(self, path: Path) -> tuple[str, ...]:
        if self._case_sensitive:
            return path.parts
        return tuple(part.casefold() for part in path.parts)

    def validate_path_security(self, candidate: str) -> None:
        """Pre-resolution checks on a sanitized candidate path."""
        if "\x00" in candidate:
            raise SecurityError("Null byte in path", path=candidate)
        if len(candidate) > MAX_PATH_LENGTH:
            raise SecurityError(
                f"Path exceeds maximum length of {MAX_PATH_LENGTH} characters",
                path=candidate[:80],
            )
        if candidate.startswith("//"):
            raise SecurityError(f"UNC paths are not allowed: {candidate}", path=candidate)
        if _QUOTE_ESCAPE.search(candidate):
            raise SecurityError(
                f"Path contains quoting-escape characters: {candidate!r}", path=candidate
            )

        components = [c for c in PurePosixPath(candidate).parts if c != "/"]
        for index, component in enumerate(components):
            self._validate_component(component, candidate, first=index == 0)

    def _validate_component(self, component: str, candidate: str, *, first: bool) -> None:
        if len(component) > MAX_COMPONENT_LENGTH:
            raise SecurityError(
                f"Path component exceeds maximum length of {MAX_COMPONENT_LENGTH}",
                path=candidate,
            )
        if component in (".", ".."):
            return
        if _CONTROL_CHARS.search(component):
            raise SecurityError("Path component contains control characters", path=candidate)
        if first and _DRIVE.match(component):
            return
        if ":" in component:
            raise SecurityError(
                f"Alternate data stream syntax is not allowed: {component!r}", path=candidate
            )
        if component.split(".")[0].upper() in _WINDOWS_RESERVED:
            raise SecurityError(
                f"Windows reserved device name: {component!r}", path=candidate
            )

    def validate_resolved(self, candidate: str | Path, resolved: str | Path) -> None:
        """Require the fully resolved target to lie inside an allowed root.

        This runs after symlink expansion: a link that sits lexically inside a
        root but points outside of it is rejected here.
        """
        if not self.is_path_allowed(resolved):
            logger.warning("Rejected path outside allowed roots: %s -> %s", candidate, resolved)
            raise SecurityError(
                f"Path resolves outside the allowed directories: {candidate} -> {resolved}",
                path=candidate,
            )
