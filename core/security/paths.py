"""SecurePathValidator — the single entry point for vetting paths before mutation.

Composes the sanitizer, the allowed-root validator and the glob validator
into one pipeline:

    sanitize -> validate_path_security -> lexical root check
             -> resolve (symlinks) -> post-resolution root check

Only this module produces ``ResolvedPath`` values; platform adapters accept
nothing else.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import NewType

from core.errors import FilesystemError, SecurityError
from core.security.globs import DEFAULT_IGNORE_DIRS, GlobValidator, PatternSet
from core.security.sanitizer import PathKind, PathSanitizer
from core.security.validator import SecurityValidator

logger = logging.getLogger(__name__)

ResolvedPath = NewType("ResolvedPath", Path)


@dataclass(frozen=True)
class PathOptions:
    """Every option the facade understands, and nothing else.

    allowed_roots:   directories that bound all file operations
    fail_closed:     with no roots, reject everything (True) or allow everything (False)
    follow_symlinks: descend into symlinked directories during pattern expansion
    case_sensitive:  compare roots and patterns case-sensitively
    require_file:    validated paths must be existing regular files
    ignore_dirs:     directory names never descended during expansion
    """

    allowed_roots: tuple[Path, ...] = ()
    fail_closed: bool = True
    follow_symlinks: bool = False
    case_sensitive: bool = True
    require_file: bool = False
    ignore_dirs: frozenset[str] = field(default=DEFAULT_IGNORE_DIRS)


class SecurePathValidator:
    """Validate-then-resolve pipeline for raw paths and pattern sets."""

    def __init__(self, options: PathOptions | None = None) -> None:
        self._options = options or PathOptions()
        self._sanitizer = PathSanitizer()
        self._security = SecurityValidator(
            self._options.allowed_roots,
            fail_closed=self._options.fail_closed,
            case_sensitive=self._options.case_sensitive,
        )
        self._globs = GlobValidator(
            case_sensitive=self._options.case_sensitive,
            ignore_dirs=self._options.ignore_dirs,
        )

    @property
    def options(self) -> PathOptions:
        return self._options

    @property
    def allowed_roots(self) -> tuple[Path, ...]:
        return self._security.allowed_roots

    def validate_and_sanitize_path(
        self, raw: str | Path, root: str | Path | None = None
    ) -> ResolvedPath:
        """Run the full pipeline on *raw*, failing at the first violation."""
        resolved = self._vet(raw, root)
        if self._options.require_file:
            self._sanitizer.validate_type(resolved, "file")
        return resolved

    def _vet(self, raw: str | Path, root: str | Path | None) -> ResolvedPath:
        candidate = self._sanitizer.sanitize(str(raw) if isinstance(raw, Path) else raw)
        self._security.validate_path_security(candidate)

        base = Path(root).resolve() if root is not None else Path.cwd()
        lexical = self._sanitizer.join(candidate, base)
        if root is not None and not (
            lexical.is_relative_to(base) or lexical.is_relative_to(os.path.abspath(root))
        ):
            raise SecurityError(
                f"Path escapes its base directory: {raw} (base {base})", path=str(raw)
            )
        if not self._security.is_lexically_allowed(lexical):
            logger.warning("Rejected path outside allowed roots: %s", raw)
            raise SecurityError(
                f"Path outside the allowed directories: {raw}", path=str(raw)
            )

        resolved = self._sanitizer.resolve(candidate, base)
        self._security.validate_resolved(candidate, resolved)
        return ResolvedPath(resolved)

    def revalidate(self, path: ResolvedPath) -> ResolvedPath:
        """Re-resolve a vetted path right before it is mutated.

        Fails if the path no longer resolves to itself (a component was
        swapped for a symlink since validation) or has left the roots.
        """
        current = self._sanitizer.resolve(str(path))
        if current != Path(path):
            logger.warning("Path changed since validation: %s -> %s", path, current)
            raise SecurityError(
                f"Path changed since validation: {path} now resolves to {current}",
                path=str(path),
            )
        self._security.validate_resolved(path, current)
        if not current.exists():
            raise FilesystemError(f"Path no longer exists: {path}", path=str(path))
        return ResolvedPath(current)

    def find_matching_files(
        self,
        patterns: PatternSet | Iterable[str],
        base_dir: str | Path | None = None,
    ) -> list[ResolvedPath]:
        """Expand *patterns* under *base_dir*, re-validating every result.

        A result that fails the security stage aborts the expansion with
        ``SecurityError`` rather than being dropped.
        """
        base = self._vet(base_dir if base_dir is not None else Path.cwd(), None)
        self._sanitizer.validate_type(base, "directory")

        expanded = self._globs.find_matching_files(
            patterns, base, follow_symlinks=self._options.follow_symlinks
        )
        vetted: list[ResolvedPath] = []
        seen: set[Path] = set()
        for path in expanded:
            resolved = self.validate_and_sanitize_path(str(path))
            if resolved in seen:
                continue
            seen.add(resolved)
            vetted.append(resolved)
        return vetted

    def validate_type(self, path: str | Path, expected: PathKind) -> None:
        self._sanitizer.validate_type(path, expected)

    def matches_pattern(
        self,
        path: str | Path,
        patterns: PatternSet | Iterable[str],
        base_dir: str | Path | None = None,
    ) -> bool:
        return self._globs.matches_pattern(path, patterns, base_dir)

    def load_patterns_from_file(self, path: str | Path) -> PatternSet:
        return self._globs.load_patterns_from_file(path)
