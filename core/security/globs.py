"""Gitignore-style pattern sets — parse, compile, match, and expand.

Matching is a fold over the ordered pattern list: a matching pattern sets
the verdict, a matching ``!`` pattern clears it, and whatever state is left
after the last pattern wins. Per-pattern wildcard semantics (``*``, ``**``,
``?``, ``[...]``, anchoring, trailing ``/``) come from ``pathspec``'s
``GitIgnoreSpec``, one spec per pattern.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

import pathspec

from core.errors import FilesystemError, ValidationError, from_os_error

logger = logging.getLogger(__name__)

MAX_PATTERN_LENGTH = 1024
DEFAULT_IGNORE_DIRS: frozenset[str] = frozenset({".git", "node_modules"})
_BROAD_PATTERNS = frozenset({"*", "**", "**/*", "/**", "/**/*", "/*"})


@dataclass(frozen=True)
class Pattern:
    """One parsed gitignore-style line."""

    source: str
    body: str
    negated: bool = False
    anchored: bool = False
    dir_only: bool = False

    @classmethod
    def parse(cls, line: str) -> Pattern:
        source = line.strip()
        body = source
        negated = body.startswith("!")
        if negated:
            body = body[1:]
        anchored = body.startswith("/")
        dir_only = body.endswith("/")
        return cls(
            source=source,
            body=body,
            negated=negated,
            anchored=anchored,
            dir_only=dir_only,
        )


@dataclass(frozen=True)
class PatternSet:
    """Ordered, immutable sequence of patterns."""

    patterns: tuple[Pattern, ...] = ()

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> PatternSet:
        return cls(tuple(Pattern.parse(line) for line in lines))

    @property
    def lines(self) -> list[str]:
        return [p.source for p in self.patterns]

    def __iter__(self) -> Iterator[Pattern]:
        return iter(self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)


@dataclass(frozen=True)
class _CompiledPattern:
    pattern: Pattern
    spec: pathspec.PathSpec


@dataclass(frozen=True)
class Matcher:
    """Compiled form of a PatternSet. Last matching pattern decides."""

    patterns: PatternSet
    case_sensitive: bool = True
    _compiled: tuple[_CompiledPattern, ...] = field(default=(), repr=False)

    def matches(self, rel_path: str | PurePosixPath, *, is_dir: bool = False) -> bool:
        candidate = PurePosixPath(rel_path).as_posix().lstrip("/")
        if not self.case_sensitive:
            candidate = candidate.casefold()
        if is_dir:
            candidate += "/"

        matched = False
        for compiled in self._compiled:
            if compiled.spec.match_file(candidate):
                matched = not compiled.pattern.negated
        return matched


def _as_pattern_set(patterns: PatternSet | Iterable[str]) -> PatternSet:
    if isinstance(patterns, PatternSet):
        return patterns
    if isinstance(patterns, str):
        return PatternSet.from_lines([patterns])
    return PatternSet.from_lines(patterns)


class GlobValidator:
    """Validates, compiles and expands gitignore-style pattern sets."""

    def __init__(
        self,
        *,
        case_sensitive: bool = True,
        ignore_dirs: Iterable[str] = DEFAULT_IGNORE_DIRS,
    ) -> None:
        self._case_sensitive = case_sensitive
        self._ignore_dirs = frozenset(ignore_dirs)

    def validate_pattern(self, line: str) -> None:
        if not isinstance(line, str) or not line.strip():
            raise ValidationError("Pattern must be a non-empty string")
        if len(line) > MAX_PATTERN_LENGTH:
            raise ValidationError(
                f"Pattern exceeds maximum length of {MAX_PATTERN_LENGTH} characters"
            )
        if "\x00" in line:
            raise ValidationError("Pattern contains a null byte")

        body = line.strip().lstrip("!")
        if not body.strip("/"):
            raise ValidationError(f"Pattern has no body: {line!r}")
        if ".." in PurePosixPath(body).parts:
            raise ValidationError(f"Pattern may not contain '..' segments: {line!r}")
        if body in _BROAD_PATTERNS:
            logger.warning("Pattern %r matches every file under the base directory", line)

    def compile(self, patterns: PatternSet | Iterable[str]) -> Matcher:
        pattern_set = _as_pattern_set(patterns)
        compiled: list[_CompiledPattern] = []
        for pattern in pattern_set:
            self.validate_pattern(pattern.source)
            body = pattern.body if self._case_sensitive else pattern.body.casefold()
            try:
                spec = pathspec.GitIgnoreSpec.from_lines([body])
            except ValueError as exc:
                raise ValidationError(
                    f"Invalid pattern {pattern.source!r}: {exc}"
                ) from exc
            compiled.append(_CompiledPattern(pattern=pattern, spec=spec))
        return Matcher(
            patterns=pattern_set,
            case_sensitive=self._case_sensitive,
            _compiled=tuple(compiled),
        )

    def matches_pattern(
        self,
        path: str | Path,
        patterns: PatternSet | Iterable[str],
        base_dir: str | Path | None = None,
    ) -> bool:
        """Check one path against a pattern set relative to *base_dir*."""
        matcher = self.compile(patterns)
        base = Path(base_dir) if base_dir is not None else Path.cwd()
        p = Path(path)
        if p.is_absolute():
            try:
                rel = p.relative_to(base)
            except ValueError:
                return False
            full = p
        else:
            rel, full = p, base / p
        return matcher.matches(rel.as_posix(), is_dir=full.is_dir())

    def find_matching_files(
        self,
        patterns: PatternSet | Iterable[str],
        base_dir: str | Path,
        *,
        follow_symlinks: bool = False,
    ) -> list[Path]:
        """Walk *base_dir* and return matching files in stable sorted order.

        Symlinked files are listed as-is (callers must re-validate where they
        point); symlinked directories are only descended with *follow_symlinks*.
        """
        base = Path(base_dir)
        if not base.is_dir():
            raise FilesystemError(f"Base directory does not exist: {base}", path=base)
        matcher = self.compile(patterns)
        if not len(matcher.patterns):
            return []

        found: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(base, followlinks=follow_symlinks):
            dirnames[:] = sorted(d for d in dirnames if d not in self._ignore_dirs)
            current = Path(dirpath)
            for name in sorted(filenames):
                entry = current / name
                rel = entry.relative_to(base).as_posix()
                if matcher.matches(rel):
                    found.append(entry)

        found.sort(key=lambda p: p.as_posix())
        logger.debug("Pattern expansion under %s matched %d files", base, len(found))
        return found

    def load_patterns_from_file(self, path: str | Path) -> PatternSet:
        """Parse a newline-delimited pattern file, skipping blanks and comments."""
        p = Path(path)
        try:
            content = p.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise FilesystemError(f"Pattern file not found: {p}", path=p) from exc
        except UnicodeDecodeError as exc:
            raise ValidationError(f"Pattern file is not valid UTF-8: {p}", path=p) from exc
        except OSError as exc:
            raise from_os_error(exc, p) from exc

        lines = [
            line.strip()
            for line in content.splitlines()
            if line.strip() and not line.lstrip().startswith("#")
        ]
        return PatternSet.from_lines(lines)
