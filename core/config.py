"""Configuration system for lockguard.

Loads lockguard.yaml, validates the values it can, and provides typed access.
The ``LOCKGUARD_CONFIG`` environment variable overrides the file location.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from core.errors import ValidationError
from core.security.globs import DEFAULT_IGNORE_DIRS
from core.security.paths import PathOptions

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "lockguard.yaml"
PATTERN_FILE_NAME = ".lockguard"

DEFAULT_PATTERNS: tuple[str, ...] = (
    ".env",
    ".env.*",
    "**/*.key",
    "**/*.pem",
    "**/secrets.json",
)


@dataclass
class SecurityConfig:
    """Bounds on which paths may be touched at all."""

    allowed_roots: list[str] = field(default_factory=list)
    fail_closed: bool = True
    follow_symlinks: bool = False
    case_sensitive: bool = True


@dataclass
class LockConfig:
    """Lock/unlock batch behaviour."""

    max_workers: int = 4
    strict_immutable: bool = False
    pattern_file: str = PATTERN_FILE_NAME
    default_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_PATTERNS))
    ignore_dirs: list[str] = field(default_factory=lambda: sorted(DEFAULT_IGNORE_DIRS))


@dataclass
class Config:
    """Top-level lockguard configuration."""

    security: SecurityConfig = field(default_factory=SecurityConfig)
    lock: LockConfig = field(default_factory=LockConfig)
    project_root: Path = field(default_factory=Path.cwd)

    def resolved_roots(self) -> tuple[Path, ...]:
        """Configured roots (relative ones taken from the project root) plus the project root."""
        roots: list[Path] = [self.project_root.resolve()]
        for raw in self.security.allowed_roots:
            root = Path(raw).expanduser()
            if not root.is_absolute():
                root = self.project_root / root
            resolved = root.resolve()
            if resolved not in roots:
                roots.append(resolved)
        return tuple(roots)

    def path_options(self, *, require_file: bool = False) -> PathOptions:
        return PathOptions(
            allowed_roots=self.resolved_roots(),
            fail_closed=self.security.fail_closed,
            follow_symlinks=self.security.follow_symlinks,
            case_sensitive=self.security.case_sensitive,
            require_file=require_file,
            ignore_dirs=frozenset(self.lock.ignore_dirs),
        )


def _parse_security(data: dict[str, Any]) -> SecurityConfig:
    roots = data.get("allowed_roots") or []
    if isinstance(roots, str):
        roots = [roots]
    return SecurityConfig(
        allowed_roots=[str(r) for r in roots],
        fail_closed=bool(data.get("fail_closed", True)),
        follow_symlinks=bool(data.get("follow_symlinks", False)),
        case_sensitive=bool(data.get("case_sensitive", True)),
    )


def _parse_lock(data: dict[str, Any]) -> LockConfig:
    max_workers = data.get("max_workers", 4)
    if not isinstance(max_workers, int) or isinstance(max_workers, bool) or max_workers < 1:
        raise ValidationError(f"lock.max_workers must be a positive integer, got {max_workers!r}")
    return LockConfig(
        max_workers=max_workers,
        strict_immutable=bool(data.get("strict_immutable", False)),
        pattern_file=data.get("pattern_file", PATTERN_FILE_NAME),
        default_patterns=list(data.get("default_patterns") or DEFAULT_PATTERNS),
        ignore_dirs=list(data.get("ignore_dirs") or sorted(DEFAULT_IGNORE_DIRS)),
    )


def load_config(config_path: Path | str | None = None) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: Path to lockguard.yaml. If None, checks LOCKGUARD_CONFIG
                     env var, then falls back to ./lockguard.yaml.

    Returns:
        Populated Config dataclass. A missing file yields the defaults, with
        the project root set to the file's directory.
    """
    if config_path is None:
        env_path = os.environ.get("LOCKGUARD_CONFIG")
        if env_path:
            config_path = Path(env_path)
        else:
            config_path = Path.cwd() / CONFIG_FILE_NAME
    else:
        config_path = Path(config_path)

    project_root = config_path.parent.resolve()
    if not config_path.exists():
        return Config(project_root=project_root)

    try:
        with open(config_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid YAML in {config_path}: {e}", path=config_path) from e

    if not isinstance(raw, dict):
        raise ValidationError(f"{config_path} must contain a mapping", path=config_path)

    config = Config(
        security=_parse_security(raw.get("security") or {}),
        lock=_parse_lock(raw.get("lock") or {}),
        project_root=project_root,
    )
    logger.debug("Loaded configuration from %s", config_path)
    return config


def find_pattern_file(
    start_dir: Path | str,
    name: str = PATTERN_FILE_NAME,
    *,
    stop_at: Path | str | None = None,
) -> Path | None:
    """Walk up from *start_dir* looking for a pattern file.

    With *stop_at*, the walk never leaves that directory; a *start_dir*
    outside it starts the search at *stop_at* instead.
    """
    current = Path(start_dir).resolve()
    boundary = Path(stop_at).resolve() if stop_at is not None else None
    if boundary is not None and not current.is_relative_to(boundary):
        current = boundary
    for directory in (current, *current.parents):
        candidate = directory / name
        if candidate.is_file():
            return candidate
        if directory == boundary:
            break
    return None
