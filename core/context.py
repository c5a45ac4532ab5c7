"""LockContext — everything one invocation needs, built once and passed explicitly."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from core.config import Config, find_pattern_file
from core.platform import Platform, PlatformAdapter, PlatformFactory, to_wsl_path
from core.platform.base import CommandRunner
from core.security import PatternSet, ResolvedPath, SecurePathValidator

logger = logging.getLogger(__name__)


class LockContext:
    """Owns the path validator and the platform factory for one run."""

    def __init__(
        self,
        config: Config,
        validator: SecurePathValidator,
        factory: PlatformFactory,
    ) -> None:
        self.config = config
        self.validator = validator
        self.factory = factory

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        runner: CommandRunner | None = None,
        factory: PlatformFactory | None = None,
    ) -> LockContext:
        validator = SecurePathValidator(config.path_options())
        factory = factory or PlatformFactory(
            runner=runner, strict_immutable=config.lock.strict_immutable
        )
        return cls(config, validator, factory)

    @property
    def adapter(self) -> PlatformAdapter:
        return self.factory.create_adapter()

    @property
    def project_root(self) -> Path:
        return self.config.project_root

    def pattern_source(self, pattern_file: str | Path | None = None) -> ResolvedPath | None:
        """Vet *pattern_file*, or discover one.

        Discovery walks up from the working directory and stops at the project root.
        """
        if pattern_file is None:
            found = find_pattern_file(
                Path.cwd(), self.config.lock.pattern_file, stop_at=self.project_root
            )
            if found is None:
                return None
            pattern_file = found
        return self.validator.validate_and_sanitize_path(pattern_file)

    def load_patterns(self, pattern_file: str | Path | None = None) -> PatternSet:
        """Patterns from *pattern_file*, the discovered pattern file, or the defaults."""
        source = self.pattern_source(pattern_file)
        if source is None:
            logger.debug("No %s found, using default patterns", self.config.lock.pattern_file)
            return PatternSet.from_lines(self.config.lock.default_patterns)
        return self.validator.load_patterns_from_file(source)

    def resolve_targets(
        self,
        paths: Iterable[str | Path] = (),
        patterns: PatternSet | Iterable[str] | None = None,
        pattern_file: str | Path | None = None,
    ) -> list[ResolvedPath]:
        """Vet explicit *paths*, or expand *patterns* under the project root.

        With neither, the pattern file is expanded from its own directory, or
        the default patterns from the project root.
        Under WSL, Windows-style paths (``C:\\x``) are translated to ``/mnt/c/x``.
        """
        explicit = list(paths)
        if explicit and self.adapter.platform is Platform.WSL:
            explicit = [to_wsl_path(str(raw)) for raw in explicit]
        if explicit:
            targets: list[ResolvedPath] = []
            for raw in explicit:
                resolved = self.validator.validate_and_sanitize_path(raw)
                if resolved not in targets:
                    targets.append(resolved)
            return targets

        if patterns is not None:
            return self.validator.find_matching_files(patterns, self.project_root)
        source = self.pattern_source(pattern_file)
        if source is None:
            defaults = PatternSet.from_lines(self.config.lock.default_patterns)
            return self.validator.find_matching_files(defaults, self.project_root)
        return self.validator.find_matching_files(
            self.validator.load_patterns_from_file(source), source.parent
        )
