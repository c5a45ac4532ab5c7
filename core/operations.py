"""Batch lock/unlock over vetted paths.

Each target runs on a worker thread (``asyncio.to_thread``) bounded by a
semaphore. On that thread the path is re-validated immediately before the
adapter mutates it, which narrows the window between check and use.
A failure on one target is recorded and never stops its siblings.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from core.context import LockContext
from core.errors import LockGuardError, ValidationError
from core.platform import LockState
from core.security import ResolvedPath

logger = logging.getLogger(__name__)


class Operation(StrEnum):
    LOCK = "lock"
    UNLOCK = "unlock"


class _Status(StrEnum):
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class _Outcome:
    status: _Status
    state: LockState | None = None
    error: LockGuardError | None = None


@dataclass(frozen=True)
class OperationOptions:
    dry_run: bool = False
    max_workers: int = 4

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValidationError(f"max_workers must be at least 1, got {self.max_workers}")


@dataclass(frozen=True)
class FailedTarget:
    path: Path
    error: LockGuardError

    def to_dict(self) -> dict[str, Any]:
        return {"path": str(self.path), **self.error.to_dict()}


@dataclass
class OperationResult:
    """Per-target outcome of one batch, in target order."""

    operation: Operation
    dry_run: bool = False
    successful: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    failed: list[FailedTarget] = field(default_factory=list)
    cancelled: list[Path] = field(default_factory=list)
    states: dict[Path, LockState] = field(default_factory=dict)
    total_files: int = 0

    @property
    def completed(self) -> bool:
        return not self.cancelled

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": str(self.operation),
            "dry_run": self.dry_run,
            "total_files": self.total_files,
            "completed": self.completed,
            "successful": [str(p) for p in self.successful],
            "skipped": [str(p) for p in self.skipped],
            "failed": [f.to_dict() for f in self.failed],
            "cancelled": [str(p) for p in self.cancelled],
        }


class FileOperationService:
    """Applies lock or unlock to a set of vetted paths."""

    def __init__(self, context: LockContext) -> None:
        self._context = context

    async def process(
        self,
        operation: Operation | str,
        targets: Sequence[ResolvedPath],
        options: OperationOptions | None = None,
        cancel: asyncio.Event | None = None,
    ) -> OperationResult:
        operation = Operation(operation)
        options = options or OperationOptions(max_workers=self._context.config.lock.max_workers)
        semaphore = asyncio.Semaphore(options.max_workers)

        async def _run(path: ResolvedPath) -> _Outcome:
            if cancel is not None and cancel.is_set():
                return _Outcome(_Status.CANCELLED)
            async with semaphore:
                # Re-checked once a slot frees up
                if cancel is not None and cancel.is_set():
                    return _Outcome(_Status.CANCELLED)
                try:
                    return await asyncio.to_thread(
                        self._apply, operation, path, options.dry_run
                    )
                except LockGuardError as e:
                    logger.debug("%s failed for %s: %s", operation, path, e)
                    return _Outcome(_Status.FAILED, error=e)

        outcomes = await asyncio.gather(*(_run(path) for path in targets))

        result = OperationResult(
            operation=operation, dry_run=options.dry_run, total_files=len(targets)
        )
        for path, outcome in zip(targets, outcomes, strict=True):
            key = Path(path)
            if outcome.error is not None:
                result.failed.append(FailedTarget(key, outcome.error))
                continue
            if outcome.status is _Status.CANCELLED:
                result.cancelled.append(key)
                continue
            if outcome.state is not None:
                result.states[key] = outcome.state
            if outcome.status is _Status.SKIPPED:
                result.skipped.append(key)
            else:
                result.successful.append(key)

        logger.info(
            "%s%s: %d ok, %d skipped, %d failed, %d cancelled (of %d)",
            operation,
            " (dry run)" if options.dry_run else "",
            len(result.successful),
            len(result.skipped),
            len(result.failed),
            len(result.cancelled),
            result.total_files,
        )
        return result

    def _apply(
        self, operation: Operation, path: ResolvedPath, dry_run: bool
    ) -> _Outcome:
        validator = self._context.validator
        adapter = self._context.adapter

        current_path = validator.revalidate(path)
        validator.validate_type(current_path, "file")
        current = adapter.state(current_path)

        if self._in_target_state(operation, current):
            return _Outcome(_Status.SKIPPED, current)
        if dry_run:
            return _Outcome(_Status.DONE, current)

        if operation is Operation.LOCK:
            return _Outcome(_Status.DONE, adapter.lock(current_path))
        return _Outcome(_Status.DONE, adapter.unlock(current_path))

    def _in_target_state(self, operation: Operation, state: LockState) -> bool:
        if operation is Operation.UNLOCK:
            return not state.locked
        if state.immutable:
            return True
        # A read-only file is upgraded only where the immutable flag can be set
        return state.locked and not self._context.adapter.supports_immutable(state.path)

    def status(
        self, targets: Sequence[ResolvedPath]
    ) -> tuple[list[LockState], list[FailedTarget]]:
        """Query the OS for the current state of every target."""
        states: list[LockState] = []
        failed: list[FailedTarget] = []
        for path in targets:
            try:
                states.append(self._context.adapter.state(path))
            except LockGuardError as e:
                failed.append(FailedTarget(Path(path), e))
        return states, failed
