"""Pre-commit integration — keep locked protected files out of commits.

``check_commit`` intersects the files about to be committed with the
protected targets and reports the ones that are locked, or whose lock
state cannot be read.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.context import LockContext
from core.errors import ValidationError, from_os_error
from core.git import GitRepository
from core.operations import FileOperationService
from core.security import ResolvedPath

logger = logging.getLogger(__name__)

HOOK_MARKER = "# managed by lockguard"


def render_pre_commit_hook() -> str:
    return f"#!/bin/sh\n{HOOK_MARKER}\nexec lockguard pre-commit-check\n"


def install_pre_commit_hook(repo: GitRepository, *, force: bool = False) -> Path:
    """Write the pre-commit hook into *repo*'s hooks directory.

    An existing hook that lockguard did not write is only replaced with *force*.
    """
    hook = repo.hooks_dir() / "pre-commit"
    try:
        if hook.exists() and not force and HOOK_MARKER not in hook.read_text(errors="replace"):
            raise ValidationError(
                f"{hook} exists and is not managed by lockguard (use --force to overwrite)",
                path=hook,
            )
        hook.parent.mkdir(parents=True, exist_ok=True)
        hook.write_text(render_pre_commit_hook(), encoding="utf-8")
        hook.chmod(0o755)
    except OSError as exc:
        raise from_os_error(exc, hook) from exc
    logger.info("Installed pre-commit hook at %s", hook)
    return hook


@dataclass(frozen=True)
class BlockedFile:
    path: Path
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"path": str(self.path), "reason": self.reason}


def check_commit(context: LockContext, candidates: Iterable[str | Path]) -> list[BlockedFile]:
    """Protected files among *candidates* that are locked or cannot be checked."""
    protected = {Path(p): p for p in context.resolve_targets()}
    wanted: list[ResolvedPath] = []
    for raw in candidates:
        vetted = protected.get(Path(raw).resolve())
        if vetted is not None and vetted not in wanted:
            wanted.append(vetted)

    states, failed = FileOperationService(context).status(wanted)
    blocked = [BlockedFile(state.path, "locked") for state in states if state.locked]
    blocked.extend(
        BlockedFile(f.path, f"cannot check lock status: {f.error.message}") for f in failed
    )
    logger.debug("Commit check: %d candidates protected, %d blocked", len(wanted), len(blocked))
    return blocked
