"""Git access for the commit hook: repository root, staged files, hooks directory.

Every call runs ``git -C <root> ...`` as a fixed argv, never through a shell.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from core.errors import FilesystemError, from_os_error
from core.platform.base import CommandRunner, run_command

logger = logging.getLogger(__name__)


class GitRepository:
    """A git working tree rooted at ``root``."""

    def __init__(self, root: Path, runner: CommandRunner | None = None) -> None:
        self.root = Path(root)
        self._run = runner or run_command

    @classmethod
    def discover(
        cls, start: Path | str, runner: CommandRunner | None = None
    ) -> GitRepository | None:
        """The repository containing *start*, or None outside git (or without git)."""
        run = runner or run_command
        try:
            result = run(["git", "-C", str(start), "rev-parse", "--show-toplevel"])
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.debug("Cannot run git in %s: %s", start, exc)
            return None
        if result.returncode != 0:
            logger.debug("%s is not inside a git repository", start)
            return None
        return cls(Path(result.stdout.strip()).resolve(), runner)

    def _git(self, *args: str) -> str:
        try:
            result = self._run(["git", "-C", str(self.root), *args])
        except subprocess.TimeoutExpired as exc:
            raise FilesystemError(f"git {args[0]} timed out", path=self.root) from exc
        except OSError as exc:
            raise from_os_error(exc, self.root) from exc
        if result.returncode != 0:
            detail = result.stderr.strip() or f"exited with {result.returncode}"
            raise FilesystemError(f"git {args[0]} failed: {detail}", path=self.root)
        return result.stdout

    def staged_files(self) -> list[Path]:
        """Files added, copied, modified or renamed in the index."""
        out = self._git("diff", "--cached", "--name-only", "-z", "--diff-filter=ACMR")
        return [self.root / name for name in out.split("\0") if name]

    def hooks_dir(self) -> Path:
        # Honors core.hooksPath and linked worktrees
        path = Path(self._git("rev-parse", "--git-path", "hooks").strip())
        return path if path.is_absolute() else self.root / path
