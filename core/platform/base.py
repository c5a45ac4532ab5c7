"""Platform adapter interface and shared permission helpers.

Adapters never keep lock state of their own: ``is_locked`` and ``state``
query the OS every time they are called.
"""

from __future__ import annotations

import abc
import logging
import os
import stat
import subprocess
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any

from core.errors import AccessDeniedError, FilesystemError, from_os_error

logger = logging.getLogger(__name__)

_WRITE_BITS = stat.S_IWUSR | stat.S_IWGRP | stat.S_IWOTH
_COMMAND_TIMEOUT = 30

CommandRunner = Callable[[Sequence[str]], "subprocess.CompletedProcess[str]"]


class Platform(StrEnum):
    UNIX = "unix"
    WINDOWS = "windows"
    WSL = "wsl"


@dataclass(frozen=True)
class LockState:
    """Lock state of one file as reported by the OS at query time."""

    path: Path
    locked: bool
    immutable: bool = False

    @property
    def guarantee(self) -> str:
        if self.immutable:
            return "immutable"
        if self.locked:
            return "read-only"
        return "none"

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "locked": self.locked,
            "immutable": self.immutable,
            "guarantee": self.guarantee,
        }


@dataclass(frozen=True)
class PlatformCapability:
    """Diagnostic report of what the running platform can enforce."""

    platform: Platform
    os_identifier: str
    is_wsl: bool
    supports_immutable: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": str(self.platform),
            "os_identifier": self.os_identifier,
            "is_wsl": self.is_wsl,
            "supports_immutable": self.supports_immutable,
        }


def run_command(argv: Sequence[str]) -> subprocess.CompletedProcess[str]:
    """Run a fixed argv without a shell."""
    return subprocess.run(
        list(argv),
        capture_output=True,
        text=True,
        timeout=_COMMAND_TIMEOUT,
        shell=False,
        check=False,
    )


class PlatformAdapter(abc.ABC):
    """Locks and unlocks files using the platform's native attributes."""

    platform: Platform

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        strict_immutable: bool = False,
    ) -> None:
        self._run = runner or run_command
        self._strict_immutable = strict_immutable

    @abc.abstractmethod
    def lock(self, path: Path) -> LockState:
        """Apply the platform's immutable or read-only attribute."""
        ...

    @abc.abstractmethod
    def unlock(self, path: Path) -> LockState:
        """Remove the attribute. Unlocking an unlocked file is a no-op."""
        ...

    @abc.abstractmethod
    def is_locked(self, path: Path) -> bool:
        ...

    @abc.abstractmethod
    def supports_immutable(self, path: Path | None = None) -> bool:
        """Whether true immutability (not just read-only) can be enforced.

        With *path*, answer for the filesystem holding that path.
        """
        ...

    def has_immutable_flag(self, path: Path) -> bool:
        return False

    def state(self, path: Path) -> LockState:
        return LockState(
            path=Path(path),
            locked=self.is_locked(path),
            immutable=self.has_immutable_flag(path),
        )

    def capability(self) -> PlatformCapability:
        return PlatformCapability(
            platform=self.platform,
            os_identifier=sys.platform,
            is_wsl=self.platform is Platform.WSL,
            supports_immutable=self.supports_immutable(),
        )

    # ------------------------------------------------------------------
    # Permission-bit helpers shared by every platform
    # ------------------------------------------------------------------

    def require_exists(self, path: Path) -> os.stat_result:
        try:
            return os.stat(path)
        except FileNotFoundError as exc:
            raise FilesystemError(
                f"Cannot lock a path that does not exist: {path}", path=path, errno=exc.errno
            ) from exc
        except OSError as exc:
            raise from_os_error(exc, path) from exc

    def make_read_only(self, path: Path) -> None:
        try:
            mode = os.stat(path).st_mode
            os.chmod(path, stat.S_IMODE(mode) & ~_WRITE_BITS)
        except OSError as exc:
            raise from_os_error(exc, path) from exc

    def make_writable(self, path: Path) -> None:
        try:
            mode = os.stat(path).st_mode
            os.chmod(path, stat.S_IMODE(mode) | stat.S_IWUSR)
        except OSError as exc:
            raise from_os_error(exc, path) from exc

    def is_read_only(self, path: Path) -> bool:
        try:
            return not os.stat(path).st_mode & stat.S_IWUSR
        except OSError as exc:
            raise from_os_error(exc, path) from exc

    def downgrade(self, path: Path, reason: str, *, denied: bool = False) -> None:
        """Report that only the read-only guarantee could be applied.

        Raises when the adapter was built with ``strict_immutable``.
        """
        if self._strict_immutable:
            error = AccessDeniedError if denied else FilesystemError
            raise error(f"Cannot make {path} immutable: {reason}", path=path)
        logger.warning("Locked %s read-only only (not immutable): %s", path, reason)
