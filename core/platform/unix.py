"""Unix adapter — read-only permissions plus the kernel's immutable flag.

Linux uses ``chattr +i`` / ``lsattr``; BSD and macOS use ``os.chflags`` with
``UF_IMMUTABLE`` (what ``chflags uchg`` sets). Setting the Linux flag needs
``CAP_LINUX_IMMUTABLE``, which is read from ``/proc/self/status``.
"""

from __future__ import annotations

import errno
import functools
import logging
import os
import platform
import shutil
import stat
import subprocess
from collections.abc import Callable
from pathlib import Path

from core.errors import AccessDeniedError, FilesystemError, LockGuardError, from_os_error
from core.platform.base import CommandRunner, LockState, Platform, PlatformAdapter

logger = logging.getLogger(__name__)

_BSD_SYSTEMS = frozenset({"Darwin", "FreeBSD", "OpenBSD", "NetBSD", "DragonFly"})
_DENIED_MARKERS = ("Operation not permitted", "Permission denied")
_PROC_STATUS = Path("/proc/self/status")
_CAP_LINUX_IMMUTABLE = 9


def has_immutable_capability(status_file: Path = _PROC_STATUS) -> bool:
    """Whether this process holds ``CAP_LINUX_IMMUTABLE``.

    Unknown (no procfs, no ``CapEff`` line) counts as capable and leaves the
    decision to chattr.
    """
    try:
        text = status_file.read_text(encoding="utf-8")
    except OSError as exc:
        logger.debug("Cannot read %s: %s", status_file, exc)
        return True
    for line in text.splitlines():
        if line.startswith("CapEff:"):
            try:
                effective = int(line.split()[1], 16)
            except (IndexError, ValueError):
                return True
            return bool(effective >> _CAP_LINUX_IMMUTABLE & 1)
    return True


class UnixAdapter(PlatformAdapter):
    platform = Platform.UNIX

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        strict_immutable: bool = False,
        system: str | None = None,
        which: Callable[[str], str | None] = shutil.which,
        capable: Callable[[], bool] = has_immutable_capability,
    ) -> None:
        super().__init__(runner, strict_immutable=strict_immutable)
        self._system = system or platform.system()
        self._which = which
        self._capable = capable
        # Set once chattr is refused; later files go straight to read-only
        self._immutable_refused = False

    @property
    def _is_linux(self) -> bool:
        return self._system == "Linux"

    @property
    def _is_bsd(self) -> bool:
        return self._system in _BSD_SYSTEMS and hasattr(os, "chflags")

    @functools.cached_property
    def _has_capability(self) -> bool:
        return self._capable()

    def supports_immutable(self, path: Path | None = None) -> bool:
        if self._is_linux:
            return (
                self._which("chattr") is not None
                and self._has_capability
                and not self._immutable_refused
            )
        return self._is_bsd

    def unsupported_reason(self, path: Path) -> str:
        if self._is_linux:
            if self._which("chattr") is None:
                return "chattr is not installed"
            if not self._has_capability:
                return "process lacks CAP_LINUX_IMMUTABLE (run as root)"
            return "the kernel refused the immutable flag"
        return f"immutable flags are not available on {self._system}"

    def _immutable_denied(self, path: Path) -> bool:
        if not self._is_linux or self._which("chattr") is None:
            return False
        return not self._has_capability or self._immutable_refused

    def lock(self, path: Path) -> LockState:
        st = self.require_exists(path)
        if self.has_immutable_flag(path):
            return self.state(path)

        if self.supports_immutable(path):
            self.make_read_only(path)
            try:
                self._set_immutable(path, True)
            except LockGuardError:
                self._restore_mode(path, stat.S_IMODE(st.st_mode))
                raise
        else:
            self.downgrade(
                path, self.unsupported_reason(path), denied=self._immutable_denied(path)
            )
            self.make_read_only(path)
        logger.debug("Locked %s", path)
        return self.state(path)

    def _restore_mode(self, path: Path, mode: int) -> None:
        try:
            os.chmod(path, mode)
        except OSError as exc:
            logger.error("Could not restore mode %o on %s: %s", mode, path, exc)

    def unlock(self, path: Path) -> LockState:
        self.require_exists(path)
        if self.has_immutable_flag(path):
            self._set_immutable(path, False)
        self.make_writable(path)
        logger.debug("Unlocked %s", path)
        return self.state(path)

    def is_locked(self, path: Path) -> bool:
        return self.has_immutable_flag(path) or self.is_read_only(path)

    def has_immutable_flag(self, path: Path) -> bool:
        if self._is_bsd:
            try:
                flags = getattr(os.stat(path), "st_flags", 0)
            except OSError as exc:
                raise from_os_error(exc, path) from exc
            return bool(flags & stat.UF_IMMUTABLE)

        if not self._is_linux or self._which("lsattr") is None:
            return False
        try:
            result = self._run(["lsattr", "-d", str(path)])
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.debug("lsattr failed for %s: %s", path, exc)
            return False
        if result.returncode != 0:
            logger.debug("lsattr failed for %s: %s", path, result.stderr.strip())
            return False
        fields = result.stdout.split()
        return bool(fields) and "i" in fields[0]

    def _set_immutable(self, path: Path, enable: bool) -> None:
        if self._is_bsd:
            self._chflags(path, enable)
        else:
            self._chattr(path, enable)

    def _chflags(self, path: Path, enable: bool) -> None:
        try:
            flags = getattr(os.stat(path), "st_flags", 0)
            new_flags = flags | stat.UF_IMMUTABLE if enable else flags & ~stat.UF_IMMUTABLE
            os.chflags(path, new_flags)
        except OSError as exc:
            if not enable:
                raise from_os_error(exc, path) from exc
            denied = exc.errno in (errno.EPERM, errno.EACCES)
            self.downgrade(path, exc.strerror or str(exc), denied=denied)

    def _chattr(self, path: Path, enable: bool) -> None:
        argv = ["chattr", "+i" if enable else "-i", str(path)]
        try:
            result = self._run(argv)
        except subprocess.TimeoutExpired as exc:
            raise FilesystemError(f"chattr timed out on {path}", path=path) from exc
        except OSError as exc:
            if not enable:
                raise from_os_error(exc, path) from exc
            self.downgrade(path, f"cannot run chattr: {exc}")
            return

        if result.returncode == 0:
            return
        detail = result.stderr.strip() or f"chattr exited with {result.returncode}"
        denied = any(marker in detail for marker in _DENIED_MARKERS)
        if enable:
            if denied:
                self._immutable_refused = True
            self.downgrade(path, detail, denied=denied)
            return
        if denied:
            raise AccessDeniedError(
                f"Cannot clear immutable flag on {path}: {detail}",
                path=path,
                errno=errno.EPERM,
            )
        raise FilesystemError(f"Cannot clear immutable flag on {path}: {detail}", path=path)
