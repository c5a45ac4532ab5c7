"""WSL adapter — Unix behaviour on native filesystems, read-only on host mounts.

Files under a Windows drive mounted into WSL (drvfs / 9p) cannot carry the
Linux immutable flag; on those the adapter falls back to read-only
permissions, which drvfs maps onto the Windows read-only attribute.
"""

from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Callable
from pathlib import Path, PurePosixPath

from core.platform.base import CommandRunner, Platform
from core.platform.unix import UnixAdapter, has_immutable_capability

logger = logging.getLogger(__name__)

_HOST_FILESYSTEMS = frozenset({"9p", "drvfs", "v9fs"})
_DRIVE_MOUNT = re.compile(r"^/mnt/[a-z]$")
_WINDOWS_PATH = re.compile(r"^([A-Za-z]):[\\/](.*)$")
_MOUNTS_FILE = Path("/proc/self/mounts")


def to_wsl_path(raw: str) -> str:
    r"""Translate ``C:\Users\me`` into ``/mnt/c/Users/me``; other input is returned unchanged."""
    match = _WINDOWS_PATH.match(raw)
    if not match:
        return raw
    drive, rest = match.groups()
    rest = rest.replace("\\", "/")
    return f"/mnt/{drive.lower()}/{rest}".rstrip("/")


def _unescape_mount_field(value: str) -> str:
    # /proc/mounts escapes space, tab, newline and backslash as octal
    return re.sub(r"\\([0-7]{3})", lambda m: chr(int(m.group(1), 8)), value)


class WSLAdapter(UnixAdapter):
    platform = Platform.WSL

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        strict_immutable: bool = False,
        mounts_file: str | Path = _MOUNTS_FILE,
        which: Callable[[str], str | None] = shutil.which,
        capable: Callable[[], bool] = has_immutable_capability,
    ) -> None:
        super().__init__(
            runner,
            strict_immutable=strict_immutable,
            system="Linux",
            which=which,
            capable=capable,
        )
        self._mounts_file = Path(mounts_file)

    def _mounts(self) -> list[tuple[PurePosixPath, str]]:
        try:
            content = self._mounts_file.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.debug("Cannot read %s: %s", self._mounts_file, exc)
            return []
        mounts: list[tuple[PurePosixPath, str]] = []
        for line in content.splitlines():
            fields = line.split()
            if len(fields) < 3:
                continue
            mounts.append((PurePosixPath(_unescape_mount_field(fields[1])), fields[2]))
        return mounts

    def mount_for(self, path: Path) -> tuple[PurePosixPath, str] | None:
        """Return ``(mount_point, fstype)`` of the mount holding *path*."""
        target = PurePosixPath(path)
        best: tuple[PurePosixPath, str] | None = None
        for mount_point, fstype in self._mounts():
            if target != mount_point and mount_point not in target.parents:
                continue
            if best is None or len(mount_point.parts) > len(best[0].parts):
                best = (mount_point, fstype)
        return best

    def is_host_mounted(self, path: Path) -> bool:
        mount = self.mount_for(path)
        if mount is None:
            prefix = PurePosixPath(*PurePosixPath(path).parts[:3])
            return bool(_DRIVE_MOUNT.match(str(prefix)))
        mount_point, fstype = mount
        return fstype in _HOST_FILESYSTEMS or bool(_DRIVE_MOUNT.match(str(mount_point)))

    def supports_immutable(self, path: Path | None = None) -> bool:
        if path is not None and self.is_host_mounted(path):
            return False
        return super().supports_immutable(path)

    def unsupported_reason(self, path: Path) -> str:
        if self.is_host_mounted(path):
            return "path is on a Windows filesystem mounted into WSL"
        return super().unsupported_reason(path)

    def _immutable_denied(self, path: Path) -> bool:
        return not self.is_host_mounted(path) and super()._immutable_denied(path)

    def has_immutable_flag(self, path: Path) -> bool:
        if self.is_host_mounted(path):
            return False
        return super().has_immutable_flag(path)
