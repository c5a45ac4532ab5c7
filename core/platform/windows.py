"""Windows adapter — read-only attribute plus a deny-write ACL entry.

Windows has no immutable flag. ``os.chmod`` toggles FILE_ATTRIBUTE_READONLY,
and ``icacls`` adds a deny (W,D) entry for the current user so the read-only
bit cannot simply be cleared from Explorer. The ACL step is best-effort:
without it the file is still read-only.
"""

from __future__ import annotations

import getpass
import logging
import os
import stat
import subprocess
from pathlib import Path

from core.errors import from_os_error
from core.platform.base import CommandRunner, LockState, Platform, PlatformAdapter

logger = logging.getLogger(__name__)


def _current_user() -> str:
    user = os.environ.get("USERNAME") or getpass.getuser()
    domain = os.environ.get("USERDOMAIN")
    if domain and domain not in ("", "WORKGROUP"):
        return f"{domain}\\{user}"
    return user


class WindowsAdapter(PlatformAdapter):
    platform = Platform.WINDOWS

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        strict_immutable: bool = False,
        username: str | None = None,
    ) -> None:
        super().__init__(runner, strict_immutable=strict_immutable)
        self._user = username or _current_user()

    def supports_immutable(self, path: Path | None = None) -> bool:
        return False

    def lock(self, path: Path) -> LockState:
        self.require_exists(path)
        if self.is_locked(path):
            return self.state(path)

        self.downgrade(path, "Windows has no immutable attribute")
        self.make_read_only(path)
        self._icacls(path, "/deny", f"{self._user}:(W,D)")
        return self.state(path)

    def unlock(self, path: Path) -> LockState:
        self.require_exists(path)
        # The deny entry blocks attribute writes, so it goes first
        self._icacls(path, "/remove:d", self._user)
        self.make_writable(path)
        return self.state(path)

    def is_locked(self, path: Path) -> bool:
        try:
            st = os.stat(path)
        except OSError as exc:
            raise from_os_error(exc, path) from exc
        attributes = getattr(st, "st_file_attributes", None)
        if attributes is not None:
            return bool(attributes & stat.FILE_ATTRIBUTE_READONLY)
        return not st.st_mode & stat.S_IWUSR

    def _icacls(self, path: Path, *args: str) -> bool:
        try:
            result = self._run(["icacls", str(path), *args, "/Q"])
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.debug("icacls unavailable for %s: %s", path, exc)
            return False
        if result.returncode != 0:
            logger.warning(
                "icacls %s failed on %s: %s",
                args[0],
                path,
                (result.stderr or result.stdout).strip(),
            )
            return False
        return True
