"""Platform detection and adapter construction."""

from __future__ import annotations

import logging
import os
import platform as _platform
from collections.abc import Callable, Mapping

from core.platform.base import CommandRunner, Platform, PlatformAdapter, PlatformCapability
from core.platform.unix import UnixAdapter
from core.platform.windows import WindowsAdapter
from core.platform.wsl import WSLAdapter

logger = logging.getLogger(__name__)

_ADAPTERS: dict[Platform, type[PlatformAdapter]] = {
    Platform.UNIX: UnixAdapter,
    Platform.WINDOWS: WindowsAdapter,
    Platform.WSL: WSLAdapter,
}


def detect_platform(
    system: str | None = None,
    environ: Mapping[str, str] | None = None,
    release: str | None = None,
) -> Platform:
    """Classify the running OS as Unix, Windows, or WSL.

    WSL reports itself as Linux, so it is told apart by the variables WSL
    exports into every session, or by ``microsoft`` in the kernel release.
    """
    system = system if system is not None else _platform.system()
    if system == "Windows" or system.startswith(("CYGWIN", "MSYS")):
        return Platform.WINDOWS
    if system != "Linux":
        return Platform.UNIX

    env = os.environ if environ is None else environ
    if env.get("WSL_DISTRO_NAME") or env.get("WSLENV"):
        return Platform.WSL
    release = release if release is not None else _platform.release()
    if "microsoft" in release.lower():
        return Platform.WSL
    return Platform.UNIX


class PlatformFactory:
    """Builds and caches the adapter for the running platform."""

    def __init__(
        self,
        *,
        runner: CommandRunner | None = None,
        strict_immutable: bool = False,
        detector: Callable[[], Platform] = detect_platform,
    ) -> None:
        self._runner = runner
        self._strict_immutable = strict_immutable
        self._detector = detector
        self._adapter: PlatformAdapter | None = None

    def detect_platform(self) -> Platform:
        return self._detector()

    def create_adapter(self) -> PlatformAdapter:
        if self._adapter is None:
            detected = self.detect_platform()
            adapter_cls = _ADAPTERS[detected]
            self._adapter = adapter_cls(
                self._runner, strict_immutable=self._strict_immutable
            )
            logger.debug("Using %s for platform %s", adapter_cls.__name__, detected)
        return self._adapter

    def reset(self) -> None:
        self._adapter = None

    def platform_info(self) -> PlatformCapability:
        return self.create_adapter().capability()
