"""Platform adapters that lock and unlock files with native OS attributes."""

from core.platform.base import (
    LockState,
    Platform,
    PlatformAdapter,
    PlatformCapability,
    run_command,
)
from core.platform.factory import PlatformFactory, detect_platform
from core.platform.unix import UnixAdapter, has_immutable_capability
from core.platform.windows import WindowsAdapter
from core.platform.wsl import WSLAdapter, to_wsl_path

__all__ = [
    "LockState",
    "Platform",
    "PlatformAdapter",
    "PlatformCapability",
    "PlatformFactory",
    "UnixAdapter",
    "WSLAdapter",
    "WindowsAdapter",
    "detect_platform",
    "has_immutable_capability",
    "run_command",
    "to_wsl_path",
]
