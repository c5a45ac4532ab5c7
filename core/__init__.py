"""lockguard core — path vetting, platform adapters, and batch operations."""

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

try:
    __version__: str = _pkg_version("lockguard")
except PackageNotFoundError:
    __version__ = "dev"
