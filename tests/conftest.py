"""Shared test fixtures for lockguard tests."""

from __future__ import annotations

import subprocess
from collections.abc import Sequence
from pathlib import Path

import pytest

from core.config import Config
from core.context import LockContext
from core.platform import PlatformAdapter, PlatformFactory, UnixAdapter
from core.security import PathOptions, SecurePathValidator


class FakeRunner:
    """Stands in for chattr, lsattr and icacls so adapters can be tested without root.

    Immutable flags and deny entries are tracked in memory; permission bits
    are still changed on the real files by the adapters themselves.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.immutable: set[str] = set()
        self.denied: dict[str, str] = {}
        self.fail_chattr: str | None = None
        self.fail_icacls = False

    def __call__(self, argv: Sequence[str]) -> subprocess.CompletedProcess[str]:
        argv = list(argv)
        self.calls.append(argv)
        tool = argv[0]
        if tool == "chattr":
            return self._chattr(argv)
        if tool == "lsattr":
            return self._lsattr(argv)
        if tool == "icacls":
            return self._icacls(argv)
        raise FileNotFoundError(2, "No such file or directory", tool)

    def _done(self, argv: list[str], code: int = 0, out: str = "", err: str = ""):
        return subprocess.CompletedProcess(argv, code, stdout=out, stderr=err)

    def _chattr(self, argv: list[str]):
        flag, path = argv[1], argv[2]
        if self.fail_chattr is not None:
            return self._done(argv, 1, err=f"chattr: {self.fail_chattr} while setting flags on {path}")
        if flag == "+i":
            self.immutable.add(path)
        else:
            self.immutable.discard(path)
        return self._done(argv)

    def _lsattr(self, argv: list[str]):
        path = argv[-1]
        if not Path(path).exists():
            return self._done(argv, 1, err=f"lsattr: No such file or directory while trying to stat {path}")
        attrs = "----i---------e-----" if path in self.immutable else "--------------e-----"
        return self._done(argv, out=f"{attrs} {path}\n")

    def _icacls(self, argv: list[str]):
        if self.fail_icacls:
            return self._done(argv, 5, err="Access is denied.")
        path, action = argv[1], argv[2]
        if action == "/deny":
            self.denied[path] = argv[3]
        elif action == "/remove:d":
            self.denied.pop(path, None)
        return self._done(argv, out="processed file: " + path)

    def commands(self, tool: str) -> list[list[str]]:
        return [c for c in self.calls if c[0] == tool]


class StaticFactory(PlatformFactory):
    """Factory that always hands out one pre-built adapter."""

    def __init__(self, adapter: PlatformAdapter) -> None:
        super().__init__(detector=lambda: adapter.platform)
        self._adapter = adapter

    def reset(self) -> None:
        pass


def _which_all(name: str) -> str | None:
    return f"/usr/bin/{name}"


def _which_none(name: str) -> str | None:
    return None


def capable() -> bool:
    return True


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def linux_adapter(runner: FakeRunner) -> UnixAdapter:
    """Linux adapter with chattr/lsattr available (faked)."""
    return UnixAdapter(runner, system="Linux", which=_which_all, capable=capable)


@pytest.fixture
def plain_adapter(runner: FakeRunner) -> UnixAdapter:
    """Linux adapter on a host without chattr: read-only is all it can do."""
    return UnixAdapter(runner, system="Linux", which=_which_none, capable=capable)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A small project tree with some secrets in it."""
    root = tmp_path.resolve() / "project"
    (root / "config").mkdir(parents=True)
    (root / "src").mkdir()
    (root / "node_modules" / "pkg").mkdir(parents=True)
    (root / ".env").write_text("API_KEY=abc\n")
    (root / ".env.local").write_text("DEBUG=1\n")
    (root / "config" / "server.key").write_text("key\n")
    (root / "config" / "secrets.json").write_text("{}\n")
    (root / "src" / "main.py").write_text("print('hi')\n")
    (root / "node_modules" / "pkg" / "bundled.key").write_text("vendored\n")
    return root


@pytest.fixture
def validator(project: Path) -> SecurePathValidator:
    return SecurePathValidator(PathOptions(allowed_roots=(project,)))


@pytest.fixture
def config(project: Path) -> Config:
    return Config(project_root=project)


@pytest.fixture
def context(config: Config, linux_adapter: UnixAdapter) -> LockContext:
    return LockContext.from_config(config, factory=StaticFactory(linux_adapter))


@pytest.fixture
def make_context(config: Config):
    """Build a LockContext around any adapter."""

    def _make(adapter: PlatformAdapter, cfg: Config | None = None) -> LockContext:
        return LockContext.from_config(cfg or config, factory=StaticFactory(adapter))

    return _make
