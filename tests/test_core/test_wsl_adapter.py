"""Tests for WSLAdapter — host-mount detection and path translation."""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

import pytest
from conftest import capable

from core.platform import Platform, WSLAdapter, to_wsl_path

MOUNTS = """\
/dev/sdc / ext4 rw,relatime 0 0
C:\\134 /mnt/c 9p rw,noatime,aname=drvfs 0 0
drvfs /mnt/d drvfs rw,noatime 0 0
tmpfs /mnt/wsl tmpfs rw 0 0
tmpfs /mnt/my\\040space tmpfs rw 0 0
"""


def _which(name: str) -> str | None:
    return f"/usr/bin/{name}"


@pytest.fixture
def mounts_file(tmp_path: Path) -> Path:
    f = tmp_path / "mounts"
    f.write_text(MOUNTS)
    return f


@pytest.fixture
def adapter(runner, mounts_file: Path) -> WSLAdapter:
    return WSLAdapter(runner, mounts_file=mounts_file, which=_which, capable=capable)


class TestMountDetection:
    def test_longest_prefix_wins(self, adapter: WSLAdapter) -> None:
        assert adapter.mount_for(Path("/mnt/c/Users/me/.env")) == (PurePosixPath("/mnt/c"), "9p")
        assert adapter.mount_for(Path("/home/me/.env")) == (PurePosixPath("/"), "ext4")

    def test_escaped_mount_points(self, adapter: WSLAdapter) -> None:
        assert adapter.mount_for(Path("/mnt/my space/f")) == (
            PurePosixPath("/mnt/my space"),
            "tmpfs",
        )

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/mnt/c/project/.env", True),
            ("/mnt/d/data.key", True),
            ("/home/me/project/.env", False),
            ("/mnt/wsl/shared", False),
            ("/mnt/cdrive/x", False),
        ],
    )
    def test_is_host_mounted(self, adapter: WSLAdapter, path: str, expected: bool) -> None:
        assert adapter.is_host_mounted(Path(path)) is expected

    def test_unreadable_mount_table_falls_back_to_drive_layout(
        self, runner, tmp_path: Path
    ) -> None:
        adapter = WSLAdapter(
            runner, mounts_file=tmp_path / "absent", which=_which, capable=capable
        )
        assert adapter.is_host_mounted(Path("/mnt/e/file"))
        assert not adapter.is_host_mounted(Path("/mnt/data/file"))
        assert not adapter.is_host_mounted(Path("/home/me"))

    def test_immutability_per_filesystem(self, adapter: WSLAdapter) -> None:
        assert adapter.supports_immutable(Path("/home/me/.env"))
        assert not adapter.supports_immutable(Path("/mnt/c/.env"))
        assert "Windows filesystem" in adapter.unsupported_reason(Path("/mnt/c/.env"))


class TestLocking:
    def test_native_filesystem_uses_chattr(
        self, runner, tmp_path: Path
    ) -> None:
        mounts = tmp_path / "mounts"
        mounts.write_text("/dev/sdc / ext4 rw 0 0\n")
        target = tmp_path / ".env"
        target.write_text("x")
        adapter = WSLAdapter(runner, mounts_file=mounts, which=_which, capable=capable)
        state = adapter.lock(target)
        assert state.immutable
        assert runner.commands("chattr")

    def test_host_mount_downgrades_to_read_only(
        self, runner, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        mounts = tmp_path / "mounts"
        mounts.write_text(f"/dev/sdc / ext4 rw 0 0\ndrvfs {tmp_path} drvfs rw 0 0\n")
        target = tmp_path / ".env"
        target.write_text("x")
        adapter = WSLAdapter(runner, mounts_file=mounts, which=_which, capable=capable)
        with caplog.at_level(logging.WARNING):
            state = adapter.lock(target)
        assert state.locked and not state.immutable
        assert runner.commands("chattr") == []
        assert runner.commands("lsattr") == []
        assert "Windows filesystem" in caplog.text
        assert not adapter.unlock(target).locked

    def test_capability_reports_wsl(self, adapter: WSLAdapter) -> None:
        cap = adapter.capability()
        assert cap.platform is Platform.WSL
        assert cap.is_wsl


class TestToWslPath:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("C:\\Users\\me\\.env", "/mnt/c/Users/me/.env"),
            ("D:/data/", "/mnt/d/data"),
            ("c:\\", "/mnt/c"),
            ("/home/me/.env", "/home/me/.env"),
            ("relative\\path", "relative\\path"),
        ],
    )
    def test_translation(self, raw: str, expected: str) -> None:
        assert to_wsl_path(raw) == expected
