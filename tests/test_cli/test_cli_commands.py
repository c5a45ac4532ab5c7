"""Tests for the lockguard CLI commands."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path

import pytest
from click.testing import CliRunner
from conftest import StaticFactory

from cli import common
from cli.main import cli
from core.git import GitRepository
from core.platform import UnixAdapter


@pytest.fixture
def config_file(project: Path) -> Path:
    path = project / "lockguard.yaml"
    path.write_text("lock:\n  max_workers: 2\n")
    return path


@pytest.fixture
def invoke(monkeypatch: pytest.MonkeyPatch, linux_adapter: UnixAdapter, config_file: Path):
    monkeypatch.setattr(common, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(
        "core.context.PlatformFactory", lambda **kwargs: StaticFactory(linux_adapter)
    )
    runner = CliRunner()

    def _invoke(*args: str):
        return runner.invoke(cli, [*args, "--config", str(config_file)])

    return _invoke


def _writable(path: Path) -> bool:
    return bool(os.stat(path).st_mode & stat.S_IWUSR)


class TestList:
    def test_lists_default_targets(self, invoke, project: Path) -> None:
        result = invoke("list", "--json")
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == [
            str(project / ".env"),
            str(project / ".env.local"),
            str(project / "config" / "secrets.json"),
            str(project / "config" / "server.key"),
        ]

    def test_pattern_option(self, invoke, project: Path) -> None:
        result = invoke("list", "--json", "-p", "**/*.py")
        assert json.loads(result.stdout) == [str(project / "src" / "main.py")]

    def test_human_output(self, invoke) -> None:
        result = invoke("list")
        assert result.exit_code == 0
        assert "4 file(s)" in result.output

    def test_invalid_pattern(self, invoke) -> None:
        result = invoke("list", "-p", "../escape/*")
        assert result.exit_code == 1
        assert "Validation error" in result.output


class TestLockUnlock:
    def test_lock_then_unlock(self, invoke, project: Path, runner) -> None:
        result = invoke("lock")
        assert result.exit_code == 0, result.output
        assert "4 changed" in result.output
        assert not _writable(project / ".env")
        assert str(project / ".env") in runner.immutable

        result = invoke("unlock")
        assert result.exit_code == 0, result.output
        assert _writable(project / ".env")
        assert runner.immutable == set()

    def test_lock_is_idempotent(self, invoke) -> None:
        invoke("lock")
        result = invoke("lock", "--json")
        data = json.loads(result.stdout)
        assert data["successful"] == []
        assert len(data["skipped"]) == 4

    def test_dry_run(self, invoke, project: Path, runner) -> None:
        result = invoke("lock", "--dry-run", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["dry_run"] is True
        assert len(data["successful"]) == 4
        assert _writable(project / ".env")
        assert runner.commands("chattr") == []

    def test_explicit_path(self, invoke, project: Path) -> None:
        target = project / "src" / "main.py"
        result = invoke("lock", str(target))
        assert result.exit_code == 0, result.output
        assert not _writable(target)
        assert _writable(project / ".env")

    def test_path_outside_project_rejected(self, invoke, tmp_path: Path) -> None:
        outside = tmp_path / "outside.txt"
        outside.write_text("x")
        result = invoke("lock", str(outside))
        assert result.exit_code == 1
        assert "Security error" in result.output
        assert _writable(outside)

    def test_failures_set_exit_code(self, invoke, project: Path) -> None:
        result = invoke("lock", "--json", str(project / "src"))
        assert result.exit_code == 1
        failed = json.loads(result.stdout)["failed"]
        assert failed[0]["category"] == "filesystem"
        assert "Expected a file" in failed[0]["message"]

    def test_workers_must_be_positive(self, invoke) -> None:
        result = invoke("lock", "--workers", "0")
        assert result.exit_code == 2


class TestStatusAndInfo:
    def test_status_json(self, invoke, project: Path) -> None:
        invoke("lock", str(project / ".env"))
        result = invoke("status", "--json")
        assert result.exit_code == 0
        files = {f["path"]: f for f in json.loads(result.stdout)["files"]}
        assert files[str(project / ".env")]["guarantee"] == "immutable"
        assert files[str(project / ".env.local")]["locked"] is False

    def test_status_table(self, invoke) -> None:
        result = invoke("status")
        assert result.exit_code == 0
        assert "Lock status (4 files)" in result.output

    def test_info_json(self, invoke, project: Path) -> None:
        result = invoke("info", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["platform"] == "unix"
        assert data["supports_immutable"] is True
        assert data["allowed_roots"] == [str(project)]

    def test_version(self) -> None:
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "lockguard" in result.output


class FixedHooks(GitRepository):
    def hooks_dir(self) -> Path:
        return self.root / ".git" / "hooks"


@pytest.fixture
def no_git(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        GitRepository, "discover", classmethod(lambda cls, start, runner=None: None)
    )


@pytest.fixture
def fake_git(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        GitRepository,
        "discover",
        classmethod(lambda cls, start, runner=None: FixedHooks(Path(start))),
    )


class TestInit:
    def test_config_only(self, invoke, project: Path) -> None:
        (project / "pyproject.toml").write_text("")
        result = invoke("init", "--config-only")
        assert result.exit_code == 0, result.output
        content = (project / ".lockguard").read_text()
        assert "Python project" in content
        assert "*.sqlite" in content
        assert _writable(project / ".env")

    def test_init_locks_matching_files(self, invoke, project: Path, no_git) -> None:
        result = invoke("init")
        assert result.exit_code == 0, result.output
        assert "Protected 4 file(s)" in result.output
        assert not _writable(project / ".env")
        assert _writable(project / "src" / "main.py")

    def test_init_installs_hook(self, invoke, project: Path, fake_git) -> None:
        result = invoke("init")
        assert result.exit_code == 0, result.output
        assert (project / ".git" / "hooks" / "pre-commit").exists()

    def test_existing_pattern_file_kept(self, invoke, project: Path) -> None:
        (project / ".lockguard").write_text("*.py\n")
        result = invoke("init", "--config-only")
        assert result.exit_code == 1
        assert "already exists" in result.output
        assert (project / ".lockguard").read_text() == "*.py\n"

    def test_force_overwrites(self, invoke, project: Path) -> None:
        (project / ".lockguard").write_text("*.py\n")
        result = invoke("init", "--config-only", "--force")
        assert result.exit_code == 0, result.output
        assert "Generic project" in (project / ".lockguard").read_text()


class TestPreCommitCheck:
    def test_locked_path_blocks(self, invoke, project: Path) -> None:
        invoke("lock", str(project / ".env"))
        result = invoke(
            "pre-commit-check", "--json", str(project / ".env"), str(project / "src" / "main.py")
        )
        assert result.exit_code == 1
        assert json.loads(result.stdout) == {
            "blocked": [{"path": str(project / ".env"), "reason": "locked"}]
        }

    def test_unlocked_paths_pass(self, invoke, project: Path) -> None:
        result = invoke("pre-commit-check", str(project / ".env"))
        assert result.exit_code == 0, result.output

    def test_all_checks_every_protected_file(self, invoke, project: Path) -> None:
        invoke("lock", str(project / "config" / "server.key"))
        result = invoke("pre-commit-check", "--all")
        assert result.exit_code == 1
        assert "Commit blocked" in result.output

    def test_outside_git_nothing_to_check(self, invoke, no_git) -> None:
        result = invoke("pre-commit-check")
        assert result.exit_code == 0, result.output

    def test_check_errors_let_commit_through(self, invoke, project: Path) -> None:
        (project / ".lockguard").write_text("../escape/*\n")
        result = invoke("pre-commit-check", "--all")
        assert result.exit_code == 0
        assert "allowing the commit" in result.output


class TestInstallHooks:
    def test_installs_hook(self, invoke, project: Path, fake_git) -> None:
        result = invoke("install-hooks")
        assert result.exit_code == 0, result.output
        assert "pre-commit-check" in (project / ".git" / "hooks" / "pre-commit").read_text()

    def test_not_a_repository(self, invoke, no_git) -> None:
        result = invoke("install-hooks")
        assert result.exit_code == 1
        assert "Not a git repository" in result.output
