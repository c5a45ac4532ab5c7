"""CLI entry point for lockguard.

Registered as `lockguard` console script in pyproject.toml.
"""

from __future__ import annotations

import click

from cli.hook_cmd import install_hooks_cmd, pre_commit_check_cmd
from cli.init_cmd import init_cmd
from cli.lock_cmd import lock_cmd, unlock_cmd
from cli.status_cmd import info_cmd, list_cmd, status_cmd
from core import __version__


@click.group()
@click.version_option(version=__version__, prog_name="lockguard")
def cli() -> None:
    """lockguard — lock sensitive files against modification."""


cli.add_command(lock_cmd, "lock")
cli.add_command(unlock_cmd, "unlock")
cli.add_command(status_cmd, "status")
cli.add_command(list_cmd, "list")
cli.add_command(info_cmd, "info")
cli.add_command(init_cmd, "init")
cli.add_command(pre_commit_check_cmd, "pre-commit-check")
cli.add_command(install_hooks_cmd, "install-hooks")


if __name__ == "__main__":
    cli()
