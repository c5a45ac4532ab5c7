"""lockguard pre-commit-check / install-hooks — keep locked files out of commits."""

from __future__ import annotations

import os

import click
from rich.markup import escape

from cli.common import build_context, common_options, console, emit_json, fail
from core.errors import LockGuardError, ValidationError
from core.git import GitRepository
from core.hooks import check_commit, install_pre_commit_hook


@click.command()
@click.argument("paths", nargs=-1, type=click.Path())
@click.option(
    "--all",
    "check_all",
    is_flag=True,
    default=False,
    help="Check every protected file, not only the staged ones",
)
@click.option(
    "--json", "as_json", is_flag=True, default=False, help="Print machine-readable JSON"
)
@common_options
def pre_commit_check_cmd(
    paths: tuple[str, ...],
    check_all: bool,
    as_json: bool,
    config_path: str | None,
    debug: bool,
) -> None:
    """Block a commit that includes locked protected files.

    Checks PATHS, or the files staged in git. If the check itself fails
    the commit is allowed and a warning is printed.
    """
    ctx = build_context(config_path, debug=debug)
    try:
        if paths:
            candidates = list(paths)
        elif check_all:
            candidates = list(ctx.resolve_targets())
        else:
            repo = GitRepository.discover(ctx.project_root)
            candidates = repo.staged_files() if repo is not None else []
        blocked = check_commit(ctx, candidates)
    except LockGuardError as e:
        console.print(
            f"[yellow]Pre-commit check failed, allowing the commit:[/yellow] {escape(e.message)}"
        )
        return

    if as_json:
        emit_json({"blocked": [b.to_dict() for b in blocked]})
    elif blocked:
        console.print("[bold red]Commit blocked: locked files would be committed[/bold red]")
        for item in blocked:
            rel = os.path.relpath(item.path)
            detail = "" if item.reason == "locked" else f" [dim]({escape(item.reason)})[/dim]"
            console.print(f"  [red]✗[/red] {escape(rel)}{detail}")
        console.print(
            "Unlock them with [bold]lockguard unlock <path>[/bold], commit, then lock again."
        )
    if blocked:
        raise click.exceptions.Exit(1)


@click.command()
@click.option(
    "--force",
    "-f",
    is_flag=True,
    default=False,
    help="Replace a pre-commit hook lockguard did not write",
)
@common_options
def install_hooks_cmd(force: bool, config_path: str | None, debug: bool) -> None:
    """Install a git pre-commit hook that runs pre-commit-check."""
    ctx = build_context(config_path, debug=debug)
    repo = GitRepository.discover(ctx.project_root)
    if repo is None:
        fail(ValidationError(f"Not a git repository: {ctx.project_root}", path=ctx.project_root))
    try:
        hook = install_pre_commit_hook(repo, force=force)
    except LockGuardError as e:
        fail(e)
    console.print(f"[green]Installed pre-commit hook:[/green] {escape(str(hook))}")
