"""lockguard init — first-time project setup.

Detects the project type, writes a starter .lockguard, installs the git
pre-commit hook and locks every file the new patterns match.
"""

from __future__ import annotations

import asyncio

import click
from rich.markup import escape

from cli.common import build_context, common_options, console, fail
from core.errors import LockGuardError
from core.git import GitRepository
from core.hooks import install_pre_commit_hook
from core.operations import FileOperationService, Operation
from core.scaffold import detect_project, write_pattern_file


@click.command()
@click.option(
    "--force",
    "-f",
    is_flag=True,
    default=False,
    help="Overwrite an existing pattern file and pre-commit hook",
)
@click.option(
    "--config-only",
    is_flag=True,
    default=False,
    help="Only write the pattern file; skip the hook and the initial lock",
)
@common_options
def init_cmd(force: bool, config_only: bool, config_path: str | None, debug: bool) -> None:
    """Set up lockguard protection for the project."""
    ctx = build_context(config_path, debug=debug)
    template = detect_project(ctx.project_root)
    try:
        target = ctx.validator.validate_and_sanitize_path(
            ctx.config.lock.pattern_file, ctx.project_root
        )
        write_pattern_file(target, template, force=force)
    except LockGuardError as e:
        fail(e)
    console.print(
        f"[green]Created[/green] {escape(str(target))} "
        f"for a {template.name} project ({len(template.patterns)} patterns)"
    )
    if config_only:
        console.print("[dim]Run `lockguard lock` to start protecting files.[/dim]")
        return

    repo = GitRepository.discover(ctx.project_root)
    if repo is None:
        console.print("[dim]Not a git repository, pre-commit hook skipped.[/dim]")
    else:
        try:
            hook = install_pre_commit_hook(repo, force=force)
            console.print(f"[green]Installed[/green] pre-commit hook {escape(str(hook))}")
        except LockGuardError as e:
            console.print(f"[yellow]Pre-commit hook skipped:[/yellow] {escape(e.message)}")

    try:
        targets = ctx.resolve_targets(pattern_file=target)
    except LockGuardError as e:
        fail(e)
    result = asyncio.run(FileOperationService(ctx).process(Operation.LOCK, targets))
    for failure in result.failed:
        console.print(
            f"[yellow]Could not lock[/yellow] {escape(str(failure.path))}: "
            f"{escape(failure.error.message)}"
        )
    summary = f"Protected [bold]{len(result.successful) + len(result.skipped)}[/bold] file(s)"
    if result.failed:
        summary += f", [bold]{len(result.failed)}[/bold] failed"
    console.print(summary)
    if result.has_failures:
        raise click.exceptions.Exit(1)
