"""lockguard status / list / info — read-only inspection commands."""

from __future__ import annotations

import click
from rich.markup import escape
from rich.table import Table

from cli.common import (
    build_context,
    common_options,
    console,
    emit_json,
    select_targets,
    target_options,
)
from core.operations import FileOperationService


@click.command()
@target_options
@common_options
def status_cmd(
    paths: tuple[str, ...],
    patterns: tuple[str, ...],
    pattern_file: str | None,
    as_json: bool,
    config_path: str | None,
    debug: bool,
) -> None:
    """Show the current lock state of matching files."""
    ctx = build_context(config_path, debug=debug)
    targets = select_targets(ctx, paths, patterns, pattern_file)
    states, failed = FileOperationService(ctx).status(targets)

    if as_json:
        emit_json(
            {
                "files": [s.to_dict() for s in states],
                "failed": [f.to_dict() for f in failed],
            }
        )
    elif not states and not failed:
        console.print("[dim]No matching files.[/dim]")
    else:
        table = Table(title=f"Lock status ({len(states)} files)")
        table.add_column("File", style="cyan", overflow="fold")
        table.add_column("Locked")
        table.add_column("Guarantee", style="dim")
        for state in states:
            locked = "[green]yes[/green]" if state.locked else "[yellow]no[/yellow]"
            table.add_row(str(state.path), locked, state.guarantee)
        console.print(table)
        for failure in failed:
            console.print(f"[red]✗[/red] {escape(str(failure.path))}: {escape(failure.error.message)}")

    if failed:
        raise click.exceptions.Exit(1)


@click.command()
@target_options
@common_options
def list_cmd(
    paths: tuple[str, ...],
    patterns: tuple[str, ...],
    pattern_file: str | None,
    as_json: bool,
    config_path: str | None,
    debug: bool,
) -> None:
    """List the files a lock or unlock would affect."""
    ctx = build_context(config_path, debug=debug)
    targets = select_targets(ctx, paths, patterns, pattern_file)

    if as_json:
        emit_json([str(t) for t in targets])
        return
    if not targets:
        console.print("[dim]No matching files.[/dim]")
        return
    for target in targets:
        console.print(escape(str(target)), soft_wrap=True)
    console.print(f"[dim]{len(targets)} file(s)[/dim]")


@click.command()
@click.option(
    "--json", "as_json", is_flag=True, default=False, help="Print machine-readable JSON"
)
@common_options
def info_cmd(as_json: bool, config_path: str | None, debug: bool) -> None:
    """Show what the running platform can enforce."""
    ctx = build_context(config_path, debug=debug)
    capability = ctx.factory.platform_info()

    if as_json:
        emit_json(
            {
                **capability.to_dict(),
                "allowed_roots": [str(r) for r in ctx.validator.allowed_roots],
            }
        )
        return

    table = Table(title="Platform")
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    for key, value in capability.to_dict().items():
        table.add_row(key, str(value))
    table.add_row("allowed_roots", "\n".join(str(r) for r in ctx.validator.allowed_roots))
    console.print(table)
