"""lockguard lock / unlock — apply or remove file locks.

Targets are explicit PATHS, or every file under the project root matched
by --pattern, --pattern-file, the discovered .lockguard file, or the
default patterns, in that order of precedence.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal

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
from core.context import LockContext
from core.operations import (
    FileOperationService,
    Operation,
    OperationOptions,
    OperationResult,
)
from core.security import ResolvedPath


async def _run_batch(
    ctx: LockContext,
    operation: Operation,
    targets: list[ResolvedPath],
    options: OperationOptions,
) -> OperationResult:
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    # Ctrl-C stops new files from starting; in-flight ones finish
    installed = False
    with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
        loop.add_signal_handler(signal.SIGINT, cancel.set)
        installed = True
    try:
        return await FileOperationService(ctx).process(operation, targets, options, cancel)
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


def _print_result(result: OperationResult) -> None:
    if result.dry_run:
        verb = f"Would {result.operation}"
    else:
        verb = f"{str(result.operation).capitalize()}ed"

    if result.successful or result.skipped:
        table = Table(title=f"{verb} ({len(result.successful)} files)")
        table.add_column("File", style="cyan", overflow="fold")
        table.add_column("Result")
        table.add_column("Guarantee", style="dim")
        for path in result.successful:
            state = result.states.get(path)
            table.add_row(str(path), "[green]ok[/green]", state.guarantee if state else "")
        for path in result.skipped:
            state = result.states.get(path)
            table.add_row(str(path), "[dim]unchanged[/dim]", state.guarantee if state else "")
        console.print(table)

    for failure in result.failed:
        console.print(f"[red]✗[/red] {escape(str(failure.path))}: {escape(failure.error.message)}")
    if result.cancelled:
        console.print(f"[yellow]Cancelled before {len(result.cancelled)} file(s) were processed.[/yellow]")

    console.print(
        f"[bold]{len(result.successful)}[/bold] changed, "
        f"[bold]{len(result.skipped)}[/bold] unchanged, "
        f"[bold]{len(result.failed)}[/bold] failed"
    )


def _execute(
    operation: Operation,
    paths: tuple[str, ...],
    patterns: tuple[str, ...],
    pattern_file: str | None,
    as_json: bool,
    dry_run: bool,
    workers: int | None,
    config_path: str | None,
    debug: bool,
) -> None:
    ctx = build_context(config_path, debug=debug)
    targets = select_targets(ctx, paths, patterns, pattern_file)
    if not targets and not as_json:
        console.print("[dim]No matching files.[/dim]")
        return

    options = OperationOptions(
        dry_run=dry_run, max_workers=workers or ctx.config.lock.max_workers
    )
    result = asyncio.run(_run_batch(ctx, operation, targets, options))

    if as_json:
        emit_json(result.to_dict())
    else:
        _print_result(result)
    if result.has_failures or not result.completed:
        raise click.exceptions.Exit(1)


_dry_run = click.option(
    "--dry-run", is_flag=True, default=False, help="Show what would change without changing it"
)
_workers = click.option(
    "--workers", type=click.IntRange(min=1), default=None, help="Files processed concurrently"
)


@click.command()
@target_options
@_dry_run
@_workers
@common_options
def lock_cmd(
    paths: tuple[str, ...],
    patterns: tuple[str, ...],
    pattern_file: str | None,
    as_json: bool,
    dry_run: bool,
    workers: int | None,
    config_path: str | None,
    debug: bool,
) -> None:
    """Make matching files read-only (immutable where the OS allows)."""
    _execute(
        Operation.LOCK, paths, patterns, pattern_file, as_json, dry_run, workers, config_path, debug
    )


@click.command()
@target_options
@_dry_run
@_workers
@common_options
def unlock_cmd(
    paths: tuple[str, ...],
    patterns: tuple[str, ...],
    pattern_file: str | None,
    as_json: bool,
    dry_run: bool,
    workers: int | None,
    config_path: str | None,
    debug: bool,
) -> None:
    """Remove locks so matching files can be edited again."""
    _execute(
        Operation.UNLOCK, paths, patterns, pattern_file, as_json, dry_run, workers, config_path, debug
    )
