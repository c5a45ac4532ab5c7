"""Helpers shared by the lockguard commands."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any, NoReturn, TypeVar

import click
from rich.console import Console
from rich.markup import escape

from core.config import load_config
from core.context import LockContext
from core.errors import LockGuardError
from core.log_setup import setup_logging
from core.security import PatternSet, ResolvedPath

console = Console()

F = TypeVar("F", bound=Callable[..., Any])


def common_options(func: F) -> F:
    """--config and --debug, accepted by every command."""
    func = click.option(
        "--debug", is_flag=True, default=False, help="Enable debug logging"
    )(func)
    func = click.option(
        "--config",
        "config_path",
        default=None,
        type=click.Path(dir_okay=False),
        help="Path to lockguard.yaml",
    )(func)
    return func


def target_options(func: F) -> F:
    """Target selection: explicit paths, or patterns expanded under the project root."""
    func = click.argument("paths", nargs=-1, type=click.Path())(func)
    func = click.option(
        "--pattern",
        "-p",
        "patterns",
        multiple=True,
        help="Gitignore-style pattern (repeatable). Overrides the pattern file.",
    )(func)
    func = click.option(
        "--pattern-file",
        default=None,
        type=click.Path(dir_okay=False),
        help="Read patterns from this file instead of the discovered .lockguard",
    )(func)
    func = click.option(
        "--json", "as_json", is_flag=True, default=False, help="Print machine-readable JSON"
    )(func)
    return func


def build_context(config_path: str | None, *, debug: bool) -> LockContext:
    setup_logging(debug=debug)
    try:
        return LockContext.from_config(load_config(config_path))
    except LockGuardError as e:
        fail(e)


def select_targets(
    ctx: LockContext,
    paths: tuple[str, ...],
    patterns: tuple[str, ...],
    pattern_file: str | None,
) -> list[ResolvedPath]:
    try:
        if paths:
            return ctx.resolve_targets(paths)
        if patterns:
            return ctx.resolve_targets(patterns=PatternSet.from_lines(patterns))
        return ctx.resolve_targets(pattern_file=pattern_file)
    except LockGuardError as e:
        fail(e)


def fail(error: LockGuardError) -> NoReturn:
    console.print(f"[red]{error.category.capitalize()} error:[/red] {escape(error.message)}")
    raise click.exceptions.Exit(1)


def emit_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2))
