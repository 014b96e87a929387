"""Shared console utilities for CLI commands."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

# Shared console instance for all CLI commands
console = Console()


@dataclass
class OutputOptions:
    """Global output flags, set once by the app callback."""

    json: bool = False
    verbose: int = 0
    quiet: bool = False


_options = OutputOptions()


def set_options(options: OutputOptions) -> None:
    """Record the global output flags of the current invocation."""
    global _options
    _options = options


def get_options() -> OutputOptions:
    """Get the output options of the running invocation."""
    return _options


def _chatty() -> bool:
    # --json owns stdout; --quiet keeps only errors
    options = get_options()
    return not (options.quiet or options.json)


def error(msg: str) -> None:
    """Print an error message in red."""
    if not get_options().json:
        console.print(f"[red]{escape(msg)}[/red]")


def warning(msg: str) -> None:
    """Print a warning message in yellow."""
    if _chatty():
        console.print(f"[yellow]{escape(msg)}[/yellow]")


def success(msg: str) -> None:
    """Print a success message in green."""
    if _chatty():
        console.print(f"[green]{escape(msg)}[/green]")


def info(msg: str) -> None:
    """Print an info message in cyan."""
    if _chatty():
        console.print(f"[cyan]{escape(msg)}[/cyan]")


def dim(msg: str) -> None:
    """Print a dimmed message."""
    if _chatty():
        console.print(f"[dim]{escape(msg)}[/dim]")


def print_json(data: Any) -> None:
    """Print machine-readable output; never styled or wrapped."""
    typer.echo(json.dumps(data, indent=2, default=str))


def create_table(
    title: str,
    columns: list[tuple[str, str | dict]],
) -> Table:
    """Create a styled table with consistent formatting.

    Args:
        title: Table title.
        columns: List of (name, style) or (name, kwargs_dict) tuples.

    Returns:
        Configured Rich Table.
    """
    table = Table(title=title)
    for name, style_or_kwargs in columns:
        if isinstance(style_or_kwargs, dict):
            table.add_column(name, **style_or_kwargs)
        else:
            table.add_column(name, style=style_or_kwargs)
    return table

