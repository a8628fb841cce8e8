"""
CLI utility helpers - output formatting and store access.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from day2ops.core.errors import Day2Error
from day2ops.core.settings import get_settings
from day2ops.plan.sql_store import SqlPlanStore

console = Console()
err_console = Console(stderr=True)


def open_store(store_url: str | None = None) -> SqlPlanStore:
    """Open the SQL plan store. Defaults to ``DAY2OPS_STORE_URL``."""
    return SqlPlanStore.from_url(store_url or get_settings().store_url)


def fail(error: Day2Error) -> None:
    """Print *error* and exit with status 1."""
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    raise typer.Exit(code=1)


def print_json(payload: Any) -> None:
    """Plain JSON on stdout, safe to pipe."""
    typer.echo(json.dumps(payload, indent=2, default=str))


def print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")


def print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(str(v) for v in row.values()))
    console.print(table)
