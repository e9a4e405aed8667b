"""
CLI utility helpers: consoles, output formatting, logging setup.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from dbconverge.core.errors import DbConvergeError
from dbconverge.core.logging import configure_logging
from dbconverge.core.migrations import ConsistencyWarning, Decision, RunResult, ScriptOutcome
from dbconverge.core.settings import UpdaterSettings

console = Console()
err_console = Console(stderr=True)

_STATUS_LABELS = {
    Decision.SKIP: "[green]applied[/green]",
    Decision.UPDATE: "[yellow]changed[/yellow]",
    Decision.INSERT: "[cyan]pending[/cyan]",
}

_LOG_FORMATS: dict[str, bool | None] = {"json": True, "console": False, "auto": None}


def setup_logging(settings: UpdaterSettings) -> None:
    configure_logging(level=settings.log_level, json_format=_LOG_FORMATS[settings.log_format])


# ── Output helpers ───────────────────────────────────────────────────────


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def print_warnings(warnings: Sequence[ConsistencyWarning]) -> None:
    for warning in warnings:
        err_console.print(f"[bold yellow]WARNING:[/bold yellow] {escape(warning.message)}")


def print_error(exc: DbConvergeError) -> None:
    """Render a fatal error, including the last attempted statement when known."""
    err_console.print(
        f"[bold red]Error[/bold red] ({exc.category.value}): {escape(exc.message)}"
    )
    if exc.context.script:
        err_console.print(f"  [cyan]script[/cyan]: {escape(exc.context.script)}")
    if exc.context.statement:
        err_console.print("last query:")
        err_console.print(exc.context.statement, markup=False, highlight=False)


def fail(exc: DbConvergeError, *, as_json: bool = False) -> typer.Exit:
    """Render ``exc`` and return the ``typer.Exit`` to raise."""
    if as_json:
        print_json({"success": False, "error": exc.to_dict()})
    else:
        print_error(exc)
    return typer.Exit(code=1)


def print_run_result(result: RunResult) -> None:
    print_warnings(result.warnings)
    if result.committed:
        console.print(
            f"{result.applied_count} updates applied, {result.skipped_count} updates skipped"
        )
        return
    console.print(
        f"ROLLBACK (dry run): {result.applied_count} updates would be applied, "
        f"{result.skipped_count} skipped"
    )
    err_console.print(
        "[bold red]IMPORTANT:[/bold red] Your changes are fine but they "
        "[bold]WERE NOT COMMITTED[/bold] to the DB. "
        "Please use [bold]dbconverge update --commit[/bold] to do so."
    )


def print_status(outcomes: Sequence[ScriptOutcome], *, title: str = "") -> None:
    if not outcomes:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    table.add_column("#", justify="right")
    table.add_column("script", overflow="fold")
    table.add_column("status")
    table.add_column("sha256")
    for index, outcome in enumerate(outcomes, start=1):
        table.add_row(
            str(index),
            escape(outcome.name),
            _STATUS_LABELS[outcome.decision],
            outcome.content_hash[:12],
        )
    console.print(table)
