"""
Root Typer application for the dbconverge CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from dbconverge.cli import db

app = Typer(
    name="dbconverge",
    help="dbconverge: apply an ordered manifest of SQL change scripts to PostgreSQL.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from dbconverge import __version__

        typer.echo(f"dbconverge {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """dbconverge CLI: update the database, preview the manifest, lint scripts."""


# ── Commands ─────────────────────────────────────────────────────────────

app.command("update")(db.update)
app.command("status")(db.status)
app.command("check")(db.check)
