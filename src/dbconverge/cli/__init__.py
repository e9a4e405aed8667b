"""
CLI layer for dbconverge.

Provides a Typer application whose commands delegate to
``dbconverge.core.migrations``. This package handles only terminal
transport: argument parsing, coloured output and exit codes.

Entry point::

    dbconverge --help
"""

from dbconverge.cli.app import app

__all__ = ["app"]
