"""
Protocol for the transactional SQL executor.

The migration engine never talks to a driver directly. It drives an
``Executor``: something that runs SQL text, returns rows as dicts and exposes
explicit transaction control. ``PostgresExecutor`` implements it on top of
psycopg; tests use an in-memory fake.

Guardrails:
    ❌ DON'T: Import psycopg in the migration engine
    ✅ DO: Depend on ``Executor`` and let the adapter translate driver errors

Tags:
    protocol, executor, transaction, dbconverge
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Executor(Protocol):
    """
    Opaque transactional SQL executor.

    Failures are reported as ``dbconverge.core.errors`` types:
    ``ExecutionError`` for statements, ``TransactionError`` for
    ``begin``/``commit``/``rollback``.
    """

    def execute(self, statement: str, params: Sequence[Any] | None = None) -> None:
        """Execute a statement (or a parameterless multi-statement script)."""
        ...

    def fetch_all(
        self, statement: str, params: Sequence[Any] | None = None
    ) -> list[dict[str, Any]]:
        """Execute a query and return all rows as dicts."""
        ...

    def begin(self) -> None:
        """Open a transaction."""
        ...

    def commit(self) -> None:
        """Commit the open transaction."""
        ...

    def rollback(self) -> None:
        """Roll back the open transaction."""
        ...
