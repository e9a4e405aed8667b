"""PostgreSQL executor built on psycopg 3."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg.rows import dict_row

from dbconverge.core.errors import (
    DatabaseConnectionError,
    ExecutionError,
    TransactionError,
)
from dbconverge.core.logging import get_logger
from dbconverge.core.settings import ConnectionSettings

logger = get_logger(__name__)


class PostgresExecutor:
    """
    ``Executor`` over a single psycopg connection.

    The connection runs in autocommit mode so transaction boundaries are the
    caller's explicit ``begin()`` / ``commit()`` / ``rollback()`` calls. A
    statement executed without parameters is sent as-is, which lets a script
    body contain several statements.
    """

    def __init__(self, conn: psycopg.Connection) -> None:
        self._conn = conn

    @property
    def connection(self) -> psycopg.Connection:
        return self._conn

    def execute(self, statement: str, params: Sequence[Any] | None = None) -> None:
        try:
            if params is None:
                self._conn.execute(statement)
            else:
                self._conn.execute(statement, params)
        except psycopg.Error as e:
            raise ExecutionError(str(e).strip(), cause=e).with_context(
                statement=statement
            ) from e

    def fetch_all(
        self, statement: str, params: Sequence[Any] | None = None
    ) -> list[dict[str, Any]]:
        try:
            cursor = self._conn.execute(statement, params)
            return list(cursor.fetchall())
        except psycopg.Error as e:
            raise ExecutionError(str(e).strip(), cause=e).with_context(
                statement=statement
            ) from e

    def begin(self) -> None:
        self._transaction_statement("BEGIN")

    def commit(self) -> None:
        self._transaction_statement("COMMIT")

    def rollback(self) -> None:
        self._transaction_statement("ROLLBACK")

    def _transaction_statement(self, statement: str) -> None:
        try:
            self._conn.execute(statement)
        except psycopg.Error as e:
            raise TransactionError(f"{statement} failed: {e}".strip(), cause=e).with_context(
                statement=statement
            ) from e


@contextmanager
def connect_postgres(settings: ConnectionSettings) -> Iterator[PostgresExecutor]:
    """Open a connection for the duration of the block.

    The connection is closed on every exit path. Closing a connection with an
    open transaction makes the server discard it.

    Raises:
        DatabaseConnectionError: if the connection cannot be established
    """
    try:
        conn = psycopg.connect(
            autocommit=True,
            row_factory=dict_row,
            **settings.conninfo_kwargs(),
        )
    except psycopg.Error as e:
        raise DatabaseConnectionError(
            f"Failed to connect to PostgreSQL: {e}".strip(),
            cause=e,
        ).with_context(host=settings.host, port=settings.port, database=settings.database) from e

    logger.debug(
        "db.connected", host=settings.host, port=settings.port, database=settings.database
    )
    try:
        yield PostgresExecutor(conn)
    finally:
        conn.close()
        logger.debug("db.disconnected")


__all__ = [
    "PostgresExecutor",
    "connect_postgres",
]
