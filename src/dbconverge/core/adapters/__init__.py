"""Executor adapters for concrete database drivers."""

from dbconverge.core.adapters.postgresql import PostgresExecutor, connect_postgres

__all__ = ["PostgresExecutor", "connect_postgres"]
