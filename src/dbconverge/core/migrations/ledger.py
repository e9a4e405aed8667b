"""
Change Tracker: the durable ledger of applied scripts.

The ledger (``public.db_updates`` by default) holds one row per script name
with the SHA-256 of the content that was last applied. Comparing that digest
with the file on disk yields one of three decisions:

    ┌──────────────────────────────┬──────────┬─────────────────────────────┐
    │ ledger state for name        │ decision │ caller does                 │
    ├──────────────────────────────┼──────────┼─────────────────────────────┤
    │ row, same sha256             │ SKIP     │ nothing                     │
    │ row, different sha256        │ UPDATE   │ run body, overwrite hash    │
    │ no row                       │ INSERT   │ run body, insert row        │
    └──────────────────────────────┴──────────┴─────────────────────────────┘

Re-running an unchanged manifest is therefore a no-op, and editing an
already-applied script is detected without diffing the live schema.

Manifesto:
    - **One row per name:** enforced by a unique index and by keeping the
      in-run view of the ledger current after every write
    - **Never delete:** rows are inserted or updated, never removed
    - **Locked down:** row level security with a deny-all policy for the
      ``authenticated`` role; only the tool's own connection touches it

Tags:
    ledger, change-tracking, idempotency, drift-detection, dbconverge
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from dbconverge.core.logging import get_logger
from dbconverge.core.migrations.store import ChangeScript
from dbconverge.core.migrations.templates import NIL_ACTOR, TemplateExpander
from dbconverge.core.protocols import Executor

logger = get_logger(__name__)

DEFAULT_LEDGER_TABLE = "public.db_updates"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_LEDGER_DDL = """
CREATE TABLE IF NOT EXISTS {table} (
    id_{name} BIGINT GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY
);

ALTER TABLE {table}
    ADD COLUMN IF NOT EXISTS name TEXT NOT NULL
  , ADD COLUMN IF NOT EXISTS sha256 TEXT NOT NULL
  , %DEFAULT_COLUMNS%
;

CREATE UNIQUE INDEX IF NOT EXISTS ux_{schema}_{name}_name ON {table} (name);

%DEFAULT_TRIGGER({table})%

ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;

DROP POLICY IF EXISTS policy_{schema}_{name}_all ON {table};

/*
ALL
- NOBODY may do anything with {table}
*/
CREATE POLICY policy_{schema}_{name}_all
  ON {table}
  FOR ALL
  TO authenticated
  USING ( false )
  WITH CHECK ( false )
;
"""


class Decision(str, Enum):
    """What to do with a manifest entry."""

    SKIP = "skip"
    UPDATE = "update"
    INSERT = "insert"

    @property
    def executes(self) -> bool:
        return self is not Decision.SKIP


@dataclass(frozen=True)
class AppliedRecord:
    """A ledger row."""

    name: str
    content_hash: str
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> AppliedRecord:
        return cls(
            id=row.get("id"),
            name=row["name"],
            content_hash=row["sha256"],
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


def index_by_name(records: Iterable[AppliedRecord]) -> dict[str, AppliedRecord]:
    return {record.name: record for record in records}


class ChangeTracker:
    """
    Reads and writes the ledger through an ``Executor``.

    Parameters
    ----------
    table
        Schema-qualified ledger table name.
    actor
        UUID written to ``created_by`` / ``updated_by``.
    """

    def __init__(
        self,
        table: str = DEFAULT_LEDGER_TABLE,
        *,
        actor: str = NIL_ACTOR,
        expander: TemplateExpander | None = None,
    ) -> None:
        schema, _, name = table.partition(".")
        if not (_IDENTIFIER.match(schema) and _IDENTIFIER.match(name)):
            raise ValueError(f"Ledger table must be schema-qualified, got {table!r}")
        self.schema = schema
        self.name = name
        self.table = f"{schema}.{name}"
        self.actor = actor
        self._expander = expander or TemplateExpander()

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def ledger_ddl(self) -> str:
        """Idempotent DDL that creates or evolves the ledger table."""
        ddl = _LEDGER_DDL.format(table=self.table, schema=self.schema, name=self.name)
        return self._expander.expand(ddl)

    @property
    def select_statement(self) -> str:
        return (
            f"SELECT id_{self.name} AS id, name, sha256, created_at, updated_at\n"
            f"FROM {self.table}\n"
            f"ORDER BY id_{self.name}"
        )

    @property
    def insert_statement(self) -> str:
        return (
            f"INSERT INTO {self.table} (name, sha256, created_by, updated_by) "
            f"VALUES (%s, %s, %s, %s)"
        )

    @property
    def update_statement(self) -> str:
        return (
            f"UPDATE {self.table} SET sha256 = %s, updated_at = CURRENT_TIMESTAMP, "
            f"updated_by = %s WHERE name = %s"
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def ensure_ledger(self, executor: Executor) -> None:
        """Create the ledger table if absent and add any missing columns."""
        executor.execute(self.ledger_ddl())
        logger.info("ledger.ensured", table=self.table)

    def ledger_exists(self, executor: Executor) -> bool:
        rows = executor.fetch_all(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = %s AND table_type = 'BASE TABLE' AND table_name = %s",
            (self.schema, self.name),
        )
        return bool(rows)

    def fetch_applied(self, executor: Executor) -> list[AppliedRecord]:
        """All ledger rows, oldest first."""
        records = [AppliedRecord.from_row(row) for row in executor.fetch_all(self.select_statement)]
        logger.debug("ledger.fetched", table=self.table, count=len(records))
        return records

    @staticmethod
    def decide(script: ChangeScript, applied: Mapping[str, AppliedRecord]) -> Decision:
        """SKIP, UPDATE or INSERT for ``script`` given the ledger rows keyed by name."""
        record = applied.get(script.name)
        if record is None:
            return Decision.INSERT
        if record.content_hash == script.content_hash:
            return Decision.SKIP
        return Decision.UPDATE

    def write_statement(
        self, script: ChangeScript, decision: Decision
    ) -> tuple[str, tuple[str, ...]]:
        """The ledger write (statement, params) that follows executing ``script``."""
        if decision is Decision.INSERT:
            return self.insert_statement, (script.name, script.content_hash, self.actor, self.actor)
        if decision is Decision.UPDATE:
            return self.update_statement, (script.content_hash, self.actor, script.name)
        raise ValueError("SKIP has no ledger write")

    def record(
        self, executor: Executor, script: ChangeScript, decision: Decision
    ) -> AppliedRecord:
        """Persist ``decision`` for ``script``; returns the ledger row as it now stands."""
        statement, params = self.write_statement(script, decision)
        executor.execute(statement, params)
        logger.debug("ledger.recorded", script=script.name, decision=decision.value)
        return AppliedRecord(name=script.name, content_hash=script.content_hash)
