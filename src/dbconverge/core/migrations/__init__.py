"""
Manifest-driven change-script application.

Manifesto:
    A schema should converge from the same inputs every time. Scripts are
    applied in the order the manifest lists them, tracked by name and content
    hash in a ledger table, and the whole run commits or rolls back as one
    transaction.

Modules
-------
store        ScriptStore / ChangeScript: the script directory
manifest     Manifest: ordered updates + ignore list
consistency  ConsistencyChecker: orphaned scripts, missing RLS scripts
ledger       ChangeTracker: ledger table, SKIP / UPDATE / INSERT decisions
templates    TemplateExpander: %DEFAULT_COLUMNS% / %DEFAULT_TRIGGER(...)%
runner       MigrationEngine: the transactional state machine

Tags:
    dbconverge, migrations, schema, database, idempotent, DDL
"""

from dbconverge.core.migrations.consistency import (
    ConsistencyChecker,
    ConsistencyWarning,
    WarningKind,
)
from dbconverge.core.migrations.ledger import AppliedRecord, ChangeTracker, Decision
from dbconverge.core.migrations.manifest import Manifest
from dbconverge.core.migrations.runner import (
    MigrationEngine,
    RunContext,
    RunMode,
    RunResult,
    RunState,
    ScriptOutcome,
)
from dbconverge.core.migrations.store import ChangeScript, ScriptStore
from dbconverge.core.migrations.templates import TemplateExpander

__all__ = [
    "AppliedRecord",
    "ChangeScript",
    "ChangeTracker",
    "ConsistencyChecker",
    "ConsistencyWarning",
    "Decision",
    "Manifest",
    "MigrationEngine",
    "RunContext",
    "RunMode",
    "RunResult",
    "RunState",
    "ScriptOutcome",
    "ScriptStore",
    "TemplateExpander",
    "WarningKind",
]
