"""
Migration engine: applies the manifest in one transaction.

State machine::

    CONNECTING ──> LEDGER_READY ──> RECONCILING ──> APPLYING ──┬──> DRY_RUN_ROLLBACK ──┐
        │               │                │              │       └──> COMMITTING ───────┴──> DONE
        └───────────────┴────────────────┴──────────────┴──────────> ABORTING

CONNECTING
    Open the executor session, then create/evolve the ledger table.
RECONCILING
    Read all ledger rows.
APPLYING
    ``BEGIN``; walk ``manifest.updates`` in literal order. For each entry:
    resolve the file, hash it, decide SKIP / UPDATE / INSERT, and for the
    latter two run the expanded body followed by the ledger write.
DRY_RUN_ROLLBACK / COMMITTING
    ``ROLLBACK`` in dry-run mode (always, even on success), ``COMMIT``
    otherwise.
ABORTING
    Best-effort ``ROLLBACK``; a rollback failure is logged and the original
    error is re-raised.

The whole manifest is one transaction, so a failure at entry *k* leaves the
database as it was before the run. Consistency warnings are computed up
front and returned with the result; they are not emitted when the run
aborts.

Every statement goes through a ``RunContext`` that remembers the last
attempted statement, which is attached to the error on failure.

Example::

    from dbconverge.core.adapters.postgresql import connect_postgres
    from dbconverge.core.migrations import Manifest, MigrationEngine, RunMode, ScriptStore

    engine = MigrationEngine(
        ScriptStore("db/db-updates"),
        Manifest.load("db/db-updates.json"),
        connector=lambda: connect_postgres(settings),
    )
    result = engine.run(RunMode.COMMIT)
    print(f"{result.applied_count} applied, {result.skipped_count} skipped")

Tags:
    migrations, transaction, dry-run, state-machine, dbconverge
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from dbconverge.core.errors import DatabaseError, DbConvergeError
from dbconverge.core.logging import bind_context, clear_context, get_logger
from dbconverge.core.migrations.consistency import ConsistencyChecker, ConsistencyWarning
from dbconverge.core.migrations.ledger import (
    AppliedRecord,
    ChangeTracker,
    Decision,
    index_by_name,
)
from dbconverge.core.migrations.manifest import Manifest
from dbconverge.core.migrations.store import ScriptStore
from dbconverge.core.migrations.templates import TemplateExpander
from dbconverge.core.protocols import Executor

logger = get_logger(__name__)

Connector = Callable[[], AbstractContextManager[Executor]]


class RunMode(str, Enum):
    DRY_RUN = "dry-run"
    COMMIT = "commit"


class RunState(str, Enum):
    PENDING = "pending"
    CONNECTING = "connecting"
    LEDGER_READY = "ledger_ready"
    RECONCILING = "reconciling"
    APPLYING = "applying"
    DRY_RUN_ROLLBACK = "dry_run_rollback"
    COMMITTING = "committing"
    ABORTING = "aborting"
    DONE = "done"


@dataclass(frozen=True)
class ScriptOutcome:
    """Decision taken for one manifest entry (one per occurrence)."""

    name: str
    decision: Decision
    content_hash: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "decision": self.decision.value, "sha256": self.content_hash}


@dataclass
class RunContext:
    """Transient per-invocation state, passed explicitly through the run."""

    mode: RunMode = RunMode.DRY_RUN
    state: RunState = RunState.PENDING
    outcomes: list[ScriptOutcome] = field(default_factory=list)
    warnings: list[ConsistencyWarning] = field(default_factory=list)
    current_script: str | None = None
    last_statement: str | None = None
    in_transaction: bool = False

    @property
    def applied_count(self) -> int:
        return sum(1 for o in self.outcomes if o.decision.executes)

    @property
    def skipped_count(self) -> int:
        return sum(1 for o in self.outcomes if o.decision is Decision.SKIP)

    def transition(self, state: RunState) -> None:
        logger.debug("run.state", previous=self.state.value, state=state.value)
        self.state = state


@dataclass(frozen=True)
class RunResult:
    """Outcome of a run that reached DONE."""

    mode: RunMode
    committed: bool
    outcomes: tuple[ScriptOutcome, ...]
    warnings: tuple[ConsistencyWarning, ...]

    @property
    def applied(self) -> list[str]:
        return [o.name for o in self.outcomes if o.decision.executes]

    @property
    def skipped(self) -> list[str]:
        return [o.name for o in self.outcomes if o.decision is Decision.SKIP]

    @property
    def applied_count(self) -> int:
        return len(self.applied)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "committed": self.committed,
            "applied": self.applied_count,
            "skipped": self.skipped_count,
            "scripts": [o.to_dict() for o in self.outcomes],
            "warnings": [w.to_dict() for w in self.warnings],
        }


class _ContextExecutor:
    """Executor proxy that records each statement on the run context first."""

    def __init__(self, inner: Executor, ctx: RunContext) -> None:
        self._inner = inner
        self._ctx = ctx

    def execute(self, statement: str, params: Sequence[Any] | None = None) -> None:
        self._ctx.last_statement = statement
        self._inner.execute(statement, params)

    def fetch_all(
        self, statement: str, params: Sequence[Any] | None = None
    ) -> list[dict[str, Any]]:
        self._ctx.last_statement = statement
        return self._inner.fetch_all(statement, params)

    def begin(self) -> None:
        self._ctx.last_statement = "BEGIN"
        self._inner.begin()
        self._ctx.in_transaction = True

    def commit(self) -> None:
        self._ctx.last_statement = "COMMIT"
        self._inner.commit()
        self._ctx.in_transaction = False

    def rollback(self) -> None:
        self._ctx.last_statement = "ROLLBACK"
        try:
            self._inner.rollback()
        finally:
            self._ctx.in_transaction = False


class MigrationEngine:
    """
    Orchestrates store, manifest, ledger and expander against an executor.

    Parameters
    ----------
    store
        Script directory.
    manifest
        Parsed manifest.
    connector
        Zero-argument callable returning a context manager that yields an
        ``Executor`` and releases it on exit.
    tracker, expander, checker
        Collaborators; defaults are built when omitted.
    """

    def __init__(
        self,
        store: ScriptStore,
        manifest: Manifest,
        *,
        connector: Connector,
        tracker: ChangeTracker | None = None,
        expander: TemplateExpander | None = None,
        checker: ConsistencyChecker | None = None,
    ) -> None:
        self.store = store
        self.manifest = manifest
        self._connector = connector
        self.expander = expander or TemplateExpander()
        self.tracker = tracker or ChangeTracker(expander=self.expander)
        self.checker = checker or ConsistencyChecker()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def check(self) -> list[ConsistencyWarning]:
        """Consistency warnings for the current directory and manifest."""
        return self.checker.check(self.store.list_scripts(), self.manifest)

    def run(
        self,
        mode: RunMode = RunMode.DRY_RUN,
        ctx: RunContext | None = None,
    ) -> RunResult:
        """Apply the manifest.

        Pass ``ctx`` to inspect the last attempted statement after a failure.

        Raises:
            MissingScriptError: before connecting if a manifest entry has no
                file; mid-run (after rollback) if one disappears
            ScriptUnreadableError: (after rollback) if a script is not UTF-8
            DatabaseConnectionError: if the session cannot be opened
            ExecutionError, TransactionError: after rollback
        """
        ctx = ctx if ctx is not None else RunContext()
        ctx.mode = mode

        # Every event of the run carries the mode.
        bind_context(mode=mode.value)
        try:
            return self._run(ctx)
        finally:
            clear_context()

    def _run(self, ctx: RunContext) -> RunResult:
        mode = ctx.mode
        ctx.warnings = self.check()
        self.manifest.validate_against(self.store)

        logger.info("run.started", entries=len(self.manifest.updates))
        ctx.transition(RunState.CONNECTING)
        with self._connector() as raw_executor:
            executor = _ContextExecutor(raw_executor, ctx)
            try:
                self.tracker.ensure_ledger(executor)
                ctx.transition(RunState.LEDGER_READY)

                ctx.transition(RunState.RECONCILING)
                applied = index_by_name(self.tracker.fetch_applied(executor))

                ctx.transition(RunState.APPLYING)
                executor.begin()
                for name in self.manifest.updates:
                    self._apply_entry(executor, ctx, name, applied)
                ctx.current_script = None

                if mode is RunMode.DRY_RUN:
                    ctx.transition(RunState.DRY_RUN_ROLLBACK)
                    executor.rollback()
                    logger.info("run.rolled_back", reason="dry-run")
                else:
                    ctx.transition(RunState.COMMITTING)
                    executor.commit()
                    logger.info("run.committed")
            except Exception as exc:
                ctx.transition(RunState.ABORTING)
                self._abort(executor, ctx)
                if isinstance(exc, DbConvergeError):
                    self._annotate(exc, ctx)
                    raise
                raise self._annotate(
                    DbConvergeError(f"Unexpected error: {exc}", cause=exc), ctx
                ) from exc

        ctx.transition(RunState.DONE)
        result = RunResult(
            mode=mode,
            committed=mode is RunMode.COMMIT,
            outcomes=tuple(ctx.outcomes),
            warnings=tuple(ctx.warnings),
        )
        logger.info(
            "run.finished",
            applied=result.applied_count,
            skipped=result.skipped_count,
            warnings=len(result.warnings),
        )
        return result

    def status(self) -> list[ScriptOutcome]:
        """Decision per manifest entry without writing anything.

        The ledger is read only if it exists; a missing ledger means every
        entry is pending.
        """
        self.manifest.validate_against(self.store)
        with self._connector() as executor:
            if self.tracker.ledger_exists(executor):
                applied = index_by_name(self.tracker.fetch_applied(executor))
            else:
                applied = {}

        outcomes = []
        for name in self.manifest.updates:
            script = self.manifest.resolve(name, self.store)
            decision = self.tracker.decide(script, applied)
            if decision.executes:
                applied[name] = AppliedRecord(name=name, content_hash=script.content_hash)
            outcomes.append(ScriptOutcome(name, decision, script.content_hash))
        return outcomes

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _apply_entry(
        self,
        executor: Executor,
        ctx: RunContext,
        name: str,
        applied: dict[str, AppliedRecord],
    ) -> None:
        ctx.current_script = name
        script = self.manifest.resolve(name, self.store)
        decision = self.tracker.decide(script, applied)

        if decision is Decision.SKIP:
            logger.info("migration.skipped", script=name, reason="already applied with same sha256")
        else:
            body = script.content
            if self.expander.has_markers(body):
                body = self.expander.expand(body)
                logger.debug("migration.expanded", script=name)
            logger.debug("migration.script", script=name, body=body)
            executor.execute(body)
            # Keep the in-run view current so a repeated entry sees its own write.
            applied[name] = self.tracker.record(executor, script, decision)
            logger.info("migration.applied", script=name, decision=decision.value)

        ctx.outcomes.append(ScriptOutcome(name, decision, script.content_hash))

    @staticmethod
    def _abort(executor: Executor, ctx: RunContext) -> None:
        if not ctx.in_transaction:
            return
        failed_statement = ctx.last_statement
        try:
            executor.rollback()
            logger.warning("run.rolled_back", reason="error", script=ctx.current_script)
        except Exception as rollback_exc:
            logger.error("run.rollback_failed", error=str(rollback_exc))
        finally:
            ctx.last_statement = failed_statement

    @staticmethod
    def _annotate(exc: DbConvergeError, ctx: RunContext) -> DbConvergeError:
        if exc.context.script is None and ctx.current_script is not None:
            exc.context.script = ctx.current_script
        if (
            exc.context.statement is None
            and ctx.last_statement is not None
            and (isinstance(exc, DatabaseError) or type(exc) is DbConvergeError)
        ):
            exc.context.statement = ctx.last_statement
        return exc
