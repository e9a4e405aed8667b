"""
CLI: ``dbconverge update | status | check``.
"""

from __future__ import annotations

from pathlib import Path

import typer

from dbconverge.cli.utils import (
    console,
    fail,
    print_json,
    print_run_result,
    print_status,
    print_warnings,
    setup_logging,
)
from dbconverge.core.adapters.postgresql import connect_postgres
from dbconverge.core.errors import DbConvergeError
from dbconverge.core.migrations import (
    ChangeTracker,
    ConsistencyChecker,
    Manifest,
    MigrationEngine,
    RunMode,
    ScriptStore,
)
from dbconverge.core.settings import (
    UpdaterSettings,
    load_connection_settings,
    load_updater_settings,
)

ScriptsDirOption = typer.Option(
    None, "--scripts-dir", "-s", help="Directory of change scripts [env: DBCONVERGE_SCRIPTS_DIR]"
)
ManifestOption = typer.Option(
    None, "--manifest", "-m", help="Manifest file (JSON or YAML) [env: DBCONVERGE_MANIFEST]"
)
LedgerOption = typer.Option(
    None, "--ledger-table", help="Schema-qualified ledger table [env: DBCONVERGE_LEDGER_TABLE]"
)
LogLevelOption = typer.Option(
    None, "--log-level", "-l", help="DEBUG, INFO, WARNING or ERROR [env: DBCONVERGE_LOG_LEVEL]"
)
JsonOption = typer.Option(False, "--json", help="JSON output")


def _settings(
    scripts_dir: Path | None,
    manifest: Path | None,
    ledger_table: str | None,
    log_level: str | None,
) -> UpdaterSettings:
    settings = load_updater_settings(
        scripts_dir=scripts_dir,
        manifest=manifest,
        ledger_table=ledger_table,
        log_level=log_level,
    )
    setup_logging(settings)
    return settings


def _engine(settings: UpdaterSettings) -> MigrationEngine:
    store = ScriptStore(settings.scripts_dir)
    manifest = Manifest.load(settings.manifest)
    conn_settings = load_connection_settings()

    return MigrationEngine(
        store,
        manifest,
        connector=lambda: connect_postgres(conn_settings),
        tracker=ChangeTracker(settings.ledger_table),
        checker=ConsistencyChecker(str(settings.manifest)),
    )


def update(
    commit: bool = typer.Option(
        False, "--commit", help="Commit the transaction. Without it the run is rolled back."
    ),
    scripts_dir: Path | None = ScriptsDirOption,
    manifest: Path | None = ManifestOption,
    ledger_table: str | None = LedgerOption,
    log_level: str | None = LogLevelOption,
    json_out: bool = JsonOption,
) -> None:
    """Apply the manifest to the database (dry run unless --commit)."""
    try:
        settings = _settings(scripts_dir, manifest, ledger_table, log_level)
        engine = _engine(settings)
        result = engine.run(RunMode.COMMIT if commit else RunMode.DRY_RUN)
    except DbConvergeError as exc:
        raise fail(exc, as_json=json_out) from exc

    if json_out:
        print_json({"success": True, **result.to_dict()})
        return
    print_run_result(result)


def status(
    scripts_dir: Path | None = ScriptsDirOption,
    manifest: Path | None = ManifestOption,
    ledger_table: str | None = LedgerOption,
    log_level: str | None = LogLevelOption,
    json_out: bool = JsonOption,
) -> None:
    """Show what the next run would do for each manifest entry. Writes nothing."""
    try:
        settings = _settings(scripts_dir, manifest, ledger_table, log_level)
        engine = _engine(settings)
        outcomes = engine.status()
        warnings = engine.check()
    except DbConvergeError as exc:
        raise fail(exc, as_json=json_out) from exc

    if json_out:
        print_json(
            {
                "success": True,
                "scripts": [o.to_dict() for o in outcomes],
                "warnings": [w.to_dict() for w in warnings],
            }
        )
        return
    print_status(outcomes, title="Manifest Status")
    print_warnings(warnings)


def check(
    scripts_dir: Path | None = ScriptsDirOption,
    manifest: Path | None = ManifestOption,
    log_level: str | None = LogLevelOption,
    strict: bool = typer.Option(False, "--strict", help="Exit 1 if there are warnings"),
    json_out: bool = JsonOption,
) -> None:
    """Validate the manifest and script directory without connecting."""
    try:
        settings = _settings(scripts_dir, manifest, None, log_level)
        store = ScriptStore(settings.scripts_dir)
        parsed = Manifest.load(settings.manifest)
        parsed.validate_against(store)
        warnings = ConsistencyChecker(str(settings.manifest)).check(store.list_scripts(), parsed)
    except DbConvergeError as exc:
        raise fail(exc, as_json=json_out) from exc

    if json_out:
        print_json({"success": True, "warnings": [w.to_dict() for w in warnings]})
    else:
        print_warnings(warnings)
        if not warnings:
            console.print(
                f"[green]OK[/green]: {len(parsed.updates)} manifest entries, no warnings"
            )

    if strict and warnings:
        raise typer.Exit(code=1)
