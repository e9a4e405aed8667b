"""
Shared pytest fixtures for dbconverge tests.

This module provides:
- A fresh ``FakeDatabase`` (see ``tests._support.fake_db``) per test
- A populated script directory and manifest (``tests._support.samples``)
- A ``MigrationEngine`` factory wired to the fake database
- Environment isolation for settings tests

Usage:
    def test_something(make_engine, scripts_dir, fake_db):
        engine = make_engine()
        engine.run(RunMode.COMMIT)
        assert fake_db.ledger
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
import structlog

from dbconverge.core.migrations import (
    ChangeTracker,
    ConsistencyChecker,
    Manifest,
    MigrationEngine,
    ScriptStore,
)
from tests._support.fake_db import FakeDatabase, write_manifest, write_scripts
from tests._support.samples import SAMPLE_SCRIPTS, SAMPLE_UPDATES


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def scripts_dir(tmp_path: Path) -> Path:
    """Script directory populated with ``SAMPLE_SCRIPTS``."""
    directory = tmp_path / "db-updates"
    directory.mkdir()
    write_scripts(directory, SAMPLE_SCRIPTS)
    return directory


@pytest.fixture
def manifest_path(tmp_path: Path) -> Path:
    return write_manifest(tmp_path / "db-updates.json", list(SAMPLE_UPDATES))


@pytest.fixture
def make_engine(scripts_dir: Path, manifest_path: Path, fake_db: FakeDatabase):
    """Factory building a ``MigrationEngine`` over the fake database.

    The manifest is re-read on each call so tests can rewrite it between runs.
    """

    def _make(**kwargs: Any) -> MigrationEngine:
        return MigrationEngine(
            ScriptStore(scripts_dir),
            Manifest.load(manifest_path),
            connector=fake_db.connect,
            tracker=kwargs.pop("tracker", ChangeTracker()),
            checker=kwargs.pop("checker", ConsistencyChecker(str(manifest_path))),
            **kwargs,
        )

    return _make


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> pytest.MonkeyPatch:
    """Remove PG* / DBCONVERGE_* variables and run from an empty directory (no .env)."""
    for key in list(os.environ):
        if key.startswith(("PG", "DBCONVERGE_")):
            monkeypatch.delenv(key, raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    return monkeypatch


@pytest.fixture
def pg_env(clean_env: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    clean_env.setenv("PGHOST", "db.example.com")
    clean_env.setenv("PGPORT", "5432")
    clean_env.setenv("PGDATABASE", "app")
    clean_env.setenv("PGUSER", "migrator")
    clean_env.setenv("PGPASSWORD", "s3cret")
    return clean_env
