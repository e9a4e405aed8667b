"""
Tests for the logging module.

Tests verify:
- JSON lines carry event, level, logger and service
- DEBUG logs are suppressed at INFO level
- Bound context is merged into every event
"""

import json

import pytest

from dbconverge.core.logging import bind_context, clear_context, configure_logging, get_logger


def _json_lines(text: str) -> list[dict]:
    return [json.loads(line) for line in text.splitlines() if line.strip()]


class TestConfigureLogging:
    def teardown_method(self):
        clear_context()

    def test_json_event(self, capsys):
        configure_logging(level="INFO", json_format=True)
        get_logger("dbconverge.tests").info("migration.applied", script="a.sql")

        (event,) = _json_lines(capsys.readouterr().err)
        assert event["event"] == "migration.applied"
        assert event["script"] == "a.sql"
        assert event["level"] == "info"
        assert event["logger"] == "dbconverge.tests"
        assert event["service"] == "dbconverge"
        assert "timestamp" in event

    def test_logs_go_to_stderr(self, capsys):
        configure_logging(json_format=True)
        get_logger("dbconverge.tests").info("run.started")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "run.started" in captured.err

    def test_debug_suppressed_at_info(self, capsys):
        configure_logging(level="INFO", json_format=True)
        logger = get_logger("dbconverge.tests")
        logger.debug("ledger.fetched")
        logger.warning("run.rolled_back")

        events = [e["event"] for e in _json_lines(capsys.readouterr().err)]
        assert events == ["run.rolled_back"]

    def test_level_is_case_insensitive(self, capsys):
        configure_logging(level="debug", json_format=True)
        get_logger("dbconverge.tests").debug("ledger.fetched")
        assert "ledger.fetched" in capsys.readouterr().err

    def test_unknown_level(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging(level="LOUD")

    def test_without_timestamp_and_custom_service(self, capsys):
        configure_logging(json_format=True, add_timestamp=False, service="migrator")
        get_logger("dbconverge.tests").info("x")

        (event,) = _json_lines(capsys.readouterr().err)
        assert "timestamp" not in event
        assert event["service"] == "migrator"

    def test_console_format(self, capsys):
        configure_logging(json_format=False)
        get_logger("dbconverge.tests").info("ledger.ensured", table="public.db_updates")

        err = capsys.readouterr().err
        assert "ledger.ensured" in err
        assert "public.db_updates" in err
        assert not err.lstrip().startswith("{")


class TestContext:
    def teardown_method(self):
        clear_context()

    def test_bound_context_is_merged(self, capsys):
        configure_logging(json_format=True)
        bind_context(mode="commit")
        get_logger("dbconverge.tests").info("run.started")

        (event,) = _json_lines(capsys.readouterr().err)
        assert event["mode"] == "commit"

    def test_clear_context(self, capsys):
        configure_logging(json_format=True)
        bind_context(mode="commit")
        clear_context()
        get_logger("dbconverge.tests").info("run.started")

        (event,) = _json_lines(capsys.readouterr().err)
        assert "mode" not in event
