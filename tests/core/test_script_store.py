"""Tests for the Script Store."""

from __future__ import annotations

from pathlib import Path

import pytest

from dbconverge.core.errors import (
    ConfigError,
    ErrorCategory,
    ScriptNotFoundError,
    ScriptUnreadableError,
)
from dbconverge.core.hashing import compute_content_hash
from dbconverge.core.migrations.store import ChangeScript, ScriptStore


class TestChangeScript:
    def test_hash_derived_from_content(self):
        script = ChangeScript(name="a.sql", content="SELECT 1;")
        assert script.content_hash == compute_content_hash("SELECT 1;")

    def test_is_immutable(self):
        script = ChangeScript(name="a.sql", content="SELECT 1;")
        with pytest.raises(AttributeError):
            script.content = "SELECT 2;"  # type: ignore[misc]


class TestScriptStore:
    def test_missing_directory_is_config_error(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="does not exist"):
            ScriptStore(tmp_path / "nope")

    def test_file_instead_of_directory_is_config_error(self, tmp_path: Path):
        f = tmp_path / "file.sql"
        f.write_text("")
        with pytest.raises(ConfigError):
            ScriptStore(f)

    def test_list_scripts_sorted_files_only(self, tmp_path: Path):
        (tmp_path / "b.sql").write_text("")
        (tmp_path / "a.sql").write_text("")
        (tmp_path / "public.x TABLE.sql").write_text("")
        (tmp_path / "subdir").mkdir()
        store = ScriptStore(tmp_path)
        assert store.list_scripts() == ["a.sql", "b.sql", "public.x TABLE.sql"]

    def test_read_script(self, scripts_dir: Path):
        store = ScriptStore(scripts_dir)
        script = store.read_script("public.orders RLS.sql")
        assert script.name == "public.orders RLS.sql"
        assert script.content == "ALTER TABLE public.orders ENABLE ROW LEVEL SECURITY;\n"

    def test_read_missing_script(self, scripts_dir: Path):
        store = ScriptStore(scripts_dir)
        with pytest.raises(ScriptNotFoundError, match="FILE NOT FOUND") as exc_info:
            store.read_script("public.missing TABLE.sql")
        assert exc_info.value.context.script == "public.missing TABLE.sql"

    @pytest.mark.parametrize("name", ["", ".", "..", "../outside.sql", "sub/inner.sql"])
    def test_names_outside_directory_are_not_found(self, tmp_path: Path, name: str):
        inner = tmp_path / "scripts"
        inner.mkdir()
        (tmp_path / "outside.sql").write_text("SELECT 1;")
        store = ScriptStore(inner)
        assert store.exists(name) is False
        with pytest.raises(ScriptNotFoundError):
            store.read_script(name)

    def test_exists(self, scripts_dir: Path):
        store = ScriptStore(scripts_dir)
        assert store.exists("public.orders TABLE.sql")
        assert not store.exists("nope.sql")

    def test_crlf_line_endings_are_preserved(self, tmp_path: Path):
        raw = b"CREATE TABLE t (id int);\r\nSELECT 1;\r\n"
        (tmp_path / "public.t TABLE.sql").write_bytes(raw)

        script = ScriptStore(tmp_path).read_script("public.t TABLE.sql")

        assert script.content == raw.decode("utf-8")
        assert script.content_hash == compute_content_hash(raw.decode("utf-8"))

    def test_line_ending_change_changes_hash(self, tmp_path: Path):
        store = ScriptStore(tmp_path)
        (tmp_path / "a.sql").write_bytes(b"SELECT 1;\n")
        unix = store.read_script("a.sql")
        (tmp_path / "a.sql").write_bytes(b"SELECT 1;\r\n")
        windows = store.read_script("a.sql")

        assert unix.content_hash != windows.content_hash

    def test_invalid_utf8_is_unreadable(self, tmp_path: Path):
        (tmp_path / "bad.sql").write_bytes(b"SELECT '\xff\xfe';")

        with pytest.raises(ScriptUnreadableError, match="Cannot read") as exc_info:
            ScriptStore(tmp_path).read_script("bad.sql")

        err = exc_info.value
        assert err.category is ErrorCategory.SOURCE
        assert err.context.script == "bad.sql"
        assert err.context.path == str(tmp_path / "bad.sql")
        assert isinstance(err.__cause__, UnicodeDecodeError)

    def test_read_failure_is_unreadable(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        (tmp_path / "a.sql").write_text("SELECT 1;")

        def _fail(self):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(Path, "read_bytes", _fail)

        with pytest.raises(ScriptUnreadableError) as exc_info:
            ScriptStore(tmp_path).read_script("a.sql")
        assert isinstance(exc_info.value.__cause__, PermissionError)

    def test_subdirectory_is_not_listed_or_readable(self, tmp_path: Path):
        (tmp_path / "archive").mkdir()
        store = ScriptStore(tmp_path)

        assert store.list_scripts() == []
        with pytest.raises(ScriptNotFoundError):
            store.read_script("archive")
