"""
Tests for the consistency checks.

Tests cover:
- Orphaned script detection, including the ignore list
- TABLE / RLS file-name pairing
- Warning ordering and serialization
"""

import pytest

from dbconverge.core.migrations.consistency import (
    ConsistencyChecker,
    ConsistencyWarning,
    WarningKind,
    rls_prefix,
    table_prefix,
)
from dbconverge.core.migrations.manifest import Manifest


class TestNamePrefixes:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("public.orders TABLE.sql", "public.orders"),
            ("public.orders TABLE add column.sql", "public.orders"),
            ("app.order_lines TABLE.sql", "app.order_lines"),
            ("public.orders RLS.sql", None),
            ("public.func_total FUNCTION.sql", None),
            ("orders TABLE.sql", None),
        ],
    )
    def test_table_prefix(self, name, expected):
        assert table_prefix(name) == expected

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("public.orders RLS.sql", "public.orders"),
            ("public.orders RLS v2.sql", "public.orders"),
            ("public.orders TABLE.sql", None),
        ],
    )
    def test_rls_prefix(self, name, expected):
        assert rls_prefix(name) == expected


class TestOrphans:
    def test_unreferenced_file_warns(self):
        manifest = Manifest(updates=["a.sql"])
        warnings = ConsistencyChecker("db/db-updates.json").check_orphans(
            ["a.sql", "b.sql"], manifest
        )
        assert warnings == [
            ConsistencyWarning(
                kind=WarningKind.ORPHANED_SCRIPT,
                script="b.sql",
                message="the update script file b.sql exists but is not referenced "
                "in db/db-updates.json",
            )
        ]

    def test_ignored_file_does_not_warn(self):
        manifest = Manifest(updates=["a.sql"], ignore=["scratch.sql"])
        assert ConsistencyChecker().check_orphans(["a.sql", "scratch.sql"], manifest) == []

    def test_entry_in_both_lists_does_not_warn(self):
        manifest = Manifest(updates=["a.sql"], ignore=["a.sql"])
        assert ConsistencyChecker().check_orphans(["a.sql"], manifest) == []

    def test_ignored_name_without_file_is_fine(self):
        manifest = Manifest(updates=[], ignore=["gone.sql"])
        assert ConsistencyChecker().check_orphans([], manifest) == []


class TestRlsPairing:
    def test_table_without_rls_warns(self):
        warnings = ConsistencyChecker().check_rls_pairing(["public.orders TABLE.sql"])
        assert len(warnings) == 1
        assert warnings[0].kind == WarningKind.MISSING_RLS
        assert warnings[0].message == "no RLS update script found for public.orders TABLE.sql"

    def test_paired_table_is_fine(self):
        names = ["public.orders TABLE.sql", "public.orders RLS.sql"]
        assert ConsistencyChecker().check_rls_pairing(names) == []

    def test_one_rls_file_covers_several_table_files(self):
        names = [
            "public.orders TABLE.sql",
            "public.orders TABLE add discount.sql",
            "public.orders RLS.sql",
        ]
        assert ConsistencyChecker().check_rls_pairing(names) == []

    def test_rls_for_other_table_does_not_count(self):
        names = ["public.orders TABLE.sql", "public.customers RLS.sql"]
        assert [w.script for w in ConsistencyChecker().check_rls_pairing(names)] == [
            "public.orders TABLE.sql"
        ]

    def test_non_table_files_are_not_checked(self):
        names = ["public.func_total FUNCTION.sql", "public.v_orders VIEW.sql"]
        assert ConsistencyChecker().check_rls_pairing(names) == []


class TestCheck:
    def test_orphans_first_then_rls(self):
        manifest = Manifest(updates=["public.orders TABLE.sql"])
        warnings = ConsistencyChecker().check(
            ["public.orders TABLE.sql", "zzz.sql"], manifest
        )
        assert [(w.kind, w.script) for w in warnings] == [
            (WarningKind.ORPHANED_SCRIPT, "zzz.sql"),
            (WarningKind.MISSING_RLS, "public.orders TABLE.sql"),
        ]

    def test_clean_set(self):
        manifest = Manifest(updates=["public.orders TABLE.sql", "public.orders RLS.sql"])
        names = ["public.orders RLS.sql", "public.orders TABLE.sql"]
        assert ConsistencyChecker().check(names, manifest) == []

    def test_to_dict(self):
        warning = ConsistencyWarning(WarningKind.MISSING_RLS, "x TABLE.sql", "msg")
        assert warning.to_dict() == {"kind": "missing_rls", "script": "x TABLE.sql", "message": "msg"}
