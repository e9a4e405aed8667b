"""
Consistency checks between the script directory and the manifest.

Both checks are advisory. They produce ``ConsistencyWarning`` values that are
reported at the end of a run and never block application.

Orphan check
    A file present in the directory but named in neither ``updates`` nor
    ``ignore``.

RLS pairing check
    For every ``<schema.object> TABLE*`` file, a sibling ``<schema.object> RLS*``
    file with the same prefix is expected. This is a file-naming heuristic:
    scripts named outside the convention are not matched, so it can miss
    tables that have no policy. It does not inspect SQL.

Examples:
    >>> checker = ConsistencyChecker()
    >>> [w.script for w in checker.check_rls_pairing(["public.orders TABLE.sql"])]
    ['public.orders TABLE.sql']

Tags:
    consistency, lint, row-level-security, dbconverge
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from dbconverge.core.migrations.manifest import Manifest

_TABLE_SCRIPT = re.compile(r"([a-zA-Z]*?\..*?) TABLE")
_RLS_SCRIPT = re.compile(r"(.*?) RLS")


class WarningKind(str, Enum):
    ORPHANED_SCRIPT = "orphaned_script"
    MISSING_RLS = "missing_rls"


@dataclass(frozen=True)
class ConsistencyWarning:
    """A non-fatal finding about the script set."""

    kind: WarningKind
    script: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "script": self.script, "message": self.message}


def table_prefix(name: str) -> str | None:
    """``schema.object`` of a ``<schema.object> TABLE*`` file name, else ``None``."""
    match = _TABLE_SCRIPT.match(name)
    return match.group(1) if match else None


def rls_prefix(name: str) -> str | None:
    """Prefix of a ``<prefix> RLS*`` file name, else ``None``."""
    match = _RLS_SCRIPT.match(name)
    return match.group(1) if match else None


class ConsistencyChecker:
    """Runs the orphan and RLS pairing checks.

    ``manifest_label`` is only used in warning messages.
    """

    def __init__(self, manifest_label: str = "the manifest") -> None:
        self._manifest_label = manifest_label

    def check(self, scripts: Iterable[str], manifest: Manifest) -> list[ConsistencyWarning]:
        """All warnings: orphans first, then RLS pairing, each in sorted file order."""
        names = sorted(scripts)
        return self.check_orphans(names, manifest) + self.check_rls_pairing(names)

    def check_orphans(
        self, scripts: Iterable[str], manifest: Manifest
    ) -> list[ConsistencyWarning]:
        referenced = set(manifest.updates) | manifest.ignored
        return [
            ConsistencyWarning(
                kind=WarningKind.ORPHANED_SCRIPT,
                script=name,
                message=(
                    f"the update script file {name} exists but is not referenced "
                    f"in {self._manifest_label}"
                ),
            )
            for name in sorted(set(scripts))
            if name not in referenced
        ]

    def check_rls_pairing(self, scripts: Iterable[str]) -> list[ConsistencyWarning]:
        names = sorted(set(scripts))
        rls_prefixes = {prefix for prefix in map(rls_prefix, names) if prefix is not None}

        warnings = []
        for name in names:
            prefix = table_prefix(name)
            if prefix is not None and prefix not in rls_prefixes:
                warnings.append(
                    ConsistencyWarning(
                        kind=WarningKind.MISSING_RLS,
                        script=name,
                        message=f"no RLS update script found for {name}",
                    )
                )
        return warnings
