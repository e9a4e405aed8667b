"""
Placeholder expansion inside script bodies.

Two opt-in markers:

``%DEFAULT_COLUMNS%``
    Expands to the ``ADD COLUMN IF NOT EXISTS`` clauses for the audit
    columns (created/updated/deleted metadata). Meant to sit inside an
    ``ALTER TABLE ... `` statement after at least one other clause.

``%DEFAULT_TRIGGER(schema.object)%``
    Expands to a trigger function plus a ``BEFORE UPDATE`` trigger on
    ``schema.object`` that maintains ``updated_at`` / ``updated_by``.

Every occurrence is expanded once; the generated text is not scanned again.
Text without markers, and malformed markers, pass through unchanged.

Examples:
    >>> expander = TemplateExpander()
    >>> expander.expand("SELECT 1;")
    'SELECT 1;'
    >>> "CREATE TRIGGER tr_public_orders_update" in expander.expand(
    ...     "%DEFAULT_TRIGGER(public.orders)%"
    ... )
    True

Tags:
    templates, boilerplate, audit-columns, triggers, dbconverge
"""

from __future__ import annotations

import re

DEFAULT_COLUMNS_MARKER = "%DEFAULT_COLUMNS%"

_DEFAULT_TRIGGER_MARKER = re.compile(r"%DEFAULT_TRIGGER\(([^.()%\s]+)\.([^()%\s]+)\)%")

# auth.uid() is the caller's identity; the nil UUID stands in for the tool itself.
NIL_ACTOR = "00000000-0000-0000-0000-000000000000"

DEFAULT_COLUMNS_SQL = f"""-- default columns:
    ADD COLUMN IF NOT EXISTS created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP
  , ADD COLUMN IF NOT EXISTS created_by UUID NOT NULL DEFAULT COALESCE(auth.uid(), uuid('{NIL_ACTOR}'))
  , ADD COLUMN IF NOT EXISTS updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP
  , ADD COLUMN IF NOT EXISTS updated_by UUID NOT NULL DEFAULT COALESCE(auth.uid(), uuid('{NIL_ACTOR}'))
  , ADD COLUMN IF NOT EXISTS deleted_at TIMESTAMP WITH TIME ZONE
  , ADD COLUMN IF NOT EXISTS deleted_by UUID
  , ADD COLUMN IF NOT EXISTS deleted_reason TEXT
"""

DEFAULT_TRIGGER_SQL = """-- default trigger
DROP TRIGGER IF EXISTS tr_{schema}_{object}_update ON {schema}.{object};
DROP FUNCTION IF EXISTS {schema}.func_tr_{schema}_{object}_update;
CREATE FUNCTION {schema}.func_tr_{schema}_{object}_update() RETURNS TRIGGER
    LANGUAGE PLPGSQL
    AS
$func$

BEGIN
    NEW.updated_at := now();
    NEW.updated_by := COALESCE(auth.uid(), uuid('{actor}'));
    RETURN NEW;
END;
$func$;

CREATE TRIGGER tr_{schema}_{object}_update
    BEFORE UPDATE
    ON {schema}.{object}
    FOR EACH ROW
    EXECUTE FUNCTION {schema}.func_tr_{schema}_{object}_update();
"""


def render_default_trigger(schema: str, object_name: str) -> str:
    """Trigger boilerplate bound to ``schema.object_name``."""
    return DEFAULT_TRIGGER_SQL.format(schema=schema, object=object_name, actor=NIL_ACTOR)


class TemplateExpander:
    """Pure text substitution; no I/O and no state between calls."""

    def expand(self, text: str) -> str:
        expanded = text.replace(DEFAULT_COLUMNS_MARKER, DEFAULT_COLUMNS_SQL)
        return _DEFAULT_TRIGGER_MARKER.sub(
            lambda match: render_default_trigger(match.group(1), match.group(2)),
            expanded,
        )

    def has_markers(self, text: str) -> bool:
        return DEFAULT_COLUMNS_MARKER in text or _DEFAULT_TRIGGER_MARKER.search(text) is not None
