"""
Manifest: the ordered list of scripts to apply plus the ignore list.

The manifest is a document with two arrays::

    {
      "updates": ["public.orders TABLE.sql", "public.orders RLS.sql"],
      "ignore":  ["scratch.sql"]
    }

``updates`` is authoritative for execution order. Its literal sequence is
used as-is, duplicates included; each occurrence is processed on its own.
``ignore`` only exempts files from the orphan warning.

JSON is the default format. A manifest whose suffix is ``.yaml`` / ``.yml``
is read with PyYAML and validated against the same model.

Tags:
    manifest, ordering, pydantic, dbconverge
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, field_validator

from dbconverge.core.errors import ManifestInvalidError, MissingScriptError, ScriptNotFoundError
from dbconverge.core.migrations.store import ChangeScript, ScriptStore

_YAML_SUFFIXES = {".yaml", ".yml"}


class Manifest(BaseModel):
    """Parsed manifest document."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    updates: list[StrictStr]
    ignore: list[StrictStr] = Field(default_factory=list)

    @field_validator("updates", "ignore")
    @classmethod
    def _no_blank_names(cls, names: list[str]) -> list[str]:
        for index, name in enumerate(names):
            if not name.strip():
                raise ValueError(f"entry {index} is blank")
        return names

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path | str) -> Manifest:
        """Read and validate a manifest file.

        Raises:
            ManifestInvalidError: if the file is missing, unparsable, or does
                not have the expected shape
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ManifestInvalidError(f"Manifest not found: {path}", cause=e).with_context(
                path=str(path)
            ) from e
        except (OSError, UnicodeDecodeError) as e:
            raise ManifestInvalidError(f"Cannot read manifest {path}: {e}", cause=e).with_context(
                path=str(path)
            ) from e

        return cls.parse(text, yaml_format=path.suffix.lower() in _YAML_SUFFIXES, source=str(path))

    @classmethod
    def parse(cls, text: str, *, yaml_format: bool = False, source: str = "<manifest>") -> Manifest:
        """Parse manifest text (JSON by default)."""
        try:
            data: Any = yaml.safe_load(text) if yaml_format else json.loads(text)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ManifestInvalidError(f"Malformed manifest {source}: {e}", cause=e).with_context(
                path=source
            ) from e

        if not isinstance(data, dict):
            raise ManifestInvalidError(
                f"Malformed manifest {source}: expected an object with 'updates' and 'ignore'"
            ).with_context(path=source)

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ManifestInvalidError(f"Malformed manifest {source}: {problems}", cause=e).with_context(
                path=source
            ) from e

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def ignored(self) -> frozenset[str]:
        return frozenset(self.ignore)

    def is_referenced(self, name: str) -> bool:
        """True if ``name`` appears in ``updates`` or ``ignore``."""
        return name in self.updates or name in self.ignored

    def resolve(self, name: str, store: ScriptStore) -> ChangeScript:
        """Read the script a manifest entry names.

        Raises:
            MissingScriptError: if the file is absent from the script directory
        """
        try:
            return store.read_script(name)
        except ScriptNotFoundError as e:
            raise MissingScriptError(
                f"{e.message}, please check the manifest", cause=e
            ).with_context(script=name, path=e.context.path) from e

    def missing_scripts(self, store: ScriptStore) -> list[str]:
        """Manifest entries with no file in ``store``, in manifest order, without repeats."""
        missing: list[str] = []
        for name in self.updates:
            if name not in missing and not store.exists(name):
                missing.append(name)
        return missing

    def validate_against(self, store: ScriptStore) -> None:
        """Fail if any entry in ``updates`` has no file.

        Raises:
            MissingScriptError: naming the first missing entry; all missing
                entries are listed in ``context.metadata["missing"]``
        """
        missing = self.missing_scripts(store)
        if missing:
            first = missing[0]
            raise MissingScriptError(
                f'FILE NOT FOUND: "{store.directory / first}", please check the manifest'
            ).with_context(script=first, path=str(store.directory / first), missing=missing)
