"""Environment-driven settings for dbconverge.

Two settings classes, both backed by pydantic-settings and a ``.env`` file in
the working directory:

``ConnectionSettings``
    libpq-style ``PG*`` variables (``PGHOST``, ``PGPORT``, ``PGDATABASE``,
    ``PGUSER``, ``PGPASSWORD`` plus optional TLS variables).

``UpdaterSettings``
    ``DBCONVERGE_*`` variables for the script directory, manifest path,
    ledger table and logging.

Validation failures are translated into :class:`~dbconverge.core.errors.ConfigError`
so the CLI reports them before any connection attempt.

Tags:
    settings, configuration, pydantic, environment, dbconverge
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dbconverge.core.errors import ConfigError, MissingConfigError

_QUALIFIED_TABLE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*\.[A-Za-z_][A-Za-z0-9_]*$")


class ConnectionSettings(BaseSettings):
    """PostgreSQL connection parameters.

    Fields
    ──────
    host, port, database, user, password : required
    sslmode, sslrootcert, sslcert, sslkey : optional TLS requirements
    connect_timeout                       : optional, seconds
    """

    model_config = SettingsConfigDict(
        env_prefix="PG",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str
    port: int
    database: str
    user: str
    password: SecretStr

    sslmode: str | None = None
    sslrootcert: Path | None = None
    sslcert: Path | None = None
    sslkey: Path | None = None
    connect_timeout: int | None = None

    @field_validator("host", "database", "user")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    def conninfo_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``psycopg.connect``; unset optionals are omitted."""
        kwargs: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "dbname": self.database,
            "user": self.user,
            "password": self.password.get_secret_value(),
        }
        for key in ("sslmode", "sslrootcert", "sslcert", "sslkey", "connect_timeout"):
            value = getattr(self, key)
            if value is not None:
                kwargs[key] = str(value)
        return kwargs


class UpdaterSettings(BaseSettings):
    """Tool settings; every field can be overridden from the CLI."""

    model_config = SettingsConfigDict(
        env_prefix="DBCONVERGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Inputs ───────────────────────────────────────────────────
    scripts_dir: Path = Field(default=Path("db") / "db-updates")
    manifest: Path = Field(default=Path("db") / "db-updates.json")

    # ── Ledger ───────────────────────────────────────────────────
    ledger_table: str = Field(default="public.db_updates")

    # ── Observability ────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json", "auto"] = "auto"

    @field_validator("ledger_table")
    @classmethod
    def _qualified_name(cls, value: str) -> str:
        if not _QUALIFIED_TABLE.match(value):
            raise ValueError("must be a schema-qualified name like public.db_updates")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


def _config_error(exc: ValidationError, prefix: str) -> ConfigError:
    missing = [
        f"{prefix}{str(err['loc'][0]).upper()}"
        for err in exc.errors()
        if err["type"] == "missing" and err["loc"]
    ]
    if missing:
        return MissingConfigError(missing, cause=exc)
    details = "; ".join(
        f"{prefix}{str(err['loc'][0]).upper() if err['loc'] else ''}: {err['msg']}"
        for err in exc.errors()
    )
    return ConfigError(f"Invalid configuration: {details}", cause=exc)


def load_connection_settings(**overrides: Any) -> ConnectionSettings:
    """Build :class:`ConnectionSettings` from the environment.

    Raises:
        MissingConfigError: listing every required ``PG*`` variable that is unset
        ConfigError: for present but invalid values (e.g. a non-numeric port)
    """
    try:
        return ConnectionSettings(**overrides)
    except ValidationError as exc:
        raise _config_error(exc, "PG") from exc


def load_updater_settings(**overrides: Any) -> UpdaterSettings:
    """Build :class:`UpdaterSettings`; ``None`` overrides fall back to env/defaults."""
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return UpdaterSettings(**values)
    except ValidationError as exc:
        raise _config_error(exc, "DBCONVERGE_") from exc
