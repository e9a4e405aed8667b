"""
Structured error types for dbconverge.

Every failure that can end a run is raised as a typed ``DbConvergeError``
carrying a category, structured context (which script, which statement,
which file) and the chained driver or I/O exception that caused it. The CLI
renders these uniformly and maps all of them to a non-zero exit status.

Manifesto:
    - **Typed hierarchy:** configuration, manifest and database failures are
      distinguishable without string matching
    - **Rich context:** the failing statement travels with the error instead
      of living in shared mutable state
    - **Error chaining:** the original exception is kept as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                      DbConvergeError                          │
        │                 (category, context, cause)                    │
        ├──────────────────────────────────────────────────────────────┤
        │  ConfigError           ManifestError         DatabaseError    │
        │  (CONFIG)              (VALIDATION)          (DATABASE)       │
        │      │                     │                     │            │
        │  MissingConfigError    ManifestInvalidError  DatabaseConnec-  │
        │                        MissingScriptError      tionError      │
        │                                              ExecutionError   │
        │  ScriptNotFoundError                         TransactionError │
        │  ScriptUnreadableError                                        │
        │  (SOURCE)                                                     │
        └──────────────────────────────────────────────────────────────┘

    Consistency warnings (orphaned scripts, missing RLS scripts) are NOT
    errors; see ``dbconverge.core.migrations.consistency``.

Examples:
    >>> err = ExecutionError("relation does not exist")
    >>> err.with_context(script="public.orders TABLE.sql").context.script
    'public.orders TABLE.sql'
    >>> err.category.value
    'DATABASE'

Tags:
    error-handling, exception-hierarchy, error-context, dbconverge
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for rendering and logging."""

    CONFIG = "CONFIG"  # Missing env var, missing directory
    SOURCE = "SOURCE"  # Script file missing or unreadable
    VALIDATION = "VALIDATION"  # Malformed manifest, unresolved entry
    DATABASE = "DATABASE"  # Connection, statement, transaction
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        script: Manifest entry / file name being processed
        statement: SQL text that was last sent to the executor
        path: Filesystem path involved (manifest, script directory)
        metadata: Additional key-value pairs
    """

    script: str | None = None
    statement: str | None = None
    path: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["script", "statement", "path"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class DbConvergeError(Exception):
    """
    Base exception for all dbconverge errors.

    Subclasses set ``default_category``. The constructor accepts an explicit
    ``category``, an ``ErrorContext`` and the underlying ``cause``, which is
    also chained as ``__cause__`` so tracebacks show the driver error.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DbConvergeError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ExecutionError("failed").with_context(
                script="public.orders TABLE.sql",
                statement="CREATE TABLE ...",
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(DbConvergeError):
    """Invalid or incomplete configuration. Raised before any connection attempt."""

    default_category = ErrorCategory.CONFIG


class MissingConfigError(ConfigError):
    """One or more required settings are not set."""

    def __init__(self, keys: list[str], **kwargs: Any):
        self.keys = list(keys)
        names = ", ".join(self.keys)
        message = f"{names} {'is' if len(self.keys) == 1 else 'are'} not set, please provide it as env var"
        super().__init__(message, **kwargs)


# =============================================================================
# SCRIPT / MANIFEST ERRORS
# =============================================================================


class ScriptNotFoundError(DbConvergeError):
    """A change script does not exist in the script directory."""

    default_category = ErrorCategory.SOURCE


class ScriptUnreadableError(DbConvergeError):
    """A change script exists but cannot be read or is not valid UTF-8."""

    default_category = ErrorCategory.SOURCE


class ManifestError(DbConvergeError):
    """Base class for manifest problems."""

    default_category = ErrorCategory.VALIDATION


class ManifestInvalidError(ManifestError):
    """The manifest file is missing, unreadable or malformed."""


class MissingScriptError(ManifestError):
    """A manifest entry names a file absent from the script directory."""


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(DbConvergeError):
    """Base class for failures reported by the executor."""

    default_category = ErrorCategory.DATABASE


class DatabaseConnectionError(DatabaseError):
    """The executor session could not be established."""


class ExecutionError(DatabaseError):
    """A statement failed against the database."""


class TransactionError(DatabaseError):
    """BEGIN / COMMIT / ROLLBACK failed."""


__all__ = [
    "ConfigError",
    "DatabaseConnectionError",
    "DatabaseError",
    "DbConvergeError",
    "ErrorCategory",
    "ErrorContext",
    "ExecutionError",
    "ManifestError",
    "ManifestInvalidError",
    "MissingConfigError",
    "MissingScriptError",
    "ScriptNotFoundError",
    "ScriptUnreadableError",
    "TransactionError",
]
