"""
Structured error types for recordsql.

Every failure the access layer can report is one of a small, closed set of
error classes. Public operations never raise them; they are carried inside
an :class:`~recordsql.result.Err` so callers can tell "no rows" apart from
"the operation failed" and see *why* it failed.

Manifesto:
    - **Typed taxonomy:** connectivity, input validation, marshalling and
      build failures are different classes, never one catch-all
    - **Retry semantics:** connectivity errors know they are retryable;
      the library itself never retries an individual operation
    - **Rich context:** errors carry table/column/operation metadata
    - **Chaining:** the driver exception is kept as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       RecordSQLError                             │
        │  (category, retryable, context, cause)                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  DatabaseConnectionError   InputValidationError   MarshallingError│
        │  (retryable=True)          (VALIDATION)           (PARSE)        │
        │       │                         │                                │
        │  DatabaseUnavailableError  TypeMismatchError      QueryBuildError│
        │  ConnectionClosedError                            (QUERY)        │
        │                                                                  │
        │  QueryError (DATABASE)     SchemaError (SCHEMA)   ConfigError    │
        └─────────────────────────────────────────────────────────────────┘

Tags:
    errors, taxonomy, result-pattern, recordsql

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Error categories used for routing and logging.

    Attributes:
        DATABASE: No valid connection, driver failure
        VALIDATION: Caller supplied a value of the wrong type or an
            incomplete request
        PARSE: A result row could not be turned into a record
        QUERY: A query was built in an invalid state
        SCHEMA: A table declaration is inconsistent
        CONFIG: Missing or invalid settings
        INTERNAL: Bugs, unexpected state
    """

    DATABASE = "DATABASE"
    VALIDATION = "VALIDATION"
    PARSE = "PARSE"
    QUERY = "QUERY"
    SCHEMA = "SCHEMA"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error."""

    table: str | None = None
    column: str | None = None
    operation: str | None = None
    sql: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["table", "column", "operation", "sql"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class RecordSQLError(Exception):
    """
    Base exception for all recordsql errors.

    Subclasses set ``default_category`` and ``default_retryable``; both can
    be overridden per instance.

    Examples:
        >>> error = RecordSQLError("boom", category=ErrorCategory.INTERNAL)
        >>> error.to_dict()["category"]
        'INTERNAL'
        >>> QueryBuildError("no bindings").with_context(table="Example").context.table
        'Example'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> RecordSQLError:
        """
        Add context to this error (fluent API).

        Usage:
            return Err(QueryError("insert failed").with_context(
                table="Example", operation="upsert"
            ))
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
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
# CONNECTIVITY ERRORS
# =============================================================================


class DatabaseConnectionError(RecordSQLError):
    """No valid connection could be obtained or opened."""

    default_category = ErrorCategory.DATABASE
    default_retryable = True


class DatabaseUnavailableError(DatabaseConnectionError):
    """The manager is reconnecting; the operation fails fast."""

    def __init__(self, message: str = "Database offline, reconnect in progress", **kwargs: Any):
        super().__init__(message, **kwargs)


class ConnectionClosedError(DatabaseConnectionError):
    """The manager was shut down; no further operations are accepted."""

    default_retryable = False

    def __init__(self, message: str = "Connection manager has been shut down", **kwargs: Any):
        super().__init__(message, **kwargs)


class QueryError(RecordSQLError):
    """The driver rejected or failed to run a statement."""

    default_category = ErrorCategory.DATABASE


# =============================================================================
# INPUT VALIDATION ERRORS
# =============================================================================


class InputValidationError(RecordSQLError):
    """
    A supplied value or request is invalid.

    Never retryable: the caller has to fix the input.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        expected: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.expected = expected

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        if self.expected:
            result["expected"] = self.expected
        return result


class TypeMismatchError(InputValidationError):
    """A value's runtime type does not match the column's declared type."""

    pass


# =============================================================================
# MARSHALLING / BUILD / SCHEMA ERRORS
# =============================================================================


class MarshallingError(RecordSQLError):
    """A result row could not be converted into the expected record shape."""

    default_category = ErrorCategory.PARSE


class QueryBuildError(RecordSQLError):
    """A query was constructed in an invalid state."""

    default_category = ErrorCategory.QUERY


class SchemaError(RecordSQLError):
    """A table declaration is inconsistent with its record type."""

    default_category = ErrorCategory.SCHEMA


class ConfigError(RecordSQLError):
    """Configuration is missing or invalid."""

    default_category = ErrorCategory.CONFIG


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, RecordSQLError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "RecordSQLError",
    "DatabaseConnectionError",
    "DatabaseUnavailableError",
    "ConnectionClosedError",
    "QueryError",
    "InputValidationError",
    "TypeMismatchError",
    "MarshallingError",
    "QueryBuildError",
    "SchemaError",
    "ConfigError",
    "is_retryable",
]
