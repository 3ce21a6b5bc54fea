"""Driver base classes.

A ``Driver`` knows how to open connections to one backend. The
``DriverConnection`` it returns is the only object that talks to the
database: it executes one statement at a time, answers a liveness probe,
and closes.

Manifesto:
    Everything above this layer builds SQL text plus a parameter tuple and
    receives plain rows back. Driver exceptions never leave a
    ``DriverConnection``; they are wrapped in
    :class:`~recordsql.errors.QueryError` or
    :class:`~recordsql.errors.DatabaseConnectionError`.

Features:
    - ``RowSet``: column labels, rows as ``{label: value}`` dicts, rowcount
    - One lock per connection: statements are serialized, so a single
      connection can be shared by concurrent callers

Tags:
    recordsql, database, abstract-base, adapter-pattern

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from recordsql.dialect import Dialect, get_dialect
from recordsql.errors import ConfigError
from recordsql.settings import DatabaseSettings


@dataclass
class RowSet:
    """Result of one executed statement."""

    columns: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)
    rowcount: int = 0

    def __len__(self) -> int:
        return len(self.rows)

    def first(self) -> dict[str, Any] | None:
        return self.rows[0] if self.rows else None

    @classmethod
    def from_cursor(cls, description: Sequence[Sequence[Any]] | None, rows: list[Any], rowcount: int) -> RowSet:
        """Build from a DB-API cursor's ``description`` and fetched tuples."""
        if not description:
            return cls(rowcount=max(rowcount, 0))
        columns = [d[0] for d in description]
        return cls(
            columns=columns,
            rows=[dict(zip(columns, row, strict=False)) for row in rows],
            rowcount=max(rowcount, 0),
        )


class DriverConnection(ABC):
    """
    One live database connection.

    Subclasses implement ``_execute``, ``is_valid`` and ``_close``;
    ``execute`` and ``close`` hold the connection lock.
    """

    def __init__(self, dialect: Dialect):
        self.dialect = dialect
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def execute(self, sql: str, params: Sequence[Any] = ()) -> RowSet:
        """Execute one statement with bound parameters.

        Raises:
            QueryError: The driver rejected or failed the statement.
        """
        with self._lock:
            return self._execute(sql, tuple(params))

    @abstractmethod
    def _execute(self, sql: str, params: tuple[Any, ...]) -> RowSet: ...

    @abstractmethod
    def is_valid(self, timeout: float) -> bool:
        """Liveness probe; never raises."""
        ...

    def close(self) -> None:
        """Close the connection; safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._close()

    @abstractmethod
    def _close(self) -> None: ...


class Driver(ABC):
    """Opens connections to one database backend."""

    name: str = ""

    @property
    def dialect(self) -> Dialect:
        return get_dialect(self.name)

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> Driver:
        raise ConfigError(f"{cls.__name__} cannot be built from settings")

    @abstractmethod
    def open(self) -> DriverConnection:
        """Open a new connection.

        Raises:
            DatabaseConnectionError: The database could not be reached.
            ConfigError: The driver library is not installed.
        """
        ...

    def describe(self) -> str:
        """Connection target for logs (no secrets)."""
        return self.name


__all__ = [
    "RowSet",
    "DriverConnection",
    "Driver",
]
