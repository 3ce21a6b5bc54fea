"""SQLite driver (stdlib ``sqlite3``).

Used for development and for the test-suite: the whole query surface
runs against an in-memory database without a MySQL server.
"""

from __future__ import annotations

import sqlite3
from typing import Any

from recordsql.errors import DatabaseConnectionError, QueryError
from recordsql.logging import get_logger
from recordsql.settings import DatabaseSettings

from .base import Driver, DriverConnection, RowSet

logger = get_logger(__name__)


class SQLiteConnection(DriverConnection):
    """A ``sqlite3`` connection in autocommit mode."""

    def __init__(self, conn: sqlite3.Connection, dialect):
        super().__init__(dialect)
        self._conn = conn

    def _execute(self, sql: str, params: tuple[Any, ...]) -> RowSet:
        try:
            cursor = self._conn.execute(sql, params)
            try:
                rows = cursor.fetchall() if cursor.description else []
                return RowSet.from_cursor(cursor.description, rows, cursor.rowcount)
            finally:
                cursor.close()
        except sqlite3.Error as e:
            raise QueryError(f"SQLite statement failed: {e}", cause=e).with_context(sql=sql) from e

    def is_valid(self, timeout: float) -> bool:  # noqa: ARG002
        if self._closed:
            return False
        try:
            with self._lock:
                self._conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error as e:
            logger.debug("connection_probe_failed", backend="sqlite", error=str(e))
            return False

    def _close(self) -> None:
        self._conn.close()


class SQLiteDriver(Driver):
    """
    SQLite driver.

    Each ``open()`` returns a new connection to ``path``; for ``:memory:``
    that is a new, empty database.
    """

    name = "sqlite"

    def __init__(self, path: str = ":memory:", *, timeout: float = 5.0):
        self.path = path
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> SQLiteDriver:
        return cls(settings.sqlite_path, timeout=settings.validation_timeout)

    def open(self) -> SQLiteConnection:
        """Connect to SQLite database."""
        uri = self.path.startswith("file:")
        try:
            conn = sqlite3.connect(
                self.path,
                timeout=self.timeout,
                check_same_thread=False,
                isolation_level=None,
                uri=uri,
            )
        except sqlite3.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to SQLite: {e}",
                cause=e,
            ).with_context(operation="open", target=self.describe()) from e
        return SQLiteConnection(conn, self.dialect)

    def describe(self) -> str:
        return f"sqlite:///{self.path}"


__all__ = [
    "SQLiteConnection",
    "SQLiteDriver",
]
