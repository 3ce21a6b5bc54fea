"""MySQL driver.

Uses ``mysql.connector`` from the ``mysql-connector-python`` package.
MySQL uses **format** (``%s``) placeholder style.

The connector is imported at ``open()`` time; if it is missing a clear
:class:`~recordsql.errors.ConfigError` is raised there. Connections run in
autocommit mode, so every statement is its own unit of work.
"""

from __future__ import annotations

from typing import Any

from recordsql.errors import ConfigError, DatabaseConnectionError, QueryError
from recordsql.logging import get_logger
from recordsql.settings import DatabaseSettings

from .base import Driver, DriverConnection, RowSet

logger = get_logger(__name__)


class MySQLConnection(DriverConnection):
    """A ``mysql.connector`` connection."""

    def __init__(self, conn: Any, error_class: type[Exception], dialect):
        super().__init__(dialect)
        self._conn = conn
        self._error_class = error_class

    def _execute(self, sql: str, params: tuple[Any, ...]) -> RowSet:
        try:
            cursor = self._conn.cursor()
            try:
                cursor.execute(sql, params)
                rows = cursor.fetchall() if cursor.with_rows else []
                return RowSet.from_cursor(cursor.description, rows, cursor.rowcount)
            finally:
                cursor.close()
        except self._error_class as e:
            raise QueryError(f"MySQL statement failed: {e}", cause=e).with_context(sql=sql) from e

    def is_valid(self, timeout: float) -> bool:
        if self._closed:
            return False
        try:
            with self._lock:
                self._conn.ping(reconnect=False)
            return True
        except self._error_class as e:
            logger.debug("connection_probe_failed", backend="mysql", timeout=timeout, error=str(e))
            return False

    def _close(self) -> None:
        try:
            self._conn.close()
        except self._error_class as e:
            logger.debug("connection_close_failed", backend="mysql", error=str(e))


class MySQLDriver(Driver):
    """
    MySQL / MariaDB driver.

    Opens one connection per ``open()`` call; there is no pool.
    """

    name = "mysql"

    def __init__(
        self,
        host: str = "localhost",
        port: int = 3306,
        database: str = "",
        username: str | None = None,
        password: str | None = None,
        *,
        connect_timeout: float = 5.0,
        charset: str = "utf8mb4",
    ):
        self.host = host
        self.port = port
        self.database = database
        self.username = username
        self._password = password
        self.connect_timeout = connect_timeout
        self.charset = charset

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> MySQLDriver:
        return cls(
            host=settings.host,
            port=settings.port,
            database=settings.database,
            username=settings.username,
            password=settings.password_value(),
            connect_timeout=settings.validation_timeout,
        )

    def open(self) -> MySQLConnection:
        """Connect to MySQL database."""
        try:
            import mysql.connector
        except ImportError:
            raise ConfigError(
                "mysql-connector-python is required for MySQL. "
                "Install with: pip install mysql-connector-python"
            ) from None

        try:
            conn = mysql.connector.connect(
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.username,
                password=self._password,
                charset=self.charset,
                connection_timeout=max(1, int(self.connect_timeout)),
                autocommit=True,
            )
        except mysql.connector.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to MySQL: {e}",
                cause=e,
            ).with_context(operation="open", target=self.describe()) from e
        return MySQLConnection(conn, mysql.connector.Error, self.dialect)

    def describe(self) -> str:
        return f"mysql://{self.host}:{self.port}/{self.database}"


__all__ = [
    "MySQLConnection",
    "MySQLDriver",
]
