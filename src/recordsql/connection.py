"""
Connection manager: one live connection with background reconnect.

The manager owns the single active :class:`~recordsql.adapters.DriverConnection`
and hands it to every query and repository. It is passed explicitly to
the components that need it; there is no module-level connection.

Architecture:
    ::

        ┌──────────────┐  connect() ok   ┌─────────────┐
        │ DISCONNECTED │ ──────────────▶ │  CONNECTED  │◀─────────────┐
        └──────────────┘                 └──────┬──────┘              │
                                                │ acquire(): probe    │ publish
                                                │ fails               │ (atomic)
                                                ▼                     │
                                         ┌─────────────┐   open +     │
                                         │RECONNECTING │── validate ──┘
                                         └─────────────┘   every N s
                       shutdown() from any state ──▶ CLOSED

    - ``acquire()`` validates the current connection before returning it.
    - A failed probe closes the connection, starts **one** daemon reconnect
      thread and fails the caller immediately with
      ``DatabaseUnavailableError``. Callers retry; the manager never blocks.
    - The reconnect thread opens and validates a new connection every
      ``reconnect_interval`` seconds, publishes it under the lock, and exits.
    - ``shutdown()`` stops the reconnect thread, closes the connection,
      and every later call fails with ``ConnectionClosedError``.

Examples:
    >>> from recordsql.adapters import SQLiteDriver
    >>> manager = ConnectionManager(SQLiteDriver(":memory:"))
    >>> manager.connect().is_ok()
    True
    >>> manager.execute("SELECT 1 AS one").unwrap().rows
    [{'one': 1}]
    >>> manager.shutdown()
    >>> manager.acquire().is_err()
    True

Tags:
    connection, reconnect, resilience, threading, recordsql

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from enum import Enum
from typing import Any

from recordsql.adapters.base import Driver, DriverConnection, RowSet
from recordsql.dialect import Dialect
from recordsql.errors import (
    ConnectionClosedError,
    DatabaseConnectionError,
    DatabaseUnavailableError,
    RecordSQLError,
)
from recordsql.logging import get_logger
from recordsql.result import Err, Ok, Result

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


class ConnectionManager:
    """Owns the single active connection and its reconnect loop.

    Args:
        driver: Opens new connections.
        validation_timeout: Seconds allowed for the liveness probe.
        reconnect_interval: Seconds between reconnect attempts.
    """

    def __init__(
        self,
        driver: Driver,
        *,
        validation_timeout: float = 5.0,
        reconnect_interval: float = 2.0,
    ) -> None:
        self.driver = driver
        self.validation_timeout = validation_timeout
        self.reconnect_interval = reconnect_interval

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._conn: DriverConnection | None = None
        self._state = ConnectionState.DISCONNECTED
        self._reconnect_thread: threading.Thread | None = None
        self._reconnect_attempts = 0

    @property
    def dialect(self) -> Dialect:
        return self.driver.dialect

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_reconnecting(self) -> bool:
        thread = self._reconnect_thread
        return thread is not None and thread.is_alive()

    # ── Lifecycle ────────────────────────────────────────────────

    def connect(self) -> Result[None]:
        """Open and validate the first connection.

        A failure leaves the manager DISCONNECTED; no reconnect loop is
        started for a database that was never reached.
        """
        with self._lock:
            if self._state is ConnectionState.CLOSED:
                return Err(ConnectionClosedError())
            if self._state is not ConnectionState.DISCONNECTED:
                return Ok(None)

        try:
            conn = self.driver.open()
        except RecordSQLError as e:
            logger.error("database_connect_failed", target=self.driver.describe(), error=str(e))
            return Err(e)

        if not conn.is_valid(self.validation_timeout):
            conn.close()
            logger.error("database_connect_failed", target=self.driver.describe(), error="validation failed")
            return Err(
                DatabaseConnectionError("Connection opened but failed validation").with_context(
                    operation="connect"
                )
            )

        with self._lock:
            if self._state is not ConnectionState.DISCONNECTED:
                conn.close()
                if self._state is ConnectionState.CLOSED:
                    return Err(ConnectionClosedError())
                return Ok(None)
            self._conn = conn
            self._state = ConnectionState.CONNECTED
        logger.info("database_connected", target=self.driver.describe())
        return Ok(None)

    def shutdown(self) -> None:
        """Stop reconnecting, close the connection, refuse further calls."""
        with self._lock:
            if self._state is ConnectionState.CLOSED:
                return
            self._state = ConnectionState.CLOSED
            self._stop_event.set()
            conn, self._conn = self._conn, None
            thread = self._reconnect_thread

        if conn is not None:
            conn.close()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.reconnect_interval + self.validation_timeout)
            if thread.is_alive():
                logger.warning("reconnect_thread_still_running")
        logger.info("database_connection_closed", target=self.driver.describe())

    # ── Access ───────────────────────────────────────────────────

    def acquire(self) -> Result[DriverConnection]:
        """Return the validated current connection, or why there is none."""
        with self._lock:
            state, conn = self._state, self._conn
        if state is ConnectionState.CLOSED:
            return Err(ConnectionClosedError())
        if state is ConnectionState.RECONNECTING:
            return Err(DatabaseUnavailableError())
        if conn is None:
            return Err(DatabaseConnectionError("Database not connected").with_context(operation="acquire"))

        valid = conn.is_valid(self.validation_timeout)
        with self._lock:
            if self._state is ConnectionState.CLOSED:
                return Err(ConnectionClosedError())
        if valid:
            return Ok(conn)

        logger.warning("database_connection_lost", target=self.driver.describe())
        self._begin_reconnect(conn)
        return Err(DatabaseUnavailableError())

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Result[RowSet]:
        """Run one statement on the current connection."""
        acquired = self.acquire()
        if isinstance(acquired, Err):
            return Err(acquired.error)
        conn = acquired.value
        try:
            return Ok(conn.execute(sql, params))
        except RecordSQLError as e:
            logger.error("statement_failed", sql=sql, error=str(e))
            return Err(e)

    # ── Reconnect ────────────────────────────────────────────────

    def _begin_reconnect(self, failed: DriverConnection) -> None:
        with self._lock:
            if self._conn is not failed or self._state is not ConnectionState.CONNECTED:
                # Another caller already handled this connection
                return
            self._conn = None
            self._state = ConnectionState.RECONNECTING
            self._reconnect_attempts = 0
            self._reconnect_thread = threading.Thread(
                target=self._reconnect_loop, daemon=True, name="recordsql-reconnect"
            )
            self._reconnect_thread.start()
        failed.close()

    def _reconnect_loop(self) -> None:
        logger.info("reconnect_started", interval=self.reconnect_interval)
        while not self._stop_event.is_set():
            self._reconnect_attempts += 1
            conn = self._try_open()
            if conn is not None:
                with self._lock:
                    if self._state is ConnectionState.RECONNECTING:
                        self._conn = conn
                        self._state = ConnectionState.CONNECTED
                        conn = None
                if conn is not None:
                    conn.close()
                    return
                logger.info("database_reconnected", attempts=self._reconnect_attempts)
                return
            if self._stop_event.wait(self.reconnect_interval):
                break
        logger.info("reconnect_stopped")

    def _try_open(self) -> DriverConnection | None:
        # Any failure here must leave the loop running
        conn: DriverConnection | None = None
        try:
            conn = self.driver.open()
            if conn.is_valid(self.validation_timeout):
                return conn
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "reconnect_attempt_failed",
                attempt=self._reconnect_attempts,
                error=str(e),
                error_type=type(e).__name__,
            )
            if conn is not None:
                conn.close()
            return None
        conn.close()
        logger.warning("reconnect_attempt_failed", attempt=self._reconnect_attempts, error="validation failed")
        return None

    def __repr__(self) -> str:
        return f"ConnectionManager({self.driver.describe()!r}, state={self._state.value})"


__all__ = [
    "ConnectionState",
    "ConnectionManager",
]
