"""
Shared pytest fixtures for recordsql tests.

This module provides:
- An in-memory SQLite ConnectionManager (connected, shut down after the test)
- Repositories over the example and sample tables, with the tables created
- A deterministic set of Example rows
- Fake drivers for exercising the reconnect state machine

Usage:
    def test_count(examples, people):
        assert examples.count_all().unwrap() == len(people)
"""

from __future__ import annotations

import sys
import threading
import uuid
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from recordsql.adapters import Driver, DriverConnection, RowSet, SQLiteDriver
from recordsql.bootstrap import create_table
from recordsql.connection import ConnectionManager
from recordsql.errors import DatabaseConnectionError
from recordsql.examples import Example, ExampleTable, LicenseTable
from recordsql.repository import TableRepository

from sample_tables import PurchaseTable, ReadingTable, TagTable


# =============================================================================
# SQLite fixtures
# =============================================================================


@pytest.fixture
def manager() -> Generator[ConnectionManager, None, None]:
    """Connected manager over a private in-memory SQLite database."""
    m = ConnectionManager(SQLiteDriver(":memory:"), reconnect_interval=0.05)
    m.connect().unwrap()
    yield m
    m.shutdown()


def _repository(table, manager: ConnectionManager) -> TableRepository:
    create_table(table, manager).unwrap()
    return TableRepository(table, manager)


@pytest.fixture
def examples(manager: ConnectionManager) -> TableRepository:
    return _repository(ExampleTable, manager)


@pytest.fixture
def licenses(manager: ConnectionManager) -> TableRepository:
    return _repository(LicenseTable, manager)


@pytest.fixture
def purchases(manager: ConnectionManager) -> TableRepository:
    return _repository(PurchaseTable, manager)


@pytest.fixture
def readings(manager: ConnectionManager) -> TableRepository:
    return _repository(ReadingTable, manager)


@pytest.fixture
def tags(manager: ConnectionManager) -> TableRepository:
    return _repository(TagTable, manager)


@pytest.fixture
def people(examples: TableRepository) -> list[Example]:
    """Five Example rows with uIDs 1..5 and ages 20, 30, 40, 50, 60."""
    rows = [
        Example(uuid.UUID(int=1), "Ada", "Lovelace", "ada@example.org", 20),
        Example(uuid.UUID(int=2), "Alan", "Turing", "alan@example.org", 30),
        Example(uuid.UUID(int=3), "Grace", "Hopper", "grace@example.org", 40),
        Example(uuid.UUID(int=4), "Edsger", "Dijkstra", "edsger@example.org", 50),
        Example(uuid.UUID(int=5), "Barbara", "Liskov", "barbara@example.org", 60),
    ]
    for row in rows:
        examples.upsert(row).unwrap()
    return rows


# =============================================================================
# Fake drivers
# =============================================================================


class FakeConnection(DriverConnection):
    """Connection whose liveness is switched by the test."""

    def __init__(self, driver: FakeDriver, number: int):
        super().__init__(driver.dialect)
        self.driver = driver
        self.number = number
        self.alive = True
        self.on_probe: Callable[[], None] | None = None
        self.statements: list[tuple[str, tuple[Any, ...]]] = []

    def _execute(self, sql: str, params: tuple[Any, ...]) -> RowSet:
        self.statements.append((sql, params))
        return RowSet(columns=["connection"], rows=[{"connection": self.number}], rowcount=1)

    def is_valid(self, timeout: float) -> bool:
        if self.on_probe is not None:
            self.on_probe()
        return self.alive and not self._closed

    def _close(self) -> None:
        self.alive = False


class FakeDriver(Driver):
    """
    Driver that opens FakeConnections.

    ``fail_opens`` makes that many subsequent ``open()`` calls raise
    ``open_error`` (DatabaseConnectionError by default). When ``gate`` is
    set to an Event, ``open()`` blocks until the test sets it.
    """

    name = "sqlite"

    def __init__(self, fail_opens: int = 0):
        self.fail_opens = fail_opens
        self.open_error: Exception = DatabaseConnectionError("fake database is down")
        self.gate: threading.Event | None = None
        self.connections: list[FakeConnection] = []
        self.open_attempts = 0
        self._lock = threading.Lock()

    def open(self) -> FakeConnection:
        if self.gate is not None:
            self.gate.wait(timeout=5.0)
        with self._lock:
            self.open_attempts += 1
            if self.fail_opens > 0:
                self.fail_opens -= 1
                raise self.open_error
            conn = FakeConnection(self, len(self.connections) + 1)
            self.connections.append(conn)
        return conn

    def describe(self) -> str:
        return "fake://db"


@pytest.fixture
def fake_driver() -> FakeDriver:
    return FakeDriver()
