"""
Database façade: settings → driver → connection manager → tables.

``Database`` wires the pieces a program needs for one database: it picks
the driver from :class:`~recordsql.settings.DatabaseSettings`, owns the
:class:`~recordsql.connection.ConnectionManager`, bootstraps the declared
tables on start and hands out one :class:`~recordsql.repository.TableRepository`
per table.

Architecture:
    ::

        ┌────────────────────────────────────────────────────────────┐
        │ Database(settings, tables=[ExampleTable, LicenseTable])    │
        │                                                            │
        │   DatabaseSettings ──▶ get_driver() ──▶ ConnectionManager  │
        │   uuid_storage     ──▶ TypeRegistry                        │
        │                                                            │
        │   start():  connect ──▶ bootstrap_tables (DDL + seed)      │
        │   repository(ExampleTable) ──▶ TableRepository (cached)    │
        │   stop():   shutdown connection manager                    │
        └────────────────────────────────────────────────────────────┘

Examples:
    >>> from recordsql import Database, DatabaseSettings
    >>> from recordsql.examples import ExampleTable
    >>> settings = DatabaseSettings(backend="sqlite")
    >>> with Database(settings, tables=[ExampleTable]) as db:  # doctest: +SKIP
    ...     db.repository(ExampleTable).count_all().unwrap()
    1

Guardrails:
    ❌ DON'T: Build a Database per request
    ✅ DO: Start one at process start and pass it (or its repositories) down

    ❌ DON'T: Ignore the Result of ``start()``
    ✅ DO: Stop early when it is ``Err``; nothing is bootstrapped

Tags:
    database, lifecycle, bootstrap, facade, recordsql

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from recordsql.adapters import Driver, get_driver
from recordsql.adapters.base import RowSet
from recordsql.bootstrap import bootstrap_tables
from recordsql.connection import ConnectionManager
from recordsql.logging import configure_logging, get_logger
from recordsql.query import RowQuery
from recordsql.repository import TableRepository
from recordsql.result import Err, Ok, Result
from recordsql.schema import Table
from recordsql.settings import DatabaseSettings
from recordsql.types import TypeRegistry

logger = get_logger(__name__)


class Database:
    """One configured database with its declared tables.

    Args:
        settings: Connection settings; read from the environment when omitted.
        tables: Table declarations to bootstrap on :meth:`start`.
        driver: Use this driver instead of the one named by ``settings.backend``.
        configure_log: Apply ``settings.log_level``/``log_json`` to logging.
    """

    def __init__(
        self,
        settings: DatabaseSettings | None = None,
        *,
        tables: Iterable[type[Table]] = (),
        driver: Driver | None = None,
        configure_log: bool = False,
    ) -> None:
        self.settings = settings or DatabaseSettings()
        if configure_log:
            configure_logging(level=self.settings.log_level, json_format=self.settings.log_json)

        self.registry = TypeRegistry(uuid_storage=self.settings.uuid_storage)
        self.driver = driver or get_driver(self.settings)
        self.manager = ConnectionManager(
            self.driver,
            validation_timeout=self.settings.validation_timeout,
            reconnect_interval=self.settings.reconnect_interval,
        )
        self.tables: list[type[Table]] = list(tables)
        self._repositories: dict[type[Table], TableRepository] = {}

    # ── Lifecycle ────────────────────────────────────────────────

    def start(self) -> Result[None]:
        """Connect, then create and seed every registered table."""
        logger.info("database_starting", target=self.settings.dsn(), tables=[t.name for t in self.tables])
        connected = self.manager.connect()
        if isinstance(connected, Err):
            return connected
        booted = bootstrap_tables(
            self.tables, self.manager, registry=self.registry, repository_for=self.repository
        )
        if isinstance(booted, Err):
            return Err(booted.error)
        return Ok(None)

    def stop(self) -> None:
        self.manager.shutdown()

    def __enter__(self) -> Database:
        started = self.start()
        if isinstance(started, Err):
            self.stop()
            started.unwrap()
        return self

    def __exit__(self, *args: Any) -> None:
        self.stop()

    # ── Access ───────────────────────────────────────────────────

    def repository(self, table: type[Table]) -> TableRepository:
        """The (cached) CRUD façade for ``table``."""
        repository = self._repositories.get(table)
        if repository is None:
            repository = TableRepository(table, self.manager, registry=self.registry)
            self._repositories[table] = repository
        return repository

    def query(self, table: type[Table]) -> RowQuery:
        return RowQuery(table, self.manager, registry=self.registry)

    def execute(self, sql: str, params: tuple[Any, ...] = ()) -> Result[RowSet]:
        """Run raw SQL on the managed connection."""
        return self.manager.execute(sql, params)

    def __repr__(self) -> str:
        return f"Database({self.settings.dsn()!r}, state={self.manager.state.value})"


__all__ = [
    "Database",
]
