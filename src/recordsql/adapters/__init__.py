"""Database drivers: the thin layer that actually talks to a database.

Architecture::

    Driver (base.py)                 open() -> DriverConnection
        |-- MySQLDriver              mysql.connector (imported at open())
        |-- SQLiteDriver             stdlib sqlite3

    DriverConnection (base.py)       execute(sql, params) -> RowSet,
                                     is_valid(timeout), close()
    DriverRegistry (registry.py)     backend name -> driver class

Guardrails:
    ❌ ``conn.execute("SELECT * FROM t WHERE id=" + user_input)``
    ✅ ``conn.execute("SELECT * FROM t WHERE id=?", [user_input])``

Tags:
    recordsql, database, adapters, mysql, sqlite
"""

from .base import Driver, DriverConnection, RowSet
from .mysql import MySQLConnection, MySQLDriver
from .registry import DriverRegistry, driver_registry, get_driver
from .sqlite import SQLiteConnection, SQLiteDriver

__all__ = [
    "Driver",
    "DriverConnection",
    "RowSet",
    "MySQLConnection",
    "MySQLDriver",
    "SQLiteConnection",
    "SQLiteDriver",
    "DriverRegistry",
    "driver_registry",
    "get_driver",
]
