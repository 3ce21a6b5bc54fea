"""Tests for ``recordsql.adapters`` -- SQLite and MySQL drivers, driver registry."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import mysql.connector
import pytest

from recordsql.adapters import (
    DriverRegistry,
    MySQLDriver,
    RowSet,
    SQLiteDriver,
    get_driver,
)
from recordsql.dialect import MySQLDialect, SQLiteDialect
from recordsql.errors import ConfigError, DatabaseConnectionError, QueryError
from recordsql.settings import DatabaseSettings


class TestRowSet:
    def test_from_cursor(self):
        rowset = RowSet.from_cursor([("a",), ("b",)], [(1, 2), (3, 4)], -1)
        assert rowset.columns == ["a", "b"]
        assert rowset.rows == [{"a": 1, "b": 2}, {"a": 3, "b": 4}]
        assert rowset.rowcount == 0
        assert len(rowset) == 2
        assert rowset.first() == {"a": 1, "b": 2}

    def test_without_description(self):
        rowset = RowSet.from_cursor(None, [], 3)
        assert rowset.rows == []
        assert rowset.rowcount == 3
        assert rowset.first() is None


class TestSQLiteDriver:
    def test_open_and_execute(self):
        conn = SQLiteDriver().open()
        try:
            assert isinstance(conn.dialect, SQLiteDialect)
            conn.execute("CREATE TABLE t (x INT)")
            assert conn.execute("INSERT INTO t (x) VALUES (?)", (5,)).rowcount == 1
            assert conn.execute("SELECT x FROM t").rows == [{"x": 5}]
        finally:
            conn.close()

    def test_errors_are_wrapped(self):
        conn = SQLiteDriver().open()
        try:
            with pytest.raises(QueryError) as info:
                conn.execute("SELECT * FROM missing")
            assert info.value.context.sql == "SELECT * FROM missing"
        finally:
            conn.close()

    def test_validity_after_close(self):
        conn = SQLiteDriver().open()
        assert conn.is_valid(1.0)
        conn.close()
        conn.close()
        assert conn.closed
        assert not conn.is_valid(1.0)

    def test_open_failure(self, tmp_path):
        driver = SQLiteDriver(str(tmp_path / "missing" / "db.sqlite"))
        with pytest.raises(DatabaseConnectionError):
            driver.open()

    def test_from_settings(self):
        driver = SQLiteDriver.from_settings(DatabaseSettings(backend="sqlite", sqlite_path="x.db"))
        assert driver.path == "x.db"
        assert driver.describe() == "sqlite:///x.db"


def _mysql_cursor(description, rows, rowcount=1):
    cursor = MagicMock()
    cursor.description = description
    cursor.with_rows = description is not None
    cursor.fetchall.return_value = rows
    cursor.rowcount = rowcount
    return cursor


class TestMySQLDriver:
    def test_open_passes_settings(self):
        settings = DatabaseSettings(
            host="db.internal", port=3307, database="d1", username="app", password="s3cret"
        )
        driver = MySQLDriver.from_settings(settings)
        with patch("mysql.connector.connect") as connect:
            conn = driver.open()
        kwargs = connect.call_args.kwargs
        assert kwargs["host"] == "db.internal"
        assert kwargs["port"] == 3307
        assert kwargs["user"] == "app"
        assert kwargs["password"] == "s3cret"
        assert kwargs["autocommit"] is True
        assert isinstance(conn.dialect, MySQLDialect)

    def test_open_failure(self):
        with patch("mysql.connector.connect", side_effect=mysql.connector.Error("refused")):
            with pytest.raises(DatabaseConnectionError) as info:
                MySQLDriver(database="d1").open()
        assert info.value.retryable

    def test_execute_select(self):
        with patch("mysql.connector.connect") as connect:
            raw = connect.return_value
            raw.cursor.return_value = _mysql_cursor([("one",)], [(1,)], -1)
            conn = MySQLDriver().open()
            rowset = conn.execute("SELECT 1 AS one WHERE 1 = %s", (1,))
        assert rowset.rows == [{"one": 1}]
        raw.cursor.return_value.execute.assert_called_once_with("SELECT 1 AS one WHERE 1 = %s", (1,))
        raw.cursor.return_value.close.assert_called_once()

    def test_execute_update(self):
        with patch("mysql.connector.connect") as connect:
            connect.return_value.cursor.return_value = _mysql_cursor(None, [], 2)
            rowset = MySQLDriver().open().execute("UPDATE t SET x = 1")
        assert rowset.rowcount == 2
        assert rowset.rows == []

    def test_execute_error(self):
        with patch("mysql.connector.connect") as connect:
            cursor = _mysql_cursor(None, [])
            cursor.execute.side_effect = mysql.connector.Error("syntax")
            connect.return_value.cursor.return_value = cursor
            conn = MySQLDriver().open()
            with pytest.raises(QueryError):
                conn.execute("SELEC 1")

    def test_ping(self):
        with patch("mysql.connector.connect") as connect:
            conn = MySQLDriver().open()
            assert conn.is_valid(1.0)
            connect.return_value.ping.assert_called_with(reconnect=False)
            connect.return_value.ping.side_effect = mysql.connector.Error("gone away")
            assert not conn.is_valid(1.0)

    def test_describe_has_no_secret(self):
        driver = MySQLDriver(host="h", database="d", username="u", password="p")
        assert driver.describe() == "mysql://h:3306/d"


class TestRegistry:
    def test_defaults(self):
        assert DriverRegistry().list_drivers() == ["mysql", "sqlite"]

    def test_get_driver_from_settings(self):
        assert isinstance(get_driver(DatabaseSettings(backend="sqlite")), SQLiteDriver)
        assert isinstance(get_driver(DatabaseSettings(backend="mysql")), MySQLDriver)

    def test_get_driver_by_name(self):
        driver = get_driver(backend="sqlite", path="a.db")
        assert driver.path == "a.db"

    def test_unknown(self):
        with pytest.raises(ConfigError):
            DriverRegistry().create("oracle")

    def test_register(self):
        registry = DriverRegistry()
        registry.register("Lite", SQLiteDriver)
        assert isinstance(registry.create("lite"), SQLiteDriver)
