"""Tests for ``recordsql.dialect``."""

from __future__ import annotations

import pytest

from recordsql.dialect import MySQLDialect, SQLiteDialect, get_dialect, register_dialect
from recordsql.errors import ConfigError


class TestMySQLDialect:
    dialect = MySQLDialect()

    def test_placeholders(self):
        assert self.dialect.placeholder(0) == "%s"
        assert self.dialect.placeholders(3) == "%s, %s, %s"

    def test_quote_alias(self):
        assert self.dialect.quote_alias("Example.uID") == "`Example.uID`"

    def test_modulo_avoids_percent(self):
        assert self.dialect.modulo("row_num", "%s") == "MOD(row_num, %s)"

    def test_upsert(self):
        sql = self.dialect.upsert("Example", ["uID", "age"], ["uID"])
        assert sql == (
            "INSERT INTO Example (uID, age) VALUES (%s, %s) "
            "ON DUPLICATE KEY UPDATE age = VALUES(age)"
        )

    def test_upsert_without_update_columns(self):
        sql = self.dialect.upsert("Tag", ["label"], ["label"])
        assert sql == "INSERT IGNORE INTO Tag (label) VALUES (%s)"


class TestSQLiteDialect:
    dialect = SQLiteDialect()

    def test_placeholders(self):
        assert self.dialect.placeholder(5) == "?"
        assert self.dialect.placeholders(2) == "?, ?"

    def test_quote_alias(self):
        assert self.dialect.quote_alias("Example.uID") == '"Example.uID"'

    def test_modulo(self):
        assert self.dialect.modulo("row_num", "?") == "(row_num % ?)"

    def test_upsert(self):
        sql = self.dialect.upsert("Example", ["uID", "age"], ["uID"])
        assert sql == (
            "INSERT INTO Example (uID, age) VALUES (?, ?) "
            "ON CONFLICT (uID) DO UPDATE SET age = excluded.age"
        )

    def test_upsert_without_update_columns(self):
        assert self.dialect.upsert("Tag", ["label"], ["label"]) == "INSERT OR IGNORE INTO Tag (label) VALUES (?)"


class TestRegistry:
    def test_lookup_is_case_insensitive(self):
        assert get_dialect("MySQL").name == "mysql"
        assert get_dialect(" sqlite ").name == "sqlite"

    def test_unknown(self):
        with pytest.raises(ConfigError):
            get_dialect("oracle")

    def test_register(self):
        class Custom(SQLiteDialect):
            @property
            def name(self) -> str:
                return "custom"

        register_dialect("Custom", Custom())
        assert get_dialect("custom").name == "custom"
