"""SQL dialect fragments for the supported backends.

Queries and repositories build portable SQL and ask a ``Dialect`` for the
few pieces that differ between drivers: parameter placeholders, the
upsert statement, quoted column aliases and the modulo expression.

Manifesto:
    - **One interface:** every backend difference goes through ``Dialect``
    - **Zero coupling:** query code never imports a database driver

Architecture::

    ┌───────────────────────────────┐   ┌───────────────────────────────┐
    │ MySQLDialect                  │   │ SQLiteDialect                 │
    │ %s placeholders               │   │ ? placeholders                │
    │ ON DUPLICATE KEY UPDATE       │   │ ON CONFLICT (...) DO UPDATE   │
    │ AS `Example.uID`              │   │ AS "Example.uID"              │
    │ MOD(a, b)                     │   │ (a % b)                       │
    └───────────────────────────────┘   └───────────────────────────────┘

Examples:
    >>> d = get_dialect("mysql")
    >>> d.placeholders(3)
    '%s, %s, %s'
    >>> d.upsert("Example", ["uID", "age"], ["uID"])
    'INSERT INTO Example (uID, age) VALUES (%s, %s) ON DUPLICATE KEY UPDATE age = VALUES(age)'
    >>> get_dialect("sqlite").quote_alias("Example.uID")
    '"Example.uID"'

Tags:
    dialect, sql, mysql, sqlite, recordsql
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from recordsql.errors import ConfigError


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a SQL fragment or statement valid for the target
    database.
    """

    @property
    def name(self) -> str:
        """Dialect name (``'mysql'``, ``'sqlite'``)."""
        ...

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index)."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholder list."""
        ...

    def quote_alias(self, label: str) -> str:
        """Quote a column alias that may contain a dot (``Table.column``)."""
        ...

    def modulo(self, left: str, right: str) -> str:
        """Expression for ``left`` modulo ``right``."""
        ...

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        """Insert that silently skips a row whose key already exists."""
        ...

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        """Insert, or update every non-key column when the key exists."""
        ...


class MySQLDialect:
    """MySQL dialect: ``%s`` placeholders (mysql.connector paramstyle)."""

    @property
    def name(self) -> str:
        return "mysql"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def placeholders(self, count: int) -> str:
        return ", ".join("%s" for _ in range(count))

    def quote_alias(self, label: str) -> str:
        return "`" + label.replace("`", "``") + "`"

    def modulo(self, left: str, right: str) -> str:
        # '%' would collide with the %s paramstyle
        return f"MOD({left}, {right})"

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        return f"INSERT IGNORE INTO {table} ({cols}) VALUES ({ph})"

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        update_cols = [c for c in columns if c not in key_columns]
        if not update_cols:
            return self.insert_or_ignore(table, columns)
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        updates = ", ".join(f"{c} = VALUES({c})" for c in update_cols)
        return (
            f"INSERT INTO {table} ({cols}) VALUES ({ph}) "
            f"ON DUPLICATE KEY UPDATE {updates}"
        )


class SQLiteDialect:
    """SQLite dialect: ``?`` placeholders."""

    @property
    def name(self) -> str:
        return "sqlite"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def quote_alias(self, label: str) -> str:
        return '"' + label.replace('"', '""') + '"'

    def modulo(self, left: str, right: str) -> str:
        return f"({left} % {right})"

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        return f"INSERT OR IGNORE INTO {table} ({cols}) VALUES ({ph})"

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        update_cols = [c for c in columns if c not in key_columns]
        if not update_cols or not key_columns:
            return self.insert_or_ignore(table, columns)
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        keys = ", ".join(key_columns)
        updates = ", ".join(f"{c} = excluded.{c}" for c in update_cols)
        return (
            f"INSERT INTO {table} ({cols}) VALUES ({ph}) "
            f"ON CONFLICT ({keys}) DO UPDATE SET {updates}"
        )


_DIALECTS: dict[str, Dialect] = {
    "mysql": MySQLDialect(),
    "sqlite": SQLiteDialect(),
}


def get_dialect(name: str) -> Dialect:
    """Get a dialect by backend name.

    Raises:
        ConfigError: If ``name`` is not a registered dialect.
    """
    key = name.lower().strip()
    if key not in _DIALECTS:
        raise ConfigError(f"Unknown dialect '{name}'. Supported: {sorted(_DIALECTS)}")
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (lower-cased key)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Dialect",
    "MySQLDialect",
    "SQLiteDialect",
    "get_dialect",
    "register_dialect",
]
