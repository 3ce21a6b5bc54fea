"""Table-scoped CRUD operations.

:class:`TableRepository` pairs one declared table with a connection
manager and exposes the common single-table reads and writes directly,
without going through the query builder.

Architecture::

    ┌────────────────────────────────────────────────────────────────────┐
    │                     TableRepository(table, executor)               │
    │                                                                    │
    │   value ─▶ sanitize ─▶ type check ─▶ Statement(sql, params)        │
    │                                          │                         │
    │                                          ▼                         │
    │                               executor.execute(sql, bound params)  │
    │                                          │                         │
    │                                          ▼                         │
    │                          RowSet ─▶ populate() ─▶ Ok(records)       │
    │                                                                    │
    │   Any failure along the way ─▶ Err(error); nothing is raised       │
    └────────────────────────────────────────────────────────────────────┘

Reads return ``Ok(value)``; "found nothing" is ``Ok(None)``, ``Ok([])`` or
``Ok(0)``. Writes return ``Ok(rows_affected)`` as reported by the driver.

Usage:
    >>> repo = TableRepository(ExampleTable, manager)  # doctest: +SKIP
    >>> repo.upsert(Example(uid, "Duck", 17))  # doctest: +SKIP
    Ok(1)
    >>> repo.get_first_by_key(ExampleTable.uID, uid).unwrap().age  # doctest: +SKIP
    17

Tags:
    repository, crud, upsert, database, recordsql
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from recordsql.adapters.base import RowSet
from recordsql.dialect import Dialect
from recordsql.errors import InputValidationError, RecordSQLError
from recordsql.logging import get_logger
from recordsql.query import ColumnQuery, ColumnsQuery, Executor, RowQuery, Statement, run_statement
from recordsql.records import check_record, extract_field, populate, prepare_value
from recordsql.result import Result, try_result
from recordsql.schema import Order, Property, Table
from recordsql.types import DEFAULT_REGISTRY, DatabaseType, TypeRegistry

logger = get_logger(__name__)

R = TypeVar("R")


@dataclass(frozen=True)
class ColumnValue:
    """A column paired with the value it must equal."""

    column: Property
    value: Any


class TableRepository(Generic[R]):
    """CRUD façade for one table.

    Parameters:
        table: The table declaration.
        executor: Usually the :class:`~recordsql.connection.ConnectionManager`.
        registry: Type registry used for binding and reading values.
    """

    def __init__(
        self,
        table: type[Table],
        executor: Executor,
        *,
        registry: TypeRegistry = DEFAULT_REGISTRY,
    ) -> None:
        self.table = table
        self.executor = executor
        self.registry = registry

    @property
    def dialect(self) -> Dialect:
        return self.executor.dialect

    # -- Query builders ----------------------------------------------------

    def row_query(self) -> RowQuery:
        return RowQuery(self.table, self.executor, registry=self.registry)

    def column_query(self, column: Property) -> ColumnQuery:
        return ColumnQuery(self.table, column, self.executor, registry=self.registry)

    def columns_query(self, *columns: Property) -> ColumnsQuery:
        return ColumnsQuery(self.table, columns, self.executor, registry=self.registry)

    # -- Internals ---------------------------------------------------------

    @property
    def _ph(self) -> str:
        return self.dialect.placeholder(0)

    def _own(self, column: Property) -> Property:
        if not self.table.owns(column):
            raise InputValidationError(
                f"{column!r} is not a column of {self.table.name}",
                field=getattr(column, "name", None),
                expected=f"a {self.table.name} property",
            ).with_context(table=self.table.name)
        return column

    def _value(self, column: Property, value: Any, *, allow_none: bool = False) -> Any:
        return prepare_value(self._own(column), value, allow_none=allow_none)

    def _statement(self, sql: str, params: Sequence[Any] = (), types: Sequence[DatabaseType | None] = ()) -> Statement:
        return Statement(sql, tuple(params), tuple(types), self._ph)

    def _prepare(self, operation: str, build: Callable[[], Statement]) -> Result[Statement]:
        def log(error: Exception) -> None:
            if isinstance(error, RecordSQLError):
                error.with_context(operation=operation)
            logger.warning("operation_rejected", table=self.table.name, operation=operation, error=str(error))

        return try_result(build).inspect_err(log)

    def _run(self, statement: Statement) -> Result[RowSet]:
        return run_statement(self.executor, statement, self.registry)

    def _records(self, rowset: RowSet) -> Result[list[R]]:
        return try_result(
            lambda: [populate(self.table, row, registry=self.registry) for row in rowset.rows]
        ).inspect_err(lambda e: logger.error("row_marshalling_failed", table=self.table.name, error=str(e)))

    def _first_record(self, rowset: RowSet) -> Result[R | None]:
        return self._records(rowset).map(lambda records: records[0] if records else None)

    def _column_values(self, column: Property, rowset: RowSet) -> Result[list[Any]]:
        return try_result(
            lambda: [self.registry.read_column(row, column.name, column.db_type) for row in rowset.rows]
        )

    def _select(self) -> str:
        return ", ".join(p.name for p in self.table.properties)

    def _match(self, pairs: Sequence[ColumnValue], joiner: str) -> tuple[str, list[Any], list[DatabaseType]]:
        if not pairs:
            raise InputValidationError(
                "At least one column-value pair must be provided", field="pairs"
            ).with_context(table=self.table.name)
        for pair in pairs:
            if not isinstance(pair, ColumnValue):
                raise InputValidationError(
                    f"Expected a ColumnValue pair, got {pair!r}", field="pairs", expected="ColumnValue"
                ).with_context(table=self.table.name)
        params = [self._value(p.column, p.value) for p in pairs]
        clause = f" {joiner} ".join(f"{p.column.name} = {self._ph}" for p in pairs)
        return clause, params, [p.column.db_type for p in pairs]

    @staticmethod
    def _count(rowset: RowSet) -> int:
        return int(rowset.rows[0]["row_count"]) if rowset.rows else 0

    @staticmethod
    def _affected(rowset: RowSet) -> int:
        return rowset.rowcount

    # -- Count / exists ----------------------------------------------------

    def count_by_value(self, column: Property, value: Any) -> Result[int]:
        """Number of rows whose ``column`` equals ``value``."""

        def build() -> Statement:
            v = self._value(column, value)
            return self._statement(
                f"SELECT COUNT(*) AS row_count FROM {self.table.name} WHERE {column.name} = {self._ph}",
                (v,),
                (column.db_type,),
            )

        return self._prepare("count_by_value", build).flat_map(self._run).map(self._count)

    def count_all(self) -> Result[int]:
        statement = self._statement(f"SELECT COUNT(*) AS row_count FROM {self.table.name}")
        return self._run(statement).map(self._count)

    def exists_by_key(self, column: Property, value: Any) -> Result[bool]:
        return self.exists_by_keys(ColumnValue(column, value))

    def exists_by_keys(self, *pairs: ColumnValue) -> Result[bool]:
        """Whether a row matches every pair (AND)."""
        return self._exists("exists_by_keys", pairs, "AND")

    def exists_by_any_key(self, *pairs: ColumnValue) -> Result[bool]:
        """Whether a row matches at least one pair (OR)."""
        return self._exists("exists_by_any_key", pairs, "OR")

    def _exists(self, operation: str, pairs: Sequence[ColumnValue], joiner: str) -> Result[bool]:
        def build() -> Statement:
            clause, params, types = self._match(pairs, joiner)
            return self._statement(f"SELECT 1 FROM {self.table.name} WHERE {clause} LIMIT 1", params, types)

        return self._prepare(operation, build).flat_map(self._run).map(lambda rowset: len(rowset) > 0)

    # -- Record reads ------------------------------------------------------

    def get_by_key(self, column: Property, value: Any) -> Result[list[R]]:
        """All rows whose ``column`` equals ``value``."""
        return self._get("get_by_key", [ColumnValue(column, value)], "AND", limit=None).flat_map(self._records)

    def get_first_by_key(self, column: Property, value: Any) -> Result[R | None]:
        """First row whose ``column`` equals ``value``, or ``Ok(None)``."""
        return self._get("get_first_by_key", [ColumnValue(column, value)], "AND", limit=1).flat_map(
            self._first_record
        )

    def get_by_keys(self, *pairs: ColumnValue) -> Result[list[R]]:
        """Rows matching every pair (AND)."""
        return self._get("get_by_keys", pairs, "AND", limit=None).flat_map(self._records)

    def get_by_any_key(self, *pairs: ColumnValue) -> Result[list[R]]:
        """Rows matching at least one pair (OR)."""
        return self._get("get_by_any_key", pairs, "OR", limit=None).flat_map(self._records)

    def _get(self, operation: str, pairs: Sequence[ColumnValue], joiner: str, *, limit: int | None) -> Result[RowSet]:
        def build() -> Statement:
            clause, params, types = self._match(pairs, joiner)
            sql = f"SELECT {self._select()} FROM {self.table.name} WHERE {clause}"
            if limit is not None:
                sql += f" LIMIT {limit}"
            return self._statement(sql, params, types)

        return self._prepare(operation, build).flat_map(self._run)

    def get_all(self) -> Result[list[R]]:
        statement = self._statement(f"SELECT {self._select()} FROM {self.table.name}")
        return self._run(statement).flat_map(self._records)

    def get_by_order(
        self,
        column: Property,
        order: Order = Order.ASCENDING,
        *,
        key: ColumnValue | None = None,
    ) -> Result[R | None]:
        """First row when sorted by ``column``, optionally filtered by ``key``.

        ``get_by_order(ExampleTable.age, Order.DESCENDING)`` is the oldest row.
        """

        def build() -> Statement:
            sql = f"SELECT {self._select()} FROM {self.table.name}"
            params: list[Any] = []
            types: list[DatabaseType] = []
            if key is not None:
                clause, params, types = self._match([key], "AND")
                sql += f" WHERE {clause}"
            sql += f" ORDER BY {self._own(column).name} {self._order(order)} LIMIT 1"
            return self._statement(sql, params, types)

        return self._prepare("get_by_order", build).flat_map(self._run).flat_map(self._first_record)

    def get_every_nth(self, n: int, column: Property, order: Order = Order.ASCENDING) -> Result[list[R]]:
        """Every ``n``-th row (rows n, 2n, 3n, ...) in the given ordering."""

        def build() -> Statement:
            if isinstance(n, bool) or not isinstance(n, int) or n < 1:
                raise InputValidationError(
                    f"Step must be a positive integer, got {n!r}", field="n", value=n, expected="int >= 1"
                ).with_context(table=self.table.name)
            columns = self._select()
            numbered = (
                f"SELECT {columns}, ROW_NUMBER() OVER "
                f"(ORDER BY {self._own(column).name} {self._order(order)}) AS row_num "
                f"FROM {self.table.name}"
            )
            return self._statement(
                f"SELECT {columns} FROM ({numbered}) AS numbered "
                f"WHERE {self.dialect.modulo('row_num', self._ph)} = 0 ORDER BY row_num",
                (n,),
                (DatabaseType.LONG,),
            )

        return self._prepare("get_every_nth", build).flat_map(self._run).flat_map(self._records)

    def _order(self, order: Order) -> str:
        if not isinstance(order, Order):
            raise InputValidationError(f"Unknown sort order {order!r}", field="order", value=order)
        return order.sql

    # -- Column reads ------------------------------------------------------

    def get_column_by_key(self, key_column: Property, key_value: Any, column: Property) -> Result[list[Any]]:
        """Values of ``column`` for every row whose ``key_column`` equals ``key_value``."""
        return self._column_by_key("get_column_by_key", key_column, key_value, column, limit=None).flat_map(
            lambda rowset: self._column_values(column, rowset)
        )

    def get_first_column_by_key(self, key_column: Property, key_value: Any, column: Property) -> Result[Any]:
        return self._column_by_key("get_first_column_by_key", key_column, key_value, column, limit=1).flat_map(
            lambda rowset: self._column_values(column, rowset)
        ).map(lambda values: values[0] if values else None)

    def _column_by_key(
        self, operation: str, key_column: Property, key_value: Any, column: Property, *, limit: int | None
    ) -> Result[RowSet]:
        def build() -> Statement:
            v = self._value(key_column, key_value)
            sql = f"SELECT {self._own(column).name} FROM {self.table.name} WHERE {key_column.name} = {self._ph}"
            if limit is not None:
                sql += f" LIMIT {limit}"
            return self._statement(sql, (v,), (key_column.db_type,))

        return self._prepare(operation, build).flat_map(self._run)

    def get_column_by_order(self, order_column: Property, column: Property, order: Order = Order.ASCENDING) -> Result[Any]:
        """``column`` of the first row when sorted by ``order_column``."""

        def build() -> Statement:
            return self._statement(
                f"SELECT {self._own(column).name} FROM {self.table.name} "
                f"ORDER BY {self._own(order_column).name} {self._order(order)} LIMIT 1"
            )

        return (
            self._prepare("get_column_by_order", build)
            .flat_map(self._run)
            .flat_map(lambda rowset: self._column_values(column, rowset))
            .map(lambda values: values[0] if values else None)
        )

    # -- Writes ------------------------------------------------------------

    def update(self, key_column: Property, key_value: Any, column: Property, value: Any) -> Result[int]:
        """Set ``column`` to ``value`` on rows whose ``key_column`` equals ``key_value``."""

        def build() -> Statement:
            target = self._own(column)
            new = self._value(target, value, allow_none=not target.key)
            key = self._value(key_column, key_value)
            return self._statement(
                f"UPDATE {self.table.name} SET {target.name} = {self._ph} WHERE {key_column.name} = {self._ph}",
                (new, key),
                (target.db_type, key_column.db_type),
            )

        return self._prepare("update", build).flat_map(self._run).map(self._affected)

    def update_by_order(self, order_column: Property, order: Order, column: Property, value: Any) -> Result[int]:
        """Set ``column`` on the first row when sorted by ``order_column``."""

        def build() -> Statement:
            prop = self._own(column)
            new = self._value(prop, value, allow_none=not prop.key)
            key = self._own(order_column).name
            # MySQL refuses a subquery on the UPDATE target unless it is materialized
            target = (
                f"SELECT {key} FROM (SELECT {key} FROM {self.table.name} "
                f"ORDER BY {key} {self._order(order)} LIMIT 1) AS target"
            )
            return self._statement(
                f"UPDATE {self.table.name} SET {prop.name} = {self._ph} WHERE {key} = ({target})",
                (new,),
                (prop.db_type,),
            )

        return self._prepare("update_by_order", build).flat_map(self._run).map(self._affected)

    def update_record(self, record: R) -> Result[int]:
        """Write every non-key field of ``record`` to the row with its keys."""

        def build() -> Statement:
            keys, others = self.table.keys(), self.table.non_keys()
            if not keys or not others:
                raise InputValidationError(
                    f"{self.table.name} needs key and non-key columns for a record update"
                ).with_context(table=self.table.name)
            cleaned = check_record(self.table, record)
            set_clause = ", ".join(f"{p.name} = {self._ph}" for p in others)
            where_clause = " AND ".join(f"{p.name} = {self._ph}" for p in keys)
            ordered = others + keys
            return self._statement(
                f"UPDATE {self.table.name} SET {set_clause} WHERE {where_clause}",
                [extract_field(cleaned, p) for p in ordered],
                [p.db_type for p in ordered],
            )

        return self._prepare("update_record", build).flat_map(self._run).map(self._affected)

    def upsert(self, record: R) -> Result[int]:
        """Insert ``record``, or update its non-key columns if the key exists."""

        def build() -> Statement:
            cleaned = check_record(self.table, record)
            props = self.table.properties
            sql = self.dialect.upsert(
                self.table.name,
                [p.name for p in props],
                [p.name for p in self.table.keys()],
            )
            return self._statement(sql, [extract_field(cleaned, p) for p in props], [p.db_type for p in props])

        return self._prepare("upsert", build).flat_map(self._run).map(self._affected)

    def delete_by_key(self, column: Property, value: Any) -> Result[int]:
        def build() -> Statement:
            v = self._value(column, value)
            return self._statement(
                f"DELETE FROM {self.table.name} WHERE {column.name} = {self._ph}", (v,), (column.db_type,)
            )

        return self._prepare("delete_by_key", build).flat_map(self._run).map(self._affected)

    def delete_record(self, record: R) -> Result[int]:
        """Delete the row whose keys match ``record``."""

        def build() -> Statement:
            keys = self.table.keys()
            if not keys:
                raise InputValidationError(
                    f"{self.table.name} has no key columns"
                ).with_context(table=self.table.name)
            cleaned = check_record(self.table, record)
            where_clause = " AND ".join(f"{p.name} = {self._ph}" for p in keys)
            return self._statement(
                f"DELETE FROM {self.table.name} WHERE {where_clause}",
                [extract_field(cleaned, p) for p in keys],
                [p.db_type for p in keys],
            )

        return self._prepare("delete_record", build).flat_map(self._run).map(self._affected)

    def __repr__(self) -> str:
        return f"TableRepository({self.table.name})"


__all__ = [
    "ColumnValue",
    "TableRepository",
]
