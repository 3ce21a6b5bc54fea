"""
Query composition: conditions, modifiers and joins over declared tables.

A query is built against one table through chained builder calls and
executed through a :class:`~recordsql.connection.ConnectionManager`.
All condition values are sent as bound parameters; only identifiers from
the table declarations are ever written into the SQL text.

Manifesto:
    - **Typed identifiers:** columns are ``Property`` objects, checked to
      belong to the table being filtered
    - **Deferred validation:** builder calls never raise; an invalid
      query fails at ``build()``/``execute()`` with ``Err``
    - **No hidden mutation:** ``exists()``, ``count()`` and
      ``execute_one()`` work on a derived copy; the builder's own limit,
      order and grouping are left untouched

Architecture:
    ::

        RowQuery / ColumnQuery / ColumnsQuery        (one table)
            │  .where(ConditionTree) .group_by(p) .order_by(p, Order) .limit(n)
            │
            ├── build()  → Statement(sql, params)
            │      SELECT <cols> FROM <table> [WHERE ...] [GROUP BY ...]
            │      [ORDER BY ... ASC|DESC] [LIMIT n]
            │
            └── join(other, Binding(ref, joined), ...)
                   │
                   ▼
        BindingRowQuery / BindingColumnsQuery        (filters apply to `other`)
               SELECT Ref.a AS "Ref.a", ..., Other.b AS "Other.b"
               FROM (<reference query>) AS Ref
               INNER JOIN Other ON Ref.x = Other.y AND ...
               [WHERE Other....] [GROUP BY Other....] [ORDER BY Other....] [LIMIT n]

    Condition trees fold left to right; OR parenthesizes everything
    accumulated so far::

        ConditionTree(A).or_(B).and_(C)   →   (A) OR B AND C

Examples:
    >>> query = (
    ...     RowQuery(ExampleTable, manager)
    ...     .where(where(ExampleTable.age, 18, CompareOperator.GREATER_THAN_OR_EQUAL))
    ...     .order_by(ExampleTable.age, Order.DESCENDING)
    ...     .limit(10)
    ... )  # doctest: +SKIP
    >>> query.build().unwrap().sql  # doctest: +SKIP
    'SELECT uID, preName, lastName, email, age FROM Example WHERE age >= ? ORDER BY age DESC LIMIT 10'

Guardrails:
    ❌ DON'T: Format values into SQL text
    ✅ DO: Pass them through Condition; they become parameters

    ❌ DON'T: Expect a join with mismatched bindings to return every pair
    ✅ DO: Check for ``Err(QueryBuildError)``; zero valid bindings never
       degrades to a cross join

Tags:
    query-builder, conditions, joins, sql, recordsql

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar

from recordsql.adapters.base import RowSet
from recordsql.dialect import Dialect
from recordsql.errors import InputValidationError, QueryBuildError
from recordsql.logging import get_logger
from recordsql.records import populate, prepare_value, read_values
from recordsql.result import Result, try_result
from recordsql.schema import Order, Property, Table
from recordsql.types import DEFAULT_REGISTRY, DatabaseType, TypeRegistry

logger = get_logger(__name__)

T = TypeVar("T")


class Executor(Protocol):
    """What a query needs from the connection layer."""

    @property
    def dialect(self) -> Dialect: ...

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Result[RowSet]: ...


# =============================================================================
# Conditions
# =============================================================================


class CompareOperator(str, Enum):
    EQUALS = "="
    GREATER_THAN = ">"
    LESS_THAN = "<"
    GREATER_THAN_OR_EQUAL = ">="
    LESS_THAN_OR_EQUAL = "<="
    NOT_EQUAL = "<>"

    @property
    def sql(self) -> str:
        return self.value


class Connective(str, Enum):
    AND = "AND"
    OR = "OR"


@dataclass(frozen=True)
class Condition:
    """``column <operator> value``; the value is always a bound parameter."""

    column: Property
    operator: CompareOperator
    value: Any

    def checked_value(self) -> Any:
        """Sanitized value, after the type and operator checks.

        Raises:
            InputValidationError: ``None`` value, or an ordering operator on
                a text column.
            TypeMismatchError: The value does not fit the column type.
        """
        if not isinstance(self.operator, CompareOperator):
            raise InputValidationError(f"Unknown operator {self.operator!r}", field=self.column.name)
        value = prepare_value(self.column, self.value)
        if self.column.db_type is DatabaseType.STRING and self.operator is not CompareOperator.EQUALS:
            raise InputValidationError(
                f"Text column {self.column.qualified_name} only supports '='",
                field=self.column.name,
                value=self.operator.sql,
                expected="=",
            ).with_context(table=self.column.table_name, column=self.column.name)
        return value


def where(column: Property, value: Any, operator: CompareOperator = CompareOperator.EQUALS) -> ConditionTree:
    """Start a condition tree from a single comparison."""
    return ConditionTree(Condition(column, operator, value))


@dataclass(frozen=True)
class ConditionTree:
    """
    An initial condition plus ``(connective, condition)`` pairs.

    Immutable: ``and_`` / ``or_`` return new trees, so a tree can be
    reused as the base of several queries.
    """

    initial: Condition
    rest: tuple[tuple[Connective, Condition], ...] = ()

    def and_(self, condition: Condition) -> ConditionTree:
        return ConditionTree(self.initial, self.rest + ((Connective.AND, condition),))

    def or_(self, condition: Condition) -> ConditionTree:
        return ConditionTree(self.initial, self.rest + ((Connective.OR, condition),))

    def conditions(self) -> list[Condition]:
        return [self.initial] + [c for _, c in self.rest]

    def build(
        self,
        column_ref: Callable[[Property], str],
        dialect: Dialect,
    ) -> tuple[str, list[Any], list[DatabaseType]]:
        """Render the clause (without ``WHERE``) and its parameters."""
        params: list[Any] = []
        types: list[DatabaseType] = []

        def term(condition: Condition) -> str:
            column = column_ref(condition.column)
            params.append(condition.checked_value())
            types.append(condition.column.db_type)
            return f"{column} {condition.operator.sql} {dialect.placeholder(len(params) - 1)}"

        clause = term(self.initial)
        for connective, condition in self.rest:
            if connective is Connective.OR:
                clause = f"({clause}) OR {term(condition)}"
            else:
                clause = f"{clause} AND {term(condition)}"
        return clause, params, types


# =============================================================================
# Statements
# =============================================================================


@dataclass(frozen=True)
class Statement:
    """SQL text with its parameters, ready for the driver."""

    sql: str
    params: tuple[Any, ...] = ()
    types: tuple[DatabaseType | None, ...] = ()
    placeholder: str = "?"

    def bind(self, registry: TypeRegistry = DEFAULT_REGISTRY) -> tuple[Any, ...]:
        """Parameters converted to driver values."""
        types = self.types or (None,) * len(self.params)
        return tuple(registry.bind(v, t) for v, t in zip(self.params, types, strict=True))

    def render(self, registry: TypeRegistry = DEFAULT_REGISTRY) -> str:
        """SQL with every parameter inlined as a literal, for logs."""
        pieces = self.sql.split(self.placeholder)
        if len(pieces) != len(self.params) + 1:
            return self.sql
        types = self.types or (None,) * len(self.params)
        out = [pieces[0]]
        for value, db_type, piece in zip(self.params, types, pieces[1:]):
            registry.append(out, value, db_type)
            out.append(piece)
        return "".join(out)

    def __str__(self) -> str:
        return self.sql


def run_statement(
    executor: Executor,
    statement: Statement,
    registry: TypeRegistry = DEFAULT_REGISTRY,
) -> Result[RowSet]:
    """Execute a statement, logging it with literals inlined."""
    logger.debug("statement_executed", sql=statement.render(registry))
    return executor.execute(statement.sql, statement.bind(registry))


# =============================================================================
# Single-table queries
# =============================================================================


class Query(Generic[T]):
    """
    Builder state shared by every query variant.

    ``condition``, ``group_by``, ``order_by`` and ``limit`` are independent
    and optional; the last call of each wins.
    """

    def __init__(
        self,
        table: type[Table],
        executor: Executor,
        *,
        registry: TypeRegistry = DEFAULT_REGISTRY,
    ):
        self.table = table
        self.executor = executor
        self.registry = registry
        self._condition: ConditionTree | None = None
        self._group_by: Property | None = None
        self._order_by: tuple[Property, Order] | None = None
        self._limit: int | None = None

    # ── Builder ──────────────────────────────────────────────────

    def where(self, condition: ConditionTree | Condition):
        if isinstance(condition, Condition):
            condition = ConditionTree(condition)
        self._condition = condition
        return self

    def group_by(self, column: Property):
        self._group_by = column
        return self

    def order_by(self, column: Property, order: Order = Order.ASCENDING):
        self._order_by = (column, order)
        return self

    def limit(self, limit: int | None):
        """Maximum number of rows; ``None`` removes the limit."""
        self._limit = limit
        return self

    @property
    def current_limit(self) -> int | None:
        return self._limit

    # ── Composition ──────────────────────────────────────────────

    @property
    def dialect(self) -> Dialect:
        return self.executor.dialect

    def _qualifier(self) -> str | None:
        return None

    def _column(self, column: Property) -> str:
        if column is None or not self.table.owns(column):
            raise QueryBuildError(
                f"Column {column!r} does not belong to table {self.table.name}"
            ).with_context(table=self.table.name)
        qualifier = self._qualifier()
        return f"{qualifier}.{column.name}" if qualifier else column.name

    def _select(self) -> str:
        raise NotImplementedError

    def _source(self) -> tuple[str, list[Any], list[DatabaseType | None]]:
        return f"FROM {self.table.name}", [], []

    def _compose(
        self,
        select: str,
        *,
        limit: int | None,
        ordered: bool = True,
        grouped: bool = True,
    ) -> Statement:
        source, params, types = self._source()
        parts = [f"SELECT {select}", source]

        if self._condition is not None:
            clause, where_params, where_types = self._condition.build(self._column, self.dialect)
            parts.append(f"WHERE {clause}")
            params.extend(where_params)
            types.extend(where_types)
        if grouped and self._group_by is not None:
            parts.append(f"GROUP BY {self._column(self._group_by)}")
        if ordered and self._order_by is not None:
            column, order = self._order_by
            if not isinstance(order, Order):
                raise InputValidationError(f"Unknown sort order {order!r}", field="order", value=order)
            parts.append(f"ORDER BY {self._column(column)} {order.sql}")
        if limit is not None:
            if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
                raise InputValidationError(
                    f"Limit must be a non-negative integer, got {limit!r}",
                    field="limit",
                    value=limit,
                )
            parts.append(f"LIMIT {limit}")
        return Statement(" ".join(parts), tuple(params), tuple(types), self.dialect.placeholder(0))

    def _statement(self) -> Statement:
        return self._compose(self._select(), limit=self._limit)

    def build(self) -> Result[Statement]:
        """The SELECT statement this query would run."""
        return try_result(self._statement).inspect_err(self._log_rejected)

    def _log_rejected(self, error: Exception) -> None:
        logger.warning("query_rejected", table=self.table.name, error=str(error))

    def _with_limit(self, limit: int | None):
        derived = copy.copy(self)
        derived._limit = limit
        return derived

    # ── Execution ────────────────────────────────────────────────

    def _run(self, statement: Statement) -> Result[RowSet]:
        return run_statement(self.executor, statement, self.registry)

    def _convert(self, row: dict[str, Any]) -> T:
        raise NotImplementedError

    def _convert_all(self, rowset: RowSet) -> Result[list[T]]:
        def convert() -> list[T]:
            return [self._convert(row) for row in rowset.rows]

        return try_result(convert).inspect_err(
            lambda e: logger.error("row_marshalling_failed", table=self.table.name, error=str(e))
        )

    def execute(self) -> Result[list[T]]:
        """All matching rows; ``Ok([])`` when there are none."""
        return self.build().flat_map(self._run).flat_map(self._convert_all)

    def execute_one(self) -> Result[T | None]:
        """First matching row, or ``Ok(None)``."""
        return self._with_limit(1).execute().map(lambda rows: rows[0] if rows else None)

    def exists(self) -> Result[bool]:
        """Whether at least one row matches (``SELECT 1 ... LIMIT 1``)."""
        statement = try_result(lambda: self._compose("1", limit=1)).inspect_err(self._log_rejected)
        return statement.flat_map(self._run).map(lambda rowset: len(rowset) > 0)

    def count(self) -> Result[int]:
        """Number of matching rows, or of groups when grouped.

        Limit and ordering are ignored.
        """

        def compose() -> Statement:
            if self._group_by is None:
                return self._compose("COUNT(*) AS row_count", limit=None, ordered=False)
            inner = self._compose("1 AS one", limit=None, ordered=False)
            return Statement(
                f"SELECT COUNT(*) AS row_count FROM ({inner.sql}) AS grouped_rows",
                inner.params,
                inner.types,
                inner.placeholder,
            )

        statement = try_result(compose).inspect_err(self._log_rejected)
        return statement.flat_map(self._run).map(
            lambda rowset: int(rowset.rows[0]["row_count"]) if rowset.rows else 0
        )


def _column_list(table: type[Table]) -> str:
    return ", ".join(p.name for p in table.properties)


class RowQuery(Query[Any]):
    """Query returning whole records of ``table.record``."""

    def _select(self) -> str:
        return _column_list(self.table)

    def _convert(self, row: dict[str, Any]) -> Any:
        return populate(self.table, row, registry=self.registry)

    def join(self, table: type[Table], *bindings: Binding) -> BindingRowQuery:
        """Join this query's rows to ``table``; results are record pairs."""
        return BindingRowQuery(self, table, bindings)


class ColumnQuery(Query[Any]):
    """Query returning the values of a single column."""

    def __init__(self, table: type[Table], column: Property, executor: Executor, **kwargs: Any):
        super().__init__(table, executor, **kwargs)
        self.column = column

    def _select(self) -> str:
        return self._column(self.column)

    def _convert(self, row: dict[str, Any]) -> Any:
        return self.registry.read_column(row, self.column.name, self.column.db_type)

    def join(
        self,
        table: type[Table],
        columns: Sequence[Property],
        *bindings: Binding,
    ) -> BindingColumnsQuery:
        """Join on ``bindings`` and select this column plus ``columns`` of ``table``."""
        return BindingColumnsQuery(self, (self.column,), table, tuple(columns), bindings)


class ColumnsQuery(Query[dict[Property, Any]]):
    """Query returning ``{Property: value}`` mappings of the selected columns."""

    def __init__(self, table: type[Table], columns: Sequence[Property], executor: Executor, **kwargs: Any):
        super().__init__(table, executor, **kwargs)
        self.columns = tuple(dict.fromkeys(columns))

    def _select(self) -> str:
        if not self.columns:
            raise QueryBuildError("No columns specified for selection").with_context(table=self.table.name)
        return ", ".join(self._column(c) for c in self.columns)

    def _convert(self, row: dict[str, Any]) -> dict[Property, Any]:
        return read_values(self.columns, row, registry=self.registry)

    def join(
        self,
        table: type[Table],
        columns: Sequence[Property],
        *bindings: Binding,
    ) -> BindingColumnsQuery:
        """Join on ``bindings`` and select these columns plus ``columns`` of ``table``."""
        return BindingColumnsQuery(self, self.columns, table, tuple(columns), bindings)


# =============================================================================
# Joins
# =============================================================================


class Binding:
    """
    Pairs a reference-table column with a joined-table column.

    Both columns must have the same DatabaseType. A mismatched pair is
    kept as an invalid binding (logged here) and skipped when the join is
    built; if no valid binding remains the build fails.
    """

    def __init__(self, ref: Property, joined: Property):
        self.ref: Property | None = ref
        self.joined: Property | None = joined
        if not (isinstance(ref, Property) and isinstance(joined, Property)):
            logger.warning("binding_column_missing", ref=repr(ref), joined=repr(joined))
            self.ref = None
            self.joined = None
        elif ref.db_type is not joined.db_type:
            logger.warning(
                "binding_type_mismatch",
                ref=ref.qualified_name,
                ref_type=ref.db_type.value,
                joined=joined.qualified_name,
                joined_type=joined.db_type.value,
            )
            self.ref = None
            self.joined = None

    @property
    def valid(self) -> bool:
        return self.ref is not None and self.joined is not None

    def __repr__(self) -> str:
        if not self.valid:
            return "Binding(<invalid>)"
        return f"Binding({self.ref.qualified_name} = {self.joined.qualified_name})"


class _JoinQuery(Query[T]):
    """
    Join of a reference query (as a derived table) with a second table.

    Conditions, grouping, ordering and limit set on this query apply to
    the joined table.
    """

    def __init__(self, reference: Query, table: type[Table], bindings: Sequence[Binding]):
        super().__init__(table, reference.executor, registry=reference.registry)
        # Snapshot: later changes to the reference builder do not leak in
        self.reference = copy.copy(reference)
        self.bindings = tuple(bindings)

    @property
    def ref_table(self) -> type[Table]:
        return self.reference.table

    def _qualifier(self) -> str | None:
        return self.table.name

    def _join_condition(self) -> str:
        if not self.bindings:
            raise QueryBuildError("At least one binding is required").with_context(table=self.table.name)
        terms = []
        for binding in self.bindings:
            if not binding.valid:
                continue
            if not (self.ref_table.owns(binding.ref) and self.table.owns(binding.joined)):
                logger.warning(
                    "binding_tables_mismatch",
                    binding=repr(binding),
                    ref_table=self.ref_table.name,
                    joined_table=self.table.name,
                )
                continue
            terms.append(f"{self.ref_table.name}.{binding.ref.name} = {self.table.name}.{binding.joined.name}")
        if not terms:
            raise QueryBuildError("No valid bindings for the join").with_context(
                table=self.table.name, operation="join"
            )
        return " AND ".join(terms)

    def _source(self) -> tuple[str, list[Any], list[DatabaseType | None]]:
        if self.ref_table is self.table:
            raise QueryBuildError(f"Cannot join {self.table.name} to itself").with_context(table=self.table.name)
        reference = self.reference._compose(_column_list(self.ref_table), limit=self.reference.current_limit)
        source = (
            f"FROM ({reference.sql}) AS {self.ref_table.name} "
            f"INNER JOIN {self.table.name} ON {self._join_condition()}"
        )
        return source, list(reference.params), list(reference.types)

    def _aliased(self, columns: Sequence[Property]) -> list[str]:
        return [f"{c.qualified_name} AS {self.dialect.quote_alias(c.qualified_name)}" for c in columns]


class BindingRowQuery(_JoinQuery[tuple[Any, Any]]):
    """Join returning ``(reference_record, joined_record)`` pairs."""

    def _select(self) -> str:
        return ", ".join(self._aliased(self.ref_table.properties + self.table.properties))

    def _convert(self, row: dict[str, Any]) -> tuple[Any, Any]:
        return (
            populate(self.ref_table, row, qualified=True, registry=self.registry),
            populate(self.table, row, qualified=True, registry=self.registry),
        )


class BindingColumnsQuery(_JoinQuery[tuple[dict[Property, Any], dict[Property, Any]]]):
    """Join returning ``({ref_column: value}, {joined_column: value})`` pairs."""

    def __init__(
        self,
        reference: Query,
        ref_columns: Sequence[Property],
        table: type[Table],
        columns: Sequence[Property],
        bindings: Sequence[Binding],
    ):
        super().__init__(reference, table, bindings)
        self.ref_columns = tuple(dict.fromkeys(ref_columns))
        self.columns = tuple(dict.fromkeys(columns))

    def _select(self) -> str:
        if not self.ref_columns and not self.columns:
            raise QueryBuildError("No columns specified for selection").with_context(table=self.table.name)
        for column in self.ref_columns:
            if not self.ref_table.owns(column):
                raise QueryBuildError(
                    f"Column {column!r} does not belong to table {self.ref_table.name}"
                ).with_context(table=self.ref_table.name)
        for column in self.columns:
            self._column(column)
        return ", ".join(self._aliased(self.ref_columns + self.columns))

    def _convert(self, row: dict[str, Any]) -> tuple[dict[Property, Any], dict[Property, Any]]:
        return (
            read_values(self.ref_columns, row, qualified=True, registry=self.registry),
            read_values(self.columns, row, qualified=True, registry=self.registry),
        )


__all__ = [
    "Executor",
    "CompareOperator",
    "Connective",
    "Condition",
    "ConditionTree",
    "where",
    "Statement",
    "run_statement",
    "Query",
    "RowQuery",
    "ColumnQuery",
    "ColumnsQuery",
    "Binding",
    "BindingRowQuery",
    "BindingColumnsQuery",
]
