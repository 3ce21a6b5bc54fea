"""Tests for ``recordsql.query`` -- conditions, single-table queries and joins."""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any

import pytest

from recordsql.adapters import RowSet
from recordsql.dialect import MySQLDialect
from recordsql.errors import InputValidationError, QueryBuildError, TypeMismatchError
from recordsql.examples import Example, ExampleTable, LicenseTable
from recordsql.query import (
    Binding,
    ColumnQuery,
    ColumnsQuery,
    CompareOperator,
    Condition,
    RowQuery,
    Statement,
    where,
)
from recordsql.result import Err, Ok
from recordsql.schema import Order
from recordsql.types import DEFAULT_REGISTRY

from sample_tables import Purchase, PurchaseTable

SELECT_EXAMPLE = "SELECT uID, preName, lastName, email, age FROM Example"


class RecordingExecutor:
    """Executor that records statements and returns no rows."""

    def __init__(self, dialect=None):
        self.dialect = dialect or MySQLDialect()
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def execute(self, sql: str, params: Sequence[Any] = ()):
        self.calls.append((sql, tuple(params)))
        return Ok(RowSet())


@pytest.fixture
def purchase_rows(purchases, people) -> list[Purchase]:
    ada, alan = people[0], people[1]
    rows = [
        Purchase(uuid.UUID(int=101), ada.uID, "book", 12.5, True),
        Purchase(uuid.UUID(int=102), ada.uID, "pen", 1.25, False),
        Purchase(uuid.UUID(int=103), alan.uID, "lamp", 30.0, True),
    ]
    for row in rows:
        purchases.upsert(row).unwrap()
    return rows


class TestConditionTree:
    def test_single_condition(self, manager):
        sql = RowQuery(ExampleTable, manager).where(where(ExampleTable.age, 17)).build().unwrap().sql
        assert sql == f"{SELECT_EXAMPLE} WHERE age = ?"

    def test_or_parenthesizes_everything_before_it(self, manager):
        tree = (
            where(ExampleTable.age, 17)
            .or_(Condition(ExampleTable.preName, CompareOperator.EQUALS, "Junior"))
            .and_(Condition(ExampleTable.email, CompareOperator.EQUALS, "duck@juniorjacki.de"))
        )
        statement = RowQuery(ExampleTable, manager).where(tree).build().unwrap()
        assert statement.sql == f"{SELECT_EXAMPLE} WHERE (age = ?) OR preName = ? AND email = ?"
        assert statement.params == (17, "Junior", "duck@juniorjacki.de")

    def test_trees_are_immutable(self):
        base = where(ExampleTable.age, 17)
        extended = base.and_(Condition(ExampleTable.age, CompareOperator.LESS_THAN, 30))
        assert base.rest == ()
        assert len(extended.conditions()) == 2

    def test_text_column_only_supports_equals(self, manager):
        tree = where(ExampleTable.preName, "A", CompareOperator.GREATER_THAN)
        result = RowQuery(ExampleTable, manager).where(tree).build()
        assert isinstance(result, Err)
        assert isinstance(result.error, InputValidationError)

    def test_value_type_is_checked(self, manager):
        result = RowQuery(ExampleTable, manager).where(where(ExampleTable.age, "17")).build()
        assert isinstance(result, Err)
        assert isinstance(result.error, TypeMismatchError)

    def test_foreign_column(self, manager):
        result = RowQuery(ExampleTable, manager).where(where(LicenseTable.value, "x")).build()
        assert isinstance(result, Err)
        assert isinstance(result.error, QueryBuildError)

    def test_values_are_sanitized(self, manager):
        statement = RowQuery(ExampleTable, manager).where(where(ExampleTable.preName, "Bob drop")).build().unwrap()
        assert statement.params == ("Bob",)

    def test_accepts_a_bare_condition(self, manager):
        condition = Condition(ExampleTable.age, CompareOperator.NOT_EQUAL, 3)
        sql = RowQuery(ExampleTable, manager).where(condition).build().unwrap().sql
        assert sql.endswith("WHERE age <> ?")


class TestModifiers:
    def test_full_statement(self, manager):
        query = (
            RowQuery(ExampleTable, manager)
            .where(where(ExampleTable.age, 18, CompareOperator.GREATER_THAN_OR_EQUAL))
            .group_by(ExampleTable.lastName)
            .order_by(ExampleTable.age, Order.DESCENDING)
            .limit(10)
        )
        assert query.build().unwrap().sql == (
            f"{SELECT_EXAMPLE} WHERE age >= ? GROUP BY lastName ORDER BY age DESC LIMIT 10"
        )

    def test_limit_is_omitted_when_unset(self, manager):
        assert RowQuery(ExampleTable, manager).build().unwrap().sql == SELECT_EXAMPLE

    def test_last_call_wins(self, manager):
        query = RowQuery(ExampleTable, manager).limit(5).limit(None).order_by(ExampleTable.age).order_by(ExampleTable.email)
        assert query.build().unwrap().sql == f"{SELECT_EXAMPLE} ORDER BY email ASC"

    def test_invalid_limit(self, manager):
        for bad in (-1, True, 1.5):
            result = RowQuery(ExampleTable, manager).limit(bad).build()
            assert isinstance(result, Err)
            assert isinstance(result.error, InputValidationError)

    def test_invalid_order(self, manager):
        result = RowQuery(ExampleTable, manager).order_by(ExampleTable.age, "DESC; DROP").build()
        assert isinstance(result.error, InputValidationError)

    def test_render_inlines_literals(self, manager):
        statement = RowQuery(ExampleTable, manager).where(where(ExampleTable.lastName, "O'Brien")).build().unwrap()
        assert statement.render(DEFAULT_REGISTRY) == f"{SELECT_EXAMPLE} WHERE lastName = 'O''Brien'"

    def test_mysql_placeholders(self):
        executor = RecordingExecutor()
        sql = RowQuery(ExampleTable, executor).where(where(ExampleTable.age, 17)).build().unwrap().sql
        assert sql.endswith("WHERE age = %s")

    def test_uuid_params_are_bound_as_bytes(self):
        executor = RecordingExecutor()
        uid = uuid.UUID(int=9)
        RowQuery(ExampleTable, executor).where(where(ExampleTable.uID, uid)).execute()
        assert executor.calls == [(f"{SELECT_EXAMPLE} WHERE uID = %s", (uid.bytes,))]


class TestExecution:
    def test_execute_returns_records(self, manager, people):
        rows = RowQuery(ExampleTable, manager).order_by(ExampleTable.age).execute().unwrap()
        assert rows == people

    def test_execute_no_rows_is_empty_list(self, manager, examples):
        result = RowQuery(ExampleTable, manager).execute()
        assert result == Ok([])

    def test_execute_one(self, manager, people):
        query = RowQuery(ExampleTable, manager).order_by(ExampleTable.age, Order.DESCENDING)
        assert query.execute_one().unwrap() == people[-1]
        assert query.current_limit is None

    def test_execute_one_none(self, manager, examples):
        assert RowQuery(ExampleTable, manager).execute_one() == Ok(None)

    def test_exists_and_count_keep_the_limit(self, manager, people):
        query = RowQuery(ExampleTable, manager).where(
            where(ExampleTable.age, 30, CompareOperator.GREATER_THAN)
        ).limit(2)
        assert query.exists().unwrap() is True
        assert query.count().unwrap() == 3
        assert query.current_limit == 2
        assert len(query.execute().unwrap()) == 2

    def test_exists_false(self, manager, people):
        query = RowQuery(ExampleTable, manager).where(where(ExampleTable.age, 99))
        assert query.exists() == Ok(False)

    def test_grouped_count_counts_groups(self, manager, examples, people):
        examples.upsert(Example(uuid.UUID(int=6), "Ann", "Lovelace", "ann@example.org", 20)).unwrap()
        query = RowQuery(ExampleTable, manager).group_by(ExampleTable.age)
        assert query.count().unwrap() == 5

    def test_column_query(self, manager, people):
        ages = ColumnQuery(ExampleTable, ExampleTable.age, manager).order_by(ExampleTable.age).execute()
        assert ages.unwrap() == [20, 30, 40, 50, 60]

    def test_columns_query(self, manager, people):
        rows = (
            ColumnsQuery(ExampleTable, [ExampleTable.preName, ExampleTable.age], manager)
            .where(where(ExampleTable.age, 40))
            .execute()
            .unwrap()
        )
        assert rows == [{ExampleTable.preName: "Grace", ExampleTable.age: 40}]

    def test_columns_query_without_columns(self, manager):
        result = ColumnsQuery(ExampleTable, [], manager).build()
        assert isinstance(result.error, QueryBuildError)

    def test_driver_failure_is_err(self, manager):
        result = RowQuery(ExampleTable, manager).execute()
        assert isinstance(result, Err)


class TestJoins:
    def test_join_sql(self, manager):
        query = RowQuery(ExampleTable, manager).join(PurchaseTable, Binding(ExampleTable.uID, PurchaseTable.buyer))
        sql = query.build().unwrap().sql
        assert sql.startswith('SELECT Example.uID AS "Example.uID", ')
        assert (
            f"FROM ({SELECT_EXAMPLE}) AS Example INNER JOIN Purchase ON Example.uID = Purchase.buyer"
        ) in sql

    def test_join_mysql_aliases(self):
        executor = RecordingExecutor()
        query = RowQuery(ExampleTable, executor).join(PurchaseTable, Binding(ExampleTable.uID, PurchaseTable.buyer))
        assert "Purchase.item AS `Purchase.item`" in query.build().unwrap().sql

    def test_mismatched_binding_fails_the_build(self, manager):
        binding = Binding(ExampleTable.age, PurchaseTable.item)
        assert not binding.valid
        result = RowQuery(ExampleTable, manager).join(PurchaseTable, binding).build()
        assert isinstance(result, Err)
        assert isinstance(result.error, QueryBuildError)

    def test_binding_without_column_fails_the_build(self, manager):
        binding = Binding(None, PurchaseTable.buyer)
        assert not binding.valid
        assert repr(binding) == "Binding(<invalid>)"
        result = RowQuery(ExampleTable, manager).join(PurchaseTable, binding).execute()
        assert isinstance(result, Err)
        assert isinstance(result.error, QueryBuildError)

    def test_no_bindings(self, manager):
        result = RowQuery(ExampleTable, manager).join(PurchaseTable).execute()
        assert isinstance(result.error, QueryBuildError)

    def test_binding_on_wrong_tables_is_skipped(self, manager):
        bindings = (Binding(LicenseTable.uID, PurchaseTable.buyer), Binding(ExampleTable.uID, PurchaseTable.buyer))
        sql = RowQuery(ExampleTable, manager).join(PurchaseTable, *bindings).build().unwrap().sql
        assert sql.count(" = Purchase.buyer") == 1

    def test_self_join_is_rejected(self, manager):
        result = RowQuery(ExampleTable, manager).join(ExampleTable, Binding(ExampleTable.uID, ExampleTable.uID)).build()
        assert isinstance(result.error, QueryBuildError)

    def test_join_returns_record_pairs(self, manager, people, purchase_rows):
        pairs = (
            RowQuery(ExampleTable, manager)
            .join(PurchaseTable, Binding(ExampleTable.uID, PurchaseTable.buyer))
            .order_by(PurchaseTable.price)
            .execute()
            .unwrap()
        )
        assert pairs == [
            (people[0], purchase_rows[1]),
            (people[0], purchase_rows[0]),
            (people[1], purchase_rows[2]),
        ]

    def test_join_filters_apply_to_joined_table(self, manager, people, purchase_rows):
        reference = RowQuery(ExampleTable, manager).where(where(ExampleTable.age, 20))
        pairs = (
            reference.join(PurchaseTable, Binding(ExampleTable.uID, PurchaseTable.buyer))
            .where(where(PurchaseTable.paid, True))
            .execute()
            .unwrap()
        )
        assert pairs == [(people[0], purchase_rows[0])]

    def test_join_count_and_exists(self, manager, people, purchase_rows):
        query = RowQuery(ExampleTable, manager).join(PurchaseTable, Binding(ExampleTable.uID, PurchaseTable.buyer))
        assert query.count().unwrap() == 3
        assert query.exists().unwrap() is True

    def test_columns_join(self, manager, people, purchase_rows):
        rows = (
            ColumnQuery(ExampleTable, ExampleTable.preName, manager)
            .join(PurchaseTable, [PurchaseTable.item], Binding(ExampleTable.uID, PurchaseTable.buyer))
            .where(where(PurchaseTable.item, "lamp"))
            .execute()
            .unwrap()
        )
        assert rows == [({ExampleTable.preName: "Alan"}, {PurchaseTable.item: "lamp"})]

    def test_reference_snapshot(self, manager, people, purchase_rows):
        reference = RowQuery(ExampleTable, manager)
        join = reference.join(PurchaseTable, Binding(ExampleTable.uID, PurchaseTable.buyer))
        reference.where(where(ExampleTable.age, 99))
        assert join.count().unwrap() == 3


class TestStatement:
    def test_str_is_sql(self):
        assert str(Statement("SELECT 1")) == "SELECT 1"

    def test_render_with_mismatched_placeholders_returns_sql(self):
        statement = Statement("SELECT ?", (1, 2))
        assert statement.render() == "SELECT ?"
