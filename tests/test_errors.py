"""Tests for ``recordsql.errors`` and ``recordsql.result``."""

from __future__ import annotations

import pytest

from recordsql.errors import (
    ConnectionClosedError,
    DatabaseConnectionError,
    DatabaseUnavailableError,
    ErrorCategory,
    InputValidationError,
    MarshallingError,
    QueryBuildError,
    QueryError,
    RecordSQLError,
    TypeMismatchError,
    is_retryable,
)
from recordsql.result import Err, Ok, try_result


class TestTaxonomy:
    def test_categories(self):
        assert DatabaseConnectionError("x").category is ErrorCategory.DATABASE
        assert QueryError("x").category is ErrorCategory.DATABASE
        assert InputValidationError("x").category is ErrorCategory.VALIDATION
        assert MarshallingError("x").category is ErrorCategory.PARSE
        assert QueryBuildError("x").category is ErrorCategory.QUERY

    def test_retryable(self):
        assert is_retryable(DatabaseConnectionError("x"))
        assert is_retryable(DatabaseUnavailableError())
        assert not is_retryable(ConnectionClosedError())
        assert not is_retryable(InputValidationError("x"))
        assert is_retryable(TimeoutError())
        assert not is_retryable(ValueError())

    def test_type_mismatch_is_input_validation(self):
        assert issubclass(TypeMismatchError, InputValidationError)

    def test_default_messages(self):
        assert "reconnect" in str(DatabaseUnavailableError())
        assert "shut down" in str(ConnectionClosedError())


class TestContext:
    def test_with_context_is_fluent(self):
        error = QueryBuildError("no bindings").with_context(table="Example", operation="join", hint="bind uID")
        assert error.context.table == "Example"
        assert error.context.operation == "join"
        assert error.context.metadata == {"hint": "bind uID"}

    def test_to_dict(self):
        cause = ValueError("bad")
        error = InputValidationError("age is text", field="age", value="x", expected="INTEGER", cause=cause)
        error.with_context(table="Example", column="age")
        data = error.to_dict()
        assert data["error_type"] == "InputValidationError"
        assert data["category"] == "VALIDATION"
        assert data["context"] == {"table": "Example", "column": "age"}
        assert data["field"] == "age"
        assert data["value"] == "'x'"
        assert data["cause"] == "bad"
        assert error.__cause__ is cause


class TestResult:
    def test_ok(self):
        result = Ok(3)
        assert result.is_ok() and not result.is_err()
        assert result.map(lambda n: n + 1) == Ok(4)
        assert result.flat_map(lambda n: Ok(n * 2)) == Ok(6)
        assert result.unwrap_or(0) == 3
        assert result.map_err(lambda e: e) is result

    def test_err_short_circuits(self):
        error = QueryError("down")
        result = Err(error)
        assert result.map(lambda n: n + 1) == result
        assert result.flat_map(lambda n: Ok(n)).error is error
        assert result.unwrap_or(0) == 0
        assert result.unwrap_or_else(lambda e: str(e)) == "down"
        with pytest.raises(QueryError):
            result.unwrap()

    def test_or_else_recovers(self):
        assert Err(QueryError("down")).or_else(lambda e: Ok([])) == Ok([])

    def test_inspect(self):
        seen = []
        Ok(1).inspect(seen.append).inspect_err(seen.append)
        error = QueryError("x")
        Err(error).inspect(seen.append).inspect_err(seen.append)
        assert seen == [1, error]

    def test_to_dict(self):
        assert Ok([1]).to_dict() == {"ok": True, "value": [1]}
        assert Err(QueryError("x")).to_dict()["error"]["error_type"] == "QueryError"
        assert Err(ValueError("y")).to_dict()["error"] == {"error_type": "ValueError", "message": "y"}

    def test_try_result_catches_library_errors(self):
        def build():
            raise QueryBuildError("No valid bindings for the join")

        result = try_result(build)
        assert isinstance(result, Err)
        assert isinstance(result.error, RecordSQLError)
        assert try_result(lambda: 5) == Ok(5)

    def test_try_result_propagates_bugs(self):
        def broken():
            raise KeyError("bug")

        with pytest.raises(KeyError):
            try_result(broken)
