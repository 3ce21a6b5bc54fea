"""recordsql -- typed record access for relational databases.

Manifesto:
    Tables are declared once, as classes whose columns are typed
    ``Property`` objects bound to a frozen dataclass record. Every read
    and write goes through those declarations, so SQL identifiers come
    only from the schema and every value is checked against its column
    type before it is sent as a bound parameter.

    - **Typed columns:** the record's fields and the table's properties
      are checked against each other when the class is declared
    - **Result envelope:** operations return ``Ok``/``Err``, never raise
    - **Self-healing connection:** one managed connection, reconnected in
      the background when it drops
    - **Backend-neutral:** MySQL and SQLite through a small dialect layer

Architecture::

    Layer 1 -- Types & Errors
        errors.py          RecordSQLError taxonomy
        result.py          Ok / Err / try_result
        types.py           DatabaseType, codecs, TypeRegistry

    Layer 2 -- Schema & Values
        schema.py          Property, Table, Order, create_table_sql
        filters.py         Keyword sanitizer for caller values
        records.py         Row <-> record marshalling and value checks

    Layer 3 -- Statements
        dialect.py         MySQL / SQLite SQL fragments
        query.py           Conditions, single-table and join queries
        repository.py      TableRepository CRUD operations

    Layer 4 -- Runtime
        adapters/          Drivers (mysql-connector-python, sqlite3)
        connection.py      ConnectionManager with background reconnect
        bootstrap.py       CREATE TABLE + seed hook
        database.py        Database façade
        settings.py        DatabaseSettings (pydantic-settings)
        logging.py         structlog configuration

Examples:
    >>> from recordsql import Database, DatabaseSettings, where
    >>> from recordsql.examples import ExampleTable
    >>> db = Database(DatabaseSettings(backend="sqlite"), tables=[ExampleTable])
    >>> db.start().is_ok()  # doctest: +SKIP
    True
    >>> db.query(ExampleTable).where(where(ExampleTable.age, 17)).execute()  # doctest: +SKIP
    Ok([Example(uID=UUID('...'), preName='Junior', lastName='Jacki', ...)])

Tags:
    recordsql, database, orm, records, mysql, sqlite

Doc-Types:
    - Package Overview
"""

__version__ = "0.1.0"

from recordsql.connection import ConnectionManager, ConnectionState
from recordsql.database import Database
from recordsql.errors import (
    ConfigError,
    ConnectionClosedError,
    DatabaseConnectionError,
    DatabaseUnavailableError,
    ErrorCategory,
    InputValidationError,
    MarshallingError,
    QueryBuildError,
    QueryError,
    RecordSQLError,
    SchemaError,
    TypeMismatchError,
)
from recordsql.filters import sanitize
from recordsql.query import (
    Binding,
    BindingColumnsQuery,
    BindingRowQuery,
    ColumnQuery,
    ColumnsQuery,
    CompareOperator,
    Condition,
    ConditionTree,
    RowQuery,
    Statement,
    where,
)
from recordsql.records import populate, replace_field
from recordsql.repository import ColumnValue, TableRepository
from recordsql.result import Err, Ok, Result, try_result
from recordsql.schema import Order, Property, Table, create_table_sql
from recordsql.settings import DatabaseSettings
from recordsql.types import DatabaseType, TypeRegistry

__all__ = [
    "__version__",
    # runtime
    "Database",
    "DatabaseSettings",
    "ConnectionManager",
    "ConnectionState",
    # schema
    "DatabaseType",
    "TypeRegistry",
    "Order",
    "Property",
    "Table",
    "create_table_sql",
    # queries
    "Binding",
    "BindingColumnsQuery",
    "BindingRowQuery",
    "ColumnQuery",
    "ColumnsQuery",
    "CompareOperator",
    "Condition",
    "ConditionTree",
    "RowQuery",
    "Statement",
    "where",
    # crud
    "ColumnValue",
    "TableRepository",
    # records
    "populate",
    "replace_field",
    "sanitize",
    # results
    "Ok",
    "Err",
    "Result",
    "try_result",
    # errors
    "ErrorCategory",
    "RecordSQLError",
    "DatabaseConnectionError",
    "DatabaseUnavailableError",
    "ConnectionClosedError",
    "QueryError",
    "InputValidationError",
    "TypeMismatchError",
    "MarshallingError",
    "QueryBuildError",
    "SchemaError",
    "ConfigError",
]
