"""
Schema model: declarative tables of typed columns bound to record types.

A table is declared once, as a class. Each column is a :class:`Property`
class attribute; the record type is a frozen dataclass with exactly one
field per property, in the same order and with a matching type::

    @dataclass(frozen=True)
    class Example:
        uID: uuid.UUID
        preName: str
        age: int

    class ExampleTable(Table, record=Example):
        uID = Property(DatabaseType.UUID, key=True)
        preName = Property(DatabaseType.STRING)
        age = Property(DatabaseType.INTEGER)

The property/field correspondence is checked when the class body is
executed, so a table whose record disagrees with its columns never
exists at run time (:class:`~recordsql.errors.SchemaError` is raised at
import). Everything that later names a column (conditions, ordering,
bindings, CRUD calls) takes a ``Property`` object rather than a string,
so identifiers in generated SQL can only come from a declared table.

Architecture:
    ::

        ┌──────────────────────┐   __init_subclass__   ┌─────────────────┐
        │ class ExampleTable   │ ────────────────────▶ │ validate record │
        │   uID = Property(..) │                       │ fields vs props │
        │   age = Property(..) │                       └─────────────────┘
        └──────────┬───────────┘
                   │ name / properties / keys()
                   ▼
        CREATE TABLE IF NOT EXISTS Example (uID BINARY(16), ..., PRIMARY KEY (uID));

Guardrails:
    ❌ DON'T: Pass column names as strings into queries
    ✅ DO: Use the table's Property attributes (``ExampleTable.age``)

    ❌ DON'T: Instantiate tables; the class is the singleton
    ✅ DO: Pass the table class to repositories and queries

Tags:
    schema, ddl, table, property, records, recordsql

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import dataclasses
import typing
from enum import Enum
from types import NoneType, UnionType
from typing import TYPE_CHECKING, Any, ClassVar, Union

from recordsql.errors import SchemaError
from recordsql.types import DEFAULT_REGISTRY, DatabaseType, TypeRegistry

if TYPE_CHECKING:
    from recordsql.repository import TableRepository


class Order(str, Enum):
    """Sort direction for ORDER BY."""

    ASCENDING = "ASC"
    DESCENDING = "DESC"

    @property
    def sql(self) -> str:
        return self.value


class Property:
    """
    One typed column of a table.

    Declared as a class attribute of a :class:`Table`; the attribute name
    is the column name unless ``name`` is given. Reading the attribute from
    the table class returns the Property itself.

    Attributes:
        name: Column name (also the record field name)
        db_type: The column's :class:`DatabaseType`
        key: Part of the primary key
        unique: Carries a UNIQUE constraint (ignored for key columns)
        length: DDL length; 0 selects the type's default
        table: The declaring table class (set at class creation)
    """

    def __init__(
        self,
        db_type: DatabaseType,
        *,
        key: bool = False,
        unique: bool = False,
        length: int = 0,
        name: str | None = None,
    ):
        if not isinstance(db_type, DatabaseType):
            raise SchemaError(f"Property type must be a DatabaseType, got {db_type!r}")
        if length < 0:
            raise SchemaError(f"Property length must be >= 0, got {length}")
        self.db_type = db_type
        self.key = key
        self.unique = unique
        self.length = length
        self.name: str = name or ""
        self.table: type[Table] | None = None

    def __set_name__(self, owner: type, attr: str) -> None:
        if self.table is not None:
            raise SchemaError(
                f"Property {self.name!r} is already declared on {self.table.__name__}"
            )
        self.table = owner
        if not self.name:
            self.name = attr

    def __get__(self, instance: Any, owner: type) -> Property:
        return self

    @property
    def qualified_name(self) -> str:
        """``Table.column``, the key used for joined result rows."""
        return f"{self.table_name}.{self.name}"

    @property
    def table_name(self) -> str:
        return getattr(self.table, "name", self.table.__name__) if self.table is not None else ""

    def ddl(self, registry: TypeRegistry = DEFAULT_REGISTRY) -> str:
        """Column definition for CREATE TABLE, e.g. ``email VARCHAR(255) UNIQUE``."""
        column = f"{self.name} {registry.ddl_type(self.db_type, self.length)}"
        if self.unique and not self.key:
            column += " UNIQUE"
        return column

    def __repr__(self) -> str:
        flags = "".join([", key" if self.key else "", ", unique" if self.unique else ""])
        return f"Property({self.table_name}.{self.name}: {self.db_type.value}{flags})"


class Table:
    """
    Base class for table declarations.

    Subclass with ``record=`` to declare a table; ``name=`` overrides the
    table name, which otherwise is the record class name. A subclass
    without ``record`` is an abstract intermediate and is not validated.

    Override :meth:`on_creation` to seed rows the first time the table is
    found empty right after creation.
    """

    record: ClassVar[type]
    name: ClassVar[str]
    properties: ClassVar[tuple[Property, ...]] = ()

    def __init_subclass__(cls, record: type | None = None, name: str | None = None, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        if record is None:
            return
        declared = {attr: v for attr, v in vars(cls).items() if isinstance(v, Property)}
        shadowed = sorted(a for a in declared if hasattr(Table, a) or a in Table.__annotations__)
        if shadowed:
            raise SchemaError(f"{cls.__name__}: attribute names {shadowed} are reserved by Table")
        properties = tuple(declared.values())
        cls.record = record
        cls.name = name or record.__name__
        cls.properties = properties
        _validate(cls)

    def __new__(cls, *args: Any, **kwargs: Any):
        raise TypeError(f"{cls.__name__} is a table declaration and is not instantiated")

    @classmethod
    def keys(cls) -> tuple[Property, ...]:
        return tuple(p for p in cls.properties if p.key)

    @classmethod
    def non_keys(cls) -> tuple[Property, ...]:
        return tuple(p for p in cls.properties if not p.key)

    @classmethod
    def column(cls, name: str) -> Property | None:
        for prop in cls.properties:
            if prop.name == name:
                return prop
        return None

    @classmethod
    def owns(cls, prop: Property) -> bool:
        return isinstance(prop, Property) and prop.table is cls

    @classmethod
    def ddl_properties(cls, registry: TypeRegistry = DEFAULT_REGISTRY) -> list[str]:
        return [p.ddl(registry) for p in cls.properties]

    @classmethod
    def on_creation(cls, repository: TableRepository) -> None:
        """Seed hook; runs once when the table is empty after creation."""


def create_table_sql(table: type[Table], registry: TypeRegistry = DEFAULT_REGISTRY) -> str:
    """
    Render the CREATE TABLE statement for a table declaration.

    Example output::

        CREATE TABLE IF NOT EXISTS Example (uID BINARY(16), age INT, PRIMARY KEY (uID));
    """
    columns = table.ddl_properties(registry)
    keys = [p.name for p in table.keys()]
    if keys:
        columns.append(f"PRIMARY KEY ({', '.join(keys)})")
    return f"CREATE TABLE IF NOT EXISTS {table.name} ({', '.join(columns)});"


# =============================================================================
# Registration-time validation
# =============================================================================


def _unwrap_optional(hint: Any) -> Any:
    origin = typing.get_origin(hint)
    if origin is Union or isinstance(hint, UnionType):
        args = [a for a in typing.get_args(hint) if a is not NoneType]
        if len(args) == 1:
            return args[0]
    return hint


def _validate(table: type[Table]) -> None:
    record = table.record
    if not dataclasses.is_dataclass(record) or not isinstance(record, type):
        raise SchemaError(f"{table.__name__}: record {record!r} must be a dataclass type")
    if not record.__dataclass_params__.frozen:
        raise SchemaError(f"{table.__name__}: record {record.__name__} must be frozen")
    if not table.properties:
        raise SchemaError(f"{table.__name__} declares no properties")

    names = [p.name for p in table.properties]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise SchemaError(f"{table.__name__}: duplicate column names {duplicates}")

    fields = [f.name for f in dataclasses.fields(record)]
    if fields != names:
        raise SchemaError(
            f"{table.__name__}: record fields {fields} do not match properties {names}"
        )

    try:
        hints = typing.get_type_hints(record)
    except (NameError, TypeError) as e:
        raise SchemaError(f"{table.__name__}: cannot resolve record annotations: {e}", cause=e) from e

    for prop in table.properties:
        hint = _unwrap_optional(hints.get(prop.name, Any))
        if hint is not prop.db_type.python_type:
            raise SchemaError(
                f"{table.__name__}.{prop.name}: field type {hint!r} does not match "
                f"{prop.db_type.value} ({prop.db_type.python_type.__name__})"
            ).with_context(table=table.name, column=prop.name)


__all__ = [
    "Order",
    "Property",
    "Table",
    "create_table_sql",
]
