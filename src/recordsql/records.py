"""Record marshalling between result rows and table record types.

``populate`` turns one driver row (a mapping of column label to raw value)
into the table's frozen record by reading every declared property through
the TypeRegistry. Rows produced by a join carry qualified labels
(``Example.uID``); pass ``qualified=True`` to read them.

The reverse direction (``extract_field``) reads a property's value off a
record for use as a statement parameter.

Value checks used by every write and filter also live here:
``prepare_value`` sanitizes a caller-supplied value and verifies it
against the target property's DatabaseType.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any

from recordsql.errors import InputValidationError, MarshallingError, TypeMismatchError
from recordsql.filters import sanitize
from recordsql.result import Err, Ok, Result
from recordsql.schema import Property, Table
from recordsql.types import DEFAULT_REGISTRY, TypeRegistry


def populate(
    table: type[Table],
    row: Mapping[str, Any],
    *,
    qualified: bool = False,
    registry: TypeRegistry = DEFAULT_REGISTRY,
) -> Any:
    """Build one record of ``table.record`` from a raw row.

    Raises:
        MarshallingError: A declared column is missing or unreadable. No
            partially populated record is ever returned.
    """
    values = {}
    for prop in table.properties:
        label = prop.qualified_name if qualified else prop.name
        try:
            values[prop.name] = registry.read_column(row, label, prop.db_type)
        except MarshallingError as e:
            e.with_context(table=table.name)
            raise
    try:
        return table.record(**values)
    except (TypeError, ValueError) as e:
        raise MarshallingError(
            f"Cannot construct {table.record.__name__}: {e}", cause=e
        ).with_context(table=table.name) from e


def read_values(
    properties: tuple[Property, ...] | list[Property],
    row: Mapping[str, Any],
    *,
    qualified: bool = False,
    registry: TypeRegistry = DEFAULT_REGISTRY,
) -> dict[Property, Any]:
    """Read selected columns into a ``{Property: value}`` mapping."""
    return {
        prop: registry.read_column(row, prop.qualified_name if qualified else prop.name, prop.db_type)
        for prop in properties
    }


def extract_field(record: Any, prop: Property) -> Any:
    """Value of ``prop``'s field on ``record``."""
    try:
        return getattr(record, prop.name)
    except AttributeError as e:
        raise MarshallingError(
            f"{type(record).__name__} has no field {prop.name!r}", cause=e
        ).with_context(table=prop.table_name, column=prop.name) from e


def check_value(prop: Property, value: Any, *, allow_none: bool = False) -> None:
    """Raise if ``value`` cannot be written to ``prop``'s column."""
    if value is None:
        if allow_none:
            return
        raise InputValidationError(
            f"A value is required for {prop.qualified_name}",
            field=prop.name,
            expected=prop.db_type.value,
        ).with_context(table=prop.table_name, column=prop.name)
    if not prop.db_type.accepts(value):
        raise TypeMismatchError(
            f"{type(value).__name__} value is not valid for "
            f"{prop.qualified_name} ({prop.db_type.value})",
            field=prop.name,
            value=value,
            expected=prop.db_type.value,
        ).with_context(table=prop.table_name, column=prop.name)


def prepare_value(prop: Property, value: Any, *, allow_none: bool = False) -> Any:
    """Sanitize ``value`` and check it against ``prop``; returns the sanitized value."""
    cleaned = sanitize(value)
    check_value(prop, cleaned, allow_none=allow_none)
    return cleaned


def check_record(table: type[Table], record: Any) -> Any:
    """Sanitize a whole record and check every field against its property."""
    if not isinstance(record, table.record):
        raise TypeMismatchError(
            f"Expected a {table.record.__name__} record, got {type(record).__name__}",
            value=record,
            expected=table.record.__name__,
        ).with_context(table=table.name)
    cleaned = sanitize(record)
    for prop in table.properties:
        check_value(prop, extract_field(cleaned, prop), allow_none=not prop.key)
    return cleaned


def replace_field(table: type[Table], record: Any, prop: Property, value: Any) -> Result[Any]:
    """Copy of ``record`` with one field replaced, after a type check.

    Example:
        >>> replace_field(ExampleTable, row, ExampleTable.age, 57).unwrap().age  # doctest: +SKIP
        57
    """
    if not table.owns(prop):
        return Err(
            InputValidationError(
                f"{prop.qualified_name} is not a column of {table.name}", field=prop.name
            ).with_context(table=table.name)
        )
    try:
        check_value(prop, value, allow_none=not prop.key)
    except InputValidationError as e:
        return Err(e)
    return Ok(dataclasses.replace(record, **{prop.name: value}))


__all__ = [
    "populate",
    "read_values",
    "extract_field",
    "check_value",
    "prepare_value",
    "check_record",
    "replace_field",
]
