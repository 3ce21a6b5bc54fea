"""
Type registry: logical value types, their wire conversions and DDL.

Each :class:`DatabaseType` names one supported scalar domain. A
:class:`TypeCodec` owns the four behaviors of that domain, and all four
agree on one underlying representation:

==============  ================  ===============  ==================
DatabaseType    literal           driver value     DDL
==============  ================  ===============  ==================
STRING          ``'it''s'``       ``str``          ``VARCHAR(255)``
UUID (binary)   ``X'00ff…'``      16 ``bytes``     ``BINARY(16)``
UUID (text)     ``'1b4e…'``       36-char ``str``  ``VARCHAR(36)``
INTEGER         ``17``            ``int``          ``INT``
LONG            ``17``            ``int``          ``BIGINT``
BYTE_ARRAY      ``X'00ff'``       ``bytes``        ``BINARY(64)``
DOUBLE          ``1.5``           ``float``        ``DOUBLE``
BOOLEAN         ``TRUE``          ``bool``         ``BOOLEAN``
==============  ================  ===============  ==================

:func:`resolve` maps any Python type to a DatabaseType and is total: a
type it does not recognise resolves to ``STRING``. That fallback is the
documented behavior for rendering unknown values, never a silent guess
about a declared column (columns always carry their own DatabaseType).

Examples:
    >>> import uuid
    >>> registry = TypeRegistry()
    >>> registry.literal("it's")
    "'it''s'"
    >>> registry.ddl_type(DatabaseType.STRING, 32)
    'VARCHAR(32)'
    >>> u = uuid.UUID("12345678-1234-5678-1234-567812345678")
    >>> registry.read_column({"uID": registry.bind(u, DatabaseType.UUID)}, "uID", DatabaseType.UUID) == u
    True

Tags:
    types, codecs, ddl, marshalling, recordsql

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from recordsql.errors import ConfigError, MarshallingError

INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1


class DatabaseType(str, Enum):
    """Closed set of supported column domains."""

    STRING = "STRING"
    UUID = "UUID"
    INTEGER = "INTEGER"
    LONG = "LONG"
    BYTE_ARRAY = "BYTE_ARRAY"
    DOUBLE = "DOUBLE"
    BOOLEAN = "BOOLEAN"

    @property
    def python_type(self) -> type:
        return _PYTHON_TYPES[self]

    def accepts(self, value: Any) -> bool:
        """Whether ``value`` may be written to a column of this type.

        ``bool`` is never accepted as an integer, and integers must fit the
        column's width.
        """
        return _ACCEPTS[self](value)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


_ACCEPTS: dict[DatabaseType, Callable[[Any], bool]] = {
    DatabaseType.STRING: lambda v: isinstance(v, str),
    DatabaseType.UUID: lambda v: isinstance(v, uuid.UUID),
    DatabaseType.INTEGER: lambda v: _is_int(v) and INT32_MIN <= v <= INT32_MAX,
    DatabaseType.LONG: lambda v: _is_int(v) and INT64_MIN <= v <= INT64_MAX,
    DatabaseType.BYTE_ARRAY: lambda v: isinstance(v, (bytes, bytearray, memoryview)),
    DatabaseType.DOUBLE: lambda v: isinstance(v, float),
    DatabaseType.BOOLEAN: lambda v: isinstance(v, bool),
}


_PYTHON_TYPES: dict[DatabaseType, type] = {
    DatabaseType.STRING: str,
    DatabaseType.UUID: uuid.UUID,
    DatabaseType.INTEGER: int,
    DatabaseType.LONG: int,
    DatabaseType.BYTE_ARRAY: bytes,
    DatabaseType.DOUBLE: float,
    DatabaseType.BOOLEAN: bool,
}

_RESOLUTION: dict[type, DatabaseType] = {
    str: DatabaseType.STRING,
    uuid.UUID: DatabaseType.UUID,
    int: DatabaseType.INTEGER,
    bytes: DatabaseType.BYTE_ARRAY,
    bytearray: DatabaseType.BYTE_ARRAY,
    memoryview: DatabaseType.BYTE_ARRAY,
    float: DatabaseType.DOUBLE,
    bool: DatabaseType.BOOLEAN,
}


def resolve(value_type: type) -> DatabaseType:
    """Resolve a Python type to its DatabaseType, falling back to STRING.

    Subclasses resolve like their nearest registered base (``bool`` is
    registered itself, so it never resolves as an integer).

    >>> resolve(bool), resolve(int), resolve(dict)
    (<DatabaseType.BOOLEAN: 'BOOLEAN'>, <DatabaseType.INTEGER: 'INTEGER'>, <DatabaseType.STRING: 'STRING'>)
    """
    if value_type in _RESOLUTION:
        return _RESOLUTION[value_type]
    for base in getattr(value_type, "__mro__", ())[1:]:
        if base in _RESOLUTION:
            return _RESOLUTION[base]
    return DatabaseType.STRING


# =============================================================================
# Codecs
# =============================================================================


def _hex_literal(data: bytes) -> str:
    return f"X'{bytes(data).hex()}'"


def _quoted(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


class TypeCodec:
    """Literal rendering, row reading, parameter binding and DDL for one type.

    ``None`` is handled by :class:`TypeRegistry` before a codec is
    consulted, so codec methods only see real values.
    """

    db_type: DatabaseType

    def literal(self, value: Any) -> str:
        raise NotImplementedError

    def from_driver(self, raw: Any) -> Any:
        raise NotImplementedError

    def bind(self, value: Any) -> Any:
        return value

    def ddl(self, length: int) -> str:
        raise NotImplementedError


class StringCodec(TypeCodec):
    db_type = DatabaseType.STRING

    def literal(self, value: Any) -> str:
        return _quoted(str(value))

    def from_driver(self, raw: Any) -> str:
        if isinstance(raw, (bytes, bytearray)):
            return bytes(raw).decode("utf-8")
        return str(raw)

    def bind(self, value: Any) -> str:
        return str(value)

    def ddl(self, length: int) -> str:
        return f"VARCHAR({length or 255})"


class BinaryUUIDCodec(TypeCodec):
    """UUIDs packed big-endian into 16 bytes (most significant half first)."""

    db_type = DatabaseType.UUID

    def literal(self, value: uuid.UUID) -> str:
        return _hex_literal(value.bytes)

    def from_driver(self, raw: Any) -> uuid.UUID:
        if isinstance(raw, uuid.UUID):
            return raw
        if isinstance(raw, str):
            return uuid.UUID(raw)
        data = bytes(raw)
        if len(data) != 16:
            raise ValueError(f"expected 16 bytes for a UUID, got {len(data)}")
        return uuid.UUID(bytes=data)

    def bind(self, value: uuid.UUID) -> bytes:
        return value.bytes

    def ddl(self, length: int) -> str:  # noqa: ARG002
        return "BINARY(16)"


class TextUUIDCodec(TypeCodec):
    """UUIDs stored in their canonical 36-character form."""

    db_type = DatabaseType.UUID

    def literal(self, value: uuid.UUID) -> str:
        return _quoted(str(value))

    def from_driver(self, raw: Any) -> uuid.UUID:
        if isinstance(raw, uuid.UUID):
            return raw
        if isinstance(raw, (bytes, bytearray)):
            raw = bytes(raw).decode("ascii")
        return uuid.UUID(str(raw))

    def bind(self, value: uuid.UUID) -> str:
        return str(value)

    def ddl(self, length: int) -> str:  # noqa: ARG002
        return "VARCHAR(36)"


class IntegerCodec(TypeCodec):
    db_type = DatabaseType.INTEGER

    def literal(self, value: Any) -> str:
        return str(int(value))

    def from_driver(self, raw: Any) -> int:
        return int(raw)

    def bind(self, value: Any) -> int:
        return int(value)

    def ddl(self, length: int) -> str:  # noqa: ARG002
        return "INT"


class LongCodec(IntegerCodec):
    db_type = DatabaseType.LONG

    def ddl(self, length: int) -> str:  # noqa: ARG002
        return "BIGINT"


class ByteArrayCodec(TypeCodec):
    db_type = DatabaseType.BYTE_ARRAY

    def literal(self, value: Any) -> str:
        return _hex_literal(value)

    def from_driver(self, raw: Any) -> bytes:
        if isinstance(raw, str):
            raise ValueError("expected binary data, got text")
        return bytes(raw)

    def bind(self, value: Any) -> bytes:
        return bytes(value)

    def ddl(self, length: int) -> str:
        return f"BINARY({length or 64})"


class DoubleCodec(TypeCodec):
    db_type = DatabaseType.DOUBLE

    def literal(self, value: Any) -> str:
        return repr(float(value))

    def from_driver(self, raw: Any) -> float:
        return float(raw)

    def bind(self, value: Any) -> float:
        return float(value)

    def ddl(self, length: int) -> str:  # noqa: ARG002
        return "DOUBLE"


class BooleanCodec(TypeCodec):
    db_type = DatabaseType.BOOLEAN

    def literal(self, value: Any) -> str:
        return "TRUE" if value else "FALSE"

    def from_driver(self, raw: Any) -> bool:
        # MySQL BOOLEAN is TINYINT(1); SQLite stores 0/1
        if isinstance(raw, (bytes, bytearray)):
            return any(raw)
        return bool(int(raw))

    def bind(self, value: Any) -> bool:
        return bool(value)

    def ddl(self, length: int) -> str:  # noqa: ARG002
        return "BOOLEAN"


UUID_STORAGE_CODECS: dict[str, type[TypeCodec]] = {
    "binary": BinaryUUIDCodec,
    "text": TextUUIDCodec,
}


class TypeRegistry:
    """
    Binds every DatabaseType to its codec.

    The only configurable choice is how UUIDs are stored
    (``uuid_storage="binary"`` or ``"text"``); every other type has
    exactly one representation.

    Parameters:
        uuid_storage: ``"binary"`` (``BINARY(16)``, default) or ``"text"``
                      (``VARCHAR(36)``).
    """

    def __init__(self, uuid_storage: str = "binary") -> None:
        if uuid_storage not in UUID_STORAGE_CODECS:
            raise ConfigError(
                f"Unknown uuid_storage {uuid_storage!r}. "
                f"Supported: {sorted(UUID_STORAGE_CODECS)}"
            )
        self.uuid_storage = uuid_storage
        self._codecs: dict[DatabaseType, TypeCodec] = {
            DatabaseType.STRING: StringCodec(),
            DatabaseType.UUID: UUID_STORAGE_CODECS[uuid_storage](),
            DatabaseType.INTEGER: IntegerCodec(),
            DatabaseType.LONG: LongCodec(),
            DatabaseType.BYTE_ARRAY: ByteArrayCodec(),
            DatabaseType.DOUBLE: DoubleCodec(),
            DatabaseType.BOOLEAN: BooleanCodec(),
        }

    def codec(self, db_type: DatabaseType) -> TypeCodec:
        return self._codecs[db_type]

    @staticmethod
    def resolve(value_type: type) -> DatabaseType:
        return resolve(value_type)

    def literal(self, value: Any, db_type: DatabaseType | None = None) -> str:
        """Render ``value`` as a SQL-safe literal.

        Without ``db_type`` the value's own Python type is resolved.
        """
        if value is None:
            return "NULL"
        return self.codec(db_type or resolve(type(value))).literal(value)

    def append(self, buffer: list[str], value: Any, db_type: DatabaseType | None = None) -> None:
        """Append the literal for ``value`` to a list of SQL fragments."""
        buffer.append(self.literal(value, db_type))

    def bind(self, value: Any, db_type: DatabaseType | None = None) -> Any:
        """Convert ``value`` to the object handed to the driver as a parameter."""
        if value is None:
            return None
        return self.codec(db_type or resolve(type(value))).bind(value)

    def read_column(self, row: Mapping[str, Any], column: str, db_type: DatabaseType) -> Any:
        """Read and convert one column from a driver row.

        Raises:
            MarshallingError: The column is missing or its value cannot be
                converted to ``db_type``.
        """
        try:
            raw = row[column]
        except KeyError as e:
            raise MarshallingError(
                f"Column {column!r} missing from result row", cause=e
            ).with_context(column=column) from e
        if raw is None:
            return None
        try:
            return self.codec(db_type).from_driver(raw)
        except (TypeError, ValueError) as e:
            raise MarshallingError(
                f"Column {column!r} cannot be read as {db_type.value}: {e}", cause=e
            ).with_context(column=column) from e

    def ddl_type(self, db_type: DatabaseType, length: int = 0) -> str:
        """DDL column type; ``length=0`` selects the type's default length."""
        return self.codec(db_type).ddl(length)


DEFAULT_REGISTRY = TypeRegistry()


__all__ = [
    "DatabaseType",
    "resolve",
    "TypeCodec",
    "StringCodec",
    "BinaryUUIDCodec",
    "TextUUIDCodec",
    "IntegerCodec",
    "LongCodec",
    "ByteArrayCodec",
    "DoubleCodec",
    "BooleanCodec",
    "TypeRegistry",
    "DEFAULT_REGISTRY",
]
