"""Example table declarations.

``ExampleTable`` seeds one row on first creation; ``LicenseTable`` shows a
LONG column and a unique value column.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from recordsql.repository import TableRepository
from recordsql.result import Result
from recordsql.schema import Order, Property, Table
from recordsql.types import DatabaseType


@dataclass(frozen=True)
class Example:
    uID: uuid.UUID
    preName: str
    lastName: str
    email: str
    age: int


class ExampleTable(Table, record=Example):
    uID = Property(DatabaseType.UUID, key=True)
    preName = Property(DatabaseType.STRING)
    lastName = Property(DatabaseType.STRING)
    email = Property(DatabaseType.STRING)
    age = Property(DatabaseType.INTEGER)

    @classmethod
    def on_creation(cls, repository: TableRepository) -> None:
        repository.upsert(Example(uuid.uuid4(), "Junior", "Jacki", "duck@juniorjacki.de", 17)).unwrap()


@dataclass(frozen=True)
class License:
    uID: uuid.UUID
    value: str
    creationTimestamp: int


class LicenseTable(Table, record=License):
    uID = Property(DatabaseType.UUID, key=True)
    value = Property(DatabaseType.STRING, unique=True, length=64)
    creationTimestamp = Property(DatabaseType.LONG)


def latest_record(repository: TableRepository) -> Result:
    """Row with the highest ``uID``."""
    return repository.get_by_order(repository.table.column("uID"), Order.DESCENDING)


__all__ = [
    "Example",
    "ExampleTable",
    "License",
    "LicenseTable",
    "latest_record",
]
