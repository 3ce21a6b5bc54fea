"""Table bootstrap: create every declared table and run its seed hook.

Safe to call on every start; creation uses ``CREATE TABLE IF NOT EXISTS``.
A table found empty right after creation gets one call to
``Table.on_creation(repository)``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from recordsql.errors import RecordSQLError
from recordsql.logging import get_logger
from recordsql.query import Executor, Statement, run_statement
from recordsql.repository import TableRepository
from recordsql.result import Err, Ok, Result
from recordsql.schema import Table, create_table_sql
from recordsql.types import DEFAULT_REGISTRY, TypeRegistry

logger = get_logger(__name__)


def create_table(table: type[Table], executor: Executor, registry: TypeRegistry = DEFAULT_REGISTRY) -> Result[None]:
    """Issue the CREATE TABLE statement for one table."""
    sql = create_table_sql(table, registry)
    return run_statement(executor, Statement(sql), registry).map(lambda _: None)


def bootstrap_tables(
    tables: Iterable[type[Table]],
    executor: Executor,
    *,
    registry: TypeRegistry = DEFAULT_REGISTRY,
    repository_for: Callable[[type[Table]], TableRepository] | None = None,
) -> Result[list[str]]:
    """Create each table, then seed the ones that are empty.

    Stops at the first table that cannot be created or counted. A failing
    seed hook is logged and does not stop the bootstrap.

    Returns:
        ``Ok`` with the names of the tables whose seed hook ran.
    """
    if repository_for is None:
        def repository_for(table: type[Table]) -> TableRepository:
            return TableRepository(table, executor, registry=registry)

    seeded: list[str] = []
    for table in tables:
        created = create_table(table, executor, registry)
        if isinstance(created, Err):
            logger.error("table_create_failed", table=table.name, error=str(created.error))
            return Err(created.error)

        repository = repository_for(table)
        counted = repository.count_all()
        if isinstance(counted, Err):
            logger.error("table_count_failed", table=table.name, error=str(counted.error))
            return Err(counted.error)

        empty = counted.value == 0
        logger.info("table_ready", table=table.name, rows=counted.value)
        if empty and _seed(table, repository):
            seeded.append(table.name)
    return Ok(seeded)


def _seed(table: type[Table], repository: TableRepository) -> bool:
    try:
        table.on_creation(repository)
    except RecordSQLError as e:
        logger.error("seed_hook_failed", table=table.name, error=str(e))
        return False
    except Exception as e:  # noqa: BLE001
        logger.exception("seed_hook_failed", table=table.name, error=str(e))
        return False
    logger.info("table_seeded", table=table.name)
    return True


__all__ = [
    "bootstrap_tables",
    "create_table",
]
