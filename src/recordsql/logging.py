"""
Structured logging for recordsql.

All modules log through structlog with snake_case event names and
key/value context, e.g.::

    logger = get_logger(__name__)
    logger.warning("type_mismatch", table="Example", column="age", expected="INTEGER")

Features:
    - JSON output with ECS-compatible field names (``@timestamp``,
      ``log.level``) for log aggregation
    - Colored console output for development (auto-detected on a TTY)
    - Context propagation through ``bind_context`` / ``LogContext``

Examples:
    >>> from recordsql.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> logger.debug("statement_executed", sql="SELECT 1")

Tags:
    logging, structlog, observability, recordsql
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from recordsql.errors import ConfigError


_SERVICE_NAME = "recordsql"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def _elasticsearch_compatible(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Rename fields to their ECS equivalents."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "recordsql",
) -> None:
    """Configure structlog for a process that embeds recordsql.

    ``Database(configure_log=True)`` calls this with
    ``DatabaseSettings.log_level`` and ``log_json``. Events are printed to
    stderr; JSON is chosen automatically when stderr is not a terminal.
    The MySQL connector logs through the stdlib and is capped at WARNING
    unless ``level`` is DEBUG.
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service
    threshold = logging.getLevelName(level.upper())
    if not isinstance(threshold, int):
        raise ConfigError(f"Unknown log level {level!r}")

    if json_format is None:
        json_format = not sys.stderr.isatty()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_service_metadata,
    ]
    if json_format:
        processors += [
            _elasticsearch_compatible,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=False,
    )
    connector_level = threshold if threshold <= logging.DEBUG else max(threshold, logging.WARNING)
    logging.getLogger("mysql.connector").setLevel(connector_level)


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger; ``name`` is carried in the ``logger`` field."""
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(logger=name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(table="Example"):
            repo.upsert(record)
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
