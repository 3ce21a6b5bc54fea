"""Driver registry and factory.

Maps backend names to driver classes; ``get_driver()`` builds a driver
from :class:`~recordsql.settings.DatabaseSettings`.

Tags:
    recordsql, database, registry, factory
"""

from __future__ import annotations

from typing import Any

from recordsql.errors import ConfigError
from recordsql.settings import DatabaseSettings

from .base import Driver
from .mysql import MySQLDriver
from .sqlite import SQLiteDriver


class DriverRegistry:
    """
    Registry for driver classes.

    Pre-registered drivers:
    - ``mysql``: :class:`MySQLDriver`
    - ``sqlite``: :class:`SQLiteDriver`
    """

    def __init__(self):
        self._factories: dict[str, type[Driver]] = {}
        self._register_defaults()

    def _register_defaults(self) -> None:
        self._factories["mysql"] = MySQLDriver
        self._factories["sqlite"] = SQLiteDriver

    def register(self, name: str, driver_class: type[Driver]) -> None:
        """Register a driver class."""
        self._factories[name.lower()] = driver_class

    def create(self, name: str, **kwargs: Any) -> Driver:
        """Create a driver by name."""
        name = name.lower()
        if name not in self._factories:
            raise ConfigError(f"Unknown database driver: {name}")
        return self._factories[name](**kwargs)

    def from_settings(self, settings: DatabaseSettings) -> Driver:
        name = settings.backend.lower()
        if name not in self._factories:
            raise ConfigError(f"Unknown database driver: {name}")
        return self._factories[name].from_settings(settings)

    def list_drivers(self) -> list[str]:
        return sorted(self._factories.keys())


# Global registry
driver_registry = DriverRegistry()


def get_driver(settings: DatabaseSettings | None = None, **kwargs: Any) -> Driver:
    """
    Get a driver for the configured backend.

    Usage:
        driver = get_driver(DatabaseSettings(backend="sqlite"))
        driver = get_driver(backend="sqlite", path="data.db")
    """
    if settings is not None:
        return driver_registry.from_settings(settings)
    backend = kwargs.pop("backend", "mysql")
    return driver_registry.create(backend, **kwargs)


__all__ = [
    "DriverRegistry",
    "driver_registry",
    "get_driver",
]
