"""Database dialects: one class per engine (SQLite, MySQL/MariaDB, PostgreSQL)."""

from .base import Dialect
from .sqlite import SqliteDialect
from .mysql import MysqlDialect
from .postgres import PostgresDialect

_DIALECT_CLASSES: tuple[type[Dialect], ...] = (
    SqliteDialect,
    MysqlDialect,
    PostgresDialect,
)


def get_dialect_for_driver(driver: str) -> Dialect:
    """Return a Dialect instance for the given driver name or alias (e.g. 'mariadb', 'postgres')."""
    normalized = (driver or "").split("+")[0].lower()
    for dialect_cls in _DIALECT_CLASSES:
        if normalized in dialect_cls.SUPPORTED_DRIVERS:
            return dialect_cls()
    raise ValueError(f"Unsupported database driver: {driver}")


__all__ = [
    "Dialect",
    "SqliteDialect",
    "MysqlDialect",
    "PostgresDialect",
    "get_dialect_for_driver",
]
