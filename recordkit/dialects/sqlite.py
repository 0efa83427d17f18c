"""SQLite dialect."""

import logging
from typing import ClassVar

from .base import Dialect

logger = logging.getLogger(__name__)


class SqliteDialect(Dialect):
    """Dialect for SQLite (driver sqlite)."""

    KIND: ClassVar[str] = "sqlite"
    SUPPORTED_DRIVERS: ClassVar[tuple[str, ...]] = ("sqlite",)

    def connect(self, config):
        import sqlite3
        path = config.database or ":memory:"
        logger.debug("Connecting to SQLite database %s", path)
        # isolation_level=None: autocommit; transactions are explicit BEGIN/COMMIT
        conn = sqlite3.connect(path, isolation_level=None, **config.options)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def error_types(self):
        import sqlite3
        return (sqlite3.Error,)

    def placeholder(self, name: str) -> str:
        return f":{name}"

    def limit_clause(self, limit, offset):
        # OFFSET is only valid after a LIMIT; -1 means no limit
        if offset is not None and limit is None:
            limit = -1
        return super().limit_clause(limit, offset)

    def autoincrement_clause(self) -> str:
        return "INTEGER PRIMARY KEY AUTOINCREMENT"

    def describe_sql(self, table: str):
        return f"SELECT name, type FROM pragma_table_info('{table}')", {}
