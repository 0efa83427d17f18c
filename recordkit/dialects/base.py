"""Base Dialect type: subclasses implement connect() and the SQL fragments that differ per engine."""

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from pydantic import BaseModel


class Dialect(BaseModel, ABC):
    """Per-engine capability object, selected once per connection.

    Everything that differs between MySQL, PostgreSQL and SQLite lives here
    (placeholder syntax, LIKE flavour, autoincrement syntax, introspection),
    so call sites never branch on the driver kind themselves.
    """

    model_config = {"arbitrary_types_allowed": True}

    KIND: ClassVar[str] = ""
    """Normalized driver kind: 'mysql', 'pgsql' or 'sqlite'."""

    SUPPORTED_DRIVERS: ClassVar[tuple[str, ...]] = ()
    """Driver names (and aliases) this dialect handles."""

    supports_returning: ClassVar[bool] = False
    """True when INSERT ... RETURNING is how generated keys are read back."""

    @abstractmethod
    def connect(self, config) -> Any:
        """Return a new raw driver connection, in autocommit mode, for a ConnectionConfig."""
        ...  # pylint: disable=unnecessary-ellipsis

    @abstractmethod
    def error_types(self) -> tuple[type[BaseException], ...]:
        """Driver exception classes (DB-API ``Error`` and friends)."""
        ...  # pylint: disable=unnecessary-ellipsis

    def placeholder(self, name: str) -> str:
        """Named placeholder for a bound parameter, in the driver's paramstyle."""
        return f"%({name})s"

    def like_operator(self, case_insensitive: bool = False) -> str:
        """Operator used for pattern matching."""
        return "LIKE"

    @abstractmethod
    def autoincrement_clause(self) -> str:
        """Column definition for an auto-incrementing integer primary key."""
        ...  # pylint: disable=unnecessary-ellipsis

    @abstractmethod
    def describe_sql(self, table: str) -> tuple[str, dict[str, Any]]:
        """SQL (and bindings) listing a table's columns as (name, declared type) rows, in order."""
        ...  # pylint: disable=unnecessary-ellipsis

    def describe_rows(self, rows: list[tuple]) -> list[tuple[str, str]]:
        """Turn the rows returned by describe_sql() into (name, type) pairs."""
        return [(row[0], str(row[1] or "")) for row in rows]

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        """Trailing LIMIT/OFFSET (with a leading space), or an empty string."""
        sql = ""
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        if offset is not None:
            sql += f" OFFSET {int(offset)}"
        return sql

    def default_values_clause(self) -> str:
        """What follows ``INSERT INTO table`` when no column is given."""
        return "DEFAULT VALUES"

    def returning_clause(self, column: str) -> str:
        """Suffix appended to INSERT statements to read back a generated key."""
        return f" RETURNING {column}" if self.supports_returning else ""
