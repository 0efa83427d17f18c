"""Live table schema: column names and declared types, cached per table."""

import logging
import re
from typing import Optional

from pydantic import BaseModel

from .utils.identifiers import validate_identifier

logger = logging.getLogger("recordkit")

INTEGER_TYPES = frozenset((
    "int", "integer", "tinyint", "smallint", "mediumint", "bigint",
    "int2", "int4", "int8", "serial", "smallserial", "bigserial",
))


class ColumnInfo(BaseModel):
    """One column of a live table."""

    model_config = {"frozen": True}

    name: str
    type: str = ""

    @property
    def is_integer(self) -> bool:
        return any(token in INTEGER_TYPES for token in re.findall(r"[a-z0-9]+", self.type.lower()))

    @property
    def is_json(self) -> bool:
        return "json" in self.type.lower()

    @property
    def is_text(self) -> bool:
        type_ = self.type.lower()
        return "char" in type_ or "text" in type_ or "clob" in type_


class SchemaInspector:
    """Describes tables through the dialect and remembers the answer for the process lifetime."""

    def __init__(self, connections):
        self._connections = connections
        self._columns: dict[tuple[str, str], list[ColumnInfo]] = {}

    def columns(self, table: str, connection: Optional[str] = None) -> list[ColumnInfo]:
        """Columns of table, in table order."""
        validate_identifier(table, "table")
        conn = self._connections.connection(connection)
        key = (conn.name, table)
        if key not in self._columns:
            sql, params = conn.dialect.describe_sql(table)
            rows = conn.execute(sql, params)
            columns = [ColumnInfo(name=name, type=type_) for name, type_ in conn.dialect.describe_rows(rows)]
            if not columns:
                # not cached: the table may be created later
                logger.warning("Table %s has no columns (or does not exist) on %s", table, conn.name)
                return columns
            self._columns[key] = columns
        return self._columns[key]

    def column_names(self, table: str, connection: Optional[str] = None) -> list[str]:
        return [column.name for column in self.columns(table, connection)]

    def column(self, table: str, name: str, connection: Optional[str] = None) -> Optional[ColumnInfo]:
        for column in self.columns(table, connection):
            if column.name == name:
                return column
        return None

    def column_type(self, table: str, name: str, connection: Optional[str] = None) -> Optional[str]:
        """Declared type of a column, or None when the table has no such column."""
        column = self.column(table, name, connection)
        return None if column is None else column.type

    def forget(self, table: Optional[str] = None) -> None:
        """Drop cached descriptions (all, or those of one table), e.g. after a migration."""
        if table is None:
            self._columns.clear()
            return
        for key in [key for key in self._columns if key[1] == table]:
            del self._columns[key]
