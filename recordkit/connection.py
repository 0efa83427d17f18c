"""Named database connections: configuration lookup, handle caching, statement execution."""

import logging
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field

from .config import ConnectionConfig, DatabaseConfig
from .dialects import Dialect, get_dialect_for_driver
from .exceptions import DatabaseConnectionError
from .transaction import TransactionManager

logger = logging.getLogger("recordkit")


class WriteResult(BaseModel):
    """Outcome of an INSERT/UPDATE/DELETE statement."""

    rowcount: int = 0
    lastrowid: Any = None
    rows: list[Any] = Field(default_factory=list)
    """Rows produced by a RETURNING clause, if any."""


class Connection:
    """A live driver handle for one named connection, plus its dialect."""

    def __init__(self, name: str, dialect: Dialect, raw: Any):
        self.name = name
        self.dialect = dialect
        self.raw = raw
        self.query_count = 0
        self._transactions = TransactionManager(self)

    def __repr__(self):
        return f"<Connection {self.name!r} ({self.dialect.KIND})>"

    @property
    def kind(self) -> str:
        """Driver kind: 'mysql', 'pgsql' or 'sqlite'."""
        return self.dialect.KIND

    @property
    def in_transaction(self) -> bool:
        return self._transactions.in_transaction

    def _run(self, sql: str, parameters: Optional[Mapping[str, Any]]):
        """Execute one statement and return the open cursor."""
        logger.debug("%s | %s", sql, dict(parameters or {}))
        self.query_count += 1
        cursor = self.raw.cursor()
        try:
            if parameters:
                cursor.execute(sql, dict(parameters))
            else:
                cursor.execute(sql)
        except BaseException:
            cursor.close()
            raise
        return cursor

    def raw_execute(self, sql: str) -> None:
        """Execute a statement with no parameters and no result (BEGIN, SAVEPOINT...)."""
        self._run(sql, None).close()

    def execute(self, sql: str, parameters: Optional[Mapping[str, Any]] = None,
                rows_as_dicts: bool = False) -> list:
        """Run a statement and return its rows.

        Args:
            sql: Full SQL statement, placeholders in the dialect's paramstyle.
            parameters: Mapping of placeholder name to value.
            rows_as_dicts: If True, return list of dicts (column order preserved);
                otherwise list of tuples.
        """
        cursor = self._run(sql, parameters)
        try:
            if cursor.description is None:
                return []
            rows = cursor.fetchall()
            if not rows_as_dicts:
                return [tuple(row) for row in rows]
            names = [column[0] for column in cursor.description]
            return [dict(zip(names, row)) for row in rows]
        finally:
            cursor.close()

    def execute_write(self, sql: str, parameters: Optional[Mapping[str, Any]] = None) -> WriteResult:
        """Run an INSERT/UPDATE/DELETE and report affected rows and generated key."""
        cursor = self._run(sql, parameters)
        try:
            rows = [tuple(row) for row in cursor.fetchall()] if cursor.description else []
            lastrowid = rows[0][0] if rows else getattr(cursor, "lastrowid", None)
            return WriteResult(rowcount=max(cursor.rowcount or 0, 0), lastrowid=lastrowid, rows=rows)
        finally:
            cursor.close()

    def transaction(self):
        """Group statements: BEGIN/COMMIT at the top level, SAVEPOINTs when nested."""
        return self._transactions.transaction()

    def close(self) -> None:
        self.raw.close()


class ConnectionProvider:
    """Resolves connection names against a DatabaseConfig and caches the live handles.

    A handle is built on first use of a name and reused until disconnect().
    """

    def __init__(self, config: DatabaseConfig | Mapping[str, Any]):
        self.config = DatabaseConfig.coerce(config)
        self._connections: dict[str, Connection] = {}

    @property
    def default_name(self) -> str:
        return self.config.default

    @default_name.setter
    def default_name(self, name: str) -> None:
        self.config.default = name

    @property
    def connections(self) -> list[str]:
        """Names of the connections currently open."""
        return list(self._connections)

    def has_connection(self, name: str) -> bool:
        """True if name is configured (whether or not it is connected yet)."""
        return name in self.config.connections

    def add_connection(self, name: str, config: ConnectionConfig | Mapping[str, Any] | str) -> None:
        """Register (or replace) a named connection at runtime."""
        if isinstance(config, str):
            config = ConnectionConfig.from_url(config)
        elif not isinstance(config, ConnectionConfig):
            config = ConnectionConfig.model_validate(dict(config))
        self.disconnect(name)
        self.config.connections[name] = config

    def _get_config(self, name: Optional[str]) -> tuple[str, ConnectionConfig]:
        name = name or self.config.default
        try:
            return name, self.config.connections[name]
        except KeyError as error:
            raise DatabaseConnectionError(f"Database connection '{name}' not configured") from error

    def dialect(self, name: Optional[str] = None) -> Dialect:
        """Dialect of a configured connection (does not connect)."""
        name, config = self._get_config(name)
        try:
            return get_dialect_for_driver(config.driver)
        except ValueError as error:
            raise DatabaseConnectionError(f"Connection '{name}': {error}") from error

    def driver_kind(self, name: Optional[str] = None) -> str:
        """'mysql', 'pgsql' or 'sqlite' for a configured connection."""
        return self.dialect(name).KIND

    def connection(self, name: Optional[str] = None) -> Connection:
        """Return the cached Connection for name (or the default), connecting on first use."""
        name, config = self._get_config(name)
        if name in self._connections:
            return self._connections[name]
        dialect = self.dialect(name)
        try:
            errors = dialect.error_types()
        except ImportError as error:
            raise DatabaseConnectionError(
                f"Driver for {config.driver} is not installed (connection '{name}')"
            ) from error
        try:
            raw = dialect.connect(config)
        except errors + (OSError,) as error:
            raise DatabaseConnectionError(
                f"Failed to connect to {dialect.KIND} database '{name}': {error}"
            ) from error
        logger.info("Connected to %s database '%s'", dialect.KIND, name)
        connection = Connection(name=name, dialect=dialect, raw=raw)
        self._connections[name] = connection
        return connection

    def disconnect(self, name: Optional[str] = None) -> None:
        """Close and forget the handle for name (or the default)."""
        name = name or self.config.default
        connection = self._connections.pop(name, None)
        if connection is not None:
            connection.close()

    def disconnect_all(self) -> None:
        """Close and forget every handle."""
        for name in list(self._connections):
            self.disconnect(name)
