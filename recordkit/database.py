"""The service container handed to every ActiveRecord."""

import datetime
import logging
from typing import Any, Callable, Mapping, Optional

from .active_record import ActiveRecord
from .cache import CountCache, MemoryCache
from .config import DatabaseConfig
from .connection import Connection, ConnectionProvider
from .descriptor import EntityDescriptor
from .hooks import Hooks
from .query import Query
from .schema import SchemaInspector

logger = logging.getLogger("recordkit")


class Database:
    """Connections, schema cache, count cache and the current-actor accessor, wired together.

    Args:
        config: A DatabaseConfig, or a mapping validated into one.
        cache: Row-count cache; defaults to a new MemoryCache.
        current_user_id: Zero-argument callable returning the acting user's id (or None),
            used to fill created_by/updated_by columns.
        clock: Returns the current datetime for audit timestamps; defaults to datetime.datetime.now.
    """

    def __init__(
        self,
        config: DatabaseConfig | Mapping[str, Any],
        cache: Optional[CountCache] = None,
        current_user_id: Optional[Callable[[], Optional[int]]] = None,
        clock: Optional[Callable[[], datetime.datetime]] = None,
    ):
        self.connections = ConnectionProvider(config)
        self.schema = SchemaInspector(self.connections)
        self.count_cache = cache if cache is not None else MemoryCache()
        self._current_user_id = current_user_id
        self._clock = clock or datetime.datetime.now

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **kwargs) -> "Database":
        """Database configured from DATABASE_URL / DB_* environment variables."""
        return cls(DatabaseConfig.from_env(environ), **kwargs)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def current_user_id(self) -> Optional[int]:
        if self._current_user_id is None:
            return None
        return self._current_user_id()

    def now(self) -> datetime.datetime:
        return self._clock()

    def connection(self, name: Optional[str] = None) -> Connection:
        return self.connections.connection(name)

    def query(self, name: Optional[str] = None) -> Query:
        """A fresh Query on the named (or default) connection."""
        return Query.find(self.connection(name))

    def records(self, descriptor: EntityDescriptor, hooks: Optional[Hooks] = None) -> ActiveRecord:
        """An ActiveRecord for descriptor; create one per request or unit of work."""
        return ActiveRecord(descriptor, self, hooks)

    def transaction(self, name: Optional[str] = None):
        """Context manager grouping statements on one connection (nested calls use savepoints)."""
        return self.connection(name).transaction()

    def close(self) -> None:
        """Disconnect every open connection."""
        self.connections.disconnect_all()
        logger.debug("Closed all connections")
