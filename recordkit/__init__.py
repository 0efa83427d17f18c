"""recordkit: a parameterized SQL query builder and active-record layer for MySQL, PostgreSQL and SQLite."""

from .active_record import ActiveRecord, Page, PaginationMeta
from .audit import AuditPolicy
from .cache import CountCache, FileCache, MemoryCache
from .config import ConnectionConfig, DatabaseConfig
from .connection import Connection, ConnectionProvider
from .database import Database
from .descriptor import EntityDescriptor, RelationDescriptor, belongs_to, belongs_to_many, has_many
from .exceptions import (
    DatabaseConnectionError,
    InvalidCondition,
    InvalidIdentifier,
    PersistenceError,
    RecordkitError,
    TransactionError,
    UnknownRelation,
)
from .hooks import Hooks
from .query import Query
