"""Exception types raised by recordkit."""


class RecordkitError(Exception):
    """Base class for every error raised by recordkit."""


class DatabaseConnectionError(RecordkitError):
    """A named connection is not configured, or the driver refused to connect."""


class InvalidIdentifier(RecordkitError, ValueError):
    """A table, column or relation name is not safe to interpolate into SQL."""


class InvalidCondition(RecordkitError, ValueError):
    """A condition value has a shape or operator the compiler does not support."""


class UnknownRelation(RecordkitError, LookupError):
    """Eager loading asked for a relation the entity does not declare."""


class TransactionError(RecordkitError):
    """Custom exception for transaction-related errors"""


class PersistenceError(RecordkitError):
    """A driver error happened while writing rows.

    The driver exception is kept in ``original`` (and chained as ``__cause__``)
    so callers can inspect constraint names, error codes, etc.
    """

    def __init__(self, message: str, original: BaseException | None = None):
        super().__init__(message)
        self.original = original
