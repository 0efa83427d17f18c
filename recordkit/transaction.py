import logging
import threading
from contextlib import contextmanager

from .exceptions import TransactionError

logger = logging.getLogger("recordkit")


class TransactionManager:

    def __init__(self, connection):
        """
        Initialize the transaction manager.

        Args:
            connection: The recordkit Connection whose statements are grouped
        """
        self._connection = connection
        self._local = threading.local()

    # transaction level

    def _get_transaction_level(self):
        """Get current transaction nesting level"""
        return getattr(self._local, 'transaction_level', 0)

    def _set_transaction_level(self, level):
        """Set current transaction nesting level"""
        self._local.transaction_level = level

    def _increment_transaction_level(self):
        """Increment transaction nesting level"""
        level = self._get_transaction_level()
        self._set_transaction_level(level + 1)
        return level + 1

    def _decrement_transaction_level(self):
        """Decrement transaction nesting level"""
        level = self._get_transaction_level()
        new_level = max(0, level - 1)
        self._set_transaction_level(new_level)
        return new_level

    @property
    def in_transaction(self) -> bool:
        return self._get_transaction_level() > 0

    # actual transaction itself

    @contextmanager
    def transaction(self):
        """
        Context manager for database transactions with SAVEPOINT support.

        Yields:
            Transaction: Transaction object for executing statements
        """
        connection = self._connection

        # Increment nesting level
        new_level = self._increment_transaction_level()

        # Create savepoint name for nested transactions
        savepoint_name = f"savepoint_{new_level}" if new_level > 1 else None

        transaction_obj = Transaction(connection, self, new_level)

        try:
            if savepoint_name:
                logger.debug("SAVEPOINT %s", savepoint_name)
                connection.raw_execute(f"SAVEPOINT {savepoint_name}")
            else:
                logger.debug("BEGIN on %s", connection.name)
                connection.raw_execute("BEGIN")

            with transaction_obj:
                yield transaction_obj

            # Commit or release savepoint based on nesting level
            if savepoint_name:
                logger.debug("RELEASE SAVEPOINT %s", savepoint_name)
                connection.raw_execute(f"RELEASE SAVEPOINT {savepoint_name}")
            else:
                logger.debug("COMMIT on %s", connection.name)
                connection.raw_execute("COMMIT")

        except BaseException:
            # Rollback to savepoint for nested transactions
            if savepoint_name:
                logger.debug("ROLLBACK TO SAVEPOINT %s", savepoint_name)
                connection.raw_execute(f"ROLLBACK TO SAVEPOINT {savepoint_name}")
            else:
                logger.debug("ROLLBACK on %s", connection.name)
                connection.raw_execute("ROLLBACK")
            raise
        finally:
            # Decrement nesting level
            self._decrement_transaction_level()


class Transaction:

    def __init__(self, connection, manager, level):
        self._connection = connection
        self._manager = manager
        self._level = level
        self._active = True

    @property
    def level(self) -> int:
        return self._level

    def _check(self):
        if not self._active:
            raise TransactionError("Transaction is no longer active")

        # Check if we're trying to use a higher-level transaction
        current_level = self._manager._get_transaction_level()
        if current_level > self._level:
            raise TransactionError(
                f"Cannot use transaction level {self._level} from level {current_level}. "
                "Higher-level transactions cannot be accessed from nested transactions."
            )

    def execute(self, sql, parameters=None, rows_as_dicts=False):
        """
        Execute a statement within this transaction.

        Args:
            sql: SQL statement to execute
            parameters: Bound parameters (mapping keyed by placeholder name)
            rows_as_dicts: Return rows as dicts instead of tuples

        Returns:
            Fetched rows (empty for statements that return none)

        Raises:
            TransactionError: If trying to use a higher-level transaction
        """
        self._check()
        return self._connection.execute(sql, parameters, rows_as_dicts=rows_as_dicts)

    def execute_write(self, sql, parameters=None):
        """Execute a write statement within this transaction; see Connection.execute_write."""
        self._check()
        return self._connection.execute_write(sql, parameters)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._active = False
