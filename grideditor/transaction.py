"""Thread-local transactions with savepoints.

The outermost :meth:`TransactionManager.transaction` of a thread opens a
transaction and commits it; nested calls run inside a savepoint, so a failing
inner unit only undoes its own statements unless the exception reaches the
outermost level.
"""

import logging
import threading
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class TransactionError(Exception):
    """A transaction was used after it ended, or from a deeper nesting level"""
    pass


class TransactionManager:

    def __init__(self, connection_factory: callable):
        """
        Args:
            connection_factory: A callable that returns a grideditor.connection.Connection
        """
        self._connection_factory = connection_factory
        self._local = threading.local()

    def _get_connection(self):
        """Connection of the current thread, opened on first use"""
        if not hasattr(self._local, 'connection'):
            self._local.connection = self._connection_factory()
        return self._local.connection

    def close(self):
        """Close the current thread's connection, if one was opened"""
        connection = getattr(self._local, 'connection', None)
        if connection is not None:
            connection.close()
            del self._local.connection

    @property
    def level(self) -> int:
        """Nesting depth of the current thread (0 outside any transaction)"""
        return getattr(self._local, 'level', 0)

    @level.setter
    def level(self, value: int):
        self._local.level = max(0, value)

    @contextmanager
    def transaction(self):
        """
        One unit of work.

        The outermost unit begins a transaction, commits it on success and
        rolls it back on any exception. A nested unit works in the savepoint
        ``savepoint_<level>``, rolled back to when the unit raises. The
        exception is always re-raised.

        Yields:
            Transaction: executes statements at this level
        """
        connection = self._get_connection()
        dialect = connection.dialect
        self.level += 1
        level = self.level
        savepoint = f"savepoint_{level}" if level > 1 else None
        transaction = Transaction(connection, self, level)
        try:
            if savepoint:
                connection.execute(dialect.savepoint_sql(savepoint))
            else:
                connection.begin()
            yield transaction
            if savepoint:
                release = dialect.release_savepoint_sql(savepoint)
                if release:
                    connection.execute(release)
            else:
                logger.debug("COMMIT")
                connection.commit()
        except Exception:
            if savepoint:
                logger.debug("Rolling back to %s", savepoint)
                connection.execute(dialect.rollback_to_savepoint_sql(savepoint))
            else:
                logger.debug("ROLLBACK")
                connection.rollback()
            raise
        finally:
            transaction._active = False
            self.level -= 1


class Transaction:

    def __init__(self, connection, manager, level):
        self._connection = connection
        self._manager = manager
        self._level = level
        self._active = True

    @property
    def connection(self):
        return self._connection

    def execute(self, sql, parameters=()):
        """
        Execute a statement within this transaction.

        Returns:
            The driver cursor

        Raises:
            TransactionError: If the transaction ended, or a nested one is open
        """
        if not self._active:
            raise TransactionError("Transaction is no longer active")
        if self._manager.level > self._level:
            raise TransactionError(
                f"Cannot use transaction level {self._level} from level {self._manager.level}: "
                "finish the nested transaction first"
            )
        logger.debug("%s -- %r", sql, tuple(parameters))
        return self._connection.execute(sql, parameters)
