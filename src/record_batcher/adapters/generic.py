"""
Generic adapter for Record Batcher.

This module provides a generic adapter that works with any database that
follows the Python DB-API 2.0 specification.
"""
import logging
from typing import Any, Callable, Optional, Sequence

from record_batcher.adapters.base import SQLAdapter
from record_batcher.exceptions import ExecutionError
from record_batcher.recordset import DBAPIRowSource, LazyRecordCursor

logger = logging.getLogger(__name__)


class GenericAdapter(SQLAdapter):
    """
    Generic adapter for connecting Record Batcher to any DB-API compatible database.

    Example:
        >>> import sqlite3
        >>> from record_batcher.adapters.generic import GenericAdapter
        >>>
        >>> conn = sqlite3.connect(":memory:")
        >>> conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")
        >>>
        >>> adapter = GenericAdapter(connection=conn, max_query_size=100_000)
        >>> adapter.insert_records_via_batch("users", [{"name": "Alice"}, {"name": "Bob"}])
        >>>
        >>> with adapter.get_recordset("SELECT id, name FROM users") as rs:
        ...     for user in rs:
        ...         print(user["name"])
    """

    def __init__(
        self,
        connection: Any,
        create_cursor_fn: Optional[Callable] = None,
        max_query_size: int = 500_000,
        auto_commit: bool = True,
        placeholder: str = "?",
        owns_connection: bool = False
    ):
        """
        Initialize a generic DB-API adapter.

        Args:
            connection: A DB-API compatible connection object
            create_cursor_fn: Optional function to create a cursor (defaults to connection.cursor())
            max_query_size: Maximum query size in bytes
            auto_commit: Whether to commit after each statement outside transactions
            placeholder: Parameter marker of the driver's paramstyle
            owns_connection: Whether close() also closes the connection
        """
        self.connection = connection
        self.create_cursor_fn = create_cursor_fn or (lambda conn: conn.cursor())
        self.max_query_size = max_query_size
        self.auto_commit = auto_commit
        self.placeholder = placeholder
        self.owns_connection = owns_connection
        self._cursor = None
        self._in_transaction = False

        logger.debug(f"Initialized GenericAdapter with max_query_size={max_query_size}")

    def _get_cursor(self) -> Any:
        """Get a cursor, creating it if necessary."""
        if self._cursor is None:
            self._cursor = self.create_cursor_fn(self.connection)
        return self._cursor

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        """
        Execute a SQL statement using the DB-API connection.

        Args:
            sql: The SQL statement to execute
            params: Positional parameters for the statement

        Returns:
            Number of affected rows reported by the driver

        Raises:
            ExecutionError: If the database rejects the statement
        """
        cursor = self._get_cursor()

        try:
            logger.debug(f"Executing SQL: {sql[:200]}")
            if params:
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)

            if self.auto_commit and not self._in_transaction:
                self.connection.commit()

            return cursor.rowcount
        except Exception as e:
            logger.error(f"Error executing SQL: {str(e)}")

            if self.auto_commit and not self._in_transaction:
                try:
                    self.connection.rollback()
                except Exception as rollback_error:
                    logger.warning(f"Rollback after failed statement also failed: {rollback_error}")

            raise ExecutionError(f"Failed to execute SQL: {str(e)}") from e

    def get_recordset(self, sql: str, params: Optional[Sequence[Any]] = None) -> LazyRecordCursor:
        """
        Run a query on a fresh cursor and stream its rows.

        Args:
            sql: SELECT query to run
            params: Positional parameters for the query

        Returns:
            Recordset owning the new cursor

        Raises:
            ExecutionError: If the database rejects the query
        """
        cursor = self.create_cursor_fn(self.connection)
        try:
            if params:
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
        except Exception as e:
            cursor.close()
            logger.error(f"Error running query: {str(e)}")
            raise ExecutionError(f"Failed to run query: {str(e)}") from e

        return LazyRecordCursor(DBAPIRowSource(cursor))

    def get_max_query_size(self) -> int:
        """
        Get the maximum query size in bytes.

        Returns:
            Maximum query size in bytes
        """
        return self.max_query_size

    def close(self) -> None:
        """Close the cursor, and the connection if the adapter owns it."""
        if self._cursor is not None:
            self._cursor.close()
            self._cursor = None

        if self.owns_connection:
            self.connection.close()

        logger.debug("Closed DB cursor")

    def begin_transaction(self) -> None:
        """Begin a database transaction."""
        if hasattr(self.connection, 'begin'):
            self.connection.begin()
        self._in_transaction = True

    def commit_transaction(self) -> None:
        """Commit the current database transaction."""
        self.connection.commit()
        self._in_transaction = False

    def rollback_transaction(self) -> None:
        """Rollback the current database transaction."""
        self.connection.rollback()
        self._in_transaction = False
