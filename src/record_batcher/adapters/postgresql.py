"""
PostgreSQL adapter for Record Batcher.

This module provides a specialized adapter for PostgreSQL databases using
psycopg2. Recordsets are read through server-side (named) cursors so large
results stream instead of being loaded into client memory.
"""
import itertools
import logging
from typing import Any, Dict, Optional, Sequence

import psycopg2
from psycopg2.extensions import (
    ISOLATION_LEVEL_READ_COMMITTED,
    ISOLATION_LEVEL_REPEATABLE_READ,
    ISOLATION_LEVEL_SERIALIZABLE,
)

from record_batcher.adapters.base import SQLAdapter
from record_batcher.exceptions import ExecutionError
from record_batcher.recordset import DBAPIRowSource, LazyRecordCursor

logger = logging.getLogger(__name__)

ISOLATION_LEVELS = {
    "read_committed": ISOLATION_LEVEL_READ_COMMITTED,
    "repeatable_read": ISOLATION_LEVEL_REPEATABLE_READ,
    "serializable": ISOLATION_LEVEL_SERIALIZABLE,
}

_cursor_ids = itertools.count(1)


class PostgreSQLAdapter(SQLAdapter):
    """
    PostgreSQL adapter for Record Batcher.

    Attributes:
        connection: PostgreSQL database connection
        cursor: Cursor used for executing statements
        max_query_size: Maximum query size in bytes
        isolation_level: Transaction isolation level
        itersize: Rows fetched per round trip by recordsets
    """

    placeholder = "%s"

    def __init__(
        self,
        connection_params: Optional[Dict[str, Any]] = None,
        connection: Optional[Any] = None,
        max_query_size: int = 500_000_000,  # 500MB is a practical limit for PostgreSQL
        isolation_level: str = "read_committed",
        itersize: int = 2000,
        application_name: Optional[str] = "record_batcher"
    ):
        """
        Initialize the PostgreSQL adapter.

        Args:
            connection_params: Dictionary of psycopg2 connection parameters
            connection: Existing PostgreSQL connection to use (optional)
            max_query_size: Maximum query size in bytes
            isolation_level: Transaction isolation level
                (read_committed, repeatable_read, serializable)
            itersize: Number of rows a recordset fetches per round trip
            application_name: Application name to set in PostgreSQL (for monitoring)

        Raises:
            ValueError: If both connection and connection_params are None,
                or the isolation level is unknown
            ExecutionError: If connection to PostgreSQL fails
        """
        if isolation_level not in ISOLATION_LEVELS:
            raise ValueError(
                f"Invalid isolation level: {isolation_level}. "
                f"Valid values are: {', '.join(ISOLATION_LEVELS.keys())}"
            )
        if connection is None and connection_params is None:
            raise ValueError("Either connection or connection_params must be provided")

        self.max_query_size = max_query_size
        self.isolation_level = ISOLATION_LEVELS[isolation_level]
        self.itersize = itersize

        if connection is None:
            conn_params = dict(connection_params)
            if application_name and "application_name" not in conn_params:
                conn_params["application_name"] = application_name
            try:
                self.connection = psycopg2.connect(**conn_params)
            except psycopg2.Error as e:
                raise ExecutionError(f"Failed to connect to PostgreSQL: {str(e)}") from e
        else:
            self.connection = connection

        try:
            self.connection.set_isolation_level(self.isolation_level)
        except psycopg2.Error as e:
            logger.warning(f"Could not set isolation level on connection: {str(e)}")

        self.cursor = self.connection.cursor()
        self._in_transaction = False

    def get_max_query_size(self) -> int:
        """
        Get the maximum query size in bytes.

        Returns:
            Maximum query size in bytes
        """
        return self.max_query_size

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        """
        Execute a SQL statement.

        Outside an explicit transaction, each statement is committed on success
        and rolled back on failure.

        Args:
            sql: SQL statement to execute
            params: Positional parameters for the statement

        Returns:
            Number of affected rows

        Raises:
            ExecutionError: If there's an error executing the statement
        """
        try:
            self.cursor.execute(sql, list(params) if params else None)
            rowcount = self.cursor.rowcount
            if not self._in_transaction:
                self.connection.commit()
            return rowcount
        except psycopg2.Error as e:
            logger.error(f"PostgreSQL error: {str(e)}")
            if self._in_transaction:
                logger.info("Rolling back transaction due to error")
            self.rollback_transaction()
            raise ExecutionError(f"Failed to execute PostgreSQL query: {str(e)}") from e

    def get_recordset(self, sql: str, params: Optional[Sequence[Any]] = None) -> LazyRecordCursor:
        """
        Run a query through a server-side cursor.

        Args:
            sql: SELECT query to run
            params: Positional parameters for the query

        Returns:
            Recordset streaming the result, itersize rows at a time

        Raises:
            ExecutionError: If the query fails
        """
        # WITH HOLD keeps the cursor open across commits of other statements
        cursor = self.connection.cursor(
            name=f"record_batcher_rs_{next(_cursor_ids)}", withhold=True
        )
        try:
            cursor.execute(sql, list(params) if params else None)
        except psycopg2.Error as e:
            logger.error(f"PostgreSQL error: {str(e)}")
            self.connection.rollback()
            raise ExecutionError(f"Failed to run PostgreSQL query: {str(e)}") from e

        return LazyRecordCursor(DBAPIRowSource(cursor, fetch_size=self.itersize))

    def begin_transaction(self) -> None:
        """Begin a transaction."""
        if not self._in_transaction:
            # psycopg2 opens the transaction on the first statement
            self._in_transaction = True

    def commit_transaction(self) -> None:
        """Commit the current transaction."""
        if self._in_transaction:
            self.connection.commit()
            self._in_transaction = False

    def rollback_transaction(self) -> None:
        """Rollback the current transaction."""
        self.connection.rollback()
        self._in_transaction = False

    def close(self) -> None:
        """Close the connection."""
        if self.cursor is not None:
            self.cursor.close()
            self.cursor = None

        if self.connection is not None:
            self.connection.close()
            self.connection = None
