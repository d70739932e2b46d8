"""
Trino adapter for Record Batcher.

This module provides an adapter for Trino (formerly PrestoSQL) databases,
handling the specific requirements and limitations of Trino.
"""
import logging
from typing import Any, Dict, Optional, Sequence

import trino.auth
import trino.dbapi

from record_batcher.adapters.base import SQLAdapter
from record_batcher.exceptions import ExecutionError
from record_batcher.recordset import DBAPIRowSource, LazyRecordCursor

logger = logging.getLogger(__name__)


class TrinoAdapter(SQLAdapter):
    """
    Adapter for Trino database connections.

    Statements are sent as prepared statements with "?" parameters. Trino
    runs every statement in auto-commit mode, so the transaction hooks are
    the no-op defaults.

    Attributes:
        host: Trino host
        port: Trino port
        user: Username for authentication
        catalog: Catalog name
        schema: Schema name
        max_query_size: Maximum query size in bytes

    Examples:
        >>> from record_batcher.adapters.trino import TrinoAdapter
        >>>
        >>> adapter = TrinoAdapter(
        ...     host="trino.example.com",
        ...     port=443,
        ...     user="admin",
        ...     catalog="hive",
        ...     schema="default"
        ... )
        >>> adapter.insert_records_via_batch("events", records)
        >>> adapter.close()
    """

    # Default maximum query size for Trino (16MB)
    DEFAULT_MAX_QUERY_SIZE = 16 * 1024 * 1024

    placeholder = "?"

    def __init__(
        self,
        host: str,
        port: int = 443,
        user: str = "admin",
        password: Optional[str] = None,
        catalog: str = "hive",
        schema: str = "default",
        http_scheme: str = "https",
        role: Optional[str] = None,
        auth: Optional[Any] = None,
        max_query_size: int = DEFAULT_MAX_QUERY_SIZE,
        headers: Optional[Dict[str, str]] = None,
        verify: bool = True,
        connection: Optional[Any] = None,
    ) -> None:
        """
        Initialize a new TrinoAdapter instance.

        Args:
            host: Trino host name
            port: Trino port number (default: 443)
            user: Username for authentication (default: "admin")
            password: Password for basic authentication (default: None)
            catalog: Catalog name (default: "hive")
            schema: Schema name (default: "default")
            http_scheme: HTTP scheme - "http" or "https" (default: "https")
            role: Trino role (default: None)
            auth: Authentication object (default: None)
            max_query_size: Maximum query size in bytes (default: 16MB)
            headers: Additional HTTP headers (default: None)
            verify: Whether to verify SSL certificates (default: True)
            connection: Existing trino.dbapi connection to use (optional)
        """
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.catalog = catalog
        self.schema = schema
        self.http_scheme = http_scheme
        self.role = role
        self.auth = auth
        self.max_query_size = max_query_size
        self.headers = headers
        self.verify = verify
        self.connection = connection
        self.cursor = None

        if self.connection is None:
            self._connect()

        logger.debug(
            f"Initialized TrinoAdapter for {user}@{host}:{port}/{catalog}/{schema} "
            f"with max_query_size={max_query_size}"
        )

    def _connect(self) -> None:
        """
        Establish a connection to Trino.

        The client connects lazily, on the first statement.
        """
        auth_obj = self.auth
        if self.password and not auth_obj:
            auth_obj = trino.auth.BasicAuthentication(self.user, self.password)

        self.connection = trino.dbapi.connect(
            host=self.host,
            port=self.port,
            user=self.user,
            catalog=self.catalog,
            schema=self.schema,
            http_scheme=self.http_scheme,
            auth=auth_obj,
            roles=self.role,
            http_headers=self.headers,
            verify=self.verify,
        )

        logger.info(f"Opened Trino connection to {self.host}:{self.port}")

    def _get_cursor(self) -> Any:
        if self.cursor is None:
            self.cursor = self.connection.cursor()
        return self.cursor

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        """
        Execute a SQL statement on Trino.

        Trino reports the number of written rows as the single result row of
        an INSERT, so the result is consumed to complete the statement.

        Args:
            sql: SQL statement to execute
            params: Positional parameters for the statement

        Returns:
            Number of affected rows (-1 if not reported)

        Raises:
            ExecutionError: If Trino rejects the statement
        """
        cursor = self._get_cursor()

        try:
            logger.debug(f"Executing SQL on Trino: {sql[:100]}...")
            if params:
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            rows = cursor.fetchall()
        except Exception as e:
            logger.error(f"Error executing SQL on Trino: {e}")
            raise ExecutionError(f"Failed to execute Trino query: {e}") from e

        if rows and len(rows[0]) == 1 and isinstance(rows[0][0], int):
            return rows[0][0]
        return cursor.rowcount

    def get_recordset(self, sql: str, params: Optional[Sequence[Any]] = None) -> LazyRecordCursor:
        """
        Run a query on a new cursor and stream its rows.

        Args:
            sql: SELECT query to run
            params: Positional parameters for the query

        Returns:
            Recordset reading the result page by page

        Raises:
            ExecutionError: If Trino rejects the query
        """
        cursor = self.connection.cursor()
        try:
            if params:
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
        except Exception as e:
            cursor.close()
            logger.error(f"Error running query on Trino: {e}")
            raise ExecutionError(f"Failed to run Trino query: {e}") from e

        return LazyRecordCursor(DBAPIRowSource(cursor))

    def get_max_query_size(self) -> int:
        """
        Get the maximum query size in bytes.

        Returns:
            Maximum query size in bytes
        """
        return self.max_query_size

    def close(self) -> None:
        """Close the cursor and the connection."""
        if self.cursor is not None:
            self.cursor.close()
            self.cursor = None
        if self.connection is not None:
            self.connection.close()
            self.connection = None
        logger.debug("Closed Trino connection")
