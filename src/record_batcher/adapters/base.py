"""
Base adapter interface for Record Batcher.

This module defines the abstract base class that all Record Batcher adapters
must implement. An adapter is the boundary with the database driver: it runs
parameterized statements and opens streaming recordsets.
"""
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional, Sequence

from record_batcher.batcher import BatchInserter
from record_batcher.recordset import LazyRecordCursor


class SQLAdapter(ABC):
    """
    Abstract base class for Record Batcher adapters.

    Adapters provide a consistent interface for executing SQL statements and
    reading query results across different database systems. Driver errors
    are raised as ExecutionError.

    Attributes:
        placeholder: Parameter marker understood by the driver
    """

    placeholder = "?"

    @abstractmethod
    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        """
        Execute a SQL statement.

        Args:
            sql: SQL statement to execute
            params: Positional parameters for the statement

        Returns:
            Number of affected rows (-1 if the driver does not report it)
        """
        pass

    @abstractmethod
    def get_recordset(self, sql: str, params: Optional[Sequence[Any]] = None) -> LazyRecordCursor:
        """
        Run a query and return its rows as a streaming recordset.

        Args:
            sql: SELECT query to run
            params: Positional parameters for the query

        Returns:
            Recordset over the result; the caller must close it
        """
        pass

    @abstractmethod
    def get_max_query_size(self) -> int:
        """
        Get the maximum query size in bytes.

        Returns:
            Maximum query size in bytes
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the connection."""
        pass

    def insert_records_via_batch(self, table: str, records: Iterable[Any], **kwargs: Any) -> BatchInserter:
        """
        Insert records in batches through this adapter.

        Args:
            table: Target table name
            records: Iterable of records (a recordset works too)
            **kwargs: BatchInserter options (max_rows, table_prefix, ...)
                and insert_all options (transformer, validator, atomic, ...)

        Returns:
            The BatchInserter used, for its statement and row counters
        """
        insert_options = {
            key: kwargs.pop(key)
            for key in (
                "transformer", "transformer_args", "validator",
                "validator_args", "columns", "atomic",
            )
            if key in kwargs
        }
        inserter = BatchInserter.for_adapter(self, **kwargs)
        inserter.insert_all(table, records, **insert_options)
        return inserter

    def begin_transaction(self) -> None:
        """
        Begin a transaction.

        Implementations may override this method if they support transactions.
        By default, this method does nothing.
        """
        pass

    def commit_transaction(self) -> None:
        """
        Commit the current transaction.

        Implementations may override this method if they support transactions.
        By default, this method does nothing.
        """
        pass

    def rollback_transaction(self) -> None:
        """
        Rollback the current transaction.

        Implementations may override this method if they support transactions.
        By default, this method does nothing.
        """
        pass
