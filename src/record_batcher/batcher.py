"""
Core batch insert implementation.

This module contains the BatchInserter class, which turns any iterable of
uniform records into as few multi-row INSERT statements as the row count
and statement size limits allow.
"""
import functools
import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from record_batcher.config import (
    DEFAULT_MAX_QUERY_SIZE,
    DEFAULT_MAX_ROWS,
    DEFAULT_PLACEHOLDER,
    DEFAULT_SEQUENCE_COLUMN,
)
from record_batcher.exceptions import InputShapeError, SizeLimitExceededError, ValidationError
from record_batcher.query_collector import QueryCollector
from record_batcher.serialization import (
    TUPLE_SEPARATOR,
    as_record,
    check_identifier,
    flatten_rows,
    insert_prefix,
    placeholder_insert,
    tuple_sql_length,
)

logger = logging.getLogger(__name__)

SEPARATOR_SIZE = len(TUPLE_SEPARATOR)


def callable_name(fn: Callable) -> str:
    """Name used to identify a validator or transformer in messages."""
    if isinstance(fn, functools.partial):
        fn = fn.func
    return getattr(fn, "__name__", type(fn).__name__)


class BatchInserter:
    """
    Inserts records in batches of multi-row INSERT statements.

    Records are drained from the input one at a time and buffered until the
    next one would push the statement past either the row limit or the size
    limit. The buffer is then flushed as one statement and a new batch is
    started. Only the current batch is ever held in memory, so the input can
    be a live recordset over a large table.

    Attributes:
        execute_callback: Callable taking (sql, params) that runs a statement
        max_query_size: Maximum statement size in bytes, values interpolated
        max_rows: Maximum number of rows in one statement
        placeholder: Parameter marker used in generated statements
        table_prefix: Prefix added to every table name
        sequence_column: Key column stripped from records, or None
        dry_run: Whether to collect statements instead of executing them
        current_batch: Row value lists of the current batch
        current_size: Size in bytes of the current batch's statement
    """

    def __init__(
        self,
        execute_callback: Optional[Callable[[str, List[Any]], Any]],
        max_query_size: int = DEFAULT_MAX_QUERY_SIZE,
        max_rows: int = DEFAULT_MAX_ROWS,
        placeholder: str = DEFAULT_PLACEHOLDER,
        table_prefix: str = "",
        sequence_column: Optional[str] = DEFAULT_SEQUENCE_COLUMN,
        dry_run: bool = False,
        query_collector: Optional[QueryCollector] = None,
        adapter: Optional[Any] = None
    ):
        """
        Initialize a batch inserter.

        Args:
            execute_callback: Callable taking (sql, params); may be None in dry run mode
            max_query_size: Maximum statement size in bytes
            max_rows: Maximum number of rows per statement
            placeholder: Parameter marker of the driver ("?" or "%s")
            table_prefix: Prefix added to every table name
            sequence_column: Auto-increment column to drop from records (None keeps all)
            dry_run: If True, statements are collected but never executed
            query_collector: Optional collector receiving every flushed statement
            adapter: Adapter providing transactions for atomic inserts

        Raises:
            ValueError: If a limit is not positive, or no callback is given outside dry run mode
        """
        if max_query_size <= 0:
            raise ValueError(f"max_query_size must be positive, got {max_query_size}")
        if max_rows <= 0:
            raise ValueError(f"max_rows must be positive, got {max_rows}")
        if execute_callback is None and not dry_run:
            raise ValueError("execute_callback is required unless dry_run is enabled")

        self.execute_callback = execute_callback
        self.max_query_size = max_query_size
        self.max_rows = max_rows
        self.placeholder = placeholder
        self.table_prefix = table_prefix
        self.sequence_column = sequence_column
        self.dry_run = dry_run
        self.query_collector = query_collector
        self.adapter = adapter

        self.total_statements = 0
        self.total_rows = 0
        self.last_statement_count = 0

        self._table: Optional[str] = None
        self._columns: Optional[List[str]] = None
        self._prefix_size = 0
        self.reset()

        logger.debug(
            f"Initialized BatchInserter with max_query_size={max_query_size}, "
            f"max_rows={max_rows}, dry_run={dry_run}"
        )

    @classmethod
    def for_adapter(cls, adapter: Any, **kwargs: Any) -> "BatchInserter":
        """
        Create an inserter that executes through an adapter.

        The adapter supplies the execute callback, its maximum query size and
        its placeholder style, unless they are given explicitly.

        Args:
            adapter: SQLAdapter instance
            **kwargs: Other BatchInserter arguments

        Returns:
            Configured BatchInserter
        """
        kwargs.setdefault("max_query_size", adapter.get_max_query_size())
        kwargs.setdefault("placeholder", adapter.placeholder)
        return cls(adapter.execute, adapter=adapter, **kwargs)

    def reset(self) -> None:
        """Reset the current batch."""
        self.current_batch: List[List[Any]] = []
        self.current_size: int = 0

    def insert_all(
        self,
        table: str,
        records: Iterable[Any],
        transformer: Optional[Callable[..., Any]] = None,
        transformer_args: Sequence[Any] = (),
        validator: Optional[Callable[..., bool]] = None,
        validator_args: Sequence[Any] = (),
        columns: Optional[Sequence[str]] = None,
        atomic: bool = False
    ) -> None:
        """
        Insert every record of an iterable into a table.

        Each record is transformed (if a transformer is given), then
        validated (if a validator is given), then buffered. Any failure
        aborts the whole call; statements flushed before the failure are not
        undone unless atomic is set.

        Args:
            table: Target table name, without prefix
            records: Iterable of mappings, dataclass instances or namedtuples
            transformer: Function called as transformer(record, *transformer_args)
            transformer_args: Extra positional arguments for the transformer
            validator: Predicate called as validator(record, *validator_args)
            validator_args: Extra positional arguments for the validator
            columns: Explicit column allowlist; defaults to the first record's fields
            atomic: Run the insert in a transaction of the inserter's adapter

        Raises:
            InputShapeError: If the input or a record has the wrong shape
            ValidationError: If the validator rejects a record
            SizeLimitExceededError: If one record alone exceeds max_query_size
            ValueError: If atomic is requested without an adapter
        """
        if not atomic:
            self._insert_all(
                table, records, transformer, transformer_args, validator, validator_args, columns
            )
            return

        if self.adapter is None:
            raise ValueError("atomic inserts require an adapter; use BatchInserter.for_adapter()")

        self.adapter.begin_transaction()
        try:
            self._insert_all(
                table, records, transformer, transformer_args, validator, validator_args, columns
            )
        except Exception:
            logger.info(f"Rolling back batch insert into {self.table_prefix}{table} due to error")
            self.adapter.rollback_transaction()
            raise
        self.adapter.commit_transaction()

    def _insert_all(
        self,
        table: str,
        records: Iterable[Any],
        transformer: Optional[Callable[..., Any]],
        transformer_args: Sequence[Any],
        validator: Optional[Callable[..., bool]],
        validator_args: Sequence[Any],
        columns: Optional[Sequence[str]]
    ) -> None:
        items = self._iterate(records)

        self.reset()
        self.last_statement_count = 0
        self._table = check_identifier(f"{self.table_prefix}{table}", "table")
        self._columns = None
        if columns is not None:
            self._set_columns(
                [c for c in columns if c != self.sequence_column]
            )

        row_count = 0
        try:
            for index, item in enumerate(items):
                if transformer is not None:
                    item = transformer(item, *transformer_args)
                if validator is not None and not validator(item, *validator_args):
                    name = callable_name(validator)
                    logger.error(f"Record {index} for {self._table} rejected by validator {name}")
                    raise ValidationError(name)

                self._add_row(self._row_values(as_record(item), index))
                row_count += 1

            self.flush()
        finally:
            # A failed call leaves nothing buffered for the next one
            self.reset()

        if row_count:
            logger.info(
                f"Inserted {row_count} rows into {self._table} "
                f"in {self.last_statement_count} statements"
            )
        else:
            logger.debug(f"No records to insert into {self._table}")

    @staticmethod
    def _iterate(records: Iterable[Any]) -> Iterator[Any]:
        """Get an iterator over the input, rejecting non-iterables."""
        if isinstance(records, (str, bytes, Mapping)):
            raise InputShapeError(
                f"Expected an iterable of records, got {type(records).__name__}"
            )
        try:
            return iter(records)
        except TypeError as e:
            raise InputShapeError(
                f"Expected an iterable of records, got {type(records).__name__}"
            ) from e

    def _set_columns(self, columns: List[str]) -> None:
        if not columns:
            raise InputShapeError(f"No columns to insert into {self._table}")
        for column in columns:
            check_identifier(column)
        if len(set(columns)) != len(columns):
            raise InputShapeError(f"Duplicate columns for {self._table}: {', '.join(columns)}")
        self._columns = columns
        self._prefix_size = len(insert_prefix(self._table, columns).encode("utf-8"))
        logger.debug(f"Using columns ({', '.join(columns)}) for {self._table}")

    def _row_values(self, record: Dict[str, Any], index: int) -> List[Any]:
        """Order a record's values by the column list of this call."""
        if self.sequence_column is not None:
            record.pop(self.sequence_column, None)
        if not record:
            raise InputShapeError(f"Record {index} has no fields to insert into {self._table}")

        if self._columns is None:
            self._set_columns(list(record))
        elif len(record) != len(self._columns) or not all(c in record for c in self._columns):
            missing = [c for c in self._columns if c not in record]
            unexpected = [c for c in record if c not in self._columns]
            raise InputShapeError(
                f"Record {index} does not match the columns of {self._table}: "
                f"missing {missing}, unexpected {unexpected}"
            )

        return [record[c] for c in self._columns]

    def _add_row(self, values: List[Any]) -> None:
        """Buffer one row, flushing first if it would not fit the current batch."""
        tuple_size = tuple_sql_length(values)

        single_size = self._prefix_size + tuple_size
        if single_size > self.max_query_size:
            logger.error(
                f"Single record exceeds max query size: {single_size} bytes > {self.max_query_size} bytes"
            )
            raise SizeLimitExceededError(single_size, self.max_query_size, self._table)

        if self.current_batch and (
            self.current_size + SEPARATOR_SIZE + tuple_size > self.max_query_size
            or len(self.current_batch) + 1 > self.max_rows
        ):
            self.flush()

        if self.current_batch:
            self.current_size += SEPARATOR_SIZE + tuple_size
        else:
            self.current_size = single_size
        self.current_batch.append(values)

    def flush(self) -> int:
        """
        Flush the current batch as one INSERT statement.

        Returns:
            Number of rows flushed
        """
        count = len(self.current_batch)
        if count == 0:
            return 0

        sql = placeholder_insert(self._table, self._columns, count, self.placeholder)
        params = flatten_rows(self.current_batch)
        size = self.current_size

        logger.debug(f"Flushing batch for {self._table} ({count} rows, {size} bytes)")

        if self.dry_run:
            logger.info(f"[DRY RUN] INSERT into {self._table} with {count} rows ({size} bytes)")
        else:
            # Errors from the execution layer propagate as raised
            self.execute_callback(sql, params)

        if self.query_collector is not None:
            self.query_collector.collect(sql, params, count, self._table, size)

        self.total_statements += 1
        self.total_rows += count
        self.last_statement_count += 1
        self.reset()

        return count
