"""
Forward-only recordsets with lazy validation and transformation.

A recordset wraps a RowSource, the driver-specific object that reads one
row at a time from an executing query. LazyRecordCursor adds two hooks on
top of it: a validator that silently skips the rows it rejects, and a
processor that maps each row before it is handed out. Both are applied one
row at a time as the caller iterates, so a recordset over a large table
never holds more than the current row.

Recordsets must be closed once they are no longer needed:

    >>> with adapter.get_recordset("SELECT id, username FROM users") as rs:
    ...     rs.set_validator(lambda user, name: user["username"] == name, ["admin"])
    ...     for user in rs:
    ...         print(user)
"""
from abc import ABC, abstractmethod
from collections import deque
import logging
from typing import Any, Callable, Deque, Dict, Iterable, Iterator, List, Optional, Sequence

from record_batcher.exceptions import RecordsetClosedError

logger = logging.getLogger(__name__)

_MISSING = object()


class RowSource(ABC):
    """
    Interface to a forward-only stream of raw records.

    A source is positioned on its first record (if any) as soon as it is
    created. Implementations exist per underlying driver.
    """

    @abstractmethod
    def advance(self) -> None:
        """Move to the next raw record."""
        pass

    @abstractmethod
    def current_raw_record(self) -> Optional[Dict[str, Any]]:
        """
        Get the record the source is positioned on.

        Returns:
            The current record, or None past the end
        """
        pass

    @abstractmethod
    def has_current(self) -> bool:
        """Whether the source is positioned on a record."""
        pass

    @abstractmethod
    def release(self) -> None:
        """Free the underlying cursor or connection resources."""
        pass


class IterableRowSource(RowSource):
    """Row source over any Python iterable of records."""

    def __init__(self, records: Iterable[Any]):
        self._iterator: Optional[Iterator[Any]] = iter(records)
        self._current: Any = _MISSING
        self.advance()

    def advance(self) -> None:
        if self._iterator is None:
            return
        self._current = next(self._iterator, _MISSING)
        if self._current is _MISSING:
            self._iterator = None

    def current_raw_record(self) -> Optional[Any]:
        return None if self._current is _MISSING else self._current

    def has_current(self) -> bool:
        return self._current is not _MISSING

    def release(self) -> None:
        # Generators are closed so their cleanup runs now
        close = getattr(self._iterator, "close", None)
        if close is not None:
            close()
        self._iterator = None
        self._current = _MISSING


class DBAPIRowSource(RowSource):
    """
    Row source reading an executed DB-API 2.0 cursor.

    Rows are returned as dictionaries keyed by column name. The cursor must
    already have executed its query. With fetch_size above 1, rows are read
    with fetchmany() and buffered, fetch_size at a time.

    Attributes:
        cursor: Executed DB-API cursor
        columns: Column names taken from cursor.description after the first fetch
    """

    def __init__(self, cursor: Any, lowercase: bool = True, fetch_size: int = 1):
        """
        Initialize the row source and read the first row.

        Args:
            cursor: DB-API cursor positioned before the first row
            lowercase: Whether to lowercase column names
            fetch_size: Number of rows fetched per call to the driver
        """
        self.cursor = cursor
        self.lowercase = lowercase
        self.columns: Optional[List[str]] = None
        self.fetch_size = fetch_size
        self._buffer: Deque[Sequence[Any]] = deque()
        self._row: Optional[Sequence[Any]] = None
        self._released = False
        self.advance()

    def advance(self) -> None:
        if self._released:
            self._row = None
            return
        if self.fetch_size <= 1:
            self._row = self.cursor.fetchone()
        else:
            if not self._buffer:
                self._buffer.extend(self.cursor.fetchmany(self.fetch_size))
            self._row = self._buffer.popleft() if self._buffer else None

        # Server-side cursors only describe their columns after the first fetch
        if self.columns is None and self.cursor.description is not None:
            self.columns = [
                d[0].lower() if self.lowercase else d[0] for d in self.cursor.description
            ]

    def current_raw_record(self) -> Optional[Dict[str, Any]]:
        if self._row is None:
            return None
        return dict(zip(self.columns, self._row))

    def has_current(self) -> bool:
        return self._row is not None

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._row = None
        self._buffer.clear()
        self.cursor.close()
        logger.debug("Released DB-API cursor")


class LazyRecordCursor:
    """
    Recordset that validates and transforms records as they are read.

    Iteration follows the states Created, Iterating, Exhausted and Closed.
    There is no rewind: iterating again after the end yields nothing.

    The validator sees the raw record as read from the source; the
    processor is applied to what current() returns. Exceptions raised by
    either are not caught.

    Attributes:
        source: RowSource the records are read from
    """

    def __init__(self, source: RowSource):
        """
        Initialize the recordset.

        Args:
            source: Row source; the recordset takes ownership and releases it on close()
        """
        self.source = source
        self._validator: Optional[Callable[..., bool]] = None
        self._validator_args: Sequence[Any] = ()
        self._processor: Optional[Callable[..., Any]] = None
        self._processor_args: Sequence[Any] = ()
        self._position = 0
        self._processed: Any = _MISSING
        self._closed = False

    @classmethod
    def from_iterable(cls, records: Iterable[Any]) -> "LazyRecordCursor":
        """Create a recordset over an in-memory iterable."""
        return cls(IterableRowSource(records))

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise RecordsetClosedError("Recordset has been closed and can not be used anymore")

    def set_validator(self, validator: Callable[..., bool], validator_args: Sequence[Any] = ()) -> None:
        """
        Set the validator function.

        Args:
            validator: Called as validator(record, *validator_args); falsy results skip the record
            validator_args: Extra positional arguments for the validator
        """
        self._check_open()
        self._validator = validator
        self._validator_args = tuple(validator_args)

    def set_processor(self, processor: Callable[..., Any], processor_args: Sequence[Any] = ()) -> None:
        """
        Set the processor function.

        Args:
            processor: Called as processor(record, *processor_args); its result replaces the record
            processor_args: Extra positional arguments for the processor
        """
        self._check_open()
        self._processor = processor
        self._processor_args = tuple(processor_args)
        self._processed = _MISSING

    def process(self, record: Any) -> Any:
        """Apply the processor to a record, if one is set."""
        if self._processor is None:
            return record
        return self._processor(record, *self._processor_args)

    def current(self) -> Optional[Any]:
        """
        Get the current record, processed.

        Returns:
            The processed record, or None past the end
        """
        self._check_open()
        if not self.source.has_current():
            return None
        if self._processed is _MISSING:
            self._processed = self.process(self.source.current_raw_record())
        return self._processed

    def key(self) -> int:
        """Zero-based index of the current raw row."""
        self._check_open()
        return self._position

    def next(self) -> None:
        """Move forward by exactly one raw record."""
        self._check_open()
        self.source.advance()
        self._position += 1
        self._processed = _MISSING

    def rewind(self) -> None:
        """Seeking is not supported; this does nothing."""
        self._check_open()

    def valid(self) -> bool:
        """
        Whether the recordset is positioned on an accepted record.

        Records rejected by the validator are skipped, which moves the
        recordset forward as a side effect.
        """
        self._check_open()
        while self.source.has_current():
            if self._validator is None:
                return True
            if self._validator(self.source.current_raw_record(), *self._validator_args):
                return True
            self.next()
        return False

    def close(self) -> None:
        """Free the underlying resources. Calling it again does nothing."""
        if self._closed:
            return
        self._closed = True
        self._processed = _MISSING
        self.source.release()

    def __iter__(self) -> Iterator[Any]:
        self._check_open()
        while self.valid():
            yield self.current()
            self.next()

    def __enter__(self) -> "LazyRecordCursor":
        self._check_open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
