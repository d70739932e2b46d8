"""
Record Batcher - bulk record insertion and lazy recordsets

This package provides a BatchInserter that turns iterables of records into
size-bounded multi-row INSERT statements, and a LazyRecordCursor that
validates and transforms the rows of a streaming query result.
"""

from record_batcher.batcher import BatchInserter
from record_batcher.exceptions import (
    DataError,
    ExecutionError,
    InputShapeError,
    RecordsetClosedError,
    SizeLimitExceededError,
    ValidationError,
)
from record_batcher.query_collector import QueryCollector
from record_batcher.recordset import DBAPIRowSource, IterableRowSource, LazyRecordCursor, RowSource

__version__ = "0.1.0"
__all__ = [
    "BatchInserter",
    "QueryCollector",
    "LazyRecordCursor",
    "RowSource",
    "IterableRowSource",
    "DBAPIRowSource",
    "DataError",
    "ExecutionError",
    "InputShapeError",
    "RecordsetClosedError",
    "SizeLimitExceededError",
    "ValidationError",
]
