"""
Exception types for Record Batcher.

Data errors (bad input, rejected records, oversized records, closed
recordsets) derive from DataError. Failures at the statement execution
boundary are raised by the adapters as ExecutionError, which is kept
separate so callers can tell the two apart.
"""
from typing import Optional


class DataError(Exception):
    """Base class for errors caused by the data handed to the library."""


class InputShapeError(DataError):
    """
    Raised when the input is not an iterable of structured records, or a
    record does not match the column set of the current insert.
    """


class ValidationError(DataError):
    """
    Raised when a validator rejects a record during a batch insert.
    
    Attributes:
        validator_name: Name of the validator that rejected the record
    """
    
    def __init__(self, validator_name: str):
        self.validator_name = validator_name
        super().__init__(f"Batch insert item failed validation: {validator_name}")


class SizeLimitExceededError(DataError):
    """
    Raised when a single record cannot fit in a statement on its own.
    
    Attributes:
        size: Size in bytes of the one-row statement
        limit: Configured maximum statement size in bytes
    """
    
    def __init__(self, size: int, limit: int, table: Optional[str] = None):
        self.size = size
        self.limit = limit
        self.table = table
        target = f" for table {table}" if table else ""
        super().__init__(
            f"Single record exceeds max query size{target}: "
            f"{size} bytes > {limit} bytes"
        )


class RecordsetClosedError(DataError):
    """Raised when a recordset is used after it has been closed."""


class ExecutionError(RuntimeError):
    """Raised by adapters when the database fails to execute a statement."""
