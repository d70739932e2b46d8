"""
Database adapters for Record Batcher.

This package contains adapters for various database systems. Each adapter
implements the SQLAdapter interface defined in adapters.base.

Available adapters:
- GenericAdapter: Works with any DBAPI 2.0 compliant database connection
- PostgreSQLAdapter: psycopg2, with server-side cursors for recordsets
- TrinoAdapter: Trino/Starburst via the trino client
"""

from record_batcher.adapters.base import SQLAdapter
from record_batcher.adapters.generic import GenericAdapter
from record_batcher.adapters.postgresql import PostgreSQLAdapter
from record_batcher.adapters.trino import TrinoAdapter

__all__ = ["SQLAdapter", "GenericAdapter", "PostgreSQLAdapter", "TrinoAdapter"]
