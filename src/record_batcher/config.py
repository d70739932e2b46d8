"""
Configuration settings for Record Batcher.

This module contains the default limits and settings used throughout the
library. Each value can be overridden through an environment variable, and
constructor arguments override both.
"""
import os

# Maximum number of rows in one INSERT statement
DEFAULT_MAX_ROWS = int(os.environ.get("RECORD_BATCHER_MAX_ROWS", 1000))

# Maximum size in bytes of one INSERT statement, as the server receives it
DEFAULT_MAX_QUERY_SIZE = int(os.environ.get("RECORD_BATCHER_MAX_QUERY_SIZE", 1_000_000))

# Auto-increment key column stripped from records before inserting.
# An empty value disables the stripping.
DEFAULT_SEQUENCE_COLUMN = os.environ.get("RECORD_BATCHER_SEQUENCE_COLUMN", "id") or None

# Placeholder style used when no adapter is given (DB-API "qmark")
DEFAULT_PLACEHOLDER = "?"

# Log level used by the command-line interface
LOG_LEVEL = os.environ.get("RECORD_BATCHER_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
