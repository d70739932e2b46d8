"""
Pytest configuration and fixtures for Record Batcher tests.
"""
import os
import sqlite3

import pytest
from unittest.mock import MagicMock


# Define test markers
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "core: tests that don't require database connections"
    )
    config.addinivalue_line(
        "markers", "db: tests that require actual database connections"
    )
    config.addinivalue_line(
        "markers", "postgres: tests that require PostgreSQL database connections"
    )


def postgres_connection_params():
    """PostgreSQL connection parameters from the standard libpq variables."""
    return {
        "host": os.environ.get("PGHOST", "localhost"),
        "port": os.environ.get("PGPORT", "5432"),
        "user": os.environ.get("PGUSER", "postgres"),
        "dbname": os.environ.get("PGDATABASE", "postgres"),
        "password": os.environ.get("PGPASSWORD", ""),
        "connect_timeout": 5,
    }


# PostgreSQL connection check
def has_postgres_connection():
    """Check if PostgreSQL connection is available."""
    required_vars = ["PGHOST", "PGPORT", "PGUSER", "PGDATABASE"]
    for var in required_vars:
        if not os.environ.get(var):
            return False

    try:
        import psycopg2
        conn = psycopg2.connect(**postgres_connection_params())
        conn.close()
        return True
    except Exception:
        return False


# Skip database tests if connection not available
def pytest_collection_modifyitems(config, items):
    """Skip tests based on markers and available connections."""
    skip_postgres = pytest.mark.skip(reason="PostgreSQL connection not available")

    if not any("postgres" in item.keywords for item in items):
        return

    available = has_postgres_connection()
    for item in items:
        if "postgres" in item.keywords and not available:
            item.add_marker(skip_postgres)


@pytest.fixture
def sqlite_connection():
    """In-memory SQLite database with the unit_table used by the insert tests."""
    conn = sqlite3.connect(":memory:")
    conn.execute(
        "CREATE TABLE unit_table ("
        "id INTEGER PRIMARY KEY AUTOINCREMENT, "
        "course INTEGER NOT NULL DEFAULT 0, "
        "name TEXT)"
    )
    conn.commit()
    yield conn
    conn.close()


# Generic database connection fixture
@pytest.fixture
def mock_db_connection():
    """Mock database connection for adapter tests."""
    conn = MagicMock()
    cursor = MagicMock()
    conn.cursor.return_value = cursor
    cursor.rowcount = 1
    cursor.description = None

    conn.commit = MagicMock()
    conn.rollback = MagicMock()
    conn.close = MagicMock()

    return conn


@pytest.fixture
def postgres_params():
    """Connection parameters for tests marked postgres."""
    return postgres_connection_params()
