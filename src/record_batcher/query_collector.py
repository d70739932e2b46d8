"""
Query collector for Record Batcher to store and analyze statements in dry run mode.

This module provides a QueryCollector class for storing the INSERT statements
a batch insert would execute, without running them.
"""
from typing import Any, Dict, List, Optional, Sequence
import logging

logger = logging.getLogger(__name__)


class QueryCollector:
    """
    Collects and stores SQL statements for analysis.

    Example:
        >>> from record_batcher import BatchInserter, QueryCollector
        >>>
        >>> collector = QueryCollector()
        >>> inserter = BatchInserter(
        ...     execute_callback=None,
        ...     dry_run=True,
        ...     query_collector=collector
        ... )
        >>> inserter.insert_all("users", [{"name": "Alice"}, {"name": "Bob"}])
        >>>
        >>> print(f"Collected {len(collector.queries)} statements")
        >>> print(f"Total rows: {collector.total_row_count}")
    """

    def __init__(self):
        """Initialize a new query collector."""
        self.queries: List[Dict[str, Any]] = []
        self.total_row_count = 0
        self.total_bytes = 0

    def collect(
        self,
        query: str,
        params: Optional[Sequence[Any]] = None,
        row_count: int = 1,
        table_name: str = "unknown",
        size: Optional[int] = None
    ) -> None:
        """
        Add a statement to the collector.

        Args:
            query: SQL statement (with placeholders)
            params: Positional parameters for the statement
            row_count: Number of rows the statement inserts
            table_name: Target table name
            size: Size in bytes of the statement once values are interpolated
        """
        if size is None:
            size = len(query.encode("utf-8"))
        self.queries.append({
            "query": query,
            "params": list(params or []),
            "row_count": row_count,
            "table_name": table_name,
            "size": size,
        })
        self.total_row_count += row_count
        self.total_bytes += size
        logger.debug(f"Collected statement for {table_name} ({row_count} rows, {size} bytes)")

    def clear(self) -> None:
        """Clear all collected statements."""
        self.queries = []
        self.total_row_count = 0
        self.total_bytes = 0

    def get_queries_by_table(self, table_name: str) -> List[Dict[str, Any]]:
        """
        Get all statements for a specific table.

        Args:
            table_name: Table name to filter by

        Returns:
            List of statement dictionaries for the specified table
        """
        return [q for q in self.queries if q["table_name"] == table_name]

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the collected statements.

        Returns:
            Dictionary with statement count, row count, bytes and per-table counts
        """
        tables = set(q["table_name"] for q in self.queries)

        return {
            "total_queries": len(self.queries),
            "total_row_count": self.total_row_count,
            "total_bytes": self.total_bytes,
            "largest_query": max((q["size"] for q in self.queries), default=0),
            "tables": {
                table: len(self.get_queries_by_table(table))
                for table in tables
            },
        }
