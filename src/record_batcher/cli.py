#!/usr/bin/env python3
"""
Record Batcher - command-line interface.

Loads JSON-lines records into a database table in size-bounded batches, and
exports query results as JSON lines through a filtering recordset.
"""
import sqlite3
import sys
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from record_batcher import __version__
from record_batcher.adapters.base import SQLAdapter
from record_batcher.adapters.generic import GenericAdapter
from record_batcher.adapters.postgresql import PostgreSQLAdapter
from record_batcher.batcher import BatchInserter
from record_batcher.config import DEFAULT_MAX_QUERY_SIZE, DEFAULT_MAX_ROWS, DEFAULT_SEQUENCE_COLUMN
from record_batcher.exceptions import DataError, ExecutionError
from record_batcher.query_collector import QueryCollector
from record_batcher.utils import (
    matches_filters,
    parse_filters,
    read_json_lines,
    record_to_json,
    setup_logging,
)

# Initialize consoles for rich output; exported data goes to stdout only
console = Console()
err_console = Console(stderr=True)


def open_adapter(database: Optional[str], postgres_dsn: Optional[str], max_query_size: int) -> SQLAdapter:
    """
    Open an adapter for a SQLite file or a PostgreSQL DSN.

    Args:
        database: Path to a SQLite database file
        postgres_dsn: libpq connection string
        max_query_size: Maximum query size in bytes

    Returns:
        Connected adapter
    """
    if postgres_dsn:
        return PostgreSQLAdapter(
            connection_params={"dsn": postgres_dsn},
            max_query_size=max_query_size
        )
    if database:
        return GenericAdapter(
            connection=sqlite3.connect(database),
            max_query_size=max_query_size,
            owns_connection=True
        )
    raise click.UsageError("Either --database or --postgres-dsn is required")


@click.group()
@click.version_option(version=__version__)
def cli():
    """
    Record Batcher - bulk record insertion and streaming export.
    """
    pass


@cli.command()
@click.option('--table', '-t', required=True, help='Target table name (without prefix)')
@click.option('--input', '-i', 'input_file', type=click.File('r'), default='-',
              help='JSON-lines file with one record per line (default: stdin)')
@click.option('--database', '-d', help='Path to a SQLite database file')
@click.option('--postgres-dsn', help='PostgreSQL connection string')
@click.option('--max-rows', default=DEFAULT_MAX_ROWS, type=int,
              help=f'Maximum rows per INSERT statement (default: {DEFAULT_MAX_ROWS})')
@click.option('--max-query-size', default=DEFAULT_MAX_QUERY_SIZE, type=int,
              help=f'Maximum INSERT statement size in bytes (default: {DEFAULT_MAX_QUERY_SIZE})')
@click.option('--table-prefix', default='', help='Prefix added to the table name')
@click.option('--sequence-column', default=DEFAULT_SEQUENCE_COLUMN or '',
              help='Auto-increment column dropped from records (empty to keep all fields)')
@click.option('--atomic', is_flag=True, help='Insert all records in one transaction')
@click.option('--dry-run', is_flag=True, help='Report the statements without executing them')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
def load(table: str, input_file, database: Optional[str], postgres_dsn: Optional[str],
         max_rows: int, max_query_size: int, table_prefix: str, sequence_column: str,
         atomic: bool, dry_run: bool, verbose: bool):
    """
    Insert JSON-lines records into a table in batches.
    """
    setup_logging(verbose)
    records = read_json_lines(input_file)
    options = {
        "max_rows": max_rows,
        "table_prefix": table_prefix,
        "sequence_column": sequence_column or None,
    }

    try:
        if dry_run:
            console.print("[bold blue]Running in DRY RUN mode - no statements will be executed[/bold blue]")
            collector = QueryCollector()
            inserter = BatchInserter(
                None,
                max_query_size=max_query_size,
                dry_run=True,
                query_collector=collector,
                **options
            )
            inserter.insert_all(table, records)
            print_plan(collector)
            return

        adapter = open_adapter(database, postgres_dsn, max_query_size)
        try:
            inserter = adapter.insert_records_via_batch(table, records, atomic=atomic, **options)
        finally:
            adapter.close()
    except (DataError, ExecutionError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {str(e)}")
        sys.exit(1)

    console.print(f"[bold green]✓[/bold green] Inserted {inserter.total_rows} rows "
                  f"in {inserter.total_statements} statements")


def print_plan(collector: QueryCollector) -> None:
    """Print the statements collected in dry run mode."""
    table = Table(title="Planned INSERT statements")
    table.add_column("#", justify="right")
    table.add_column("Table")
    table.add_column("Rows", justify="right")
    table.add_column("Bytes", justify="right")

    for i, query in enumerate(collector.queries, start=1):
        table.add_row(str(i), query["table_name"], str(query["row_count"]), str(query["size"]))

    console.print(table)
    stats = collector.get_stats()
    console.print(f"[bold]{stats['total_row_count']} rows in {stats['total_queries']} statements "
                  f"({stats['total_bytes']} bytes, largest {stats['largest_query']} bytes)[/bold]")


@cli.command()
@click.option('--query', '-q', required=True, help='SELECT query to export')
@click.option('--database', '-d', help='Path to a SQLite database file')
@click.option('--postgres-dsn', help='PostgreSQL connection string')
@click.option('--where', '-w', 'filters', multiple=True,
              help='Only export records where column=value (repeatable, "null" matches NULL)')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
def export(query: str, database: Optional[str], postgres_dsn: Optional[str],
           filters: Tuple[str, ...], verbose: bool):
    """
    Stream query results as JSON lines.
    """
    setup_logging(verbose)

    try:
        conditions = parse_filters(filters)
        adapter = open_adapter(database, postgres_dsn, DEFAULT_MAX_QUERY_SIZE)
        count = 0
        try:
            with adapter.get_recordset(query) as recordset:
                if conditions:
                    recordset.set_validator(matches_filters, [conditions])
                recordset.set_processor(record_to_json)
                for line in recordset:
                    click.echo(line)
                    count += 1
        finally:
            adapter.close()
    except (DataError, ExecutionError, ValueError) as e:
        err_console.print(f"[bold red]Error:[/bold red] {str(e)}")
        sys.exit(1)

    err_console.print(f"[bold green]✓[/bold green] Exported {count} records")


if __name__ == "__main__":
    cli()
