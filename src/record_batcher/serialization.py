"""
SQL text helpers for multi-row INSERT statements.

Statements are executed with positional parameters, but their size is
measured as the server receives them once the values are interpolated:
every non-null value becomes a quoted literal and NULL stays bare. The
functions here produce that literal form and its byte length, so the
batcher can keep each statement under the configured size limit.
"""
import dataclasses
import re
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Sequence

from record_batcher.exceptions import InputShapeError

SCALAR_TYPES = (str, int, float, Decimal, bool, type(None))

TUPLE_SEPARATOR = ","

# Column names, and each dot-separated part of a table name
IDENTIFIER_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def as_record(item: Any) -> Dict[str, Any]:
    """
    Convert a structured object into a plain record dictionary.

    Mappings, dataclass instances and namedtuples are accepted. The field
    order of the source object is kept.

    Args:
        item: Object to convert

    Returns:
        Dictionary of field name to value

    Raises:
        InputShapeError: If the object is not a structured record
    """
    if isinstance(item, Mapping):
        return dict(item)
    if dataclasses.is_dataclass(item) and not isinstance(item, type):
        return {f.name: getattr(item, f.name) for f in dataclasses.fields(item)}
    if isinstance(item, tuple) and hasattr(item, "_fields"):
        return dict(zip(item._fields, item))
    raise InputShapeError(
        f"Expected a structured record, got {type(item).__name__}: {item!r:.80}"
    )


def check_identifier(name: Any, kind: str = "column") -> str:
    """
    Check that a name can be written into SQL text unquoted.

    Table names may be qualified, e.g. schema.table.

    Args:
        name: Column or table name
        kind: "column" or "table", used in the error message

    Returns:
        The name, unchanged

    Raises:
        InputShapeError: If the name is not a plain SQL identifier
    """
    parts = name.split(".") if isinstance(name, str) and kind == "table" else [name]
    if not all(isinstance(p, str) and IDENTIFIER_PATTERN.fullmatch(p) for p in parts):
        raise InputShapeError(f"Invalid {kind} name: {name!r:.80}")
    return name


def render_value(value: Any) -> str:
    """
    Render a value as the SQL literal used for size accounting.

    Args:
        value: Scalar value (str, number, bool or None)

    Returns:
        NULL for None, '1' or '0' for booleans, otherwise the value
        as a single-quoted string

    Raises:
        InputShapeError: If the value is not a scalar
    """
    if value is None:
        return "NULL"
    if not isinstance(value, SCALAR_TYPES):
        raise InputShapeError(
            f"Unsupported value type {type(value).__name__}: only scalar values can be inserted"
        )
    if isinstance(value, bool):
        return "'1'" if value else "'0'"
    return "'" + str(value).replace("'", "''") + "'"


def tuple_sql(values: Sequence[Any]) -> str:
    """Render values as a parenthesized tuple, e.g. ('1',NULL)."""
    return "(" + ",".join(render_value(v) for v in values) + ")"


def tuple_sql_length(values: Sequence[Any]) -> int:
    """Byte length of tuple_sql(values) in UTF-8."""
    return len(tuple_sql(values).encode("utf-8"))


def get_sql_length_for_params(params: Sequence[Any], fields_per_tuple: int) -> int:
    """
    Calculate the length of the VALUES list for a flat parameter list.

    The parameters are grouped into tuples of fields_per_tuple values, and
    the tuples are joined with commas, e.g. ('a',NULL),('c','d').

    Args:
        params: Flat list of parameter values
        fields_per_tuple: Number of values in each tuple

    Returns:
        Length in bytes of the rendered value list

    Raises:
        InputShapeError: If fields_per_tuple does not divide params evenly
    """
    if fields_per_tuple <= 0:
        raise InputShapeError(f"fields_per_tuple must be positive, got {fields_per_tuple}")
    if len(params) % fields_per_tuple != 0:
        raise InputShapeError(
            f"{len(params)} parameters cannot be split into tuples of {fields_per_tuple}"
        )

    tuple_count = len(params) // fields_per_tuple
    if tuple_count == 0:
        return 0

    total = 0
    for i in range(0, len(params), fields_per_tuple):
        total += tuple_sql_length(params[i:i + fields_per_tuple])
    return total + (tuple_count - 1) * len(TUPLE_SEPARATOR)


def insert_prefix(table: str, columns: Sequence[str]) -> str:
    """Statement text up to the first tuple."""
    return f"INSERT INTO {table} ({','.join(columns)}) VALUES "


def render_insert(table: str, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> str:
    """
    Render a complete INSERT statement with literal values.

    Args:
        table: Target table name
        columns: Column names in order
        rows: Row value lists in column order

    Returns:
        Literal SQL statement
    """
    return insert_prefix(table, columns) + TUPLE_SEPARATOR.join(tuple_sql(row) for row in rows)


def placeholder_insert(
    table: str,
    columns: Sequence[str],
    row_count: int,
    placeholder: str = "?"
) -> str:
    """
    Build the parameterized INSERT statement for row_count rows.

    Args:
        table: Target table name
        columns: Column names in order
        row_count: Number of value tuples
        placeholder: Parameter marker of the driver ("?" or "%s")

    Returns:
        SQL statement with placeholders
    """
    row = "(" + ",".join([placeholder] * len(columns)) + ")"
    return insert_prefix(table, columns) + TUPLE_SEPARATOR.join([row] * row_count)


def flatten_rows(rows: Sequence[Sequence[Any]]) -> List[Any]:
    """Flatten row value lists into one positional parameter list."""
    params: List[Any] = []
    for row in rows:
        params.extend(row)
    return params

