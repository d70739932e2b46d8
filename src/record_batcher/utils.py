"""
Utility functions for the Record Batcher command line.
"""
import json
import logging
import sys
from typing import Any, Dict, Iterator, List, Tuple

from record_batcher.config import LOG_DATE_FORMAT, LOG_FORMAT, LOG_LEVEL
from record_batcher.exceptions import InputShapeError


def setup_logging(verbose: bool = False) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        verbose: Log at DEBUG level instead of the configured level

    Returns:
        Logger instance
    """
    logger = logging.getLogger("record_batcher")
    level = logging.DEBUG if verbose else getattr(logging, LOG_LEVEL, logging.INFO)

    # Replace handlers from an earlier call so the stream is the current stderr
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logger.addHandler(console_handler)

    logger.setLevel(level)
    return logger


def read_json_lines(lines: Iterator[str]) -> Iterator[Dict[str, Any]]:
    """
    Parse JSON-lines input one record at a time.

    Blank lines are skipped.

    Args:
        lines: Iterator of text lines

    Yields:
        One decoded record per line

    Raises:
        InputShapeError: If a line is not valid JSON
    """
    for line_number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            yield json.loads(line)
        except json.JSONDecodeError as e:
            raise InputShapeError(f"Invalid JSON on line {line_number}: {e.msg}") from e


def parse_filters(filters: Tuple[str, ...]) -> List[Tuple[str, str]]:
    """
    Parse column=value filter expressions.

    Args:
        filters: Expressions such as ("username=admin",)

    Returns:
        List of (column, value) pairs

    Raises:
        ValueError: If an expression has no '='
    """
    parsed = []
    for expression in filters:
        column, sep, value = expression.partition("=")
        if not sep or not column.strip():
            raise ValueError(f"Invalid filter '{expression}', expected column=value")
        parsed.append((column.strip().lower(), value))
    return parsed


def matches_filters(record: Dict[str, Any], filters: List[Tuple[str, str]]) -> bool:
    """Validator accepting records whose columns equal every filter value."""
    for column, value in filters:
        if column not in record:
            return False
        actual = record[column]
        if value.lower() == "null":
            if actual is not None:
                return False
        elif actual is None or str(actual) != value:
            return False
    return True


def record_to_json(record: Dict[str, Any]) -> str:
    """Encode a record as one JSON line; dates and decimals become strings."""
    return json.dumps(record, default=str)
