"""
batch.py — Transaction source and result sink for batch mode

Input is one "owed,paid" pair of decimal major-unit amounts per line:

    2.12,3.00
    1.97,2.00

Output is one formatted change line per input pair, in input order.
"""

from __future__ import annotations
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Iterable, List, Tuple
import csv
import io
import logging
import os

from .core import CashRegisterError

logger = logging.getLogger(__name__)

MAX_DECIMALS = 2


class FileProcessingError(CashRegisterError):
    def __init__(self, message: str, file_path: str | os.PathLike):
        super().__init__(message, "FILE_PROCESSING_ERROR")
        self.file_path = str(file_path)

    def details(self) -> dict:
        return {"filePath": self.file_path}


class CSVParsingError(CashRegisterError):
    def __init__(self, message: str, line_number: int, line: str):
        super().__init__(f"Line {line_number}: {message}", "CSV_PARSING_ERROR")
        self.line_number = line_number
        self.line = line

    def details(self) -> dict:
        return {"lineNumber": self.line_number, "line": self.line}


def _parse_amount(raw: str, field_name: str, line_number: int, line: str, max_decimals: int) -> Decimal:
    if not raw:
        raise CSVParsingError(f"Missing {field_name}", line_number, line)
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise CSVParsingError(
            f"Invalid {field_name}: '{raw}' is not a valid number", line_number, line
        ) from None
    if not amount.is_finite():
        raise CSVParsingError(
            f"Invalid {field_name}: '{raw}' must be a finite number", line_number, line
        )
    if amount < 0:
        raise CSVParsingError(
            f"Invalid {field_name}: '{raw}' cannot be negative", line_number, line
        )
    if -amount.as_tuple().exponent > max_decimals:
        raise CSVParsingError(
            f"Invalid {field_name}: '{raw}' has too many decimal places", line_number, line
        )
    return amount


def parse_transactions(text: str, *, max_decimals: int = MAX_DECIMALS) -> List[Tuple[Decimal, Decimal]]:
    """
    Parse "owed,paid" lines into Decimal pairs.

    Blank lines are skipped; line numbers count non-blank lines from 1.

    Raises:
        CSVParsingError: wrong column count, missing, non-numeric, non-finite,
            negative or over-precise value
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    pairs: List[Tuple[Decimal, Decimal]] = []

    for line_number, line in enumerate(lines, start=1):
        row = next(csv.reader(io.StringIO(line)))
        parts = [part.strip() for part in row]
        if len(parts) != 2:
            raise CSVParsingError(
                f"Expected 2 comma-separated values, got {len(parts)}", line_number, line
            )
        owed = _parse_amount(parts[0], "amount owed", line_number, line, max_decimals)
        paid = _parse_amount(parts[1], "amount paid", line_number, line, max_decimals)
        pairs.append((owed, paid))

    return pairs


def file_exists(path: str | os.PathLike) -> bool:
    """True for a readable regular file."""
    candidate = Path(path)
    return candidate.is_file() and os.access(candidate, os.R_OK)


def read_transactions(path: str | os.PathLike, *, max_decimals: int = MAX_DECIMALS) -> List[Tuple[Decimal, Decimal]]:
    try:
        content = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FileProcessingError(f"Failed to read file: {exc}", path) from exc
    pairs = parse_transactions(content, max_decimals=max_decimals)
    logger.debug("Parsed %d transactions from %s", len(pairs), path)
    return pairs


def write_results(path: str | os.PathLike, results: Iterable[str]) -> None:
    """Write one line per result, joined by newlines, no trailing newline."""
    try:
        Path(path).write_text("\n".join(results), encoding="utf-8")
    except OSError as exc:
        raise FileProcessingError(f"Failed to write file: {exc}", path) from exc
