"""
Spreadsheet to delimited-text conversion.

Reads an XLSX workbook with openpyxl and writes one sheet as CSV.
"""

from __future__ import annotations

import csv
import os
import zipfile
from datetime import date, datetime, time
from typing import Any
from xml.etree.ElementTree import ParseError

import structlog
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

logger = structlog.get_logger(__name__)

# Errors openpyxl raises for corrupt or unsupported workbook content
_READ_ERRORS = (
    InvalidFileException,
    zipfile.BadZipFile,
    ParseError,
    KeyError,
    ValueError,
    TypeError,
    AttributeError,
)


class ConversionError(Exception):
    """Raised when a workbook cannot be converted."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to convert {path}: {reason}")


def get_extension(path: str) -> str:
    """
    Get the extension of the last path component, including the dot.

    Leading dots of hidden files are not treated as an extension.

    Args:
        path: File path or object name

    Returns:
        Extension such as ".xlsx", or "" when there is none
    """
    return os.path.splitext(path)[1]


def has_extension(path: str, expected: str) -> bool:
    """Case-insensitive extension check."""
    extension = get_extension(path)
    return bool(extension) and extension.lower() == expected.lower()


def replace_extension(path: str, new_extension: str) -> str:
    """
    Substitute the final extension of a path.

    Directory and base name are preserved. Paths without an extension get
    the new extension appended. An empty path is returned unchanged.

    Args:
        path: File path or object name
        new_extension: Replacement extension including the dot (".csv")

    Returns:
        Path with the extension replaced
    """
    if not path:
        return path

    root, _ = os.path.splitext(path)
    return f"{root}{new_extension}"


def _format_cell(value: Any) -> Any:
    """Render a cell value the way a spreadsheet CSV export shows it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def xlsx_to_csv(
    source_path: str,
    dest_path: str,
    sheet_name: str | None = None,
    delimiter: str = ",",
    encoding: str = "utf-8",
) -> int:
    """
    Convert one sheet of an XLSX workbook to CSV.

    Formulas are exported as their cached values.

    Args:
        source_path: Local path of the workbook
        dest_path: Local path for the CSV output
        sheet_name: Sheet to export. Defaults to the active sheet.
        delimiter: Field delimiter
        encoding: Output text encoding

    Returns:
        Number of rows written

    Raises:
        ConversionError: If the workbook cannot be read or the sheet is missing
    """
    logger.info(
        "conversion_starting",
        source=source_path,
        dest=dest_path,
        sheet_name=sheet_name,
    )

    try:
        workbook = load_workbook(source_path, read_only=True, data_only=True)
    except (OSError, *_READ_ERRORS) as e:
        raise ConversionError(source_path, f"unreadable workbook: {e}") from e

    try:
        if sheet_name is None:
            worksheet = workbook.active
        elif sheet_name in workbook.sheetnames:
            worksheet = workbook[sheet_name]
        else:
            raise ConversionError(source_path, f"sheet not found: {sheet_name}")

        if worksheet is None:
            raise ConversionError(source_path, "workbook has no worksheets")
        if not hasattr(worksheet, "iter_rows"):
            raise ConversionError(source_path, f"sheet is not a worksheet: {worksheet.title}")

        row_count = 0
        # Read-only worksheets parse their XML lazily, so malformed sheet data
        # surfaces from iter_rows rather than load_workbook.
        with open(dest_path, "w", newline="", encoding=encoding) as f:
            writer = csv.writer(f, delimiter=delimiter)
            for row in worksheet.iter_rows(values_only=True):
                writer.writerow([_format_cell(value) for value in row])
                row_count += 1

    except OSError as e:
        raise ConversionError(source_path, f"cannot write {dest_path}: {e}") from e
    except _READ_ERRORS as e:
        raise ConversionError(source_path, f"unreadable worksheet: {e}") from e
    finally:
        workbook.close()

    logger.info(
        "conversion_completed",
        source=source_path,
        dest=dest_path,
        sheet_title=worksheet.title,
        row_count=row_count,
    )
    return row_count
