"""CSV / XLSX upload readers."""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime
from io import BytesIO
from pathlib import Path
from typing import Union

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ...errors import MalformedFileError, UnsupportedFormatError

logger = logging.getLogger(__name__)

Cell = Union[str, int, float, bool, datetime, date, None]

SUPPORTED_SUFFIXES = {".csv", ".xlsx"}


@dataclass(slots=True)
class SpreadsheetTable:
    """Header plus data rows, each data row tagged with its spreadsheet row number."""

    headers: list[str]
    rows: list[tuple[int, list[Cell]]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.rows)


def file_suffix(filename: str) -> str:
    return Path(filename or "").suffix.lower()


def _is_blank(cells: list[Cell]) -> bool:
    return all(cell is None or (isinstance(cell, str) and not cell.strip()) for cell in cells)


def _header_label(cell: Cell) -> str:
    return "" if cell is None else str(cell).strip()


def _read_csv(content: bytes) -> list[list[Cell]]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise MalformedFileError("CSV file is not valid UTF-8 text.") from exc
    try:
        return [list(row) for row in csv.reader(io.StringIO(text, newline=""))]
    except csv.Error as exc:
        raise MalformedFileError(f"CSV file could not be parsed: {exc}") from exc


def _read_xlsx(content: bytes) -> list[list[Cell]]:
    try:
        workbook = load_workbook(filename=BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
        raise MalformedFileError("Excel file is corrupt or not an .xlsx workbook.") from exc
    try:
        worksheet = workbook.active
        if worksheet is None:
            raise MalformedFileError("Excel workbook has no worksheets.")
        return [list(row) for row in worksheet.iter_rows(values_only=True)]
    except (zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
        raise MalformedFileError("Excel worksheet could not be read.") from exc
    finally:
        workbook.close()


def read_table(content: bytes, filename: str) -> SpreadsheetTable:
    """Read an uploaded spreadsheet into a header and its non-blank data rows."""
    suffix = file_suffix(filename)
    if suffix not in SUPPORTED_SUFFIXES:
        raise UnsupportedFormatError("Only .csv and .xlsx files are supported.")

    raw_rows = _read_csv(content) if suffix == ".csv" else _read_xlsx(content)

    header_index = next((i for i, row in enumerate(raw_rows) if not _is_blank(row)), None)
    if header_index is None:
        raise MalformedFileError("File is empty; expected a header row.")

    headers = [_header_label(cell) for cell in raw_rows[header_index]]
    table = SpreadsheetTable(headers=headers)
    for offset, cells in enumerate(raw_rows[header_index + 1 :], start=header_index + 2):
        if _is_blank(cells):
            continue
        table.rows.append((offset, cells))

    if not table.rows:
        raise MalformedFileError("File must contain a header row and at least one data row.")
    logger.debug("Read %s with %d data rows", filename, table.total)
    return table
