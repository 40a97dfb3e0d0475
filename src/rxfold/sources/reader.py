"""Tabular reader for pharmacy exports (CSV, XLSX and legacy XLS).

Two shapes come out of here:
- a grid: list of rows, each a list of cell strings, no header assumed
- records: list of dicts keyed by header name

Walgreens exports put a free-text patient block above the prescription
table, so the header is not in row 0. rows_to_records() recognizes that
layout and emits the preamble lines as tagged records ahead of the table rows.
"""

from __future__ import annotations

import csv
import io
import logging
import os
import re
import zipfile
from datetime import date, datetime

import openpyxl
import xlrd
from openpyxl.utils.exceptions import InvalidFileException
from xlrd.compdoc import CompDocError

from rxfold.errors import UnreadableFileError, UnsupportedFileTypeError
from rxfold.models import PATIENT_INFO_KEY, PATIENT_LINE_INDEX_KEY, ROW_NUMBER_KEY, RawRow
from rxfold.sources.base import WALGREENS_CONFIG

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = (".csv",)
EXCEL_EXTENSIONS = (".xlsx", ".xlsm")
LEGACY_EXCEL_EXTENSIONS = (".xls",)
SUPPORTED_EXTENSIONS = CSV_EXTENSIONS + EXCEL_EXTENSIONS + LEGACY_EXCEL_EXTENSIONS

# Tried in order; cp1252 decodes every byte it defines, the rest are replaced
CSV_ENCODINGS = ("utf-8-sig", "cp1252")


def read_grid(file_path: str) -> list[list[str]]:
    """Read a CSV, XLSX or XLS file into a header-less grid of strings.

    Raises UnsupportedFileTypeError for any other extension and
    UnreadableFileError when the file cannot be opened or decoded.
    """
    extension = os.path.splitext(file_path)[1].lower()
    if extension in CSV_EXTENSIONS:
        grid = _read_csv_grid(file_path)
    elif extension in EXCEL_EXTENSIONS:
        grid = _read_excel_grid(file_path)
    elif extension in LEGACY_EXCEL_EXTENSIONS:
        grid = _read_xls_grid(file_path)
    else:
        raise UnsupportedFileTypeError(extension)
    logger.debug("Read %d rows from %s", len(grid), file_path)
    return grid


def read_records(file_path: str) -> list[RawRow]:
    """Read a file into header-keyed records (see rows_to_records)."""
    return rows_to_records(read_grid(file_path))


def _decode_csv(raw: bytes, file_path: str) -> str:
    """Decode CSV bytes as UTF-8, falling back to cp1252 for legacy exports."""
    try:
        return raw.decode(CSV_ENCODINGS[0])
    except UnicodeDecodeError:
        logger.info("%s is not valid UTF-8, decoding as %s", file_path, CSV_ENCODINGS[1])
        return raw.decode(CSV_ENCODINGS[1], errors="replace")


def _read_csv_grid(file_path: str) -> list[list[str]]:
    try:
        with open(file_path, "rb") as f:
            raw = f.read()
    except OSError as e:
        raise UnreadableFileError(f"Could not read CSV file {file_path}: {e}") from e

    text = _decode_csv(raw, file_path)
    try:
        rows = csv.reader(io.StringIO(text, newline=""))
        return [[cell.strip() for cell in row] for row in rows]
    except csv.Error as e:
        raise UnreadableFileError(f"Could not read CSV file {file_path}: {e}") from e


def _read_xls_grid(file_path: str) -> list[list[str]]:
    """Read the first sheet of a legacy BIFF workbook."""
    try:
        book = xlrd.open_workbook(file_path)
    except (OSError, xlrd.XLRDError, CompDocError) as e:
        raise UnreadableFileError(f"Excel parsing error: {e}") from e

    try:
        sheet = book.sheet_by_index(0)
        grid = [
            [cell_to_text(_xls_cell_value(cell, book.datemode)) for cell in row]
            for row in sheet.get_rows()
        ]
    finally:
        book.release_resources()

    while grid and not any(grid[-1]):
        grid.pop()
    return grid


def _xls_cell_value(cell, datemode: int):
    # xlrd hands back dates as serial floats
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate_as_datetime(cell.value, datemode)
    return cell.value


def _read_excel_grid(file_path: str) -> list[list[str]]:
    try:
        wb = openpyxl.load_workbook(file_path, read_only=True, data_only=True)
    except (OSError, InvalidFileException, zipfile.BadZipFile, KeyError) as e:
        raise UnreadableFileError(f"Excel parsing error: {e}") from e

    try:
        # First sheet only
        ws = wb.worksheets[0]
        grid = [[cell_to_text(v) for v in row] for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()

    # Read-only worksheets pad rows to the sheet width; drop trailing empties
    while grid and not any(grid[-1]):
        grid.pop()
    return grid


def cell_to_text(value) -> str:
    """Render a spreadsheet cell the way it reads in a CSV export."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return f"{value.month:02d}/{value.day:02d}/{value.year:04d}"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def find_header_row(grid: list[list[str]], token: str = WALGREENS_CONFIG.header_token) -> int:
    """Index of the first row whose first cell is exactly `token`, or -1."""
    for i, row in enumerate(grid):
        if row and row[0].strip() == token:
            return i
    return -1


def is_banner(row: list[str], patterns: list[str] | None = None) -> bool:
    """True if any cell of the row is one of the known boilerplate banners."""
    patterns = WALGREENS_CONFIG.banner_patterns if patterns is None else patterns
    return any(re.search(p, cell) for cell in row for p in patterns)


def row_to_line(row: list[str]) -> str:
    """Join a preamble row back into a single text line without delimiter noise."""
    line = ",".join(row).replace('"', "")
    return line.rstrip(", \t").strip()


def clean_header(header: str) -> str:
    return header.strip().replace('"', "")


def map_row(headers: list[str], row: list[str]) -> RawRow:
    """Map a row onto headers by position; missing cells become ''."""
    return {h: (row[i] if i < len(row) else "") for i, h in enumerate(headers)}


def rows_to_records(grid: list[list[str]]) -> list[RawRow]:
    """Convert a grid into header-keyed records.

    If a row starting with the Walgreens header token exists, everything
    above it (minus banners and blank lines) becomes tagged preamble records
    and the rows below it are mapped onto that header. Otherwise row 0 is the
    header. Blank table rows are dropped; every table record keeps its
    1-based grid row under ROW_NUMBER_KEY.
    """
    if not grid:
        return []

    header_idx = find_header_row(grid)
    if header_idx == -1:
        return _table_records(grid, 0)

    records: list[RawRow] = []
    line_index = 0
    for row in grid[:header_idx]:
        if is_banner(row):
            continue
        line = row_to_line(row)
        if line:
            records.append({PATIENT_INFO_KEY: line, PATIENT_LINE_INDEX_KEY: str(line_index)})
            line_index += 1

    records.extend(_table_records(grid, header_idx))
    return records


def _table_records(grid: list[list[str]], header_idx: int) -> list[RawRow]:
    headers = [clean_header(h) for h in grid[header_idx]]
    records = []
    for i in range(header_idx + 1, len(grid)):
        row = grid[i]
        if not any(row):
            continue
        record = map_row(headers, row)
        record[ROW_NUMBER_KEY] = str(i + 1)
        records.append(record)
    return records
