"""Spreadsheet reading and writing for inbound imports (XLSX and CSV)."""

import csv
import io
import zipfile
from collections.abc import Iterator, Sequence
from datetime import date, datetime
from enum import StrEnum
from pathlib import PurePath
from typing import Any

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.utils.exceptions import InvalidFileException

from src.core.exceptions import UnsupportedFileError

TEMPLATE_HEADERS = ["SKU", "BIN LOCATION", "QUANTITY"]
FAILED_ENTRY_HEADERS = ["Row", "SKU", "Bin", "Quantity", "Failure Reason"]


class SheetFormat(StrEnum):
    XLSX = "xlsx"
    CSV = "csv"


_EXTENSIONS = {
    ".xlsx": SheetFormat.XLSX,
    ".xlsm": SheetFormat.XLSX,
    ".csv": SheetFormat.CSV,
}

_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": SheetFormat.XLSX,
    "text/csv": SheetFormat.CSV,
    "application/csv": SheetFormat.CSV,
}


def detect_format(filename: str | None, content_type: str | None) -> SheetFormat:
    """Pick the reader from the file extension, falling back to the content type."""
    suffix = PurePath(filename or "").suffix.lower()
    if suffix in _EXTENSIONS:
        return _EXTENSIONS[suffix]
    if suffix == ".xls":
        raise UnsupportedFileError(
            "Legacy .xls files are not supported. Save the sheet as .xlsx or .csv and upload again"
        )
    media_type = (content_type or "").split(";")[0].strip().lower()
    if media_type in _CONTENT_TYPES:
        return _CONTENT_TYPES[media_type]
    raise UnsupportedFileError()


def cell_to_str(value: Any) -> str:
    """Render a cell the way it reads in the sheet."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def _read_xlsx(content: bytes) -> list[list[str]]:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise UnsupportedFileError(f"Could not read Excel file: {exc}") from exc
    try:
        if not workbook.worksheets:
            return []
        sheet = workbook.worksheets[0]
        return [[cell_to_str(v) for v in row] for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _read_csv(content: bytes) -> list[list[str]]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise UnsupportedFileError("CSV file must be UTF-8 encoded") from exc
    try:
        return [[cell.strip() for cell in row] for row in csv.reader(io.StringIO(text))]
    except csv.Error as exc:
        raise UnsupportedFileError(f"Could not read CSV file: {exc}") from exc


def read_grid(content: bytes, sheet_format: SheetFormat) -> list[list[str]]:
    """First sheet as rows of string cells (empty cells are "")."""
    if sheet_format == SheetFormat.XLSX:
        return _read_xlsx(content)
    return _read_csv(content)


def iter_data_rows(grid: Sequence[Sequence[str]]) -> Iterator[tuple[int, Sequence[str]]]:
    """Yield (sheet row number, cells) for non-blank rows after the header.

    Row numbers are 1-based as shown in the spreadsheet, so the first data
    row is 2 and skipped blank rows leave gaps.
    """
    for index, cells in enumerate(grid[1:], start=2):
        if any(cell != "" for cell in cells):
            yield index, cells


def build_template_xlsx() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Inbound"
    ws.append(TEMPLATE_HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    ws.column_dimensions["A"].width = 24
    ws.column_dimensions["B"].width = 18
    ws.column_dimensions["C"].width = 12
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def failed_entries_to_csv(entries: Sequence[Any]) -> bytes:
    """Corrective CSV from report failed entries (UTF-8 with BOM for Excel)."""
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(FAILED_ENTRY_HEADERS)
    for entry in entries:
        writer.writerow([entry.row, entry.sku, entry.bin, entry.quantity, entry.reason])
    return ("\ufeff" + buf.getvalue()).encode("utf-8")
