"""Decode spreadsheet bytes into header-keyed sheets or a positional grid."""

from __future__ import annotations

import csv
import io
import logging
import math
import zipfile
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, List, NamedTuple, Sequence, Tuple

import xlrd
from xlrd.xldate import XLDateError
from openpyxl import load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from .errors import SheetIndexError, UnsupportedFormatError
from .models import CellValue, GridCell, Row, Sheet, Workbook

LOGGER = logging.getLogger(__name__)

FORMAT_XLSX = "xlsx"
FORMAT_XLS = "xls"
FORMAT_CSV = "csv"

_MIME_FORMATS = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": FORMAT_XLSX,
    "application/vnd.ms-excel": FORMAT_XLS,
    "text/csv": FORMAT_CSV,
}
_ZIP_MAGIC = b"PK\x03\x04"
_OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
CSV_SHEET_NAME = "Sheet1"


class _SheetValues(NamedTuple):
    """Occupied rectangle of one sheet and the 1-based position of its top-left cell."""

    name: str
    values: List[List[CellValue]]
    first_row: int = 1
    first_col: int = 1


def resolve_format(content: bytes, declared: str | None = None) -> str:
    """Return the container format from a declared format/MIME type or the magic bytes."""

    if declared:
        key = declared.strip().lower()
        if key in (FORMAT_XLSX, FORMAT_XLS, FORMAT_CSV):
            return key
        if key in _MIME_FORMATS:
            return _MIME_FORMATS[key]

    if content.startswith(_ZIP_MAGIC):
        return FORMAT_XLSX
    if content.startswith(_OLE2_MAGIC):
        return FORMAT_XLS
    raise UnsupportedFormatError(
        f"Unrecognized spreadsheet container (declared format: {declared or 'none'})"
    )


def decode_workbook(content: bytes, fmt: str | None = None) -> Workbook:
    """Parse raw bytes into a workbook of header-keyed sheets."""

    sheets = [
        _rows_to_sheet(sheet.name, sheet.values)
        for sheet in _read_sheets(content, resolve_format(content, fmt))
    ]
    LOGGER.debug("Decoded workbook with sheets: %s", [sheet.name for sheet in sheets])
    return Workbook(sheets=sheets)


def decode_grid(
    content: bytes,
    sheet_index: int = 0,
    fmt: str | None = None,
) -> Tuple[str, List[List[GridCell]]]:
    """Return the selected sheet as rows of addressed cells covering its occupied range.

    Empty cells inside the range are kept with a ``None`` value.
    """

    sheets = _read_sheets(content, resolve_format(content, fmt))
    _check_sheet_index(len(sheets), sheet_index)
    sheet = sheets[sheet_index]
    return sheet.name, _grid_from_values(
        sheet.values, first_row=sheet.first_row, first_col=sheet.first_col
    )


# Internal -------------------------------------------------------------------
def _check_sheet_index(count: int, index: int) -> None:
    if not 0 <= index < count:
        raise SheetIndexError(f"Sheet index {index} is out of range for {count} sheet(s)")


def _read_sheets(content: bytes, container: str) -> List[_SheetValues]:
    if container == FORMAT_CSV:
        return [_SheetValues(CSV_SHEET_NAME, _read_csv(content))]
    if container == FORMAT_XLS:
        return _read_xls(content)
    return _read_xlsx(content)


def _read_xlsx(content: bytes) -> List[_SheetValues]:
    try:
        book = load_workbook(io.BytesIO(content), data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise UnsupportedFormatError(f"Could not read XLSX workbook: {exc}") from exc

    try:
        sheets = []
        for ws in book.worksheets:
            if _is_blank_sheet(ws):
                sheets.append(_SheetValues(ws.title, []))
            else:
                sheets.append(_SheetValues(ws.title, _occupied_values(ws), ws.min_row, ws.min_column))
        return sheets
    finally:
        book.close()


def _is_blank_sheet(ws: Worksheet) -> bool:
    # openpyxl reports A1 as the dimension of a sheet without cells
    return ws.max_row == 1 and ws.max_column == 1 and ws.cell(row=1, column=1).value is None


def _occupied_values(ws: Worksheet) -> List[List[CellValue]]:
    return [
        [_cell_value(value) for value in row]
        for row in ws.iter_rows(
            min_row=ws.min_row,
            max_row=ws.max_row,
            min_col=ws.min_column,
            max_col=ws.max_column,
            values_only=True,
        )
    ]


def _read_xls(content: bytes) -> List[_SheetValues]:
    try:
        book = xlrd.open_workbook(file_contents=content)
    except Exception as exc:
        # xlrd surfaces damaged files as XLRDError, CompDocError or struct errors
        raise UnsupportedFormatError(f"Could not read XLS workbook: {exc}") from exc

    try:
        return [
            _xls_occupied(book.sheet_by_index(idx), book.datemode)
            for idx in range(book.nsheets)
        ]
    finally:
        book.release_resources()


def _xls_occupied(ws: Any, datemode: int) -> _SheetValues:
    values = [
        [_xls_cell_value(cell, datemode) for cell in ws.row(r)]
        for r in range(ws.nrows)
    ]
    rows = [r for r, row in enumerate(values) if any(value is not None for value in row)]
    if not rows:
        return _SheetValues(ws.name, [])

    cols = [c for c in range(ws.ncols) if any(row[c] is not None for row in values)]
    top, bottom, left, right = rows[0], rows[-1], cols[0], cols[-1]
    return _SheetValues(
        ws.name,
        [row[left:right + 1] for row in values[top:bottom + 1]],
        top + 1,
        left + 1,
    )


def _xls_cell_value(cell: Any, datemode: int) -> CellValue:
    ctype = cell.ctype
    if ctype == xlrd.XL_CELL_TEXT:
        return cell.value or None
    if ctype == xlrd.XL_CELL_NUMBER:
        # BIFF stores every number as a double
        return int(cell.value) if cell.value.is_integer() else cell.value
    if ctype == xlrd.XL_CELL_DATE:
        try:
            return xlrd.xldate_as_datetime(cell.value, datemode).isoformat()
        except XLDateError:
            return cell.value
    if ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    # Empty, blank and error cells
    return None


def _rows_to_sheet(name: str, values: Sequence[Sequence[CellValue]]) -> Sheet:
    if not values:
        return Sheet(name=name, columns=[])

    header = ["" if value is None else str(value) for value in values[0]]
    # Duplicate headers share one key; the rightmost cell wins
    columns = list(dict.fromkeys(header))

    rows: List[Row] = []
    for raw in values[1:]:
        if all(value is None for value in raw):
            continue
        row: Row = {column: None for column in columns}
        for idx, column in enumerate(header):
            if idx < len(raw):
                row[column] = raw[idx]
        rows.append(row)
    return Sheet(name=name, columns=columns, rows=rows)


def _grid_from_values(
    values: Sequence[Sequence[CellValue]],
    *,
    first_row: int,
    first_col: int,
) -> List[List[GridCell]]:
    width = max((len(row) for row in values), default=0)
    grid: List[List[GridCell]] = []
    for r_offset, row in enumerate(values):
        grid.append(
            [
                GridCell(
                    cell=f"{get_column_letter(first_col + c_offset)}{first_row + r_offset}",
                    value=row[c_offset] if c_offset < len(row) else None,
                )
                for c_offset in range(width)
            ]
        )
    return grid


def _cell_value(value: Any) -> CellValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def _read_csv(content: bytes) -> List[List[CellValue]]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise UnsupportedFormatError("CSV content is not valid UTF-8 text") from exc

    reader = csv.reader(io.StringIO(text))
    rows = [[_coerce_text(field) for field in row] for row in reader]
    # Trailing blank lines carry no cells
    while rows and all(value is None for value in rows[-1]):
        rows.pop()
    return rows


def _coerce_text(text: str) -> CellValue:
    stripped = text.strip()
    if not stripped:
        return None
    lowered = stripped.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if "_" in stripped:
        return stripped
    try:
        return int(stripped)
    except ValueError:
        pass
    try:
        number = float(stripped)
    except ValueError:
        return stripped
    return number if math.isfinite(number) else stripped
