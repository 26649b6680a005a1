"""Turn uploaded spreadsheet bytes into ordered row records.

Only the first sheet is read. The first non-blank row is the header row;
blank headers become ``__EMPTY``, ``__EMPTY_1``... and repeated headers get a
``_1``, ``_2`` suffix so every column keeps a unique key. Fully blank rows are
skipped. Nothing is persisted here.
"""

from __future__ import annotations

import csv
import datetime as dt
import io
import logging
from dataclasses import dataclass
from dataclasses import field
from pathlib import PurePath
from typing import Any

import openpyxl
import xlrd
from django.conf import settings

from event_checkin.preregistration.exceptions import FormatError
from event_checkin.preregistration.exceptions import PayloadTooLargeError
from event_checkin.preregistration.exceptions import UnsupportedTypeError

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ALLOWED_EXTENSIONS = (".xlsx", ".xls", ".csv")
EMPTY_HEADER = "__EMPTY"
CSV_DELIMITERS = ",;\t|"


@dataclass
class ParsedUpload:
    headers: list[str]
    rows: list[dict[str, Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


def max_upload_bytes() -> int:
    return int(
        getattr(settings, "PREREGISTRATION_MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES)
    )


def normalize_cell(value: Any) -> Any:
    """Reduce a cell to a JSON primitive; blank strings become None."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, dt.datetime):
        if value.time() == dt.time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, (dt.date, dt.time)):
        return value.isoformat()
    text = str(value).strip()
    return text or None


def unique_headers(raw_headers: list[Any]) -> list[str]:
    headers: list[str] = []
    seen: dict[str, int] = {}
    empty_count = 0
    for raw in raw_headers:
        name = normalize_cell(raw)
        name = str(name) if name is not None else ""
        if not name:
            name = EMPTY_HEADER if empty_count == 0 else f"{EMPTY_HEADER}_{empty_count}"
            empty_count += 1
        if name in seen:
            seen[name] += 1
            candidate = f"{name}_{seen[name]}"
            while candidate in seen:
                seen[name] += 1
                candidate = f"{name}_{seen[name]}"
            name = candidate
        seen.setdefault(name, 0)
        headers.append(name)
    return headers


def rows_to_records(matrix: list[list[Any]]) -> ParsedUpload:
    """Build records from a cell matrix whose first non-blank row is the header."""
    cleaned = [[normalize_cell(cell) for cell in row] for row in matrix]
    cleaned = [row for row in cleaned if any(cell is not None for cell in row)]
    if not cleaned:
        msg = "The file is empty."
        raise FormatError(msg)

    header_row, *data_rows = cleaned
    # Trailing blank header cells with no data under them are not columns.
    width = max(len(row) for row in cleaned)
    while width and all(
        (row[width - 1] if len(row) >= width else None) is None for row in cleaned
    ):
        width -= 1
    headers = unique_headers((header_row + [None] * width)[:width])
    if not data_rows:
        msg = "The file has a header row but no data rows."
        raise FormatError(msg)

    records = []
    for row in data_rows:
        padded = (row + [None] * width)[:width]
        records.append(dict(zip(headers, padded, strict=True)))
    return ParsedUpload(headers=headers, rows=records)


def _decode_text(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.debug("Upload is not UTF-8, falling back to latin-1")
        return content.decode("latin-1")


def read_csv(content: bytes) -> list[list[Any]]:
    text = _decode_text(content)
    if "\x00" in text:
        msg = "The file does not look like CSV text."
        raise FormatError(msg)
    try:
        dialect = csv.Sniffer().sniff(text[:4096], delimiters=CSV_DELIMITERS)
    except csv.Error:
        dialect = csv.excel
    try:
        return list(csv.reader(io.StringIO(text), dialect))
    except csv.Error as exc:
        msg = f"Malformed CSV: {exc}"
        raise FormatError(msg) from exc


def read_xlsx(content: bytes) -> list[list[Any]]:
    try:
        wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as exc:  # noqa: BLE001 - zip/xml errors vary by file
        msg = "The file is not a valid .xlsx workbook."
        raise FormatError(msg) from exc
    try:
        if not wb.worksheets:
            msg = "The workbook has no sheets."
            raise FormatError(msg)
        ws = wb.worksheets[0]
        return [list(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def _xls_cell(cell, datemode: int) -> Any:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
        return None
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    if cell.ctype == xlrd.XL_CELL_DATE:
        try:
            return xlrd.xldate_as_datetime(cell.value, datemode)
        except (xlrd.xldate.XLDateError, ValueError, OverflowError):
            return cell.value
    return cell.value


def read_xls(content: bytes) -> list[list[Any]]:
    try:
        book = xlrd.open_workbook(file_contents=content, on_demand=True)
    except Exception as exc:  # noqa: BLE001 - xlrd raises several unrelated types
        msg = "The file is not a valid .xls workbook."
        raise FormatError(msg) from exc
    try:
        if book.nsheets == 0:
            msg = "The workbook has no sheets."
            raise FormatError(msg)
        sheet = book.sheet_by_index(0)
        return [
            [_xls_cell(cell, book.datemode) for cell in sheet.row(rx)]
            for rx in range(sheet.nrows)
        ]
    finally:
        book.release_resources()


READERS = {
    ".csv": read_csv,
    ".xlsx": read_xlsx,
    ".xls": read_xls,
}


def parse_upload(
    content: bytes, filename: str, *, max_bytes: int | None = None
) -> ParsedUpload:
    """Parse an uploaded attendee sheet.

    Raises PayloadTooLargeError, UnsupportedTypeError or FormatError.
    """
    limit = max_upload_bytes() if max_bytes is None else max_bytes
    if len(content) > limit:
        msg = f"The file is larger than the {limit} byte upload limit."
        raise PayloadTooLargeError(msg)

    extension = PurePath(filename or "").suffix.lower()
    if extension not in ALLOWED_EXTENSIONS:
        msg = (
            f"Unsupported file type '{extension or filename}'. "
            f"Upload one of: {', '.join(ALLOWED_EXTENSIONS)}."
        )
        raise UnsupportedTypeError(msg)

    if not content:
        msg = "The file is empty."
        raise FormatError(msg)

    parsed = rows_to_records(READERS[extension](content))
    logger.info(
        "Parsed %s: %s columns, %s rows", filename, len(parsed.headers), len(parsed)
    )
    return parsed
