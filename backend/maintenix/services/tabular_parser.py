import csv
import io
import logging
import zipfile
from datetime import date, datetime, time
from pathlib import PurePosixPath
from typing import Any, Iterable
from urllib.parse import urlsplit

import openpyxl
import xlrd
from openpyxl.utils.exceptions import InvalidFileException
from xlrd.compdoc import CompDocError

from maintenix.models.enums import FileFormat
from maintenix.services.errors import ParseError


logger = logging.getLogger(__name__)

Cell = str | int | float
Row = dict[str, Cell]

_CSV_DELIMITERS = ",;\t|"


def detect_format(name: str) -> FileFormat:
    """Formato a partir de la extension de un nombre de fichero o URL."""
    path = urlsplit(name).path if "://" in name else name
    suffix = PurePosixPath(path).suffix.lower().lstrip(".")
    try:
        return FileFormat(suffix)
    except ValueError:
        raise ParseError(f"Unsupported file format: {suffix or 'sin extension'}")


def parse_rows(content: bytes, file_format: FileFormat | str) -> list[Row]:
    file_format = FileFormat(file_format)
    if file_format is FileFormat.CSV:
        rows = _parse_csv(content)
    elif file_format is FileFormat.XLSX:
        rows = _parse_xlsx(content)
    else:
        rows = _parse_xls(content)
    logger.info("Parsed %s rows from %s content", len(rows), file_format.value)
    return rows


def _parse_csv(content: bytes) -> list[Row]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ParseError("CSV must be UTF-8 encoded")

    reader = csv.DictReader(io.StringIO(text, newline=""), delimiter=_sniff_delimiter(text))
    try:
        # fieldnames lee la cabecera: tambien puede lanzar csv.Error
        if not reader.fieldnames:
            raise ParseError("CSV file is empty")
        rows = []
        for raw in reader:
            row = _normalize_csv_row(raw)
            if row:
                rows.append(row)
        return rows
    except csv.Error as exc:
        raise ParseError(f"Malformed CSV: {exc}")


def _sniff_delimiter(text: str) -> str:
    # solo el separador; las comillas siguen el dialecto excel ("" dentro de campos)
    header = text.split("\n", 1)[0]
    try:
        return csv.Sniffer().sniff(header, delimiters=_CSV_DELIMITERS).delimiter
    except csv.Error:
        return ","


def _normalize_csv_row(raw: dict[str | None, Any]) -> Row:
    row: Row = {}
    for key, value in raw.items():
        # columnas sobrantes de DictReader (restkey=None)
        if key is None or value is None:
            continue
        name = key.strip()
        if not name:
            continue
        if value.strip():
            row[name] = value
    return row


def _parse_xlsx(content: bytes) -> list[Row]:
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise ParseError(f"Could not read Excel file: {exc}")
    try:
        if not workbook.sheetnames:
            raise ParseError("Workbook has no sheets")
        sheet = workbook[workbook.sheetnames[0]]
        return _rows_from_matrix(sheet.iter_rows(values_only=True))
    finally:
        workbook.close()


def _parse_xls(content: bytes) -> list[Row]:
    try:
        book = xlrd.open_workbook(file_contents=content)
    except (xlrd.XLRDError, CompDocError, OSError, ValueError, AssertionError) as exc:
        raise ParseError(f"Could not read Excel file: {exc}")
    if book.nsheets == 0:
        raise ParseError("Workbook has no sheets")
    sheet = book.sheet_by_index(0)

    def _matrix():
        for index in range(sheet.nrows):
            values = []
            for cell in sheet.row(index):
                if cell.ctype == xlrd.XL_CELL_DATE:
                    values.append(xlrd.xldate.xldate_as_datetime(cell.value, book.datemode))
                elif cell.ctype == xlrd.XL_CELL_BOOLEAN:
                    values.append(bool(cell.value))
                elif cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
                    values.append(None)
                else:
                    values.append(cell.value)
            yield values

    return _rows_from_matrix(_matrix())


def _rows_from_matrix(matrix: Iterable[Iterable[Any]]) -> list[Row]:
    iterator = iter(matrix)
    header = None
    for values in iterator:
        if any(_is_present(value) for value in values):
            header = [_header_name(value) for value in values]
            break
    if header is None:
        raise ParseError("Sheet is empty")

    rows: list[Row] = []
    for values in iterator:
        row: Row = {}
        for name, value in zip(header, values):
            if not name or not _is_present(value):
                continue
            row[name] = _coerce_cell(value)
        if row:
            rows.append(row)
    return rows


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _header_name(value: Any) -> str:
    if value is None:
        return ""
    return str(_coerce_cell(value)).strip()


def _coerce_cell(value: Any) -> Cell:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (int, float, str)):
        return value
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)
