"""File parsing: delimited text, spreadsheets, JSON and XML into ordered rows."""
import csv
import json
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from io import BytesIO, StringIO
from pathlib import PurePath
from typing import Any, Dict, List, Optional
from xml.etree import ElementTree

from openpyxl import load_workbook

from ingestion.exceptions import FileParseError, UnsupportedFileTypeError

logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES = {
    "text/csv": "csv",
    "application/csv": "csv",
    "application/vnd.ms-excel": "excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "excel",
    "application/json": "json",
    "text/xml": "xml",
    "application/xml": "xml",
    "text/plain": "txt",
    "text/tab-separated-values": "tsv",
}

EXTENSION_TYPES = {
    ".csv": "csv",
    ".tsv": "tsv",
    ".txt": "txt",
    ".xlsx": "excel",
    ".xlsm": "excel",
    ".xls": "excel",
    ".json": "json",
    ".xml": "xml",
}

GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}

PROFILE_SAMPLE_ROWS = 100


@dataclass
class ParsedFile:
    columns: List[str]
    rows: List[Dict[str, Any]]


@dataclass
class ColumnProfile:
    column_name: str
    data_type: str
    sample_values: List[Any]
    null_percentage: float
    unique_percentage: float

    def to_prompt(self) -> dict:
        return {
            "columnName": self.column_name,
            "dataType": self.data_type,
            "sampleValues": self.sample_values,
            "nullPercentage": self.null_percentage,
            "uniquePercentage": self.unique_percentage,
        }


def resolve_file_type(mime_type: Optional[str], filename: str) -> str:
    """
    Map a declared MIME type (or, for generic types, the extension) to a file type.

    Raises:
        UnsupportedFileTypeError: if neither identifies a supported format
    """
    mime = (mime_type or "").split(";")[0].strip().lower()
    if mime in SUPPORTED_MIME_TYPES:
        file_type = SUPPORTED_MIME_TYPES[mime]
        # Browsers report .tsv files as text/plain
        if file_type == "txt" and filename.lower().endswith(".tsv"):
            return "tsv"
        return file_type
    if mime in GENERIC_MIME_TYPES:
        extension = PurePath(filename).suffix.lower()
        if extension in EXTENSION_TYPES:
            return EXTENSION_TYPES[extension]
    raise UnsupportedFileTypeError(
        f"Unsupported file type: {mime_type or 'unknown'}. "
        "Supported formats: CSV, Excel, JSON, XML, TXT, TSV"
    )


def parse_file(content: bytes, file_type: str) -> ParsedFile:
    """
    Parse file content into rows keyed by header names, preserving source order.

    Raises:
        FileParseError: if the content cannot be parsed or holds no rows
    """
    parsers = {
        "csv": lambda c: _parse_delimited(c, ","),
        "tsv": lambda c: _parse_delimited(c, "\t"),
        "txt": lambda c: _parse_delimited(c, None),
        "excel": _parse_excel,
        "json": _parse_json,
        "xml": _parse_xml,
    }
    if file_type not in parsers:
        raise UnsupportedFileTypeError(f"No parser for file type '{file_type}'")

    try:
        parsed = parsers[file_type](content)
    except FileParseError:
        raise
    except Exception as e:
        logger.warning(f"Failed to parse {file_type} content: {e}")
        raise FileParseError(f"Could not parse {file_type} file: {e}") from e

    if not parsed.rows:
        raise FileParseError("File contains no data rows")
    logger.info(f"Parsed {len(parsed.rows)} rows with {len(parsed.columns)} columns")
    return parsed


def _decode(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def _clean_value(value: Any) -> Any:
    """Convert cell values into JSON-safe scalars; blanks become None."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (bool, int, float)):
        return value
    return str(value)


def _unique_headers(headers: List[Any]) -> List[str]:
    seen: Dict[str, int] = {}
    result = []
    for index, header in enumerate(headers, start=1):
        name = str(header).strip() if header not in (None, "") else f"column_{index}"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 1
        result.append(name)
    return result


def _rows_from_table(headers: List[Any], records) -> ParsedFile:
    columns = _unique_headers(headers)
    rows = []
    for record in records:
        values = [_clean_value(v) for v in record]
        if all(v is None for v in values):
            continue
        if len(values) > len(columns):
            if any(v is not None for v in values[len(columns):]):
                raise FileParseError(
                    f"Row {len(rows) + 1} has {len(values)} values but the header has {len(columns)} columns"
                )
            values = values[: len(columns)]
        values.extend([None] * (len(columns) - len(values)))
        rows.append(dict(zip(columns, values)))
    return ParsedFile(columns=columns, rows=rows)


def _parse_delimited(content: bytes, delimiter: Optional[str]) -> ParsedFile:
    text = _decode(content)
    if delimiter is None:
        try:
            delimiter = csv.Sniffer().sniff(text[:4096], delimiters=",\t;|").delimiter
        except csv.Error:
            delimiter = ","
    reader = csv.reader(StringIO(text), delimiter=delimiter)
    try:
        headers = next(reader)
    except StopIteration:
        raise FileParseError("File is empty")
    return _rows_from_table(headers, reader)


def _parse_excel(content: bytes) -> ParsedFile:
    workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        records = sheet.iter_rows(values_only=True)
        headers = None
        for record in records:
            if any(v not in (None, "") for v in record):
                headers = list(record)
                break
        if headers is None:
            raise FileParseError("Spreadsheet is empty")
        while headers and headers[-1] in (None, ""):
            headers.pop()
        return _rows_from_table(headers, (list(r)[: len(headers)] for r in records))
    finally:
        workbook.close()


def _parse_json(content: bytes) -> ParsedFile:
    data = json.loads(_decode(content))
    if isinstance(data, dict):
        # {"rows": [...]} style wrappers
        lists = [v for v in data.values() if isinstance(v, list)]
        data = lists[0] if len(lists) == 1 else [data]
    if not isinstance(data, list):
        raise FileParseError("JSON must be an array of objects")

    columns: List[str] = []
    rows = []
    for item in data:
        if not isinstance(item, dict):
            raise FileParseError("JSON array items must be objects")
        for key in item:
            if key not in columns:
                columns.append(key)
        rows.append({k: _clean_value(v) if not isinstance(v, (dict, list)) else v for k, v in item.items()})
    rows = [{c: row.get(c) for c in columns} for row in rows]
    return ParsedFile(columns=columns, rows=rows)


def _parse_xml(content: bytes) -> ParsedFile:
    root = ElementTree.fromstring(content)
    columns: List[str] = []
    rows = []
    for element in root:
        row = {child.tag: _clean_value(child.text) for child in element}
        row.update({k: _clean_value(v) for k, v in element.attrib.items()})
        if not row:
            continue
        for key in row:
            if key not in columns:
                columns.append(key)
        rows.append(row)
    rows = [{c: row.get(c) for c in columns} for row in rows]
    return ParsedFile(columns=columns, rows=rows)


_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")
_DATE_RE = re.compile(r"^\d{1,4}[-/.]\d{1,2}[-/.]\d{1,4}")


def detect_data_type(values: List[Any]) -> str:
    """Guess a column's data type from its non-null values."""
    present = [v for v in values if v is not None and v != ""]
    if not present:
        return "unknown"
    as_text = [str(v).strip() for v in present]
    if all(isinstance(v, bool) or t.lower() in ("true", "false", "yes", "no") for v, t in zip(present, as_text)):
        return "boolean"
    if all(isinstance(v, (int, float)) and not isinstance(v, bool) or _NUMBER_RE.match(t)
           for v, t in zip(present, as_text)):
        return "decimal" if any("." in t for t in as_text) else "integer"
    if all(_DATE_RE.match(t) for t in as_text):
        return "date"
    return "text"


def profile_columns(columns: List[str], rows: List[Dict[str, Any]]) -> List[ColumnProfile]:
    """Build per-column profiles from the first rows of a file."""
    sample = rows[:PROFILE_SAMPLE_ROWS]
    profiles = []
    for column in columns:
        values = [row.get(column) for row in sample]
        present = [v for v in values if v is not None and v != ""]
        total = len(values) or 1
        unique = {json.dumps(v, sort_keys=True, default=str) for v in present}
        profiles.append(
            ColumnProfile(
                column_name=column,
                data_type=detect_data_type(values),
                sample_values=present[:5],
                null_percentage=round((len(values) - len(present)) / total * 100, 1),
                unique_percentage=round(len(unique) / len(present) * 100, 1) if present else 0.0,
            )
        )
    return profiles
