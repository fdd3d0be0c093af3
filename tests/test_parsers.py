"""Tests for file type resolution, parsing and column profiling."""
import json
from io import BytesIO

import pytest
from openpyxl import Workbook

from ingestion.exceptions import FileParseError, UnsupportedFileTypeError
from ingestion.services.parsers import detect_data_type, parse_file, profile_columns, resolve_file_type


def test_resolve_file_type_from_mime():
    assert resolve_file_type("text/csv", "orders.csv") == "csv"
    assert resolve_file_type("application/json", "data.json") == "json"
    assert resolve_file_type("text/csv; charset=utf-8", "orders.csv") == "csv"


def test_resolve_tsv_reported_as_plain_text():
    assert resolve_file_type("text/plain", "export.tsv") == "tsv"
    assert resolve_file_type("text/plain", "export.txt") == "txt"


def test_resolve_generic_mime_falls_back_to_extension():
    assert resolve_file_type("application/octet-stream", "stock.xlsx") == "excel"
    assert resolve_file_type(None, "feed.xml") == "xml"


def test_resolve_unsupported_type():
    with pytest.raises(UnsupportedFileTypeError):
        resolve_file_type("application/pdf", "invoice.pdf")
    with pytest.raises(UnsupportedFileTypeError):
        resolve_file_type("application/octet-stream", "archive.zip")


def test_parse_csv_preserves_order_and_skips_blank_rows():
    content = b"sku,name,qty\nA-1,Flour,10\n,,\nA-2,Sugar,\n"
    parsed = parse_file(content, "csv")

    assert parsed.columns == ["sku", "name", "qty"]
    assert parsed.rows == [
        {"sku": "A-1", "name": "Flour", "qty": "10"},
        {"sku": "A-2", "name": "Sugar", "qty": None},
    ]


def test_parse_csv_duplicate_and_missing_headers():
    parsed = parse_file(b"name,name,\nA,B,C\n", "csv")
    assert parsed.columns == ["name", "name_2", "column_3"]


def test_parse_csv_with_extra_values_fails():
    with pytest.raises(FileParseError):
        parse_file(b"a,b\n1,2,3\n", "csv")


def test_parse_header_only_file_fails():
    with pytest.raises(FileParseError):
        parse_file(b"a,b\n", "csv")


def test_parse_tsv_and_sniffed_txt():
    assert parse_file(b"a\tb\n1\t2\n", "tsv").rows == [{"a": "1", "b": "2"}]
    assert parse_file(b"a;b\n1;2\n", "txt").rows == [{"a": "1", "b": "2"}]


def test_parse_json_array_and_wrapper():
    rows = [{"id": 1, "name": "Flour"}, {"id": 2, "unit": "kg"}]
    parsed = parse_file(json.dumps(rows).encode(), "json")
    assert parsed.columns == ["id", "name", "unit"]
    assert parsed.rows[1] == {"id": 2, "name": None, "unit": "kg"}

    wrapped = parse_file(json.dumps({"rows": rows}).encode(), "json")
    assert len(wrapped.rows) == 2


def test_parse_invalid_json():
    with pytest.raises(FileParseError):
        parse_file(b"{not json", "json")


def test_parse_xml_children_and_attributes():
    content = b"<orders><order id='1'><total>10.5</total></order><order id='2'><total>3</total></order></orders>"
    parsed = parse_file(content, "xml")
    assert parsed.rows == [{"total": "10.5", "id": "1"}, {"total": "3", "id": "2"}]


def test_parse_excel_first_sheet():
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["Item", "Qty"])
    sheet.append(["Flour", 10])
    sheet.append([None, None])
    sheet.append(["Sugar", 2.5])
    buffer = BytesIO()
    workbook.save(buffer)

    parsed = parse_file(buffer.getvalue(), "excel")
    assert parsed.columns == ["Item", "Qty"]
    assert parsed.rows == [{"Item": "Flour", "Qty": 10}, {"Item": "Sugar", "Qty": 2.5}]


def test_detect_data_type():
    assert detect_data_type(["1", "2", None]) == "integer"
    assert detect_data_type(["1.5", "2"]) == "decimal"
    assert detect_data_type(["2024-01-01", "03/02/2024"]) == "date"
    assert detect_data_type(["yes", "no"]) == "boolean"
    assert detect_data_type(["Flour", "2"]) == "text"
    assert detect_data_type([None, ""]) == "unknown"


def test_profile_columns():
    rows = [{"sku": f"A-{i}", "unit": "kg" if i % 2 else None} for i in range(10)]
    profiles = profile_columns(["sku", "unit"], rows)

    sku, unit = profiles
    assert sku.sample_values == ["A-0", "A-1", "A-2", "A-3", "A-4"]
    assert sku.null_percentage == 0.0
    assert sku.unique_percentage == 100.0
    assert unit.null_percentage == 50.0
    assert unit.unique_percentage == 20.0
    assert unit.to_prompt()["columnName"] == "unit"
