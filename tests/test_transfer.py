"""Unit tests for export/import codecs."""

import csv
import io
import json

import pytest

from semantic_stash.errors import ItemValidationError, UnsupportedFormatError
from semantic_stash.storage.models import RawItemRow
from semantic_stash.transfer import (
    EXPORT_FIELDS,
    check_required_fields,
    export_rows,
    normalize_imported_item,
    parse_import,
)


@pytest.fixture
def rows():
    return [
        RawItemRow(
            id="older",
            type="link",
            payload="https://github.com",
            description="GitHub homepage",
            created_at="2024-01-01T00:00:00+00:00",
            last_accessed_at="2024-01-05T00:00:00+00:00",
        ),
        RawItemRow(
            id="newer",
            type="query",
            payload='select "a", b from t',
            description="Quoted, with comma",
            created_at="2024-02-01T00:00:00+00:00",
            last_accessed_at="2024-02-01T00:00:00+00:00",
        ),
    ]


def test_json_export_is_newest_first(rows):
    exported = json.loads(export_rows(rows, "json"))

    assert [entry["id"] for entry in exported] == ["newer", "older"]
    assert set(exported[0]) == set(EXPORT_FIELDS)


def test_csv_export_quotes_special_characters(rows):
    exported = export_rows(rows, "csv")

    assert exported.splitlines()[0] == ",".join(EXPORT_FIELDS)
    records = list(csv.DictReader(io.StringIO(exported)))
    assert records[0]["payload"] == 'select "a", b from t'
    assert records[0]["description"] == "Quoted, with comma"


def test_unknown_format_rejected(rows):
    with pytest.raises(UnsupportedFormatError):
        export_rows(rows, "xml")
    with pytest.raises(UnsupportedFormatError):
        parse_import("[]", "yaml")


def test_parse_json_list_and_single_object():
    assert len(parse_import('[{"type": "text"}, {"type": "link"}]', "json")) == 2
    assert parse_import('{"type": "text"}', "json") == [{"type": "text"}]


def test_parse_invalid_json():
    with pytest.raises(ItemValidationError):
        parse_import("{broken", "json")


def test_parse_json_rejects_non_objects():
    with pytest.raises(ItemValidationError):
        parse_import("[1, 2]", "json")


def test_parse_csv_round_trip(rows):
    parsed = parse_import(export_rows(rows, "csv"), "csv")

    assert [entry["id"] for entry in parsed] == ["newer", "older"]
    assert parsed[0]["payload"] == 'select "a", b from t'


def test_parse_csv_requires_columns():
    with pytest.raises(ItemValidationError, match="payload"):
        parse_import("type,description\nlink,GitHub\n", "csv")


def test_check_required_fields():
    check_required_fields({"type": "link", "payload": "x", "description": "y"})

    with pytest.raises(ItemValidationError, match="description"):
        check_required_fields({"type": "link", "payload": "x", "description": "   "})


def test_normalize_trims_and_fixes_line_endings():
    item = normalize_imported_item(
        {"type": "text", "payload": "  line one\r\nline two  ", "description": "  Notes \n"}
    )

    assert item["payload"] == "line one\nline two"
    assert item["description"] == "Notes"


def test_normalize_kusto_query_with_url_first_line():
    item = normalize_imported_item(
        {
            "type": "kusto_query",
            "payload": "\n  https://dataexplorer.azure.com/clusters/help  \nStormEvents   \n| take 10\t\n",
            "description": "Storms",
        }
    )

    assert item["payload"] == "https://dataexplorer.azure.com/clusters/help\nStormEvents\n| take 10"


def test_normalize_kusto_query_without_url():
    item = normalize_imported_item(
        {"type": "kusto_query", "payload": "StormEvents   \n| take 10", "description": "Storms"}
    )

    assert item["payload"] == "StormEvents\n| take 10"


def test_normalize_keeps_unknown_keys():
    item = normalize_imported_item({"id": "keep-me", "type": "link", "payload": " x ", "description": "y"})
    assert item["id"] == "keep-me"
    assert item["payload"] == "x"
