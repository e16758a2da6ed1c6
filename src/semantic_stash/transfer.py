"""
Export and import codecs for the raw item table.

Exports contain raw rows only; embeddings are derived data and are
regenerated on import.
"""

import csv
import io
import json
import logging
import re
from typing import Any, Dict, List

from semantic_stash.errors import ItemValidationError, UnsupportedFormatError
from semantic_stash.storage.models import RawItemRow

logger = logging.getLogger(__name__)

EXPORT_FIELDS = ["id", "type", "description", "payload", "created_at", "last_accessed_at"]
REQUIRED_FIELDS = ["type", "description", "payload"]

_URL_LINE = re.compile(r"^https?://", re.IGNORECASE)
_TRAILING_WHITESPACE = re.compile(r"[\t ]+$", re.MULTILINE)


def _check_format(format: str) -> str:
    format = (format or "json").lower()
    if format not in ("json", "csv"):
        raise UnsupportedFormatError(f"Unsupported format: {format}. Use 'json' or 'csv'")
    return format


def export_rows(rows: List[RawItemRow], format: str = "json") -> str:
    """
    Serialize raw rows, newest first.

    Args:
        rows: Rows of the raw table
        format: "json" (indented array) or "csv" (header row + one line per item)
    """
    format = _check_format(format)
    rows = sorted(rows, key=lambda row: row.created_at, reverse=True)

    if format == "csv":
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=EXPORT_FIELDS, lineterminator="\n")
        writer.writeheader()
        for row in rows:
            writer.writerow(row.model_dump(include=set(EXPORT_FIELDS)))
        return buffer.getvalue()

    return json.dumps([row.model_dump() for row in rows], indent=2, ensure_ascii=False)


def parse_import(raw: str, format: str = "json") -> List[Dict[str, Any]]:
    """
    Parse an export back into item dicts.

    Only the document structure is checked here; each item is validated
    individually when it is imported.

    Raises:
        UnsupportedFormatError: Unknown format
        ItemValidationError: Malformed document or missing CSV columns
    """
    format = _check_format(format)

    if format == "csv":
        reader = csv.DictReader(io.StringIO(raw.strip()))
        headers = [header.strip() for header in (reader.fieldnames or [])]
        for field in REQUIRED_FIELDS:
            if field not in headers:
                raise ItemValidationError(f"CSV file must contain required field: {field}")
        reader.fieldnames = headers
        items = [
            {key: value for key, value in record.items() if key is not None and value is not None}
            for record in reader
        ]
        logger.debug(f"Parsed {len(items)} items from CSV")
        return items

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ItemValidationError(f"Invalid JSON: {e}") from e

    items = data if isinstance(data, list) else [data]
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ItemValidationError(f"Item {index + 1}: expected an object")
    logger.debug(f"Parsed {len(items)} items from JSON")
    return items


def check_required_fields(item: Dict[str, Any]) -> None:
    """
    Raises:
        ItemValidationError: If type, description or payload is missing or blank
    """
    for field in REQUIRED_FIELDS:
        value = item.get(field)
        if not value or (isinstance(value, str) and not value.strip()):
            raise ItemValidationError(f"Missing required field '{field}'")


def normalize_imported_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """
    Clean up whitespace in an imported item.

    Descriptions are trimmed; payloads get LF line endings and are trimmed.
    A kusto_query whose first non-empty line is a URL keeps that line and
    its body; trailing spaces are removed from every query line.
    """
    out = dict(item)
    if isinstance(out.get("description"), str):
        out["description"] = out["description"].strip()
    if isinstance(out.get("payload"), str):
        out["payload"] = out["payload"].replace("\r\n", "\n").strip()

    payload = out.get("payload")
    if out.get("type") == "kusto_query" and isinstance(payload, str):
        lines = payload.split("\n")
        first = next((i for i, line in enumerate(lines) if line.strip()), None)
        if first is not None:
            first_line = lines[first].strip()
            if _URL_LINE.match(first_line):
                body = "\n".join(lines[first + 1 :]).strip()
                body = _TRAILING_WHITESPACE.sub("", body)
                out["payload"] = f"{first_line}\n{body}".strip()
            else:
                out["payload"] = _TRAILING_WHITESPACE.sub("", payload)

    if out.get("type") == "link" and isinstance(payload, str):
        out["payload"] = payload.strip()

    return out
