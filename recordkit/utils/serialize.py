"""Conversion of record values between Python and driver representations."""

import json
from typing import Any

from pydantic import BaseModel


def serialize_value(value: Any) -> Any:
    """Prepare a value for binding: JSON-encode containers and Pydantic models."""
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return value


def serialize_record(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of data with every value passed through serialize_value."""
    return {key: serialize_value(value) for key, value in data.items()}


def parse_json_value(value: Any) -> Any:
    """Decode a JSON column value read back as text; leave anything else alone."""
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return value


def decode_json_fields(rows: list[dict[str, Any]], names) -> list[dict[str, Any]]:
    """Decode, in place, the JSON columns named in names for every row."""
    names = list(names)
    if names:
        for row in rows:
            for name in names:
                if name in row:
                    row[name] = parse_json_value(row[name])
    return rows
