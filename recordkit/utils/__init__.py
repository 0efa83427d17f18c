"""Small helpers shared across recordkit modules."""

from .identifiers import (
    IDENTIFIER_PATTERN,
    is_identifier,
    parameter_slug,
    validate_identifier,
    validate_identifiers,
)
from .make_hashable import fingerprint, make_hashable
from .serialize import decode_json_fields, parse_json_value, serialize_record, serialize_value

__all__ = [
    "IDENTIFIER_PATTERN",
    "decode_json_fields",
    "fingerprint",
    "is_identifier",
    "make_hashable",
    "parameter_slug",
    "parse_json_value",
    "serialize_record",
    "serialize_value",
    "validate_identifier",
    "validate_identifiers",
]
