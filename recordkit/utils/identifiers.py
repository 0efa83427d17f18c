"""Validation of identifiers (table, column, relation names) interpolated into SQL."""

import re

from ..exceptions import InvalidIdentifier

_SEGMENT = r"[A-Za-z0-9_]+(?:-[A-Za-z0-9_]+)*"

# hyphens only between word characters: "--" would open a SQL comment
IDENTIFIER_PATTERN = re.compile(rf"^{_SEGMENT}(?:\.{_SEGMENT})?\Z")


def is_identifier(name) -> bool:
    """Return True if name is a bare (`col`) or qualified (`table.col`) identifier."""
    return isinstance(name, str) and IDENTIFIER_PATTERN.match(name) is not None


def validate_identifier(name, kind: str = "identifier") -> str:
    """Return name unchanged, or raise InvalidIdentifier."""
    if not is_identifier(name):
        raise InvalidIdentifier(f"Invalid {kind}: {name!r}")
    return name


def validate_identifiers(names, kind: str = "identifier") -> list[str]:
    """Validate every name of an iterable; return them as a list."""
    return [validate_identifier(name, kind) for name in names]


def parameter_slug(name: str) -> str:
    """Turn an identifier into something usable inside a bound parameter name."""
    return name.replace(".", "_").replace("-", "_")
