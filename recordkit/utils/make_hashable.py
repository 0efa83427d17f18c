"""Convert condition values (including Pydantic models) to a hashable, comparable form."""

import datetime
import decimal
import enum
import hashlib

from pydantic import BaseModel


def make_hashable(thing: any):
    """Return a hashable representation of thing (e.g. for use in hash() or as dict key)."""
    # enums
    if isinstance(thing, enum.Enum):
        return (thing.name, thing.value)
    # pre-transform Pydantic model instances
    if isinstance(thing, BaseModel):
        thing = thing.model_dump()
    # dicts keep their keys sorted so that {a, b} and {b, a} hash the same
    if isinstance(thing, dict):
        return tuple(
            (key, make_hashable(value))
            for key, value
            in sorted(thing.items(), key=lambda item: str(item[0]))
        )
    # sets have no order
    if isinstance(thing, (set, frozenset)):
        return tuple(sorted((make_hashable(value) for value in thing), key=repr))
    # sequences keep theirs
    if isinstance(thing, (list, tuple)):
        return tuple(make_hashable(value) for value in thing)
    # scalar types
    if isinstance(thing, (int, float, str, bytes, type(None), decimal.Decimal,
                          datetime.date, datetime.datetime, datetime.time)):
        return thing
    # other
    raise ValueError(f"Cannot hash `{thing}`, {type(thing)}")


def fingerprint(thing: any) -> str:
    """Return a stable hex digest of thing, suitable as part of a cache key."""
    hashable = make_hashable(thing)
    return hashlib.md5(repr(hashable).encode("utf-8")).hexdigest()
