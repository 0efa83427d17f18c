"""Audit fields: created/updated timestamps and created/updated-by actor ids."""

import datetime
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel

from .schema import ColumnInfo

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class AuditPolicy(BaseModel):
    """Which audit columns an entity fills in, and how timestamps are written.

    Only columns that exist in the live table are ever written, so the
    default names are safe for tables that have just some of them.
    """

    model_config = {"frozen": True}

    enabled: bool = True
    created_at: str = "created_at"
    updated_at: str = "updated_at"
    created_by: str = "created_by"
    updated_by: str = "updated_by"
    timestamp_format: Literal["datetime", "unix", "auto"] = "auto"
    """'datetime' writes 'Y-m-d H:i:s' strings, 'unix' writes epoch seconds,
    'auto' looks at the column's declared type (integer columns get epoch seconds)."""

    def fields(self, insert: bool) -> tuple[list[str], list[str]]:
        """(timestamp fields, actor fields) written on insert or on update."""
        if insert:
            return [self.created_at, self.updated_at], [self.created_by, self.updated_by]
        return [self.updated_at], [self.updated_by]


def format_timestamp(now: datetime.datetime, fmt: str, column: Optional[ColumnInfo] = None) -> Any:
    """Render now for a timestamp column according to fmt."""
    if fmt == "auto":
        fmt = "unix" if column is not None and column.is_integer else "datetime"
    if fmt == "unix":
        return int(now.timestamp())
    return now.strftime(DATETIME_FORMAT)


def apply_audit_fields(
    data: dict[str, Any],
    insert: bool,
    policy: AuditPolicy,
    columns: Mapping[str, ColumnInfo],
    actor_id: Optional[int],
    now: datetime.datetime,
) -> dict[str, Any]:
    """Fill audit columns into data in place and return it.

    A field is only set when the live table has that column and the caller did
    not already supply a value. Actor fields are skipped when there is no actor.
    """
    if not policy.enabled:
        return data
    timestamp_fields, actor_fields = policy.fields(insert)
    for name in timestamp_fields:
        if name in columns and name not in data:
            data[name] = format_timestamp(now, policy.timestamp_format, columns[name])
    if actor_id is not None:
        for name in actor_fields:
            if name in columns and name not in data:
                data[name] = actor_id
    return data
