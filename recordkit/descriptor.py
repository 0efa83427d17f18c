"""Entity and relation descriptors: the per-table policy an ActiveRecord runs with."""

from __future__ import annotations

from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .audit import AuditPolicy
from .exceptions import InvalidIdentifier
from .query import parse_order_by
from .utils.identifiers import validate_identifier, validate_identifiers

RelationKind = Literal["belongsTo", "hasMany", "belongsToMany"]


class RelationDescriptor(BaseModel):
    """How rows of another entity attach to this entity's rows.

    Parent rows are matched on ``local_key``; related rows (or, for
    belongsToMany, pivot rows) on ``foreign_key`` / ``pivot_local_key``.
    """

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    kind: RelationKind
    target: Any
    """An EntityDescriptor, or a zero-argument callable returning one."""
    local_key: str
    """Column of the parent table holding the value to match."""
    foreign_key: str
    """Column of the related table matched against local_key (belongsToMany: the related key)."""
    pivot_table: Optional[str] = None
    pivot_local_key: Optional[str] = None
    """Pivot column referencing the parent."""
    pivot_foreign_key: Optional[str] = None
    """Pivot column referencing the related entity."""
    columns: Optional[tuple[str, ...]] = None
    """Default projection of related rows; None means every column."""

    @model_validator(mode="after")
    def _check_identifiers(self):
        validate_identifiers([self.local_key, self.foreign_key], "relation key")
        if self.kind == "belongsToMany":
            if not (self.pivot_table and self.pivot_local_key and self.pivot_foreign_key):
                raise ValueError("belongsToMany relations need a pivot table and both pivot keys")
            validate_identifier(self.pivot_table, "table")
            validate_identifiers([self.pivot_local_key, self.pivot_foreign_key], "pivot key")
        if self.columns is not None:
            validate_identifiers(self.columns, "column")
        return self

    @property
    def is_single(self) -> bool:
        """belongsTo attaches one record (or None); the other kinds attach lists."""
        return self.kind == "belongsTo"

    def resolve_target(self) -> EntityDescriptor:
        target = self.target
        if not isinstance(target, EntityDescriptor) and callable(target):
            target = target()
        if not isinstance(target, EntityDescriptor):
            raise TypeError(f"Relation target must be an EntityDescriptor, got {type(target).__name__}")
        return target

    def only(self, *columns: str) -> RelationDescriptor:
        """Copy of this relation with a default column projection."""
        return self.model_copy(update={"columns": tuple(validate_identifiers(columns, "column"))})


def belongs_to(target: EntityDescriptor | Callable[[], EntityDescriptor], foreign_key: str,
               owner_key: str = "id", columns=None) -> RelationDescriptor:
    """This row's foreign_key references target's owner_key; attaches a single record."""
    return RelationDescriptor(kind="belongsTo", target=target, local_key=foreign_key,
                              foreign_key=owner_key, columns=columns)


def has_many(target: EntityDescriptor | Callable[[], EntityDescriptor], foreign_key: str,
             local_key: str = "id", columns=None) -> RelationDescriptor:
    """target rows whose foreign_key equals this row's local_key; attaches a list."""
    return RelationDescriptor(kind="hasMany", target=target, local_key=local_key,
                              foreign_key=foreign_key, columns=columns)


def belongs_to_many(target: EntityDescriptor | Callable[[], EntityDescriptor], pivot_table: str,
                    pivot_local_key: str, pivot_foreign_key: str,
                    local_key: str = "id", related_key: str = "id", columns=None) -> RelationDescriptor:
    """target rows linked through pivot_table; attaches a list."""
    return RelationDescriptor(kind="belongsToMany", target=target, local_key=local_key,
                              foreign_key=related_key, pivot_table=pivot_table,
                              pivot_local_key=pivot_local_key, pivot_foreign_key=pivot_foreign_key,
                              columns=columns)


class EntityDescriptor(BaseModel):
    """Immutable description of one entity: its table, keys, and write/read policy.

    Built once per entity type, e.g.::

        users = EntityDescriptor(
            table="users",
            fillable=["username", "email", "password"],
            hidden=["password"],
        )
        posts = EntityDescriptor(
            table="posts",
            relations={"author": belongs_to(users, "user_id")},
        )
    """

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    table: str
    primary_key: str | tuple[str, ...] = "id"
    fillable: tuple[str, ...] = ()
    """Columns writable through create/update; empty means every live column."""
    hidden: tuple[str, ...] = ()
    """Columns never returned to callers."""
    audit: AuditPolicy = Field(default_factory=AuditPolicy)
    connection: Optional[str] = None
    """Connection name, or None for the default connection."""
    default_order: tuple[tuple[str, str], ...] = ()
    relations: dict[str, RelationDescriptor] = Field(default_factory=dict)
    """Declared relations, by name, in declaration order."""
    searchable: tuple[str, ...] = ()
    """Columns matched by search(); 'relation.column' reaches into a belongsTo relation."""

    @field_validator("default_order", mode="before")
    @classmethod
    def _parse_default_order(cls, value):
        if not value:
            return ()
        return tuple(parse_order_by(value))

    @model_validator(mode="after")
    def _check_identifiers(self):
        validate_identifier(self.table, "table")
        validate_identifiers(self.primary_keys, "primary key")
        validate_identifiers(self.fillable, "fillable column")
        validate_identifiers(self.hidden, "hidden column")
        for name in validate_identifiers(self.relations, "relation"):
            if "." in name:
                raise InvalidIdentifier(f"Invalid relation: {name!r}")
        validate_identifiers(self.searchable, "searchable column")
        if not self.primary_keys:
            raise ValueError(f"Entity {self.table!r} needs a primary key")
        return self

    @property
    def primary_keys(self) -> tuple[str, ...]:
        """Primary key column(s), always as a tuple."""
        if isinstance(self.primary_key, str):
            return (self.primary_key,)
        return tuple(self.primary_key)

    @property
    def is_composite(self) -> bool:
        return len(self.primary_keys) > 1

    def relation(self, name: str) -> Optional[RelationDescriptor]:
        return self.relations.get(name)

    def filter_fillable(self, data: dict[str, Any], allowed=None) -> dict[str, Any]:
        """Keep only writable keys; others are dropped silently.

        ``allowed`` is used instead when fillable is empty (typically the live
        column names); when both are empty, nothing is filtered.
        """
        allowed = self.fillable or allowed
        if not allowed:
            return dict(data)
        allowed = set(allowed)
        return {key: value for key, value in data.items() if key in allowed}

    def strip_hidden(self, row: dict[str, Any], extra=()) -> dict[str, Any]:
        """Remove hidden columns (and extra ones) from row, in place."""
        for name in (*self.hidden, *extra):
            row.pop(name, None)
        return row
