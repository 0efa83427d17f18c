"""Table-scoped CRUD, pagination and search for one entity.

An ActiveRecord pairs an EntityDescriptor (table, keys, fillable/hidden
columns, audit policy, relations) with a Database and an optional Hooks
object. Records go in and come out as plain dicts::

    users = database.records(users_descriptor)
    user_id = users.create({"username": "ana", "email": "a@x.com", "password": "secret"})
    users.find(user_id)                                 # no "password" key
    database.records(posts_descriptor).with_("author:id,username").paginate(2, 20)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from .audit import apply_audit_fields
from .connection import Connection
from .descriptor import EntityDescriptor
from .exceptions import InvalidIdentifier, PersistenceError, UnknownRelation
from .hooks import DEFAULT_HOOKS, Hooks
from .query import Query, parse_order_by
from .relations import RelationLoader, parse_relation_specs
from .schema import ColumnInfo
from .utils.identifiers import parameter_slug, validate_identifier
from .utils.make_hashable import fingerprint
from .utils.serialize import decode_json_fields, serialize_record

logger = logging.getLogger("recordkit")

COUNT_TTL = 300
GENERATION_TTL = 86400


class PaginationMeta(BaseModel):
    """Position of a page within the whole result set; 'from'/'to' are 1-based row numbers (0 when empty)."""

    model_config = ConfigDict(populate_by_name=True)

    total: int
    per_page: int
    current_page: int
    last_page: int
    from_: int = Field(alias="from")
    to: int


class Page(BaseModel):
    """One page of records; ``model_dump(by_alias=True)`` gives the JSON envelope."""

    data: list[dict[str, Any]]
    meta: PaginationMeta

    @classmethod
    def build(cls, data: list[dict[str, Any]], total: int, page: int, per_page: int) -> Page:
        offset = (page - 1) * per_page
        return cls(
            data=data,
            meta=PaginationMeta(
                total=total,
                per_page=per_page,
                current_page=page,
                last_page=math.ceil(total / per_page),
                from_=offset + 1 if data else 0,
                to=offset + len(data) if data else 0,
            ),
        )


class ActiveRecord:
    """CRUD engine for the table an EntityDescriptor describes.

    Args:
        descriptor: The entity's table, keys and policies.
        database: The recordkit Database providing connections, schema and count cache.
        hooks: Lifecycle hooks; the defaults allow everything.
    """

    def __init__(self, descriptor: EntityDescriptor, database, hooks: Optional[Hooks] = None):
        self.descriptor = descriptor
        self.database = database
        self.hooks = hooks if hooks is not None else DEFAULT_HOOKS
        self._with: list[str] = []

    def __repr__(self):
        return f"<ActiveRecord {self.descriptor.table!r}>"

    @property
    def table(self) -> str:
        return self.descriptor.table

    @property
    def connection(self) -> Connection:
        return self.database.connection(self.descriptor.connection)

    def with_(self, *relations: str | Iterable[str]) -> ActiveRecord:
        """Eager-load relations on every subsequent read; raises UnknownRelation for undeclared ones."""
        specs = []
        for relation in relations:
            specs.extend([relation] if isinstance(relation, str) else relation)
        RelationLoader(self.database).validate(self.descriptor, specs)
        self._with = self._with + specs
        return self

    def query(self) -> Query:
        """A Query on this entity's table and connection."""
        return Query.find(self.connection).from_(self.table)

    def raw(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> list[dict[str, Any]]:
        """Run caller-written SQL on this entity's connection; rows come back untouched."""
        return self.connection.execute(sql, params, rows_as_dicts=True)

    # --- reading ---

    def _live_columns(self) -> dict[str, ColumnInfo]:
        return {column.name: column for column in self.database.schema.columns(self.table, self.descriptor.connection)}

    def _projection(self, columns) -> tuple[list[str], list[str]]:
        """Select list for the requested columns, and the columns added only so relations can be matched."""
        if isinstance(columns, str):
            columns = [column.strip() for column in columns.split(",") if column.strip()]
        if not columns or "*" in columns:
            return ["*"], []
        columns = list(columns)
        known = self._live_columns()
        for column in columns:
            validate_identifier(column, "column")
            if column not in known:
                raise InvalidIdentifier(f"Unknown column {column!r} in table {self.table!r}")
        extra = []
        for name in parse_relation_specs(self._with):
            key = self.descriptor.relations[name].local_key
            if key not in columns:
                columns.append(key)
                extra.append(key)
        return columns, extra

    def _order(self, order_by=None) -> list[tuple[str, str]]:
        """Explicit order, else the entity's default order, else primary key descending."""
        if order_by:
            return parse_order_by(order_by)
        if self.descriptor.default_order:
            return list(self.descriptor.default_order)
        return [(key, "DESC") for key in self.descriptor.primary_keys]

    def _load(self, query: Query, extra=()) -> list[dict[str, Any]]:
        rows = query.all()
        decode_json_fields(rows, [name for name, column in self._live_columns().items() if column.is_json])
        rows = self.hooks.after_load(rows)
        if self._with and rows:
            RelationLoader(self.database).attach(rows, self.descriptor, self._with)
        for row in rows:
            self.descriptor.strip_hidden(row, extra)
        return rows

    def _fetch(self, query: Query, columns=None) -> list[dict[str, Any]]:
        select, extra = self._projection(columns)
        return self._load(query.select(select), extra)

    def _key_conditions(self, id: Any) -> Optional[dict[str, Any]]:
        """Primary-key equality conditions for id, or None when id does not name every key column.

        Composite ids may be given as a mapping, a sequence in key order, or the
        underscore-joined string "v1_v2".
        """
        keys = self.descriptor.primary_keys
        if isinstance(id, Mapping):
            values = [id.get(key) for key in keys]
        elif isinstance(id, (list, tuple)):
            values = list(id)
        elif len(keys) > 1 and isinstance(id, str):
            values = id.split("_")
        else:
            values = [id]
        if len(values) != len(keys) or any(value is None or value == "" for value in values):
            return None
        return dict(zip(keys, values))

    def all(self, columns=None, order_by=None) -> list[dict[str, Any]]:
        return self._fetch(self.query().order_by(self._order(order_by)), columns)

    def find(self, id: Any, columns=None) -> Optional[dict[str, Any]]:
        """The record with this primary key, or None."""
        conditions = self._key_conditions(id)
        if conditions is None:
            return None
        rows = self._fetch(self.query().where(conditions).limit(1), columns)
        return rows[0] if rows else None

    def where(self, conditions: Any, columns=None, order_by=None) -> list[dict[str, Any]]:
        return self._fetch(self.query().where(conditions).order_by(self._order(order_by)), columns)

    def first_where(self, conditions: Any, columns=None, order_by=None) -> Optional[dict[str, Any]]:
        rows = self._fetch(self.query().where(conditions).order_by(self._order(order_by)).limit(1), columns)
        return rows[0] if rows else None

    # --- counting ---

    def _generation_key(self) -> str:
        return f"table_count_generation:{self.table}"

    def _count_key(self, conditions: Any) -> str:
        generation = self.database.count_cache.get(self._generation_key()) or 0
        return f"table_count:{self.table}:{generation}:{fingerprint(conditions)}"

    def _invalidate_count(self) -> None:
        cache = self.database.count_cache
        generation = cache.get(self._generation_key()) or 0
        cache.set(self._generation_key(), generation + 1, GENERATION_TTL)

    def count(self, conditions: Any = None) -> int:
        """Number of rows matching conditions; cached for a few minutes, until the next write."""
        cache = self.database.count_cache
        key = self._count_key(conditions)
        total = cache.get(key)
        if total is None:
            total = self.query().where(conditions).count()
            cache.set(key, total, COUNT_TTL)
        return int(total)

    def paginate(self, page: int = 1, per_page: int = 10, conditions: Any = None, order_by=None) -> Page:
        page, per_page = max(int(page), 1), max(int(per_page), 1)
        total = self.count(conditions)
        query = (
            self.query()
            .where(conditions)
            .order_by(self._order(order_by))
            .limit(per_page)
            .offset((page - 1) * per_page)
        )
        return Page.build(self._fetch(query), total, page, per_page)

    # --- search ---

    def _search_query(self, keyword: Optional[str], columns=None) -> tuple[Query, list[str]]:
        """Query matching keyword against the searchable columns.

        ``relation.column`` entries (in searchable or in columns) LEFT JOIN the
        belongsTo relation's table, aliased by the relation name; such display
        columns come back as ``relation_column``.
        """
        table = self.table
        query = self.query()
        joined = set()

        def qualify(column: str) -> str:
            name, dot, field = column.partition(".")
            if not dot:
                return f"{table}.{column}"
            relation = self.descriptor.relation(name)
            if relation is None or relation.kind != "belongsTo":
                raise UnknownRelation(f"Entity {table!r} has no belongsTo relation {name!r}")
            target = relation.resolve_target()
            if field in target.hidden or field not in self.database.schema.column_names(target.table, target.connection):
                raise InvalidIdentifier(f"Unknown column {field!r} in table {target.table!r}")
            if name not in joined:
                query.left_join(f"{target.table} {name}", f"{name}.{relation.foreign_key} = {table}.{relation.local_key}")
                joined.add(name)
            return column

        columns = [columns] if isinstance(columns, str) else list(columns or [])
        display = [column for column in columns if "." in column]
        select, extra = self._projection([column for column in columns if "." not in column])
        select = [f"{table}.{column}" for column in select]
        select += [f"{qualify(column)} AS {parameter_slug(column)}" for column in display]
        if keyword is not None and str(keyword) != "":
            searchable = self.descriptor.searchable or [
                name for name, column in self._live_columns().items()
                if column.is_text and name not in self.descriptor.hidden
            ]
            if searchable:
                query.where(("OR", *[("ILIKE", qualify(column), str(keyword)) for column in searchable]))
            else:
                query.where("1 = 0")
        order = [(column if "." in column else f"{table}.{column}", direction) for column, direction in self._order()]
        return query.select(select).order_by(order), extra

    def search(self, keyword: Optional[str], limit: int = 100) -> list[dict[str, Any]]:
        """Records whose searchable columns contain keyword (case-insensitive), at most limit of them."""
        query, extra = self._search_query(keyword)
        return self._load(query.limit(limit), extra)

    def search_paginate(self, keyword: Optional[str], page: int = 1, per_page: int = 10,
                        columns=None, order_by=None) -> Page:
        """Paginated search; columns may name 'relation.column' display columns."""
        page, per_page = max(int(page), 1), max(int(per_page), 1)
        query, extra = self._search_query(keyword, columns)
        if order_by:
            query.order_by([(c if "." in c else f"{self.table}.{c}", d) for c, d in parse_order_by(order_by)])
        total = query.count()
        query.limit(per_page).offset((page - 1) * per_page)
        return Page.build(self._load(query, extra), total, page, per_page)

    # --- writing ---

    def _prepare(self, data: Mapping[str, Any], insert: bool) -> Optional[dict[str, Any]]:
        """Fillable filter, audit fields, then before_save; None when the hook vetoes."""
        columns = self._live_columns()
        data = self.descriptor.filter_fillable(dict(data), allowed=list(columns))
        apply_audit_fields(data, insert, self.descriptor.audit, columns,
                           self.database.current_user_id(), self.database.now())
        if not self.hooks.before_save(data, insert):
            logger.info("Write to %s vetoed by before_save", self.table)
            return None
        return data

    def _failure(self, action: str, error: BaseException) -> PersistenceError:
        logger.error("Failed to %s %s: %s", action, self.table, error)
        return PersistenceError(f"Failed to {action} {self.table}: {error}", original=error)

    def create(self, data: Mapping[str, Any]) -> Any:
        """Insert a record; return its primary key (a mapping for composite keys), or None when vetoed."""
        data = self._prepare(data, insert=True)
        if data is None:
            return None
        keys = self.descriptor.primary_keys
        connection = self.connection
        returning = None
        if not self.descriptor.is_composite and keys[0] not in data and connection.dialect.supports_returning:
            returning = keys[0]
        errors = connection.dialect.error_types()
        try:
            result = self.query().insert(serialize_record(data), returning=returning)
        except errors as error:
            raise self._failure("insert into", error) from error
        if self.descriptor.is_composite:
            id = {key: data.get(key) for key in keys}
        else:
            id = data[keys[0]] if data.get(keys[0]) is not None else result.lastrowid
            data[keys[0]] = id
        self.hooks.after_save(True, data)
        self._invalidate_count()
        return id

    def update(self, id: Any, data: Mapping[str, Any]) -> bool:
        """Update the record with this primary key; False when nothing matched or the hook vetoed."""
        conditions = self._key_conditions(id)
        if conditions is None:
            return False
        data = self._prepare(data, insert=False)
        if not data:
            return False
        errors = self.connection.dialect.error_types()
        try:
            affected = self.query().where(conditions).update(serialize_record(data))
        except errors as error:
            raise self._failure("update", error) from error
        if not affected:
            return False
        self.hooks.after_save(False, {**conditions, **data})
        self._invalidate_count()
        return True

    def batch_insert(self, rows: Iterable[Mapping[str, Any]]) -> bool:
        """Insert several records in one statement; rows vetoed by before_save are dropped.

        The column list is taken from the first surviving row. False when no row survives.
        """
        prepared = [data for data in (self._prepare(row, insert=True) for row in rows) if data is not None]
        if not prepared or not prepared[0]:
            logger.info("Batch insert into %s has nothing to write", self.table)
            return False
        errors = self.connection.dialect.error_types()
        try:
            self.query().insert_many([serialize_record(data) for data in prepared], columns=list(prepared[0]))
        except errors as error:
            raise self._failure("batch insert into", error) from error
        self._invalidate_count()
        return True

    def update_all(self, data: Mapping[str, Any], conditions: Any) -> int:
        """Update every row matching conditions; return the affected row count."""
        data = self._prepare(data, insert=False)
        if not data:
            return 0
        errors = self.connection.dialect.error_types()
        try:
            affected = self.query().where(conditions).update(serialize_record(data))
        except errors as error:
            raise self._failure("update", error) from error
        if affected:
            self._invalidate_count()
        return affected

    def delete(self, id: Any) -> bool:
        """Delete the record with this primary key; False when vetoed or nothing matched."""
        if not self.hooks.before_delete(id):
            logger.info("Delete from %s vetoed by before_delete", self.table)
            return False
        conditions = self._key_conditions(id)
        if conditions is None:
            return False
        errors = self.connection.dialect.error_types()
        try:
            affected = self.query().where(conditions).delete()
        except errors as error:
            raise self._failure("delete from", error) from error
        if not affected:
            return False
        self.hooks.after_delete(id)
        self._invalidate_count()
        return True
