"""Eager loading of declared relations with one batched query per relation.

Relation specs are strings naming a declared relation, optionally restricted to
some columns and optionally reaching into the related entity's own relations::

    "author"                 every column of the author
    "author:id,username"     only these columns (plus the key used for matching)
    "comments.author"        comments, and the author of each comment
"""

import logging
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field

from .descriptor import EntityDescriptor, RelationDescriptor
from .exceptions import InvalidIdentifier, UnknownRelation
from .query import Query
from .utils.identifiers import validate_identifier, validate_identifiers
from .utils.serialize import decode_json_fields

logger = logging.getLogger("recordkit")

PIVOT_KEY = "pivot_key_"
"""Alias of the correlation column selected from the pivot table."""


class RelationRequest(BaseModel):
    """Every spec asking for one relation, merged."""

    name: str
    columns: Optional[list[str]] = None
    """Requested projection; None means every column."""
    children: list[str] = Field(default_factory=list)
    """Specs to load on the related rows."""


def parse_relation_specs(specs: Iterable[str]) -> dict[str, RelationRequest]:
    """Group specs by base relation name.

    Projections are merged (an unrestricted request wins over any restricted
    one) and dotted remainders are collected as child specs.
    """
    requests: dict[str, RelationRequest] = {}
    for spec in specs:
        if not isinstance(spec, str) or not spec.strip():
            raise InvalidIdentifier(f"Invalid relation: {spec!r}")
        head, _, rest = spec.strip().partition(".")
        name, has_columns, columns = head.partition(":")
        validate_identifier(name, "relation")
        columns = validate_identifiers([c.strip() for c in columns.split(",") if c.strip()], "column") \
            if has_columns else None
        request = requests.get(name)
        if request is None:
            request = requests[name] = RelationRequest(name=name, columns=columns)
        elif request.columns is not None:
            if columns is None:
                request.columns = None
            else:
                request.columns = request.columns + [c for c in columns if c not in request.columns]
        if rest and rest not in request.children:
            request.children.append(rest)
    return requests


class RelationLoader:
    """Attaches related rows to a result set, one query per requested relation.

    Args:
        database: The recordkit Database the related tables are read through.
    """

    def __init__(self, database):
        self.database = database

    def validate(self, descriptor: EntityDescriptor, specs: Iterable[str]) -> dict[str, RelationRequest]:
        """Parse specs and check, recursively, that every relation is declared."""
        requests = parse_relation_specs(specs)
        for name, request in requests.items():
            relation = descriptor.relation(name)
            if relation is None:
                raise UnknownRelation(f"Entity {descriptor.table!r} has no relation {name!r}")
            if request.children:
                self.validate(relation.resolve_target(), request.children)
        return requests

    def attach(self, results: list[dict[str, Any]], descriptor: EntityDescriptor, specs: Iterable[str]) -> None:
        """Add one key per requested relation to every row of results, in place."""
        requests = self.validate(descriptor, specs)
        if not results:
            return
        for name, relation in descriptor.relations.items():
            if name in requests:
                self._load(results, name, relation, requests[name])

    def _load(self, results, name: str, relation: RelationDescriptor, request: RelationRequest) -> None:
        target = relation.resolve_target()
        keys = list(dict.fromkeys(
            row[relation.local_key] for row in results if row.get(relation.local_key) is not None
        ))
        if not keys:
            # nothing to match: no query
            for row in results:
                row[name] = None if relation.is_single else []
            return
        columns = request.columns if request.columns is not None else relation.columns
        columns, extra = self._projection(target, relation, request, columns)
        if relation.kind == "belongsToMany":
            related = self._fetch_through_pivot(target, relation, keys, columns)
            match_key = PIVOT_KEY
            extra = extra + [PIVOT_KEY]
        else:
            related = self._fetch(target, relation, keys, columns)
            match_key = relation.foreign_key
        if request.children:
            self.attach(related, target, request.children)
        grouped: dict[Any, list[dict[str, Any]]] = {}
        for item in related:
            grouped.setdefault(item.get(match_key), []).append(item)
        for item in related:
            target.strip_hidden(item, extra)
        # each parent gets its own copies
        for row in results:
            matches = grouped.get(row.get(relation.local_key), [])
            if relation.is_single:
                row[name] = dict(matches[0]) if matches else None
            else:
                row[name] = [dict(match) for match in matches]

    def _projection(self, target: EntityDescriptor, relation: RelationDescriptor,
                    request: RelationRequest, columns) -> tuple[Optional[list[str]], list[str]]:
        """Columns to select, and the ones added only for matching (removed afterwards)."""
        if columns is None:
            return None, []
        known = self.database.schema.column_names(target.table, target.connection)
        for column in columns:
            if column not in known:
                raise InvalidIdentifier(f"Unknown column {column!r} in table {target.table!r}")
        needed = [] if relation.kind == "belongsToMany" else [relation.foreign_key]
        for child in parse_relation_specs(request.children):
            needed.append(target.relations[child].local_key)
        columns = list(columns)
        extra = []
        for column in needed:
            if column not in columns:
                columns.append(column)
                extra.append(column)
        return columns, extra

    def _decode(self, target: EntityDescriptor, rows):
        json_columns = [c.name for c in self.database.schema.columns(target.table, target.connection) if c.is_json]
        return decode_json_fields(rows, json_columns)

    def _fetch(self, target: EntityDescriptor, relation: RelationDescriptor, keys, columns):
        query = Query.find(self.database.connection(target.connection)).from_(target.table)
        if columns is not None:
            query.select(columns)
        rows = query.where({relation.foreign_key: keys}).all()
        return self._decode(target, rows)

    def _fetch_through_pivot(self, target: EntityDescriptor, relation: RelationDescriptor, keys, columns):
        table, pivot = target.table, relation.pivot_table
        select = [f"{pivot}.{relation.pivot_local_key} AS {PIVOT_KEY}"]
        select += [f"{table}.{c}" for c in columns] if columns is not None else [f"{table}.*"]
        query = (
            Query.find(self.database.connection(target.connection))
            .select(select)
            .from_(table)
            .inner_join(pivot, f"{pivot}.{relation.pivot_foreign_key} = {table}.{relation.foreign_key}")
            .where({f"{pivot}.{relation.pivot_local_key}": keys})
        )
        return self._decode(target, query.all())
