"""Tests for recordkit.descriptor: entity and relation descriptors."""

import pytest
from pydantic import ValidationError

from recordkit import AuditPolicy, EntityDescriptor, RelationDescriptor, belongs_to, belongs_to_many, has_many


def _users():
    return EntityDescriptor(table="users", fillable=["username", "email"], hidden=["password"])


def test_defaults():
    users = EntityDescriptor(table="users")
    assert users.primary_keys == ("id",)
    assert not users.is_composite
    assert users.fillable == ()
    assert users.audit == AuditPolicy()
    assert users.connection is None
    assert users.relations == {}


def test_composite_primary_key():
    post_tags = EntityDescriptor(table="post_tags", primary_key=["post_id", "tag_id"])
    assert post_tags.primary_keys == ("post_id", "tag_id")
    assert post_tags.is_composite


@pytest.mark.parametrize("kwargs", [
    {"table": "users; DROP TABLE users"},
    {"table": "users", "primary_key": "id = 1"},
    {"table": "users", "primary_key": ()},
    {"table": "users", "fillable": ["ok", "not ok"]},
    {"table": "users", "hidden": ["pass word"]},
    {"table": "users", "searchable": ["a.b.c"]},
    {"table": "users", "relations": {"a.b": has_many(_users, "user_id")}},
])
def test_invalid_identifiers_rejected_at_construction(kwargs):
    with pytest.raises(ValueError):
        EntityDescriptor(**kwargs)


def test_default_order_is_normalized():
    assert EntityDescriptor(table="tags", default_order="name").default_order == (("name", "ASC"),)
    assert EntityDescriptor(table="tags", default_order="-created_at, id").default_order == (
        ("created_at", "DESC"), ("id", "ASC"),
    )
    assert EntityDescriptor(table="tags", default_order={"name": "sideways"}).default_order == (("name", "ASC"),)


def test_descriptor_is_frozen():
    users = _users()
    with pytest.raises(ValidationError):
        users.table = "other"


def test_filter_fillable():
    users = _users()
    assert users.filter_fillable({"username": "a", "role": "admin"}) == {"username": "a"}
    open_users = EntityDescriptor(table="users")
    assert open_users.filter_fillable({"username": "a", "zzz": 1}, allowed=["username"]) == {"username": "a"}
    assert open_users.filter_fillable({"username": "a", "zzz": 1}) == {"username": "a", "zzz": 1}


def test_strip_hidden():
    row = {"id": 1, "password": "x", "user_id": 3}
    assert _users().strip_hidden(row, extra=["user_id"]) == {"id": 1}


def test_belongs_to_keys():
    relation = belongs_to(_users, "user_id")
    assert relation.kind == "belongsTo"
    assert (relation.local_key, relation.foreign_key) == ("user_id", "id")
    assert relation.is_single


def test_has_many_keys():
    relation = has_many(_users, "author_id", local_key="uuid")
    assert (relation.local_key, relation.foreign_key) == ("uuid", "author_id")
    assert not relation.is_single


def test_belongs_to_many_keys():
    relation = belongs_to_many(_users, "post_tags", "post_id", "tag_id")
    assert relation.pivot_table == "post_tags"
    assert (relation.pivot_local_key, relation.pivot_foreign_key) == ("post_id", "tag_id")
    assert (relation.local_key, relation.foreign_key) == ("id", "id")


def test_belongs_to_many_requires_pivot():
    with pytest.raises(ValueError):
        RelationDescriptor(kind="belongsToMany", target=_users, local_key="id", foreign_key="id")


def test_relation_target_may_be_lazy():
    users = _users()
    assert belongs_to(users, "user_id").resolve_target() is users
    assert belongs_to(lambda: users, "user_id").resolve_target() is users
    with pytest.raises(TypeError):
        belongs_to(lambda: "users", "user_id").resolve_target()


def test_relation_columns():
    relation = belongs_to(_users, "user_id", columns=["id", "username"])
    assert relation.columns == ("id", "username")
    assert relation.only("email").columns == ("email",)
    with pytest.raises(ValueError):
        belongs_to(_users, "user_id", columns=["bad column"])
