"""Tests for recordkit.transaction: BEGIN/COMMIT, rollback and savepoints."""

import pytest

from recordkit import TransactionError
from tests.helpers import TAGS


def _names(database):
    return database.query().from_("tags").select("name").order_by("id").column()


def test_commit(database):
    with database.transaction() as transaction:
        assert transaction.level == 1
        assert database.connection().in_transaction
        transaction.execute_write("INSERT INTO tags (name) VALUES (:name)", {"name": "a"})
        database.records(TAGS).create({"name": "b"})
    assert not database.connection().in_transaction
    assert _names(database) == ["a", "b"]


def test_rollback_on_exception(database):
    with pytest.raises(RuntimeError):
        with database.transaction():
            database.records(TAGS).create({"name": "a"})
            raise RuntimeError("boom")
    assert _names(database) == []
    assert not database.connection().in_transaction


def test_nested_rollback_to_savepoint(database):
    tags = database.records(TAGS)
    with database.transaction():
        tags.create({"name": "outer"})
        with pytest.raises(RuntimeError):
            with database.transaction() as inner:
                assert inner.level == 2
                tags.create({"name": "inner"})
                raise RuntimeError("boom")
        with database.transaction():
            tags.create({"name": "kept"})
    assert _names(database) == ["outer", "kept"]


def test_transaction_rows_as_dicts(seeded):
    with seeded.transaction() as transaction:
        rows = transaction.execute("SELECT id, name FROM tags WHERE id = :id", {"id": 1}, rows_as_dicts=True)
    assert rows == [{"id": 1, "name": "python"}]


def test_inactive_transaction(database):
    with database.transaction() as transaction:
        pass
    with pytest.raises(TransactionError, match="no longer active"):
        transaction.execute("SELECT 1")


def test_outer_transaction_unusable_from_nested(database):
    with database.transaction() as outer:
        with database.transaction():
            with pytest.raises(TransactionError, match="Cannot use transaction level 1"):
                outer.execute("SELECT 1")
        assert outer.execute("SELECT 1") == [(1,)]
