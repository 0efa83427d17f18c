"""Tests for ActiveRecord.search and search_paginate."""

import pytest

from recordkit import EntityDescriptor, InvalidIdentifier, UnknownRelation
from tests.helpers import POSTS, TAGS, USERS


def test_search_matches_searchable_columns(seeded):
    posts = seeded.records(POSTS)
    assert [post["id"] for post in posts.search("hello")] == [1]
    assert [post["id"] for post in posts.search("words")] == [3, 2]


def test_search_is_case_insensitive(seeded):
    assert [post["id"] for post in seeded.records(POSTS).search("HELLO")] == [1]


def test_search_reaches_into_belongs_to_relation(seeded):
    # only the author's username contains "ana"
    assert [post["id"] for post in seeded.records(POSTS).search("ana")] == [3, 2, 1]


def test_search_limit_and_empty_keyword(seeded):
    posts = seeded.records(POSTS)
    assert [post["id"] for post in posts.search("", limit=2)] == [4, 3]
    assert len(posts.search(None)) == 4


def test_search_strips_hidden_fields(seeded):
    users = seeded.records(USERS).search("example.com")
    assert len(users) == 3
    assert all("password" not in user for user in users)


def test_search_does_not_match_hidden_only_data(seeded):
    assert seeded.records(USERS).search("secret") == []


def test_search_defaults_to_text_columns(seeded):
    assert [tag["name"] for tag in seeded.records(TAGS).search("py")] == ["python"]


def test_default_search_columns_skip_hidden(seeded):
    users = seeded.records(EntityDescriptor(table="users", hidden=["password"]))
    assert users.search("secret2") == []
    assert [user["username"] for user in users.search("bob")] == ["bob"]


def test_search_paginate_with_display_columns(seeded):
    page = seeded.records(POSTS).search_paginate("o", 1, 2, columns=["id", "title", "author.username"])
    assert page.meta.total == 4
    assert page.meta.last_page == 2
    assert page.data == [
        {"id": 4, "title": "Bob writes", "author_username": "bob"},
        {"id": 3, "title": "Third", "author_username": "ana"},
    ]


def test_search_paginate_order_and_second_page(seeded):
    page = seeded.records(POSTS).search_paginate("o", 2, 3, columns=["id"], order_by="id")
    assert page.data == [{"id": 4}]
    assert (page.meta.from_, page.meta.to, page.meta.total) == (4, 4, 4)


def test_search_paginate_all_columns(seeded):
    page = seeded.records(POSTS).search_paginate("bob", columns=["author.email"])
    assert len(page.data) == 1
    assert page.data[0]["title"] == "Bob writes"
    assert page.data[0]["author_email"] == "bob@example.com"


def test_search_paginate_rejects_unknown_display_columns(seeded):
    posts = seeded.records(POSTS)
    with pytest.raises(UnknownRelation):
        posts.search_paginate("x", columns=["nope.name"])
    with pytest.raises(UnknownRelation):
        posts.search_paginate("x", columns=["comments.body"])
    with pytest.raises(InvalidIdentifier):
        posts.search_paginate("x", columns=["author.nope"])
    with pytest.raises(InvalidIdentifier):
        posts.search_paginate("x", columns=["author.password"])
