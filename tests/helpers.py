"""Shared test helpers: schema, seed data and entity descriptors."""

import datetime

from recordkit import Database
from recordkit.descriptor import EntityDescriptor, belongs_to, belongs_to_many, has_many

NOW = datetime.datetime(2024, 5, 17, 10, 30, 0)

SCHEMA = [
    """CREATE TABLE users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username VARCHAR(50) NOT NULL UNIQUE,
        email VARCHAR(255),
        password VARCHAR(255),
        role VARCHAR(20) NOT NULL DEFAULT 'user',
        settings JSON,
        created_at DATETIME,
        updated_at DATETIME,
        created_by INTEGER,
        updated_by INTEGER
    )""",
    """CREATE TABLE posts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER REFERENCES users(id),
        title VARCHAR(255) NOT NULL,
        content TEXT,
        status VARCHAR(20) DEFAULT 'draft',
        views INTEGER DEFAULT 0,
        created_at INTEGER,
        updated_at INTEGER
    )""",
    """CREATE TABLE comments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        post_id INTEGER REFERENCES posts(id),
        user_id INTEGER REFERENCES users(id),
        body TEXT
    )""",
    """CREATE TABLE tags (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name VARCHAR(50)
    )""",
    """CREATE TABLE post_tags (
        post_id INTEGER NOT NULL,
        tag_id INTEGER NOT NULL,
        PRIMARY KEY (post_id, tag_id)
    )""",
]

SEED = [
    "INSERT INTO users (id, username, email, password, role) VALUES"
    " (1, 'ana', 'ana@example.com', 'secret1', 'admin'),"
    " (2, 'bob', 'bob@example.com', 'secret2', 'user'),"
    " (3, 'carla', 'carla@example.com', 'secret3', 'user')",
    "INSERT INTO posts (id, user_id, title, content, status, views) VALUES"
    " (1, 1, 'Hello world', 'First post', 'published', 10),"
    " (2, 1, 'Second thoughts', 'More words', 'draft', 5),"
    " (3, 1, 'Third', 'Even more words', 'published', 0),"
    " (4, 2, 'Bob writes', 'Bob content', 'published', 7)",
    "INSERT INTO comments (id, post_id, user_id, body) VALUES"
    " (1, 1, 2, 'Nice'), (2, 1, 3, 'Great'), (3, 4, 1, 'Welcome')",
    "INSERT INTO tags (id, name) VALUES (1, 'python'), (2, 'sql'), (3, 'misc')",
    "INSERT INTO post_tags (post_id, tag_id) VALUES (1, 1), (1, 2), (4, 2)",
]


USERS = EntityDescriptor(
    table="users",
    fillable=["username", "email", "password", "settings"],
    hidden=["password"],
    searchable=["username", "email"],
    relations={"posts": has_many(lambda: POSTS, "user_id")},
)

POSTS = EntityDescriptor(
    table="posts",
    fillable=["user_id", "title", "content", "status", "views"],
    searchable=["title", "content", "author.username"],
    relations={
        "author": belongs_to(USERS, "user_id"),
        "comments": has_many(lambda: COMMENTS, "post_id"),
        "tags": belongs_to_many(lambda: TAGS, "post_tags", "post_id", "tag_id"),
    },
)

COMMENTS = EntityDescriptor(
    table="comments",
    fillable=["post_id", "user_id", "body"],
    default_order="id",
    relations={
        "author": belongs_to(USERS, "user_id"),
        "post": belongs_to(lambda: POSTS, "post_id"),
    },
)

TAGS = EntityDescriptor(table="tags", fillable=["name"], default_order="name")

POST_TAGS = EntityDescriptor(table="post_tags", primary_key=("post_id", "tag_id"))


def sqlite_config(path) -> dict:
    return {"default": "default", "connections": {"default": {"driver": "sqlite", "database": str(path)}}}


def create_schema(connection, seed: bool = False) -> None:
    for statement in SCHEMA + (SEED if seed else []):
        connection.raw_execute(statement)


def make_database(path, seed: bool = False, **kwargs) -> Database:
    """A Database on a fresh SQLite file at path, with the test schema (and optionally the seed rows)."""
    kwargs.setdefault("clock", lambda: NOW)
    database = Database(sqlite_config(path), **kwargs)
    create_schema(database.connection(), seed=seed)
    return database


def fetch_one(database, sql: str, params=None) -> dict:
    rows = database.connection().execute(sql, params, rows_as_dicts=True)
    return rows[0] if rows else None
