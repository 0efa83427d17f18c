"""Tests for recordkit.connection: named connections, handle caching and execution."""

import logging
import sys

import pytest

from recordkit import ConnectionConfig, DatabaseConnectionError
from recordkit.connection import Connection, ConnectionProvider
from tests.helpers import sqlite_config


@pytest.fixture
def provider(tmp_path):
    provider = ConnectionProvider(sqlite_config(tmp_path / "main.sqlite3"))
    yield provider
    provider.disconnect_all()


def test_connection_is_cached_per_name(provider):
    connection = provider.connection()
    assert isinstance(connection, Connection)
    assert provider.connection("default") is connection
    assert provider.connections == ["default"]
    assert connection.kind == "sqlite"
    assert repr(connection) == "<Connection 'default' (sqlite)>"


def test_disconnect(provider):
    first = provider.connection()
    provider.disconnect()
    assert provider.connections == []
    assert provider.connection() is not first
    provider.disconnect("never-connected")


def test_unknown_connection_name(provider):
    with pytest.raises(DatabaseConnectionError, match="'nope' not configured"):
        provider.connection("nope")


def test_unsupported_driver(tmp_path):
    provider = ConnectionProvider({"connections": {"default": {"driver": "oracle"}}})
    with pytest.raises(DatabaseConnectionError, match="Unsupported database driver"):
        provider.connection()


def test_missing_parent_directory(tmp_path):
    provider = ConnectionProvider(sqlite_config(tmp_path / "missing" / "db.sqlite3"))
    with pytest.raises(DatabaseConnectionError, match="Failed to connect to sqlite database 'default'") as info:
        provider.connection()
    assert info.value.__cause__ is not None
    assert provider.connections == []


def test_driver_not_installed(monkeypatch):
    monkeypatch.setitem(sys.modules, "pymysql", None)
    provider = ConnectionProvider({"connections": {"default": {"driver": "mysql", "database": "app"}}})
    with pytest.raises(DatabaseConnectionError, match="not installed"):
        provider.connection()


def test_add_connection_and_default(provider, tmp_path):
    assert not provider.has_connection("reports")
    provider.add_connection("reports", f"sqlite:///{tmp_path / 'reports.sqlite3'}")
    provider.add_connection("archive", {"driver": "sqlite", "database": str(tmp_path / "archive.sqlite3")})
    provider.add_connection("cache", ConnectionConfig(driver="sqlite"))
    assert provider.has_connection("reports")
    assert provider.driver_kind("reports") == "sqlite"
    assert provider.connection("reports") is not provider.connection()
    provider.default_name = "archive"
    assert provider.connection().name == "archive"
    assert provider.dialect("cache").KIND == "sqlite"


def test_driver_kind_does_not_connect(tmp_path):
    provider = ConnectionProvider({"default": "pg", "connections": {"pg": {"driver": "postgresql"}}})
    assert provider.driver_kind() == "pgsql"
    assert provider.connections == []


def test_execute_and_query_count(provider, caplog):
    connection = provider.connection()
    connection.raw_execute("CREATE TABLE items (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT)")
    start = connection.query_count
    with caplog.at_level(logging.DEBUG, logger="recordkit"):
        result = connection.execute_write("INSERT INTO items (name) VALUES (:name)", {"name": "a"})
    assert "INSERT INTO items (name) VALUES (:name) | {'name': 'a'}" in caplog.text
    assert (result.rowcount, result.lastrowid) == (1, 1)
    assert connection.execute("SELECT id, name FROM items") == [(1, "a")]
    assert connection.execute("SELECT id, name FROM items", rows_as_dicts=True) == [{"id": 1, "name": "a"}]
    assert connection.execute("UPDATE items SET name = 'b'") == []
    assert connection.query_count == start + 4


def test_connect_logs_at_info(provider, caplog):
    with caplog.at_level(logging.INFO, logger="recordkit"):
        provider.connection()
    assert "Connected to sqlite database 'default'" in caplog.text


def test_foreign_keys_enabled(provider):
    assert provider.connection().execute("PRAGMA foreign_keys") == [(1,)]
