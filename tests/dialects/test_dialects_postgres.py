"""Tests for PostgresDialect (the psycopg2 driver is mocked)."""

import sys
from unittest.mock import MagicMock

import pytest

from recordkit import ConnectionConfig
from recordkit.dialects import PostgresDialect


@pytest.fixture
def psycopg2(monkeypatch):
    module = MagicMock()
    monkeypatch.setitem(sys.modules, "psycopg2", module)
    return module


def test_connect(psycopg2):
    conn = PostgresDialect().connect(ConnectionConfig(
        driver="pgsql", database="shop", username="app", password="pw", schema="tenant",
    ))
    kwargs = psycopg2.connect.call_args.kwargs
    assert kwargs["dbname"] == "shop"
    assert (kwargs["host"], kwargs["port"]) == ("localhost", 5432)
    assert (kwargs["user"], kwargs["password"]) == ("app", "pw")
    assert kwargs["options"] == "-c search_path=tenant"
    assert "client_encoding" not in kwargs
    assert conn.autocommit is True


def test_connect_charset(psycopg2):
    PostgresDialect().connect(ConnectionConfig(driver="pgsql", charset="UTF8", port=6543))
    kwargs = psycopg2.connect.call_args.kwargs
    assert kwargs["client_encoding"] == "UTF8"
    assert kwargs["port"] == 6543
    assert "options" not in kwargs


def test_error_types(psycopg2):
    assert PostgresDialect().error_types() == (psycopg2.Error,)


def test_fragments():
    dialect = PostgresDialect()
    assert dialect.placeholder("s_name") == "%(s_name)s"
    assert dialect.like_operator() == "LIKE"
    assert dialect.like_operator(case_insensitive=True) == "ILIKE"
    assert dialect.returning_clause("id") == " RETURNING id"
    assert dialect.default_values_clause() == "DEFAULT VALUES"
    assert dialect.autoincrement_clause() == "SERIAL PRIMARY KEY"
    assert dialect.limit_clause(10, 0) == " LIMIT 10 OFFSET 0"


def test_describe_sql():
    sql, parameters = PostgresDialect().describe_sql("users")
    assert "table_schema = current_schema()" in sql
    assert parameters == {"table": "users"}
