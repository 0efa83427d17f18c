"""PostgreSQL dialect."""

from typing import ClassVar

from .base import Dialect


class PostgresDialect(Dialect):
    """Dialect for PostgreSQL (drivers pgsql, postgres, postgresql)."""

    KIND: ClassVar[str] = "pgsql"
    SUPPORTED_DRIVERS: ClassVar[tuple[str, ...]] = ("pgsql", "postgres", "postgresql")
    supports_returning: ClassVar[bool] = True

    def connect(self, config):
        import psycopg2
        kwargs = dict(
            host=config.host or "localhost",
            port=config.port or 5432,
            user=config.username,
            password=config.password,
            dbname=config.database,
        )
        if config.schema_name:
            kwargs["options"] = f"-c search_path={config.schema_name}"
        if config.charset:
            kwargs["client_encoding"] = config.charset
        kwargs.update(config.options)
        conn = psycopg2.connect(**kwargs)
        conn.autocommit = True
        return conn

    def error_types(self):
        import psycopg2
        return (psycopg2.Error,)

    def like_operator(self, case_insensitive: bool = False) -> str:
        return "ILIKE" if case_insensitive else "LIKE"

    def autoincrement_clause(self) -> str:
        return "SERIAL PRIMARY KEY"

    def describe_sql(self, table: str):
        sql = (
            "SELECT column_name, data_type FROM information_schema.columns"
            " WHERE table_schema = current_schema() AND table_name = %(table)s"
            " ORDER BY ordinal_position"
        )
        return sql, {"table": table}
