"""MySQL / MariaDB dialect."""

from typing import ClassVar

from .base import Dialect


class MysqlDialect(Dialect):
    """Dialect for MySQL and MariaDB (drivers mysql, mariadb)."""

    KIND: ClassVar[str] = "mysql"
    SUPPORTED_DRIVERS: ClassVar[tuple[str, ...]] = ("mysql", "mariadb")

    def connect(self, config):
        import pymysql  # pylint: disable=import-outside-toplevel,import-error
        from pymysql.constants import CLIENT  # pylint: disable=import-outside-toplevel,import-error
        return pymysql.connect(
            host=config.host or "localhost",
            port=config.port or 3306,
            user=config.username,
            password=config.password or "",
            database=config.database,
            charset=config.charset or "utf8mb4",
            autocommit=True,
            # report matched rows (not changed rows) so that UPDATE reports a hit
            client_flag=CLIENT.FOUND_ROWS,
            **config.options,
        )

    def error_types(self):
        import pymysql  # pylint: disable=import-outside-toplevel,import-error
        return (pymysql.MySQLError,)

    def limit_clause(self, limit, offset):
        # OFFSET is only valid after a LIMIT; MySQL documents 2**64-1 as "no limit"
        if offset is not None and limit is None:
            limit = 18446744073709551615
        return super().limit_clause(limit, offset)

    def default_values_clause(self) -> str:
        return "() VALUES ()"

    def autoincrement_clause(self) -> str:
        return "INT NOT NULL AUTO_INCREMENT PRIMARY KEY"

    def describe_sql(self, table: str):
        sql = (
            "SELECT COLUMN_NAME, COLUMN_TYPE FROM information_schema.COLUMNS"
            " WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %(table)s"
            " ORDER BY ORDINAL_POSITION"
        )
        return sql, {"table": table}
