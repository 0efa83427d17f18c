"""Connection configuration: named connections and the default connection name."""

import os
import urllib.parse
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field


_URL_SCHEMES = {
    "sqlite": "sqlite",
    "mysql": "mysql",
    "mariadb": "mariadb",
    "postgres": "pgsql",
    "postgresql": "pgsql",
    "pgsql": "pgsql",
}


class ConnectionConfig(BaseModel):
    """Parameters for one named database connection."""

    driver: str = "mysql"
    """Driver kind or alias: mysql, mariadb, pgsql, postgres, postgresql, sqlite."""
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    """Database name, or the file path (or ``:memory:``) for SQLite."""
    username: Optional[str] = None
    password: Optional[str] = None
    charset: Optional[str] = None
    schema_name: Optional[str] = Field(default=None, alias="schema")
    """PostgreSQL search path."""
    options: dict[str, Any] = Field(default_factory=dict)
    """Extra keyword arguments handed to the driver's connect()."""

    model_config = {"populate_by_name": True}

    @classmethod
    def from_url(cls, url: str) -> "ConnectionConfig":
        """Build a config from a URL such as ``sqlite:///tmp/app.db`` or ``mysql://u:p@host/db``."""
        parsed = urllib.parse.urlparse(url)
        scheme = (parsed.scheme or "").split("+")[0].lower()
        if scheme not in _URL_SCHEMES:
            raise ValueError(f"Unsupported database scheme: {parsed.scheme}")
        driver = _URL_SCHEMES[scheme]
        query = dict(urllib.parse.parse_qsl(parsed.query))
        if driver == "sqlite":
            path = (parsed.path or "")[1:] or parsed.hostname or ":memory:"
            return cls(driver=driver, database=path)
        return cls(
            driver=driver,
            host=parsed.hostname,
            port=parsed.port,
            database=(parsed.path or "")[1:] or None,
            username=urllib.parse.unquote(parsed.username) if parsed.username else None,
            password=urllib.parse.unquote(parsed.password) if parsed.password else None,
            charset=query.pop("charset", None),
            schema=query.pop("schema", None),
            options=query,
        )


class DatabaseConfig(BaseModel):
    """The resolved connection map: which connection is the default, and all of them."""

    default: str = "default"
    connections: dict[str, ConnectionConfig] = Field(default_factory=dict)

    @classmethod
    def coerce(cls, config: "DatabaseConfig | Mapping[str, Any]") -> "DatabaseConfig":
        """Accept an already built config or a plain mapping in the same shape."""
        if isinstance(config, DatabaseConfig):
            return config
        return cls.model_validate(dict(config))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DatabaseConfig":
        """Build a one-connection config from ``DATABASE_URL`` or the ``DB_*`` variables."""
        environ = os.environ if environ is None else environ
        name = environ.get("DB_CONNECTION") or "default"
        url = environ.get("DATABASE_URL")
        if url:
            connection = ConnectionConfig.from_url(url)
        else:
            port = environ.get("DB_PORT")
            connection = ConnectionConfig(
                driver=environ.get("DB_DRIVER", "mysql"),
                host=environ.get("DB_HOST"),
                port=int(port) if port else None,
                database=environ.get("DB_DATABASE"),
                username=environ.get("DB_USERNAME"),
                password=environ.get("DB_PASSWORD"),
                charset=environ.get("DB_CHARSET"),
                schema=environ.get("DB_SCHEMA"),
            )
        return cls(default=name, connections={name: connection})
