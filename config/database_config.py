"""
PostgreSQL / pgSTAC Database Configuration.

Provides configuration for the catalog index connection. A full
POSTGRESQL_CONNECTION_STRING wins; otherwise the libpq conninfo is assembled
from POSTGIS_* variables.

Exports:
    DatabaseConfig: Index database configuration
"""

import os
from typing import Optional
from pydantic import BaseModel, Field

from .defaults import DatabaseDefaults


class DatabaseConfig(BaseModel):
    """
    PostgreSQL configuration for the pgSTAC catalog index.
    """

    host: Optional[str] = Field(
        default=None,
        description="PostgreSQL server hostname",
        examples=["catalog.postgres.database.azure.com"]
    )

    port: int = Field(
        default=DatabaseDefaults.PORT,
        description="PostgreSQL server port number"
    )

    user: Optional[str] = Field(default=None, description="PostgreSQL username")

    password: Optional[str] = Field(default=None, repr=False, description="PostgreSQL password")

    database: Optional[str] = Field(default=None, description="PostgreSQL database name")

    url: Optional[str] = Field(
        default=None,
        repr=False,
        description="Complete connection string; overrides the individual fields"
    )

    pgstac_schema: str = Field(
        default=DatabaseDefaults.PGSTAC_SCHEMA,
        description="PostgreSQL schema name for pgSTAC (STAC catalog)"
    )

    connection_timeout_seconds: int = Field(
        default=DatabaseDefaults.CONNECTION_TIMEOUT_SECONDS,
        ge=1,
        le=300,
        description="Connect timeout passed to libpq"
    )

    min_connections: int = Field(default=DatabaseDefaults.MIN_CONNECTIONS, ge=0, le=50)

    max_connections: int = Field(default=DatabaseDefaults.MAX_CONNECTIONS, ge=1, le=100)

    @property
    def is_configured(self) -> bool:
        return bool(self.url or (self.host and self.database))

    @property
    def connection_string(self) -> str:
        """libpq conninfo for psycopg."""
        if self.url:
            return self.url
        parts = [f"host={self.host}", f"port={self.port}", f"dbname={self.database}"]
        if self.user:
            parts.append(f"user={self.user}")
        if self.password:
            parts.append(f"password={self.password}")
        parts.append(f"connect_timeout={self.connection_timeout_seconds}")
        return " ".join(parts)

    def debug_dict(self) -> dict:
        """Sanitized view (passwords masked)."""
        return {
            'host': self.host,
            'port': self.port,
            'database': self.database,
            'user': self.user,
            'password': '***MASKED***' if self.password else None,
            'url': '***MASKED***' if self.url else None,
            'pgstac_schema': self.pgstac_schema,
            'pool': f"{self.min_connections}-{self.max_connections}",
        }

    @classmethod
    def from_environment(cls):
        """Load from environment variables."""
        return cls(
            host=os.environ.get("POSTGIS_HOST"),
            port=int(os.environ.get("POSTGIS_PORT", str(DatabaseDefaults.PORT))),
            user=os.environ.get("POSTGIS_USER"),
            password=os.environ.get("POSTGIS_PASSWORD"),
            database=os.environ.get("POSTGIS_DATABASE"),
            url=os.environ.get("POSTGRESQL_CONNECTION_STRING"),
            pgstac_schema=os.environ.get("PGSTAC_SCHEMA", DatabaseDefaults.PGSTAC_SCHEMA),
            connection_timeout_seconds=int(os.environ.get("DB_CONNECTION_TIMEOUT", str(DatabaseDefaults.CONNECTION_TIMEOUT_SECONDS))),
            min_connections=int(os.environ.get("DB_MIN_CONNECTIONS", str(DatabaseDefaults.MIN_CONNECTIONS))),
            max_connections=int(os.environ.get("DB_MAX_CONNECTIONS", str(DatabaseDefaults.MAX_CONNECTIONS))),
        )
