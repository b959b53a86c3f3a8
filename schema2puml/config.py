"""Connection settings for live catalogs."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Sequence, Tuple

from sqlalchemy.engine import URL

from .errors import ValidationError
from .model import require_text

DEFAULT_PORT = 5432


class DatabaseType(Enum):
    POSTGRESQL = ("PostgreSQL", "postgresql+psycopg2")

    def __init__(self, display_name: str, drivername: str) -> None:
        self.display_name = display_name
        self.drivername = drivername


@dataclass(frozen=True)
class DocumenterConfig:
    schemas: Tuple[str, ...]
    database_host: str
    database_name: str
    username: str
    password: str
    database_port: int = DEFAULT_PORT
    use_ssl: bool = True
    database_type: DatabaseType = DatabaseType.POSTGRESQL

    def __post_init__(self) -> None:
        schemas = tuple(self.schemas or ())
        if not schemas:
            raise ValidationError("schemas must contain at least 1 item")
        for schema in schemas:
            require_text(schema, "schemas")
        object.__setattr__(self, "schemas", schemas)
        require_text(self.database_host, "database_host")
        require_text(self.database_name, "database_name")
        require_text(self.username, "username")
        require_text(self.password, "password")
        if self.database_type is None:
            raise ValidationError("database_type must not be null")
        if not 0 < int(self.database_port) < 65536:
            raise ValidationError("database_port must be between 1 and 65535")

    def url(self) -> URL:
        return URL.create(
            self.database_type.drivername,
            username=self.username,
            password=self.password,
            host=self.database_host,
            port=self.database_port,
            database=self.database_name,
        )

    def connect_args(self) -> Dict[str, str]:
        return {"sslmode": "require" if self.use_ssl else "disable"}

    def __repr__(self) -> str:
        return (
            f"DocumenterConfig(schemas={list(self.schemas)!r}, "
            f"database_host={self.database_host!r}, database_port={self.database_port}, "
            f"database_name={self.database_name!r}, username={self.username!r}, "
            f"use_ssl={self.use_ssl}, database_type={self.database_type.display_name})"
        )


def split_schemas(value: str) -> Sequence[str]:
    return [part.strip() for part in value.split(",") if part.strip()]
