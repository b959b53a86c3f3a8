"""Composition root: catalog source -> schema builder -> PlantUML renderer."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, Sequence, Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine

from .builder import CatalogSource, SchemaBuilder
from .catalog import PostgresCatalog
from .config import DatabaseType, DocumenterConfig
from .log import sanitize
from .render_puml import PlantUMLRenderer

logger = logging.getLogger(__name__)

EngineFactory = Callable[[DocumenterConfig], Engine]
CatalogFactory = Callable[[Connection], CatalogSource]


def postgresql_engine(config: DocumenterConfig) -> Engine:
    return create_engine(config.url(), connect_args=config.connect_args())


def postgresql_catalog(connection: Connection) -> CatalogSource:
    return PostgresCatalog(connection)


BACKENDS: Dict[DatabaseType, Tuple[EngineFactory, CatalogFactory]] = {
    DatabaseType.POSTGRESQL: (postgresql_engine, postgresql_catalog),
}


def generate_puml(
    source: CatalogSource,
    schema_names: Sequence[str],
    *,
    log: Optional[logging.Logger] = None,
) -> str:
    log = log or logger
    log.info("Starting PlantUML generation for schemas: %s", sanitize(", ".join(schema_names)))
    schemas = SchemaBuilder(source, log=log).build_schemas(schema_names)
    document = PlantUMLRenderer(schemas, log=log).render()
    log.info("Successfully generated PlantUML output")
    return document


class DbDocumenter:
    """Generate a diagram straight from a live database."""

    def __init__(self, config: DocumenterConfig, *, log: Optional[logging.Logger] = None) -> None:
        self.config = config
        self.log = log or logger

    def generate_puml(self) -> str:
        engine_factory, catalog_factory = BACKENDS[self.config.database_type]
        engine = engine_factory(self.config)
        try:
            with engine.connect() as connection:
                return generate_puml(catalog_factory(connection), self.config.schemas, log=self.log)
        finally:
            engine.dispose()
