"""Assemble enriched :class:`Schema` aggregates from a catalog source."""
from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Protocol, Sequence

from .enrich import assemble_table, enrich_foreign_key_nullability, tag_foreign_key_columns
from .log import sanitize
from .model import (
    Column,
    ColumnKey,
    DbCompositeType,
    DbEnum,
    EnumKey,
    ForeignKey,
    MaterializedView,
    PrimaryKey,
    Schema,
    Table,
    UdtReference,
    View,
)
from .resolver import ColumnMappingContext, index_enums, resolve_user_defined_types

logger = logging.getLogger(__name__)


class CatalogSource(Protocol):
    """Raw catalog rows for one database.

    ``tables``, ``views`` and ``materialized_views`` return bare objects (names
    and partition strategy only); columns and keys are fetched separately and
    carry the ``USER-DEFINED`` placeholder for enum and composite types.
    """

    def enums(self, schema: str) -> List[DbEnum]: ...

    def composite_types(self, schema: str) -> List[DbCompositeType]: ...

    def column_udt_mappings(self, schema: str) -> Mapping[ColumnKey, UdtReference]: ...

    def tables(self, schema: str) -> List[Table]: ...

    def columns(self, schema: str, table: str) -> List[Column]: ...

    def primary_key(self, schema: str, table: str) -> Optional[PrimaryKey]: ...

    def foreign_keys(self, schema: str, table: str) -> List[ForeignKey]: ...

    def partition_children(self, schema: str) -> Mapping[str, Sequence[str]]: ...

    def views(self, schema: str) -> List[View]: ...

    def view_columns(self, schema: str, view: str) -> List[Column]: ...

    def materialized_views(self, schema: str) -> List[MaterializedView]: ...

    def materialized_view_columns(self, schema: str, view: str) -> List[Column]: ...


class SchemaBuilder:
    def __init__(self, source: CatalogSource, *, log: Optional[logging.Logger] = None) -> None:
        self.source = source
        self.log = log or logger

    def build_schemas(self, schema_names: Sequence[str]) -> List[Schema]:
        enums_by_schema = {name: self.source.enums(name) for name in schema_names}
        enums_by_key: Dict[EnumKey, DbEnum] = {}
        for enums in enums_by_schema.values():
            enums_by_key.update(index_enums(enums))
        self.log.debug("Indexed %d enum(s) across %d schema(s)", len(enums_by_key), len(schema_names))
        return [
            self.build_schema(name, enums_by_schema[name], enums_by_key) for name in schema_names
        ]

    def build_schema(
        self, name: str, enums: Sequence[DbEnum], enums_by_key: Mapping[EnumKey, DbEnum]
    ) -> Schema:
        self.log.info("Building schema: %s", sanitize(name))
        mappings = self.source.column_udt_mappings(name)
        composite_types = self.source.composite_types(name)
        tables = self.build_tables(name, mappings, enums_by_key)
        views = self.build_views(name, mappings, enums_by_key)
        materialized_views = self.build_materialized_views(name, mappings, enums_by_key)
        self.log.info(
            "Completed schema: %s (%d tables, %d views, %d materialized views, %d enums, "
            "%d composite types)",
            sanitize(name),
            len(tables),
            len(views),
            len(materialized_views),
            len(enums),
            len(composite_types),
        )
        return Schema(
            name=name,
            tables=tuple(tables),
            views=tuple(views),
            materialized_views=tuple(materialized_views),
            enums=tuple(enums),
            composite_types=tuple(composite_types),
        )

    def build_tables(
        self,
        schema: str,
        mappings: Mapping[ColumnKey, UdtReference],
        enums_by_key: Mapping[EnumKey, DbEnum],
    ) -> List[Table]:
        partitions = self.source.partition_children(schema)
        result: List[Table] = []
        for stub in self.source.tables(schema):
            context = ColumnMappingContext(mappings, enums_by_key, stub.name, schema)
            columns = resolve_user_defined_types(self.source.columns(schema, stub.name), context)
            raw_foreign_keys = self.source.foreign_keys(schema, stub.name)
            foreign_keys = enrich_foreign_key_nullability(raw_foreign_keys, columns)
            columns = tag_foreign_key_columns(columns, raw_foreign_keys)
            result.append(
                assemble_table(
                    stub.name,
                    columns,
                    self.source.primary_key(schema, stub.name),
                    foreign_keys,
                    partition_strategy=stub.partition_strategy,
                    partition_names=partitions.get(stub.name, ()),
                )
            )
        self.log.debug("Found %d table(s) in schema: %s", len(result), sanitize(schema))
        return result

    def build_views(
        self,
        schema: str,
        mappings: Mapping[ColumnKey, UdtReference],
        enums_by_key: Mapping[EnumKey, DbEnum],
    ) -> List[View]:
        result: List[View] = []
        for stub in self.source.views(schema):
            context = ColumnMappingContext(mappings, enums_by_key, stub.name, schema)
            columns = self.source.view_columns(schema, stub.name)
            result.append(View(stub.name, tuple(resolve_user_defined_types(columns, context))))
        self.log.debug("Found %d view(s) in schema: %s", len(result), sanitize(schema))
        return result

    def build_materialized_views(
        self,
        schema: str,
        mappings: Mapping[ColumnKey, UdtReference],
        enums_by_key: Mapping[EnumKey, DbEnum],
    ) -> List[MaterializedView]:
        result: List[MaterializedView] = []
        for stub in self.source.materialized_views(schema):
            context = ColumnMappingContext(mappings, enums_by_key, stub.name, schema)
            columns = self.source.materialized_view_columns(schema, stub.name)
            result.append(
                MaterializedView(stub.name, tuple(resolve_user_defined_types(columns, context)))
            )
        self.log.debug(
            "Found %d materialized view(s) in schema: %s", len(result), sanitize(schema)
        )
        return result
