"""Resolution of user-defined column types across schema boundaries."""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping

from .model import Column, ColumnKey, DbEnum, EnumKey, UdtReference, require_text

USER_DEFINED = "USER-DEFINED"


@dataclass(frozen=True)
class ColumnMappingContext:
    """Lookup tables for the table currently being resolved.

    ``column_udt_mappings`` tells where each user-defined column type lives;
    ``enums_by_key`` holds every known enum keyed by its defining schema.
    """

    column_udt_mappings: Mapping[ColumnKey, UdtReference]
    enums_by_key: Mapping[EnumKey, DbEnum]
    current_table: str
    current_schema: str

    def __post_init__(self) -> None:
        require_text(self.current_table, "current_table")
        require_text(self.current_schema, "current_schema")
        object.__setattr__(
            self, "column_udt_mappings", MappingProxyType(dict(self.column_udt_mappings or {}))
        )
        object.__setattr__(self, "enums_by_key", MappingProxyType(dict(self.enums_by_key or {})))

    def for_table(self, table_name: str) -> "ColumnMappingContext":
        return ColumnMappingContext(
            self.column_udt_mappings, self.enums_by_key, table_name, self.current_schema
        )


def index_enums(enums: Iterable[DbEnum]) -> Dict[EnumKey, DbEnum]:
    return {EnumKey(dbenum.schema_name, dbenum.enum_name): dbenum for dbenum in enums}


def resolve_column(column: Column, context: ColumnMappingContext) -> Column:
    if column.data_type != USER_DEFINED:
        return column
    reference = context.column_udt_mappings.get(ColumnKey(context.current_table, column.name))
    if reference is None:
        return column
    # the reference carries the defining schema, which may differ from the table's
    dbenum = context.enums_by_key.get(EnumKey(reference.udt_schema, reference.udt_name))
    if dbenum is None:
        return column
    return column.with_data_type(dbenum.enum_name)


def resolve_user_defined_types(
    columns: Iterable[Column], context: ColumnMappingContext
) -> List[Column]:
    return [resolve_column(column, context) for column in columns]
