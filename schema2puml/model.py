"""Immutable value objects describing catalog metadata."""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, FrozenSet, Iterable, Iterator, Optional, Tuple

from .errors import ValidationError


def require_text(value: Optional[str], name: str) -> None:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} must not be blank")


def require_present(value: Any, name: str) -> None:
    if value is None:
        raise ValidationError(f"{name} must not be null")


def _freeze(obj: Any, name: str, values: Optional[Iterable[Any]]) -> None:
    require_present(values, name)
    items = tuple(values)
    if any(item is None for item in items):
        raise ValidationError(f"{name} must not contain null elements")
    object.__setattr__(obj, name, items)


class Constraint(Enum):
    """Column-level constraint tags.

    ``display_priority`` orders the labels in the rendered ``<<...>>``
    annotation: lower numbers are shown first.
    """

    FK = 0
    UNIQUE = 1
    AUTO_INCREMENT = 2
    DEFAULT = 3
    CHECK = 4
    NULLABLE = 5

    @property
    def display_priority(self) -> int:
        return self.value


class ReferentialAction(Enum):
    NO_ACTION = "NO ACTION"
    RESTRICT = "RESTRICT"
    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Optional[str]) -> "ReferentialAction":
        """Decode a catalog rule string; anything unknown means NO ACTION."""
        if not value:
            return cls.NO_ACTION
        normalized = " ".join(str(value).replace("_", " ").split()).upper()
        for action in cls:
            if action.value == normalized:
                return action
        return cls.NO_ACTION


@dataclass(frozen=True)
class Column:
    name: str
    data_type: str
    ordinal_position: int = 0
    nullable: bool = False
    maximum_length: Optional[int] = None
    composite_unique_constraint_name: Optional[str] = None
    constraints: Tuple[Constraint, ...] = ()

    def __post_init__(self) -> None:
        require_text(self.name, "name")
        require_text(self.data_type, "data_type")
        _freeze(self, "constraints", self.constraints)

    @property
    def is_nullable(self) -> bool:
        return self.nullable or Constraint.NULLABLE in self.constraints

    @property
    def is_bounded(self) -> bool:
        return bool(self.maximum_length) and self.maximum_length > 0

    def with_data_type(self, data_type: str) -> "Column":
        return replace(self, data_type=data_type)

    def with_constraints(self, constraints: Iterable[Constraint]) -> "Column":
        return replace(self, constraints=tuple(constraints))


@dataclass(frozen=True)
class PrimaryKey:
    constraint_name: str
    column_names: Tuple[str, ...]

    def __post_init__(self) -> None:
        require_present(self.constraint_name, "constraint_name")
        _freeze(self, "column_names", self.column_names)

    def __contains__(self, column_name: object) -> bool:
        return column_name in self.column_names


@dataclass(frozen=True)
class ForeignKey:
    name: str
    source_table: str
    source_column: str
    target_table: str
    target_column: str
    referenced_schema: Optional[str] = None
    nullable: bool = False
    on_delete: ReferentialAction = ReferentialAction.NO_ACTION
    on_update: ReferentialAction = ReferentialAction.NO_ACTION

    def __post_init__(self) -> None:
        require_text(self.name, "name")
        require_text(self.source_table, "source_table")
        require_text(self.source_column, "source_column")
        require_text(self.target_table, "target_table")
        require_text(self.target_column, "target_column")
        require_present(self.on_delete, "on_delete")
        require_present(self.on_update, "on_update")

    def with_nullability(self, nullable: bool) -> "ForeignKey":
        return replace(self, nullable=nullable)


@dataclass(frozen=True)
class Table:
    name: str
    columns: Tuple[Column, ...] = ()
    primary_key: Optional[PrimaryKey] = None
    foreign_keys: Tuple[ForeignKey, ...] = ()
    partition_strategy: Optional[str] = None
    partition_names: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        require_text(self.name, "name")
        _freeze(self, "columns", self.columns)
        _freeze(self, "foreign_keys", self.foreign_keys)
        _freeze(self, "partition_names", self.partition_names)

    @property
    def primary_key_names(self) -> Tuple[str, ...]:
        return self.primary_key.column_names if self.primary_key else ()

    @property
    def primary_key_columns(self) -> Tuple[Column, ...]:
        names = self.primary_key_names
        return tuple(column for column in self.columns if column.name in names)

    @property
    def non_primary_key_columns(self) -> Tuple[Column, ...]:
        names = self.primary_key_names
        return tuple(column for column in self.columns if column.name not in names)


@dataclass(frozen=True)
class View:
    name: str
    columns: Tuple[Column, ...] = ()

    def __post_init__(self) -> None:
        require_text(self.name, "name")
        _freeze(self, "columns", self.columns)


@dataclass(frozen=True)
class MaterializedView:
    name: str
    columns: Tuple[Column, ...] = ()

    def __post_init__(self) -> None:
        require_text(self.name, "name")
        _freeze(self, "columns", self.columns)


@dataclass(frozen=True)
class DbEnum:
    schema_name: str
    enum_name: str
    values: Tuple[str, ...] = ()
    column_names: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        require_text(self.schema_name, "schema_name")
        require_text(self.enum_name, "enum_name")
        _freeze(self, "values", self.values)
        require_present(self.column_names, "column_names")
        object.__setattr__(self, "column_names", frozenset(self.column_names))


@dataclass(frozen=True)
class CompositeField:
    field_name: str
    field_type: str

    def __post_init__(self) -> None:
        require_text(self.field_name, "field_name")
        require_text(self.field_type, "field_type")


@dataclass(frozen=True)
class DbCompositeType:
    type_name: str
    schema_name: str
    fields: Tuple[CompositeField, ...] = ()

    def __post_init__(self) -> None:
        require_text(self.type_name, "type_name")
        require_text(self.schema_name, "schema_name")
        _freeze(self, "fields", self.fields)


@dataclass(frozen=True)
class Schema:
    name: str
    tables: Tuple[Table, ...] = ()
    views: Tuple[View, ...] = ()
    materialized_views: Tuple[MaterializedView, ...] = ()
    enums: Tuple[DbEnum, ...] = ()
    composite_types: Tuple[DbCompositeType, ...] = ()

    def __post_init__(self) -> None:
        require_text(self.name, "name")
        _freeze(self, "tables", self.tables)
        _freeze(self, "views", self.views)
        _freeze(self, "materialized_views", self.materialized_views)
        _freeze(self, "enums", self.enums)
        _freeze(self, "composite_types", self.composite_types)

    @property
    def foreign_keys(self) -> Iterator[ForeignKey]:
        for table in self.tables:
            yield from table.foreign_keys


@dataclass(frozen=True)
class ColumnKey:
    table_name: str
    column_name: str

    def __post_init__(self) -> None:
        require_text(self.table_name, "table_name")
        require_text(self.column_name, "column_name")


@dataclass(frozen=True)
class EnumKey:
    schema: str
    name: str

    def __post_init__(self) -> None:
        require_text(self.schema, "schema")
        require_text(self.name, "name")


@dataclass(frozen=True)
class UdtReference:
    udt_schema: str
    udt_name: str

    def __post_init__(self) -> None:
        require_text(self.udt_schema, "udt_schema")
        require_text(self.udt_name, "udt_name")


__all__ = [
    "Column",
    "ColumnKey",
    "CompositeField",
    "Constraint",
    "DbCompositeType",
    "DbEnum",
    "EnumKey",
    "ForeignKey",
    "MaterializedView",
    "PrimaryKey",
    "ReferentialAction",
    "Schema",
    "Table",
    "UdtReference",
    "View",
    "require_text",
]
