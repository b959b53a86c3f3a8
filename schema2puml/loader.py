"""Catalog snapshots: YAML/JSON documents standing in for a live catalog."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import yaml
from jsonschema import Draft202012Validator

from .errors import SnapshotError
from .model import (
    Column,
    ColumnKey,
    CompositeField,
    Constraint,
    DbCompositeType,
    DbEnum,
    ForeignKey,
    MaterializedView,
    PrimaryKey,
    ReferentialAction,
    Table,
    UdtReference,
    View,
)
from .resolver import USER_DEFINED

SCHEMA_PATH = Path(__file__).resolve().parent / "schema" / "snapshot.schema.yaml"


def load_yaml(path: Path) -> dict:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as exc:
        raise SnapshotError(f"Cannot read snapshot {path}: {exc.strerror or exc}") from exc
    except yaml.YAMLError as exc:
        raise SnapshotError(f"Failed to parse YAML: {exc}") from exc

    if data is None:
        raise SnapshotError("Empty snapshot file provided.")
    if not isinstance(data, dict):
        raise SnapshotError("Top level snapshot structure must be a mapping/object.")
    return data


def validate_snapshot(document: dict) -> None:
    schema = yaml.safe_load(SCHEMA_PATH.read_text(encoding="utf-8"))
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(document), key=lambda e: [str(p) for p in e.absolute_path])
    if not errors:
        return

    details = []
    for error in errors:
        path = "$" + "".join(f"/{segment}" for segment in error.absolute_path)
        details.append(f"- {path}: {error.message}")
    raise SnapshotError("Snapshot validation failed:\n" + "\n".join(details))


def parse_constraints(item: Mapping[str, Any]) -> List[Constraint]:
    constraints: List[Constraint] = []
    if item.get("unique") or item.get("composite_unique"):
        constraints.append(Constraint.UNIQUE)
    if item.get("check"):
        constraints.append(Constraint.CHECK)
    if item.get("default") not in (None, ""):
        constraints.append(Constraint.DEFAULT)
    if item.get("auto_increment"):
        constraints.append(Constraint.AUTO_INCREMENT)
    if item.get("nullable"):
        constraints.append(Constraint.NULLABLE)
    return constraints


def parse_column(item: Mapping[str, Any], position: int) -> Column:
    return Column(
        name=item["name"],
        data_type=USER_DEFINED if item.get("udt") else item["type"],
        ordinal_position=position,
        nullable=bool(item.get("nullable", False)),
        maximum_length=item.get("max_length"),
        composite_unique_constraint_name=item.get("composite_unique"),
        constraints=tuple(parse_constraints(item)),
    )


def parse_foreign_key(table: str, item: Mapping[str, Any]) -> ForeignKey:
    references = item["references"]
    return ForeignKey(
        name=item["name"],
        source_table=table,
        source_column=item["column"],
        target_table=references["table"],
        target_column=references["column"],
        referenced_schema=references.get("schema"),
        on_delete=ReferentialAction.parse(item.get("on_delete")),
        on_update=ReferentialAction.parse(item.get("on_update")),
    )


class SnapshotCatalog:
    """Catalog source backed by a validated snapshot document."""

    def __init__(self, document: Dict[str, Any]) -> None:
        self.document = document
        self._schemas: Dict[str, Dict[str, Any]] = {
            item["name"]: item for item in document.get("schemas", [])
        }

    @classmethod
    def from_path(cls, path: Path) -> "SnapshotCatalog":
        document = load_yaml(path)
        validate_snapshot(document)
        return cls(document)

    @property
    def schema_names(self) -> List[str]:
        return list(self._schemas)

    def _items(self, schema: str, key: str) -> List[Dict[str, Any]]:
        return list(self._schemas.get(schema, {}).get(key) or [])

    def _find(self, schema: str, key: str, name: str) -> Dict[str, Any]:
        return next((item for item in self._items(schema, key) if item["name"] == name), {})

    def _columns(self, items: Iterable[Mapping[str, Any]]) -> List[Column]:
        return [parse_column(item, position) for position, item in enumerate(items, start=1)]

    def enums(self, schema: str) -> List[DbEnum]:
        return [
            DbEnum(
                schema_name=schema,
                enum_name=item["name"],
                values=tuple(item.get("values") or ()),
                column_names=frozenset(item.get("columns") or ()),
            )
            for item in self._items(schema, "enums")
        ]

    def composite_types(self, schema: str) -> List[DbCompositeType]:
        return [
            DbCompositeType(
                type_name=item["name"],
                schema_name=schema,
                fields=tuple(CompositeField(f["name"], f["type"]) for f in item.get("fields") or ()),
            )
            for item in self._items(schema, "composite_types")
        ]

    def column_udt_mappings(self, schema: str) -> Dict[ColumnKey, UdtReference]:
        mappings: Dict[ColumnKey, UdtReference] = {}
        for key in ("tables", "views", "materialized_views"):
            for relation in self._items(schema, key):
                for column in relation.get("columns") or ():
                    udt = column.get("udt")
                    if not udt:
                        continue
                    mappings[ColumnKey(relation["name"], column["name"])] = UdtReference(
                        udt.get("schema", schema), udt["name"]
                    )
        return mappings

    def tables(self, schema: str) -> List[Table]:
        return [
            Table(name=item["name"], partition_strategy=item.get("partition_strategy"))
            for item in self._items(schema, "tables")
        ]

    def columns(self, schema: str, table: str) -> List[Column]:
        return self._columns(self._find(schema, "tables", table).get("columns") or ())

    def primary_key(self, schema: str, table: str) -> Optional[PrimaryKey]:
        item = self._find(schema, "tables", table).get("primary_key")
        if not item:
            return None
        return PrimaryKey(item.get("name") or f"{table}_pkey", tuple(item["columns"]))

    def foreign_keys(self, schema: str, table: str) -> List[ForeignKey]:
        items = self._find(schema, "tables", table).get("foreign_keys") or ()
        return [parse_foreign_key(table, item) for item in items]

    def partition_children(self, schema: str) -> Dict[str, Sequence[str]]:
        return {
            item["name"]: tuple(item["partitions"])
            for item in self._items(schema, "tables")
            if item.get("partitions")
        }

    def views(self, schema: str) -> List[View]:
        return [View(item["name"]) for item in self._items(schema, "views")]

    def view_columns(self, schema: str, view: str) -> List[Column]:
        return self._columns(self._find(schema, "views", view).get("columns") or ())

    def materialized_views(self, schema: str) -> List[MaterializedView]:
        return [MaterializedView(item["name"]) for item in self._items(schema, "materialized_views")]

    def materialized_view_columns(self, schema: str, view: str) -> List[Column]:
        return self._columns(self._find(schema, "materialized_views", view).get("columns") or ())


def load_snapshot(path: Path) -> SnapshotCatalog:
    return SnapshotCatalog.from_path(path)
