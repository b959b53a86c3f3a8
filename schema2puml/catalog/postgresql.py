"""PostgreSQL catalog source built on SQLAlchemy connections."""
from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.engine import Connection

from ..log import sanitize
from ..model import (
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

logger = logging.getLogger(__name__)

TABLES_QUERY = """
SELECT
  t.table_name,
  CASE WHEN c.relkind = 'p' THEN pg_get_partkeydef(c.oid) ELSE NULL END AS partition_key
FROM information_schema.tables t
JOIN pg_catalog.pg_class c ON c.relname = t.table_name
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace AND n.nspname = t.table_schema
WHERE t.table_schema = :schema
  AND t.table_type = 'BASE TABLE'
  AND c.relispartition = false
ORDER BY c.oid
"""

COLUMNS_QUERY = """
SELECT
  c.column_name,
  c.ordinal_position,
  c.is_nullable,
  CASE
    WHEN c.data_type = 'ARRAY' THEN SUBSTRING(c.udt_name FROM 2) || '[]'
    ELSE c.data_type
  END AS data_type,
  c.character_maximum_length,
  c.numeric_precision,
  c.numeric_scale,
  c.column_default,
  COUNT(DISTINCT uc.constraint_name) > 0 AS is_unique,
  (
    SELECT STRING_AGG(DISTINCT uc2.constraint_name, ',')
    FROM information_schema.table_constraints uc2
    JOIN information_schema.key_column_usage kcu2
      ON uc2.constraint_name = kcu2.constraint_name
     AND uc2.table_schema = kcu2.table_schema
    WHERE uc2.constraint_type = 'UNIQUE'
      AND uc2.table_schema = c.table_schema
      AND uc2.table_name = c.table_name
      AND kcu2.column_name = c.column_name
      AND (
        SELECT COUNT(*)
        FROM information_schema.key_column_usage kcu3
        WHERE kcu3.constraint_name = uc2.constraint_name
          AND kcu3.table_schema = uc2.table_schema
      ) > 1
  ) AS composite_unique_constraint_name,
  STRING_AGG(DISTINCT cc.check_clause, ' AND ') AS check_constraint,
  COALESCE(c.column_default LIKE 'nextval%', false) AS is_auto_increment
FROM information_schema.columns c
LEFT JOIN information_schema.key_column_usage kcu
  ON c.table_schema = kcu.table_schema
 AND c.table_name = kcu.table_name
 AND c.column_name = kcu.column_name
LEFT JOIN information_schema.table_constraints uc
  ON kcu.constraint_name = uc.constraint_name
 AND kcu.table_schema = uc.table_schema
 AND uc.constraint_type = 'UNIQUE'
LEFT JOIN information_schema.constraint_column_usage ccu
  ON c.table_schema = ccu.table_schema
 AND c.table_name = ccu.table_name
 AND c.column_name = ccu.column_name
LEFT JOIN information_schema.check_constraints cc
  ON ccu.constraint_name = cc.constraint_name
 AND EXISTS (
   SELECT 1 FROM information_schema.table_constraints tc
   WHERE tc.constraint_name = cc.constraint_name
     AND tc.constraint_type = 'CHECK'
 )
WHERE c.table_schema = :schema
  AND c.table_name = :table
GROUP BY c.table_schema, c.table_name, c.column_name, c.ordinal_position,
         c.is_nullable, c.data_type, c.udt_name, c.character_maximum_length,
         c.numeric_precision, c.numeric_scale, c.column_default
ORDER BY c.ordinal_position
"""

PRIMARY_KEY_QUERY = """
SELECT tc.constraint_name, kcu.column_name
FROM information_schema.table_constraints AS tc
JOIN information_schema.key_column_usage AS kcu
  ON tc.constraint_name = kcu.constraint_name
 AND tc.table_schema = kcu.table_schema
WHERE tc.constraint_type = 'PRIMARY KEY'
  AND tc.table_schema = :schema
  AND tc.table_name = :table
ORDER BY kcu.ordinal_position
"""

FOREIGN_KEYS_QUERY = """
SELECT
  tc.constraint_name,
  kcu.table_name   AS source_table_name,
  kcu.column_name  AS source_column,
  ccu.table_schema AS referenced_schema,
  ccu.table_name   AS referenced_table,
  ccu.column_name  AS referenced_column,
  rc.delete_rule   AS on_delete_type,
  rc.update_rule   AS on_update_type
FROM information_schema.table_constraints AS tc
JOIN information_schema.key_column_usage AS kcu
  ON tc.constraint_name = kcu.constraint_name AND tc.table_schema = kcu.table_schema
JOIN information_schema.constraint_column_usage AS ccu
  ON tc.constraint_name = ccu.constraint_name
JOIN information_schema.referential_constraints AS rc
  ON tc.constraint_name = rc.constraint_name AND tc.table_schema = rc.constraint_schema
WHERE tc.constraint_type = 'FOREIGN KEY'
  AND kcu.table_schema = :schema
  AND kcu.table_name = :table
ORDER BY tc.constraint_name, kcu.ordinal_position
"""

VIEWS_QUERY = """
SELECT v.table_name
FROM information_schema.views v
WHERE v.table_schema = :schema
ORDER BY v.table_name
"""

MATERIALIZED_VIEWS_QUERY = """
SELECT c.relname AS table_name
FROM pg_catalog.pg_class c
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = :schema
  AND c.relkind = 'm'
ORDER BY c.relname
"""

# information_schema does not list materialized views, so read pg_attribute
MATERIALIZED_VIEW_COLUMNS_QUERY = """
SELECT
  a.attname AS column_name,
  a.attnum AS ordinal_position,
  CASE WHEN a.attnotnull THEN 'NO' ELSE 'YES' END AS is_nullable,
  CASE
    WHEN t.typtype IN ('e', 'c') THEN 'USER-DEFINED'
    ELSE pg_catalog.format_type(a.atttypid, NULL)
  END AS data_type,
  CASE
    WHEN t.typname IN ('varchar', 'bpchar') AND a.atttypmod > 0
      THEN (a.atttypmod - 4)::integer
    ELSE NULL
  END AS character_maximum_length,
  CASE WHEN t.typname = 'numeric' AND a.atttypmod > 0
    THEN (((a.atttypmod - 4) >> 16) & 65535)::integer
  END AS numeric_precision,
  CASE WHEN t.typname = 'numeric' AND a.atttypmod > 0
    THEN ((a.atttypmod - 4) & 65535)::integer
  END AS numeric_scale
FROM pg_catalog.pg_attribute a
JOIN pg_catalog.pg_class c ON c.oid = a.attrelid
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
JOIN pg_catalog.pg_type t ON t.oid = a.atttypid
WHERE n.nspname = :schema
  AND c.relname = :table
  AND c.relkind = 'm'
  AND a.attnum > 0
  AND NOT a.attisdropped
ORDER BY a.attnum
"""

ENUMS_QUERY = """
SELECT t.typname AS enum_name, e.enumlabel
FROM pg_type t
JOIN pg_namespace n ON t.typnamespace = n.oid
JOIN pg_enum e ON e.enumtypid = t.oid
WHERE n.nspname = :schema
  AND t.typtype = 'e'
ORDER BY t.typname, e.enumsortorder
"""

COLUMN_UDT_MAPPINGS_QUERY = """
SELECT c.table_name, c.column_name, c.udt_schema, c.udt_name
FROM information_schema.columns c
WHERE c.table_schema = :schema
  AND c.data_type = 'USER-DEFINED'
ORDER BY c.table_name, c.ordinal_position
"""

MATERIALIZED_VIEW_UDT_MAPPINGS_QUERY = """
SELECT c.relname AS table_name, a.attname AS column_name,
       tn.nspname AS udt_schema, t.typname AS udt_name
FROM pg_catalog.pg_attribute a
JOIN pg_catalog.pg_class c ON c.oid = a.attrelid
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
JOIN pg_catalog.pg_type t ON t.oid = a.atttypid
JOIN pg_catalog.pg_namespace tn ON tn.oid = t.typnamespace
WHERE n.nspname = :schema
  AND c.relkind = 'm'
  AND t.typtype IN ('e', 'c')
  AND a.attnum > 0
  AND NOT a.attisdropped
ORDER BY c.relname, a.attnum
"""

COMPOSITE_TYPES_QUERY = """
SELECT
  t.typname AS type_name,
  a.attname AS attribute_name,
  pg_catalog.format_type(a.atttypid, a.atttypmod) AS attribute_type
FROM pg_type t
JOIN pg_namespace n ON n.oid = t.typnamespace
LEFT JOIN pg_attribute a ON a.attrelid = t.typrelid AND a.attnum > 0 AND NOT a.attisdropped
WHERE n.nspname = :schema
  AND t.typtype = 'c'
  AND t.typrelid != 0
  AND NOT EXISTS (
    SELECT 1 FROM pg_class c
    WHERE c.oid = t.typrelid AND c.relkind IN ('r', 'v', 'm', 'p')
  )
ORDER BY t.typname, a.attnum
"""

PARTITION_CHILDREN_QUERY = """
SELECT p.relname AS table_name, c.relname AS partition_name
FROM pg_class p
JOIN pg_namespace n ON n.oid = p.relnamespace
JOIN pg_inherits i ON i.inhparent = p.oid
JOIN pg_class c ON c.oid = i.inhrelid
WHERE n.nspname = :schema
  AND p.relkind = 'p'
ORDER BY p.relname, c.relname
"""


def resolve_data_type(row: Mapping[str, Any]) -> str:
    data_type = row["data_type"]
    if data_type == "numeric":
        precision = row.get("numeric_precision")
        scale = row.get("numeric_scale")
        if precision is not None and scale is not None:
            return f"numeric({precision},{scale})"
    return data_type


def build_constraints(row: Mapping[str, Any]) -> List[Constraint]:
    constraints: List[Constraint] = []
    if row.get("is_unique"):
        constraints.append(Constraint.UNIQUE)
    check = row.get("check_constraint")
    if check and str(check).strip():
        constraints.append(Constraint.CHECK)
    default = row.get("column_default")
    if default and str(default).strip():
        constraints.append(Constraint.DEFAULT)
    if row.get("is_auto_increment"):
        constraints.append(Constraint.AUTO_INCREMENT)
    if row.get("is_nullable") == "YES":
        constraints.append(Constraint.NULLABLE)
    return constraints


def column_from_row(row: Mapping[str, Any]) -> Column:
    return Column(
        name=row["column_name"],
        data_type=resolve_data_type(row),
        ordinal_position=row.get("ordinal_position") or 0,
        nullable=row.get("is_nullable") == "YES",
        maximum_length=row.get("character_maximum_length"),
        composite_unique_constraint_name=row.get("composite_unique_constraint_name"),
        constraints=tuple(build_constraints(row)),
    )


def foreign_key_from_row(row: Mapping[str, Any]) -> ForeignKey:
    return ForeignKey(
        name=row["constraint_name"],
        source_table=row["source_table_name"],
        source_column=row["source_column"],
        target_table=row["referenced_table"],
        target_column=row["referenced_column"],
        referenced_schema=row.get("referenced_schema"),
        on_delete=decode_action(row.get("on_delete_type")),
        on_update=decode_action(row.get("on_update_type")),
    )


def decode_action(value: Optional[str]) -> ReferentialAction:
    action = ReferentialAction.parse(value)
    if value and action is ReferentialAction.NO_ACTION and value.upper() != "NO ACTION":
        logger.warning("Unknown referential action: %s", sanitize(value))
    return action


class PostgresCatalog:
    """Catalog source reading ``information_schema`` and ``pg_catalog``."""

    def __init__(self, connection: Connection) -> None:
        self.connection = connection

    def _rows(self, query: str, **params: Any) -> List[Mapping[str, Any]]:
        return list(self.connection.execute(text(query), params).mappings().all())

    def enums(self, schema: str) -> List[DbEnum]:
        values: Dict[str, List[str]] = OrderedDict()
        for row in self._rows(ENUMS_QUERY, schema=schema):
            values.setdefault(row["enum_name"], []).append(row["enumlabel"])
        usages: Dict[str, set] = {}
        for key, reference in self.column_udt_mappings(schema).items():
            if reference.udt_schema == schema:
                usages.setdefault(reference.udt_name, set()).add(key.column_name)
        return [
            DbEnum(schema, name, tuple(labels), frozenset(usages.get(name, ())))
            for name, labels in values.items()
        ]

    def composite_types(self, schema: str) -> List[DbCompositeType]:
        fields: Dict[str, List[CompositeField]] = OrderedDict()
        for row in self._rows(COMPOSITE_TYPES_QUERY, schema=schema):
            type_fields = fields.setdefault(row["type_name"], [])
            if row.get("attribute_name"):
                type_fields.append(CompositeField(row["attribute_name"], row["attribute_type"]))
        return [DbCompositeType(name, schema, tuple(items)) for name, items in fields.items()]

    def column_udt_mappings(self, schema: str) -> Dict[ColumnKey, UdtReference]:
        rows = self._rows(COLUMN_UDT_MAPPINGS_QUERY, schema=schema)
        rows += self._rows(MATERIALIZED_VIEW_UDT_MAPPINGS_QUERY, schema=schema)
        return {
            ColumnKey(row["table_name"], row["column_name"]): UdtReference(
                row["udt_schema"], row["udt_name"]
            )
            for row in rows
        }

    def tables(self, schema: str) -> List[Table]:
        return [
            Table(name=row["table_name"], partition_strategy=row.get("partition_key"))
            for row in self._rows(TABLES_QUERY, schema=schema)
        ]

    def columns(self, schema: str, table: str) -> List[Column]:
        return [column_from_row(row) for row in self._rows(COLUMNS_QUERY, schema=schema, table=table)]

    def primary_key(self, schema: str, table: str) -> Optional[PrimaryKey]:
        rows = self._rows(PRIMARY_KEY_QUERY, schema=schema, table=table)
        if not rows:
            return None
        return PrimaryKey(rows[0]["constraint_name"], tuple(row["column_name"] for row in rows))

    def foreign_keys(self, schema: str, table: str) -> List[ForeignKey]:
        rows = self._rows(FOREIGN_KEYS_QUERY, schema=schema, table=table)
        return [foreign_key_from_row(row) for row in rows]

    def partition_children(self, schema: str) -> Dict[str, Sequence[str]]:
        children: Dict[str, List[str]] = OrderedDict()
        for row in self._rows(PARTITION_CHILDREN_QUERY, schema=schema):
            children.setdefault(row["table_name"], []).append(row["partition_name"])
        return {name: tuple(names) for name, names in children.items()}

    def views(self, schema: str) -> List[View]:
        return [View(row["table_name"]) for row in self._rows(VIEWS_QUERY, schema=schema)]

    def view_columns(self, schema: str, view: str) -> List[Column]:
        return self.columns(schema, view)

    def materialized_views(self, schema: str) -> List[MaterializedView]:
        rows = self._rows(MATERIALIZED_VIEWS_QUERY, schema=schema)
        return [MaterializedView(row["table_name"]) for row in rows]

    def materialized_view_columns(self, schema: str, view: str) -> List[Column]:
        rows = self._rows(MATERIALIZED_VIEW_COLUMNS_QUERY, schema=schema, table=view)
        return [column_from_row(row) for row in rows]
