from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import pytest

from schema2puml.catalog import PostgresCatalog
from schema2puml.catalog import postgresql as queries
from schema2puml.catalog.postgresql import build_constraints, decode_action, resolve_data_type
from schema2puml.model import ColumnKey, Constraint, ReferentialAction, UdtReference


class FakeResult:
    def __init__(self, rows: List[Dict[str, Any]]) -> None:
        self.rows = rows

    def mappings(self) -> "FakeResult":
        return self

    def all(self) -> List[Dict[str, Any]]:
        return list(self.rows)


class FakeConnection:
    """Answers each catalog query with canned rows."""

    def __init__(self, responses: Mapping[str, List[Dict[str, Any]]]) -> None:
        self.responses = responses
        self.calls: List[tuple] = []

    def execute(self, clause, params: Optional[Dict[str, Any]] = None) -> FakeResult:
        self.calls.append((clause.text, dict(params or {})))
        return FakeResult(self.responses.get(clause.text, []))


def column_row(name: str, data_type: str, position: int, **extra: Any) -> Dict[str, Any]:
    row = {
        "column_name": name,
        "ordinal_position": position,
        "is_nullable": "NO",
        "data_type": data_type,
        "character_maximum_length": None,
        "numeric_precision": None,
        "numeric_scale": None,
        "column_default": None,
        "is_unique": False,
        "composite_unique_constraint_name": None,
        "check_constraint": None,
        "is_auto_increment": False,
    }
    row.update(extra)
    return row


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection(
        {
            queries.ENUMS_QUERY: [
                {"enum_name": "order_status", "enumlabel": "pending"},
                {"enum_name": "order_status", "enumlabel": "paid"},
                {"enum_name": "mood", "enumlabel": "ok"},
            ],
            queries.COLUMN_UDT_MAPPINGS_QUERY: [
                {
                    "table_name": "orders",
                    "column_name": "status",
                    "udt_schema": "sales",
                    "udt_name": "order_status",
                },
                {
                    "table_name": "orders",
                    "column_name": "currency",
                    "udt_schema": "common",
                    "udt_name": "currency",
                },
            ],
            queries.MATERIALIZED_VIEW_UDT_MAPPINGS_QUERY: [
                {
                    "table_name": "order_totals",
                    "column_name": "last_status",
                    "udt_schema": "sales",
                    "udt_name": "order_status",
                },
            ],
            queries.COMPOSITE_TYPES_QUERY: [
                {"type_name": "money", "attribute_name": "amount", "attribute_type": "numeric(12,2)"},
                {"type_name": "money", "attribute_name": "currency", "attribute_type": "text"},
                {"type_name": "empty", "attribute_name": None, "attribute_type": None},
            ],
            queries.TABLES_QUERY: [
                {"table_name": "orders", "partition_key": None},
                {"table_name": "events", "partition_key": "RANGE (occurred_at)"},
            ],
            queries.COLUMNS_QUERY: [
                column_row(
                    "id",
                    "bigint",
                    1,
                    column_default="nextval('orders_id_seq'::regclass)",
                    is_auto_increment=True,
                ),
                column_row("total", "numeric", 2, numeric_precision=12, numeric_scale=2),
                column_row("note", "character varying", 3, character_maximum_length=80, is_nullable="YES"),
            ],
            queries.PRIMARY_KEY_QUERY: [
                {"constraint_name": "orders_pkey", "column_name": "id"},
                {"constraint_name": "orders_pkey", "column_name": "tenant_id"},
            ],
            queries.FOREIGN_KEYS_QUERY: [
                {
                    "constraint_name": "orders_user_id_fkey",
                    "source_table_name": "orders",
                    "source_column": "user_id",
                    "referenced_schema": "common",
                    "referenced_table": "users",
                    "referenced_column": "id",
                    "on_delete_type": "CASCADE",
                    "on_update_type": "NO ACTION",
                }
            ],
            queries.PARTITION_CHILDREN_QUERY: [
                {"table_name": "events", "partition_name": "events_2024"},
                {"table_name": "events", "partition_name": "events_2025"},
            ],
            queries.VIEWS_QUERY: [{"table_name": "paid_orders"}],
            queries.MATERIALIZED_VIEWS_QUERY: [{"table_name": "order_totals"}],
            queries.MATERIALIZED_VIEW_COLUMNS_QUERY: [
                column_row("last_status", "USER-DEFINED", 1, is_nullable="YES"),
            ],
        }
    )


def test_enums_group_labels_and_collect_columns(connection: FakeConnection) -> None:
    order_status, mood = PostgresCatalog(connection).enums("sales")

    assert order_status.values == ("pending", "paid")
    assert order_status.column_names == frozenset({"status", "last_status"})
    assert mood.column_names == frozenset()
    assert connection.calls[0] == (queries.ENUMS_QUERY, {"schema": "sales"})


def test_udt_mappings_include_materialized_views(connection: FakeConnection) -> None:
    mappings = PostgresCatalog(connection).column_udt_mappings("sales")
    assert mappings[ColumnKey("orders", "currency")] == UdtReference("common", "currency")
    assert mappings[ColumnKey("order_totals", "last_status")] == UdtReference("sales", "order_status")


def test_composite_types(connection: FakeConnection) -> None:
    money, empty = PostgresCatalog(connection).composite_types("common")
    assert [(f.field_name, f.field_type) for f in money.fields] == [
        ("amount", "numeric(12,2)"),
        ("currency", "text"),
    ]
    assert empty.fields == ()


def test_tables_carry_partition_strategy(connection: FakeConnection) -> None:
    orders, events = PostgresCatalog(connection).tables("sales")
    assert orders.partition_strategy is None
    assert events.partition_strategy == "RANGE (occurred_at)"


def test_columns(connection: FakeConnection) -> None:
    identifier, total, note = PostgresCatalog(connection).columns("sales", "orders")

    assert identifier.constraints == (Constraint.DEFAULT, Constraint.AUTO_INCREMENT)
    assert total.data_type == "numeric(12,2)"
    assert note.maximum_length == 80
    assert note.is_nullable
    assert note.constraints == (Constraint.NULLABLE,)
    assert connection.calls[-1][1] == {"schema": "sales", "table": "orders"}


def test_primary_key_collects_columns_in_order(connection: FakeConnection) -> None:
    primary_key = PostgresCatalog(connection).primary_key("sales", "orders")
    assert primary_key.constraint_name == "orders_pkey"
    assert primary_key.column_names == ("id", "tenant_id")


def test_missing_primary_key() -> None:
    assert PostgresCatalog(FakeConnection({})).primary_key("sales", "events") is None


def test_foreign_keys(connection: FakeConnection) -> None:
    (foreign_key,) = PostgresCatalog(connection).foreign_keys("sales", "orders")
    assert foreign_key.referenced_schema == "common"
    assert foreign_key.target_table == "users"
    assert foreign_key.on_delete is ReferentialAction.CASCADE
    assert foreign_key.on_update is ReferentialAction.NO_ACTION


def test_partition_children(connection: FakeConnection) -> None:
    assert PostgresCatalog(connection).partition_children("sales") == {
        "events": ("events_2024", "events_2025")
    }


def test_views_and_materialized_views(connection: FakeConnection) -> None:
    catalog = PostgresCatalog(connection)
    assert [v.name for v in catalog.views("sales")] == ["paid_orders"]
    assert [v.name for v in catalog.materialized_views("sales")] == ["order_totals"]
    (column,) = catalog.materialized_view_columns("sales", "order_totals")
    assert column.data_type == "USER-DEFINED"
    assert [c.name for c in catalog.view_columns("sales", "paid_orders")] == ["id", "total", "note"]


def test_resolve_data_type() -> None:
    assert resolve_data_type({"data_type": "numeric", "numeric_precision": 10, "numeric_scale": 0}) == (
        "numeric(10,0)"
    )
    assert resolve_data_type({"data_type": "numeric", "numeric_precision": None}) == "numeric"
    assert resolve_data_type({"data_type": "integer[]"}) == "integer[]"


def test_blank_check_and_default_are_ignored() -> None:
    row = {"check_constraint": "  ", "column_default": "", "is_unique": True, "is_nullable": "NO"}
    assert build_constraints(row) == [Constraint.UNIQUE]


def test_unknown_action_logs_warning(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="schema2puml"):
        assert decode_action("EXPLODE\n") is ReferentialAction.NO_ACTION
    assert "Unknown referential action: EXPLODE" in caplog.text
    assert decode_action("SET NULL") is ReferentialAction.SET_NULL
