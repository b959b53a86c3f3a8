from __future__ import annotations

from pathlib import Path

import pytest

from schema2puml.errors import SnapshotError
from schema2puml.loader import (
    SnapshotCatalog,
    load_snapshot,
    load_yaml,
    parse_column,
    parse_constraints,
    validate_snapshot,
)
from schema2puml.model import ColumnKey, Constraint, ReferentialAction, UdtReference
from schema2puml.resolver import USER_DEFINED


@pytest.fixture
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def catalog(fixtures_dir: Path) -> SnapshotCatalog:
    return load_snapshot(fixtures_dir / "shop.yaml")


def test_schema_validation_errors(fixtures_dir: Path) -> None:
    with pytest.raises(SnapshotError) as exc_info:
        load_snapshot(fixtures_dir / "invalid_snapshot.yaml")
    message = str(exc_info.value)
    assert "Snapshot validation failed" in message
    assert "- $/schemas/0/tables/0/columns/0:" in message
    assert "$/schemas/0/tables/0/foreign_keys/0/on_delete" in message


def test_unknown_top_level_keys_are_rejected() -> None:
    with pytest.raises(SnapshotError, match="Snapshot validation failed"):
        validate_snapshot({"schemas": [], "extra": True})


def test_empty_file_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    with pytest.raises(SnapshotError, match="Empty snapshot"):
        load_yaml(path)


def test_non_mapping_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(SnapshotError, match="mapping"):
        load_yaml(path)


def test_broken_yaml_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("schemas: [\n", encoding="utf-8")
    with pytest.raises(SnapshotError, match="Failed to parse YAML"):
        load_yaml(path)


def test_missing_file_is_reported(tmp_path: Path) -> None:
    with pytest.raises(SnapshotError, match="Cannot read snapshot"):
        load_yaml(tmp_path / "missing.yaml")


def test_json_snapshot_is_accepted(tmp_path: Path) -> None:
    path = tmp_path / "tiny.json"
    path.write_text('{"schemas": [{"name": "public"}]}', encoding="utf-8")
    assert load_snapshot(path).schema_names == ["public"]


def test_constraints_are_read_in_catalog_order() -> None:
    item = {
        "name": "code",
        "type": "text",
        "nullable": True,
        "auto_increment": True,
        "default": 0,
        "check": "code <> ''",
        "composite_unique": "items_code_vendor_key",
    }
    assert parse_constraints(item) == [
        Constraint.UNIQUE,
        Constraint.CHECK,
        Constraint.DEFAULT,
        Constraint.AUTO_INCREMENT,
        Constraint.NULLABLE,
    ]


def test_udt_column_gets_placeholder_type() -> None:
    column = parse_column({"name": "status", "udt": {"name": "order_status"}}, 3)
    assert column.data_type == USER_DEFINED
    assert column.ordinal_position == 3


def test_catalog_schema_names(catalog: SnapshotCatalog) -> None:
    assert catalog.schema_names == ["common", "sales"]


def test_catalog_columns_and_keys(catalog: SnapshotCatalog) -> None:
    columns = catalog.columns("common", "users")
    assert [c.name for c in columns] == ["id", "email", "nickname"]
    assert columns[1].maximum_length == 255

    assert catalog.primary_key("common", "users").constraint_name == "users_pkey"
    assert catalog.primary_key("sales", "orders").constraint_name == "orders_pkey"
    assert catalog.primary_key("sales", "events") is None

    user_fk, coupon_fk = catalog.foreign_keys("sales", "orders")
    assert user_fk.referenced_schema == "common"
    assert user_fk.on_delete is ReferentialAction.CASCADE
    assert coupon_fk.referenced_schema is None
    assert coupon_fk.on_delete is ReferentialAction.SET_NULL
    assert coupon_fk.nullable is False


def test_catalog_udt_mappings_default_to_current_schema(catalog: SnapshotCatalog) -> None:
    mappings = catalog.column_udt_mappings("sales")
    assert mappings[ColumnKey("orders", "status")] == UdtReference("sales", "order_status")
    assert mappings[ColumnKey("orders", "currency")] == UdtReference("common", "currency")
    assert mappings[ColumnKey("paid_orders", "status")] == UdtReference("sales", "order_status")


def test_catalog_types_and_partitions(catalog: SnapshotCatalog) -> None:
    (currency,) = catalog.enums("common")
    assert currency.values == ("EUR", "USD")
    (money,) = catalog.composite_types("common")
    assert [f.field_type for f in money.fields] == ["numeric(12,2)", "text"]

    assert catalog.partition_children("sales") == {"events": ("events_2024", "events_2025")}
    events = [t for t in catalog.tables("sales") if t.name == "events"][0]
    assert events.partition_strategy == "RANGE (occurred_at)"


def test_catalog_views(catalog: SnapshotCatalog) -> None:
    assert [v.name for v in catalog.views("sales")] == ["paid_orders"]
    assert [m.name for m in catalog.materialized_views("sales")] == ["order_totals"]
    assert [c.name for c in catalog.materialized_view_columns("sales", "order_totals")] == [
        "user_id",
        "total",
    ]


def test_unknown_schema_is_empty(catalog: SnapshotCatalog) -> None:
    assert catalog.tables("missing") == []
    assert catalog.columns("missing", "users") == []
