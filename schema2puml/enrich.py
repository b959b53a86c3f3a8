"""Derived facts injected into raw catalog rows."""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from .model import Column, Constraint, ForeignKey, PrimaryKey, Table


def enrich_foreign_key_nullability(
    foreign_keys: Iterable[ForeignKey], columns: Sequence[Column]
) -> List[ForeignKey]:
    """Copy each source column's nullability onto its foreign key.

    The source column is matched by exact name. Foreign keys without a
    matching column are returned as they are.
    """
    enriched: List[ForeignKey] = []
    for foreign_key in foreign_keys:
        column = next((c for c in columns if c.name == foreign_key.source_column), None)
        if column is None:
            enriched.append(foreign_key)
            continue
        enriched.append(foreign_key.with_nullability(column.is_nullable))
    return enriched


def tag_foreign_key_columns(
    columns: Iterable[Column], foreign_keys: Sequence[ForeignKey]
) -> List[Column]:
    """Prepend ``Constraint.FK`` to every column used as a foreign key source.

    Unlike :func:`enrich_foreign_key_nullability` the match ignores case.
    """
    sources = {foreign_key.source_column.lower() for foreign_key in foreign_keys}
    tagged: List[Column] = []
    for column in columns:
        if column.name.lower() not in sources or Constraint.FK in column.constraints:
            tagged.append(column)
            continue
        tagged.append(column.with_constraints((Constraint.FK,) + column.constraints))
    return tagged


def assemble_table(
    name: str,
    columns: Iterable[Column],
    primary_key: Optional[PrimaryKey],
    foreign_keys: Iterable[ForeignKey],
    partition_strategy: Optional[str] = None,
    partition_names: Iterable[str] = (),
) -> Table:
    return Table(
        name=name,
        columns=tuple(columns),
        primary_key=primary_key,
        foreign_keys=tuple(foreign_keys),
        partition_strategy=partition_strategy,
        partition_names=tuple(partition_names),
    )
