"""Composable line formatters for entity columns and relationships.

Every formatter receives the objects it needs to decide on its content plus
the text accumulated so far.  ``None`` means nothing has been produced yet:
only the first formatter of a chain builds the base text, every later one
decorates what it is given.
"""
from __future__ import annotations

from typing import Callable, Iterable, Optional, Tuple, Union

from .model import Column, Constraint, ForeignKey, MaterializedView, ReferentialAction, Table, View

Entity = Union[Table, View, MaterializedView]
EntityLineFormatter = Callable[[Entity, Column, Optional[str]], Optional[str]]
MultiplicityFormatter = Callable[[ForeignKey, str, Optional[str]], Optional[str]]

CONNECTOR = " -- "
CARDINALITY_OPTIONAL = "||--o{"
CARDINALITY_REQUIRED = "||--|{"

_DECLARATION_ORDER = {constraint: index for index, constraint in enumerate(Constraint)}


class FormatterChain:
    """Apply formatters in order, threading the text through each step.

    A chain has the same call signature as its members, so chains nest.
    """

    def __init__(self, formatters: Optional[Iterable[Callable[..., Optional[str]]]] = None) -> None:
        self.formatters: Tuple[Callable[..., Optional[str]], ...] = tuple(formatters or ())

    def __call__(self, *args):
        *context, current = args
        for formatter in self.formatters:
            current = formatter(*context, current)
        return current

    def then(self, formatter: Callable[..., Optional[str]]) -> "FormatterChain":
        return FormatterChain(self.formatters + (formatter,))

    def __len__(self) -> int:
        return len(self.formatters)

    def __repr__(self) -> str:
        names = ", ".join(getattr(f, "__name__", repr(f)) for f in self.formatters)
        return f"FormatterChain([{names}])"


# entity lines


def format_column(entity: Entity, column: Column, current: Optional[str]) -> str:
    if current is not None:
        return current
    if column.is_bounded:
        return f"{column.name}: {column.data_type}({column.maximum_length})"
    return f"{column.name}: {column.data_type}"


def emphasize_primary_key(entity: Entity, column: Column, current: Optional[str]) -> Optional[str]:
    primary_key = getattr(entity, "primary_key", None)
    if primary_key is None or column.name not in primary_key.column_names:
        return current
    return f"**{current}**"


def constraint_label(column: Column, constraint: Constraint) -> str:
    if constraint is Constraint.UNIQUE and column.composite_unique_constraint_name:
        return f"UNIQUE:{column.composite_unique_constraint_name}"
    return constraint.name


def sort_constraints(constraints: Iterable[Constraint]) -> Tuple[Constraint, ...]:
    return tuple(
        sorted(constraints, key=lambda c: (c.display_priority, _DECLARATION_ORDER[c]))
    )


def annotate_constraints(entity: Entity, column: Column, current: Optional[str]) -> Optional[str]:
    if not column.constraints:
        return current
    labels = ",".join(constraint_label(column, c) for c in sort_constraints(column.constraints))
    return f"{current} <<{labels}>>"


def annotate_view_constraints(entity: Entity, column: Column, current: Optional[str]) -> Optional[str]:
    """Like :func:`annotate_constraints` but always with bare constraint names."""
    if not column.constraints:
        return current
    labels = ",".join(c.name for c in sort_constraints(column.constraints))
    return f"{current} <<{labels}>>"


# relationships


def is_cross_schema(foreign_key: ForeignKey, schema_name: str) -> bool:
    return bool(foreign_key.referenced_schema) and foreign_key.referenced_schema != schema_name


def format_connector(foreign_key: ForeignKey, schema_name: str, current: Optional[str]) -> str:
    if current is not None:
        return current
    target = foreign_key.target_table
    source = foreign_key.source_table
    if is_cross_schema(foreign_key, schema_name):
        target = f"{foreign_key.referenced_schema}.{target}"
        source = f"{schema_name}.{source}"
    return f"{target}{CONNECTOR}{source}"


def apply_cardinality(foreign_key: ForeignKey, schema_name: str, current: Optional[str]) -> Optional[str]:
    if current is None:
        return current
    cardinality = CARDINALITY_OPTIONAL if foreign_key.nullable else CARDINALITY_REQUIRED
    return current.replace(CONNECTOR, f" {cardinality} ", 1)


def referential_action_parts(foreign_key: ForeignKey) -> Tuple[str, ...]:
    parts = []
    if foreign_key.on_delete is not ReferentialAction.NO_ACTION:
        parts.append(f"ON DELETE {foreign_key.on_delete.label}")
    if foreign_key.on_update is not ReferentialAction.NO_ACTION:
        parts.append(f"ON UPDATE {foreign_key.on_update.label}")
    return tuple(parts)


def label_referential_actions(
    foreign_key: ForeignKey, schema_name: str, current: Optional[str]
) -> Optional[str]:
    parts = referential_action_parts(foreign_key)
    if not parts:
        return current
    return f"{current} : \"{' / '.join(parts)}\""


# standard chains


def entity_line_chain() -> FormatterChain:
    return FormatterChain([format_column, emphasize_primary_key, annotate_constraints])


def view_line_chain() -> FormatterChain:
    return FormatterChain([format_column, annotate_view_constraints])


def multiplicity_chain() -> FormatterChain:
    # cardinality rewrites the connector that the action label is appended after
    return FormatterChain([format_connector, apply_cardinality, label_referential_actions])
