"""PlantUML renderer for catalog schemas."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Union

from .formatters import (
    EntityLineFormatter,
    MultiplicityFormatter,
    entity_line_chain,
    view_line_chain,
)
from .log import sanitize
from .model import DbCompositeType, DbEnum, MaterializedView, Schema, Table, View
from .relationships import RelationshipRenderer

logger = logging.getLogger(__name__)

HEADER = ["@startuml", "hide methods", "hide stereotypes", ""]
FOOTER = "@enduml"
SEPARATOR = "--"


def _block(name: str, stereotype: Optional[str], body: Iterable[str]) -> List[str]:
    heading = f'\tentity "{name}" <<{stereotype}>> {{' if stereotype else f'\tentity "{name}" {{'
    return [heading, *(f"\t\t{line}" for line in body), "\t}"]


def render_enum(dbenum: DbEnum) -> List[str]:
    return _block(dbenum.enum_name, "enum", dbenum.values)


def render_composite_type(composite: DbCompositeType) -> List[str]:
    body = [f"{field.field_name} : {field.field_type}" for field in composite.fields]
    return _block(composite.type_name, "composite", body)


def _flat_block(
    entity: Union[View, MaterializedView], stereotype: str, formatter: EntityLineFormatter
) -> List[str]:
    return _block(entity.name, stereotype, [formatter(entity, c, None) for c in entity.columns])


def render_view(view: View, formatter: Optional[EntityLineFormatter] = None) -> List[str]:
    return _flat_block(view, "view", formatter or view_line_chain())


def render_materialized_view(
    view: MaterializedView, formatter: Optional[EntityLineFormatter] = None
) -> List[str]:
    return _flat_block(view, "materialized_view", formatter or view_line_chain())


def render_table(table: Table, formatter: Optional[EntityLineFormatter] = None) -> List[str]:
    """Partitioned tables render like any other table."""
    formatter = formatter or entity_line_chain()
    keys = [formatter(table, column, None) for column in table.primary_key_columns]
    others = [formatter(table, column, None) for column in table.non_primary_key_columns]
    body = keys + [SEPARATOR] + others if keys and others else keys + others
    return _block(table.name, None, body)


class PlantUMLRenderer:
    def __init__(
        self,
        schemas: Sequence[Schema],
        *,
        entity_formatter: Optional[EntityLineFormatter] = None,
        view_formatter: Optional[EntityLineFormatter] = None,
        multiplicity_formatter: Optional[MultiplicityFormatter] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.schemas = list(schemas)
        self.entity_formatter = entity_formatter or entity_line_chain()
        self.view_formatter = view_formatter or view_line_chain()
        self.log = log or logger
        self.relationships = RelationshipRenderer(multiplicity_formatter, log=self.log)

    def render(self) -> str:
        lines: List[str] = list(HEADER)
        for schema in self.schemas:
            lines.extend(self._render_package(schema))
            self._log_schema(schema)
        for schema in self.schemas:
            lines.extend(self.relationships.render_lines(schema))
        lines.append(FOOTER)
        return "\n".join(lines) + "\n"

    def _render_package(self, schema: Schema) -> List[str]:
        blocks: List[List[str]] = []
        blocks.extend(render_enum(dbenum) for dbenum in schema.enums)
        blocks.extend(render_composite_type(composite) for composite in schema.composite_types)
        blocks.extend(render_view(view, self.view_formatter) for view in schema.views)
        blocks.extend(
            render_materialized_view(view, self.view_formatter)
            for view in schema.materialized_views
        )
        blocks.extend(render_table(table, self.entity_formatter) for table in schema.tables)

        lines = [f'package "{schema.name}" {{']
        for block in blocks:
            lines.extend(block)
            lines.append("")
        lines.extend(["}", ""])
        return lines

    def _log_schema(self, schema: Schema) -> None:
        self.log.info(
            "Rendered %s schema with %d table(s), %d view(s), %d materialized view(s), "
            "%d enum(s), %d composite type(s), %d relationship(s)",
            sanitize(schema.name),
            len(schema.tables),
            len(schema.views),
            len(schema.materialized_views),
            len(schema.enums),
            len(schema.composite_types),
            sum(len(table.foreign_keys) for table in schema.tables),
        )
