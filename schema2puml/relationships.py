"""Deterministic emission of foreign-key relationships."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .formatters import MultiplicityFormatter, multiplicity_chain
from .model import ForeignKey, Schema

logger = logging.getLogger(__name__)


def group_by_target(foreign_keys: Iterable[ForeignKey]) -> List[Tuple[str, List[ForeignKey]]]:
    """Group foreign keys by target table, sorted by table name.

    Foreign keys keep their original order inside a group.
    """
    groups: Dict[str, List[ForeignKey]] = {}
    for foreign_key in foreign_keys:
        groups.setdefault(foreign_key.target_table, []).append(foreign_key)
    return sorted(groups.items(), key=lambda item: item[0])


class RelationshipRenderer:
    def __init__(
        self,
        formatter: Optional[MultiplicityFormatter] = None,
        *,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.formatter = formatter or multiplicity_chain()
        self.log = log or logger

    def render_lines(self, schema: Schema) -> List[str]:
        lines: List[str] = []
        count = 0
        for _, foreign_keys in group_by_target(schema.foreign_keys):
            for foreign_key in foreign_keys:
                lines.append(self.formatter(foreign_key, schema.name, None))
                count += 1
            lines.append("")
        self.log.debug("Rendering %d relationship(s)", count)
        return lines

    def render(self, schema: Schema) -> str:
        return "".join(f"{line}\n" for line in self.render_lines(schema))
