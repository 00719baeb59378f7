"""ProjectorRegistry: maps source tables to projectors."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .config import table_from_topic

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .change_event import ChangeEvent
    from .projector import IProjector


class ProjectorRegistry:
    """Explicit table name -> projector map; one projector per table."""

    def __init__(self, projectors: Mapping[str, IProjector] | None = None) -> None:
        self._by_table: dict[str, IProjector] = {}
        for table, projector in (projectors or {}).items():
            self.register(table, projector)

    def register(self, table: str, projector: IProjector) -> None:
        name = table.lower()
        if name in self._by_table:
            raise ValueError(f"A projector is already registered for table {table!r}")
        self._by_table[name] = projector

    @property
    def tables(self) -> list[str]:
        return sorted(self._by_table)

    def get(self, table: str | None) -> IProjector | None:
        if not table:
            return None
        return self._by_table.get(table.lower())

    def resolve(self, event: ChangeEvent, topic: str) -> IProjector | None:
        """Projector for the event's source table.

        Events without source metadata are routed by the topic's table segment.
        """
        return self.get(event.source.table or table_from_topic(topic))
