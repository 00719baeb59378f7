"""Source filters applied before projection."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .change_event import ChangeEvent


class SourceDatabaseFilter:
    """Restricts processing to changes captured from one database.

    Inactive unless ``process_only_target_database`` is set and a target
    database is named. Database names compare case-insensitively; events
    without a source database are rejected while the filter is active.
    """

    def __init__(
        self,
        target_database: str | None = None,
        *,
        process_only_target_database: bool = False,
    ) -> None:
        self.target_database = target_database
        self.active = bool(process_only_target_database and target_database)

    def accepts(self, event: ChangeEvent) -> bool:
        if not self.active:
            return True
        db = event.source.db
        return db is not None and db.casefold() == (self.target_database or "").casefold()
