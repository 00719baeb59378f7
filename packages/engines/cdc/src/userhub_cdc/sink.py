"""InMemoryProjectionSink: dict-backed read store for tests and local runs."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from userhub_core.ports.projection import IProjectionSink

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime


def _set_path(document: dict[str, Any], path: str, value: Any) -> None:
    *parents, leaf = path.split(".")
    target = document
    for part in parents:
        child = target.get(part)
        if not isinstance(child, dict):
            child = {}
            target[part] = child
        target = child
    target[leaf] = copy.deepcopy(value)


class InMemoryProjectionSink(IProjectionSink):
    """Same write semantics as the Mongo sink: dotted paths, soft deletes
    and the ``sourcePosition`` staleness guard."""

    def __init__(
        self,
        *,
        position_field: str = "sourcePosition",
        deleted_flag_field: str = "isDeleted",
        deleted_at_field: str = "deletedAt",
    ) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._position_field = position_field
        self._deleted_flag_field = deleted_flag_field
        self._deleted_at_field = deleted_at_field
        self.write_count = 0

    def _is_stale(self, existing: dict[str, Any] | None, position: int | None) -> bool:
        if existing is None or position is None:
            return False
        current = existing.get(self._position_field)
        return current is not None and current > position

    async def upsert_by_key(
        self,
        collection: str,
        key: str,
        document: Mapping[str, Any],
        *,
        position: int | None = None,
        on_insert: Mapping[str, Any] | None = None,
    ) -> bool:
        records = self._collections.setdefault(collection, {})
        existing = records.get(key)
        if self._is_stale(existing, position):
            return False
        record = existing
        if record is None:
            record = {"_id": key}
            for path, value in (on_insert or {}).items():
                if path != "_id" and path not in document:
                    _set_path(record, path, value)
        for path, value in document.items():
            if path != "_id":
                _set_path(record, path, value)
        if position is not None:
            record[self._position_field] = position
        records[key] = record
        self.write_count += 1
        return True

    async def mark_deleted_by_key(
        self,
        collection: str,
        key: str,
        deleted_at: datetime,
        *,
        fields: Mapping[str, Any] | None = None,
        position: int | None = None,
    ) -> bool:
        existing = self._collections.get(collection, {}).get(key)
        if existing is None or self._is_stale(existing, position):
            return False
        for path, value in (fields or {}).items():
            _set_path(existing, path, value)
        existing[self._deleted_flag_field] = True
        existing[self._deleted_at_field] = deleted_at
        if position is not None:
            existing[self._position_field] = position
        self.write_count += 1
        return True

    async def find_by_key(self, collection: str, key: str) -> dict[str, Any] | None:
        record = self._collections.get(collection, {}).get(key)
        return copy.deepcopy(record) if record is not None else None

    def documents(self, collection: str) -> list[dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._collections.get(collection, {}).values()]

    def clear(self) -> None:
        self._collections.clear()
        self.write_count = 0
