"""Read-store sink port used by projectors."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime


@runtime_checkable
class IProjectionSink(Protocol):
    """Narrow write interface of the document read store.

    Documents are mappings of field path to value; dotted paths
    (``fullName.firstName``) address nested fields, so a partial document
    leaves unspecified fields untouched.

    ``position`` is the source log position of the event being applied. When
    given, a write is rejected (returns False) if the stored record already
    reflects a newer position.

    ``on_insert`` holds fields written only when an upsert creates the
    record; paths also present in the document are ignored.
    """

    async def upsert_by_key(
        self,
        collection: str,
        key: str,
        document: Mapping[str, Any],
        *,
        position: int | None = None,
        on_insert: Mapping[str, Any] | None = None,
    ) -> bool:
        """Merge *document* into the record for *key*, creating it if missing."""
        ...

    async def mark_deleted_by_key(
        self,
        collection: str,
        key: str,
        deleted_at: datetime,
        *,
        fields: Mapping[str, Any] | None = None,
        position: int | None = None,
    ) -> bool:
        """Soft-delete an existing record. Returns False when no record matched."""
        ...

    async def find_by_key(self, collection: str, key: str) -> dict[str, Any] | None:
        """Return the stored record for *key*, or None."""
        ...
