"""UserProjector: applies user change events to the document read store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import ValidationError

from userhub_core.primitives.exceptions import (
    InfrastructureError,
    TransientInfrastructureError,
)

from .change_event import ChangeEvent, Operation
from .exceptions import ApplyError, FormatApplyError, TransientApplyError
from .records import FullName, Location, UserProjection, UserSnapshot, search_terms

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from userhub_core.ports.projection import IProjectionSink

logger = logging.getLogger(__name__)


class ApplyOutcome(str, Enum):
    """Effect of applying one change event."""

    UPSERTED = "upserted"
    SOFT_DELETED = "soft_deleted"
    TOMBSTONED = "tombstoned"
    STALE = "stale"


@runtime_checkable
class IProjector(Protocol):
    """Applies change events of one source table to the read store."""

    async def apply(self, event: ChangeEvent) -> ApplyOutcome: ...


# Snapshot field -> stored path, for partial updates.
_UPDATE_PATHS: dict[str, str] = {
    "email": "email",
    "first_name": "fullName.firstName",
    "last_name": "fullName.lastName",
    "phone_number": "phoneNumber",
    "birthdate": "birthdate",
    "latitude": "location.latitude",
    "longitude": "location.longitude",
    "about_me": "aboutMe",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    "last_login": "lastLogin",
    "is_deleted": "isDeleted",
    "deleted_at": "deletedAt",
}
_SEARCH_FIELDS = frozenset({"first_name", "last_name", "email"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _leaf_paths(document: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into dotted field paths."""
    paths: dict[str, Any] = {}
    for name, value in document.items():
        path = f"{prefix}{name}"
        if isinstance(value, dict) and value:
            paths.update(_leaf_paths(value, f"{path}."))
        else:
            paths[path] = value
    return paths


class UserProjector(IProjector):
    """
    Projects ``users`` row changes into the ``users`` read collection.

    Create and snapshot reads write the full record, updates set only the
    columns present in the row image, deletes flag the record as deleted and
    keep it. Every write carries the event's log position so the sink can
    reject changes older than what is already stored.
    """

    def __init__(
        self,
        sink: IProjectionSink,
        *,
        collection: str = "users",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._sink = sink
        self._collection = collection
        self._clock = clock or _utcnow
        self._handlers: dict[
            Operation, Callable[[ChangeEvent], Awaitable[ApplyOutcome]]
        ] = {
            Operation.CREATE: self._apply_full,
            Operation.READ: self._apply_full,
            Operation.UPDATE: self._apply_update,
            Operation.DELETE: self._apply_delete,
        }

    @property
    def collection(self) -> str:
        return self._collection

    async def apply(self, event: ChangeEvent) -> ApplyOutcome:
        handler = self._handlers[event.operation]
        try:
            return await handler(event)
        except ValidationError as e:
            raise FormatApplyError(
                f"Row image for key {event.key} cannot be projected: {e}"
            ) from e
        except TransientInfrastructureError as e:
            raise TransientApplyError(f"Read store unavailable: {e}") from e
        except InfrastructureError as e:
            raise ApplyError(f"Read store write failed: {e}") from e

    def build_record(
        self, key: str, snapshot: UserSnapshot, **overrides: Any
    ) -> UserProjection:
        """Full read-store record for *key* from a row snapshot."""
        values: dict[str, Any] = {
            "id": key,
            "email": snapshot.email,
            "full_name": FullName(
                first_name=snapshot.first_name, last_name=snapshot.last_name
            ),
            "phone_number": snapshot.phone_number,
            "birthdate": snapshot.birthdate,
            "location": Location(
                latitude=snapshot.latitude, longitude=snapshot.longitude
            ),
            "about_me": snapshot.about_me,
            "created_at": snapshot.created_at,
            "updated_at": snapshot.updated_at,
            "last_login": snapshot.last_login,
            "is_deleted": bool(snapshot.is_deleted),
            "deleted_at": snapshot.deleted_at,
            "search_terms": search_terms(
                snapshot.first_name, snapshot.last_name, snapshot.email
            ),
            "synced_at": self._clock(),
        }
        values.update(overrides)
        return UserProjection(**values)

    async def _upsert(
        self,
        event: ChangeEvent,
        document: dict[str, Any],
        on_insert: dict[str, Any] | None = None,
    ) -> ApplyOutcome:
        applied = await self._sink.upsert_by_key(
            self._collection,
            event.key,
            document,
            position=event.position,
            on_insert=on_insert,
        )
        return ApplyOutcome.UPSERTED if applied else ApplyOutcome.STALE

    async def _apply_full(self, event: ChangeEvent) -> ApplyOutcome:
        snapshot = UserSnapshot.from_row(event.after)
        record = self.build_record(event.key, snapshot)
        return await self._upsert(event, record.to_document())

    async def _apply_update(self, event: ChangeEvent) -> ApplyOutcome:
        snapshot = UserSnapshot.from_row(event.after)
        present = snapshot.model_fields_set
        document: dict[str, Any] = {
            path: getattr(snapshot, field)
            for field, path in _UPDATE_PATHS.items()
            if field in present
        }
        if present & _SEARCH_FIELDS:
            document["searchTerms"] = await self._search_terms_after(
                event.key, snapshot
            )
        document["syncedAt"] = self._clock()
        # An update may reach a key whose create was never projected.
        defaults = _leaf_paths(self.build_record(event.key, UserSnapshot()).to_document())
        on_insert = {
            path: value for path, value in defaults.items() if path not in document
        }
        return await self._upsert(event, document, on_insert)

    async def _search_terms_after(self, key: str, snapshot: UserSnapshot) -> list[str]:
        """Search terms of the record once *snapshot* is merged into it."""
        present = snapshot.model_fields_set
        current: dict[str, Any] = {}
        if not _SEARCH_FIELDS <= present:
            current = await self._sink.find_by_key(self._collection, key) or {}
        full_name = current.get("fullName") or {}
        return search_terms(
            snapshot.first_name if "first_name" in present else full_name.get("firstName"),
            snapshot.last_name if "last_name" in present else full_name.get("lastName"),
            snapshot.email if "email" in present else current.get("email"),
        )

    async def _apply_delete(self, event: ChangeEvent) -> ApplyOutcome:
        synced_at = self._clock()
        marked = await self._sink.mark_deleted_by_key(
            self._collection,
            event.key,
            event.event_timestamp,
            fields={"syncedAt": synced_at},
            position=event.position,
        )
        if marked:
            return ApplyOutcome.SOFT_DELETED

        logger.info(
            "Delete for key %s found no record; writing tombstone from 'before'",
            event.key,
        )
        record = self.build_record(
            event.key,
            UserSnapshot.from_row(event.before),
            is_deleted=True,
            deleted_at=event.event_timestamp,
            synced_at=synced_at,
        )
        applied = await self._sink.upsert_by_key(
            self._collection, event.key, record.to_document(), position=event.position
        )
        return ApplyOutcome.TOMBSTONED if applied else ApplyOutcome.STALE
