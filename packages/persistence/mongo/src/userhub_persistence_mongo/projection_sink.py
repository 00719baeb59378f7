"""MongoDB read-store sink implementing IProjectionSink."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pymongo.errors import (
    ConnectionFailure,
    ExecutionTimeout,
    PyMongoError,
    WTimeoutError,
)

from userhub_core.ports.projection import IProjectionSink

from .exceptions import MongoPersistenceError, MongoUnavailableError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from .connection import MongoConnectionManager

logger = logging.getLogger("userhub.projection.mongo")

_UNAVAILABLE_ERRORS = (ConnectionFailure, ExecutionTimeout, WTimeoutError)


def _get_client_and_db(
    client: Any = None,
    database: str | None = None,
    connection: MongoConnectionManager | None = None,
) -> tuple[Any, str]:
    if client is not None and database is not None:
        return client, database
    if connection is not None:
        db = database or connection.database_name
        if db is None:
            raise MongoPersistenceError(
                "Database name must be set when using MongoConnectionManager"
            )
        return connection.client, db
    raise MongoPersistenceError(
        "Provide (client, database) or (connection=..., database=...)"
    )


def _insert_only(
    on_insert: Mapping[str, Any] | None, fields: Mapping[str, Any]
) -> dict[str, Any]:
    # $set and $setOnInsert may not touch the same path or a parent of it.
    def clashes(path: str) -> bool:
        return any(
            path == f or path.startswith(f + ".") or f.startswith(path + ".")
            for f in fields
        )

    return {
        k: v for k, v in (on_insert or {}).items() if k != "_id" and not clashes(k)
    }


def translate_error(exc: PyMongoError) -> MongoPersistenceError:
    """Map a driver error onto the persistence hierarchy.

    Connectivity problems and server-side timeouts become
    ``MongoUnavailableError`` (transient); everything else is a plain
    ``MongoPersistenceError``.
    """
    if isinstance(exc, _UNAVAILABLE_ERRORS):
        return MongoUnavailableError(f"MongoDB unavailable: {exc}")
    return MongoPersistenceError(f"MongoDB operation failed: {exc}")


class MongoUserProjectionSink(IProjectionSink):
    """
    Document read-store sink backed by Motor.

    Features:
    - Partial upserts via ``$set`` with dotted field paths
    - Record defaults via ``$setOnInsert`` when an upsert creates the record
    - Soft deletes that keep the record
    - Per-key staleness guard on ``sourcePosition``

    Supports (client, database) or (connection, database=...) for construction.
    """

    def __init__(
        self,
        client: Any = None,
        database: str | None = None,
        *,
        connection: MongoConnectionManager | None = None,
        position_field: str = "sourcePosition",
        deleted_flag_field: str = "isDeleted",
        deleted_at_field: str = "deletedAt",
    ) -> None:
        self._client, self._database = _get_client_and_db(
            client=client, database=database, connection=connection
        )
        self._position_field = position_field
        self._deleted_flag_field = deleted_flag_field
        self._deleted_at_field = deleted_at_field

    def _coll(self, name: str) -> Any:
        return self._client.get_database(self._database)[name]

    async def _is_stale(
        self, coll: Any, collection: str, key: str, position: int | None
    ) -> bool:
        if position is None:
            return False
        existing = await coll.find_one(
            {"_id": key}, projection={self._position_field: 1}
        )
        if existing is None:
            return False
        current = existing.get(self._position_field)
        if current is not None and current > position:
            logger.debug(
                "Skipping stale write at position %s (current: %s) for %s/%s",
                position,
                current,
                collection,
                key,
            )
            return True
        return False

    async def upsert_by_key(
        self,
        collection: str,
        key: str,
        document: Mapping[str, Any],
        *,
        position: int | None = None,
        on_insert: Mapping[str, Any] | None = None,
    ) -> bool:
        coll = self._coll(collection)
        fields = {k: v for k, v in document.items() if k != "_id"}
        if position is not None:
            fields[self._position_field] = position
        update: dict[str, Any] = {}
        if fields:
            update["$set"] = fields
        insert_only = _insert_only(on_insert, fields)
        if insert_only or not fields:
            update["$setOnInsert"] = insert_only or {"_id": key}
        try:
            if await self._is_stale(coll, collection, key, position):
                return False
            await coll.update_one({"_id": key}, update, upsert=True)
        except PyMongoError as e:
            raise translate_error(e) from e
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
        coll = self._coll(collection)
        update_fields: dict[str, Any] = dict(fields or {})
        update_fields[self._deleted_flag_field] = True
        update_fields[self._deleted_at_field] = deleted_at
        if position is not None:
            update_fields[self._position_field] = position
        try:
            if await self._is_stale(coll, collection, key, position):
                return False
            result = await coll.update_one({"_id": key}, {"$set": update_fields})
        except PyMongoError as e:
            raise translate_error(e) from e
        return bool(result.matched_count > 0)

    async def find_by_key(self, collection: str, key: str) -> dict[str, Any] | None:
        try:
            doc = await self._coll(collection).find_one({"_id": key})
        except PyMongoError as e:
            raise translate_error(e) from e
        return dict(doc) if doc is not None else None
