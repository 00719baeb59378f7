"""Index definition helpers for the user read store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pymongo.errors import PyMongoError

from .projection_sink import translate_error

if TYPE_CHECKING:
    from .connection import MongoConnectionManager

logger = logging.getLogger("userhub.projection.mongo")


async def create_compound_index(
    connection: MongoConnectionManager,
    database: str,
    collection: str,
    keys: list[tuple[str, int]],
    *,
    name: str | None = None,
    unique: bool = False,
    sparse: bool = False,
) -> str:
    """Create a compound index. keys: [(field, 1|(-1)), ...]. Returns index name."""
    coll = connection.client.get_database(database).get_collection(collection)
    return await coll.create_index(keys, name=name, unique=unique, sparse=sparse)


async def create_text_index(
    connection: MongoConnectionManager,
    database: str,
    collection: str,
    fields: list[tuple[str, str]],
    *,
    name: str | None = None,
) -> str:
    """Create a text index. fields: [(field_name, 'text'), ...]."""
    coll = connection.client.get_database(database).get_collection(collection)
    return await coll.create_index(fields, name=name)


async def ensure_user_indexes(
    connection: MongoConnectionManager,
    database: str,
    collection: str = "users",
) -> list[str]:
    """Create the indexes the user queries rely on. Idempotent.

    Email is indexed but not unique: the write side owns uniqueness, and a
    swap of addresses between two users is applied as two separate events.
    """
    try:
        names = [
            await create_compound_index(
                connection, database, collection, [("isDeleted", 1)], name="ix_deleted"
            ),
            await create_compound_index(
                connection,
                database,
                collection,
                [("email", 1)],
                name="ix_email",
                sparse=True,
            ),
            await create_compound_index(
                connection,
                database,
                collection,
                [("searchTerms", 1)],
                name="ix_search_terms",
            ),
            await create_text_index(
                connection,
                database,
                collection,
                [
                    ("fullName.firstName", "text"),
                    ("fullName.lastName", "text"),
                    ("aboutMe", "text"),
                ],
                name="tx_user",
            ),
        ]
    except PyMongoError as e:
        raise translate_error(e) from e
    logger.info("Ensured %d indexes on %s.%s", len(names), database, collection)
    return names
