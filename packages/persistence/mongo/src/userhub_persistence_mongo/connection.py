"""MongoDB connection lifecycle for the read store."""

from __future__ import annotations

import logging
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConfigurationError, PyMongoError

from .exceptions import MongoConnectionError

logger = logging.getLogger("userhub.persistence.mongo")


class MongoConnectionManager:
    """Owns the Motor client shared by the sink, index setup and health probe.

    ``connect`` only builds the client; Motor opens sockets on the first
    operation, so an unreachable server surfaces as a driver error there (or
    as ``False`` from :meth:`health_check`). Datetimes are read back
    timezone-aware.
    """

    def __init__(
        self,
        url: str = "mongodb://localhost:27017",
        *,
        database: str | None = None,
        app_name: str = "userhub-sync-worker",
        server_selection_timeout_ms: int = 5000,
        connect_timeout_ms: int = 10000,
        **client_options: Any,
    ) -> None:
        self._url = url
        self._database = database
        self._options: dict[str, Any] = {
            "appname": app_name,
            "serverSelectionTimeoutMS": server_selection_timeout_ms,
            "connectTimeoutMS": connect_timeout_ms,
            "tz_aware": True,
            **client_options,
        }
        self._client: AsyncIOMotorClient[Any] | None = None

    @property
    def database_name(self) -> str | None:
        return self._database

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> AsyncIOMotorClient[Any]:
        """Build the client on first call; later calls return the same client."""
        if self._client is None:
            try:
                self._client = AsyncIOMotorClient(self._url, **self._options)
            except (ConfigurationError, TypeError, ValueError) as e:
                raise MongoConnectionError(f"Invalid MongoDB client settings: {e}") from e
            logger.info(
                "MongoDB client created (database=%s, app=%s)",
                self._database,
                self._options["appname"],
            )
        return self._client

    @property
    def client(self) -> AsyncIOMotorClient[Any]:
        if self._client is None:
            raise MongoConnectionError("Not connected; call connect() first")
        return self._client

    def database(self, name: str | None = None) -> AsyncIOMotorDatabase[Any]:
        """Handle for *name*, or for the configured database."""
        name = name or self._database
        if name is None:
            raise MongoConnectionError("No database name configured")
        return self.client.get_database(name)

    def close(self) -> None:
        """Close the client. Safe to call more than once."""
        client, self._client = self._client, None
        if client is not None:
            client.close()

    async def health_check(self) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
        except PyMongoError as e:
            logger.debug("MongoDB ping failed: %s", e)
            return False
        return True
