"""Unit tests for MongoConnectionManager."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pymongo.errors import ConfigurationError, ServerSelectionTimeoutError

from userhub_persistence_mongo.connection import MongoConnectionManager
from userhub_persistence_mongo.exceptions import MongoConnectionError

CLIENT = "userhub_persistence_mongo.connection.AsyncIOMotorClient"


async def test_connect_is_idempotent():
    mgr = MongoConnectionManager(url="mongodb://localhost:27017", database="db")
    mock_client = MagicMock()

    with patch(CLIENT, return_value=mock_client) as factory:
        first = await mgr.connect()
        second = await mgr.connect()

    assert first is second is mock_client
    factory.assert_called_once()
    options = factory.call_args.kwargs
    assert options["serverSelectionTimeoutMS"] == 5000
    assert options["tz_aware"] is True
    assert options["appname"] == "userhub-sync-worker"
    assert mgr.database_name == "db"
    assert mgr.is_connected


async def test_extra_client_options_override_defaults():
    mgr = MongoConnectionManager(tz_aware=False, maxPoolSize=5)

    with patch(CLIENT) as factory:
        await mgr.connect()

    assert factory.call_args.kwargs["tz_aware"] is False
    assert factory.call_args.kwargs["maxPoolSize"] == 5


async def test_invalid_settings_raise_connection_error():
    mgr = MongoConnectionManager(url="not-a-uri")

    with patch(CLIENT, side_effect=ConfigurationError("bad uri")), pytest.raises(
        MongoConnectionError
    ):
        await mgr.connect()

    assert not mgr.is_connected


def test_client_before_connect_raises():
    mgr = MongoConnectionManager()

    with pytest.raises(MongoConnectionError):
        _ = mgr.client


async def test_database_uses_configured_name():
    mgr = MongoConnectionManager(database="reads")

    with patch(CLIENT) as factory:
        await mgr.connect()

    mgr.database()
    mgr.database("other")
    names = [c.args[0] for c in factory.return_value.get_database.call_args_list]
    assert names == ["reads", "other"]


async def test_database_without_name_raises():
    mgr = MongoConnectionManager()

    with patch(CLIENT):
        await mgr.connect()

    with pytest.raises(MongoConnectionError):
        mgr.database()


async def test_health_check_not_connected():
    assert await MongoConnectionManager().health_check() is False


async def test_health_check_ping():
    mgr = MongoConnectionManager()
    mgr._client = MagicMock()
    mgr._client.admin.command = AsyncMock(return_value={"ok": 1})

    assert await mgr.health_check() is True
    mgr._client.admin.command.assert_awaited_once_with("ping")


async def test_health_check_failure():
    mgr = MongoConnectionManager()
    mgr._client = MagicMock()
    mgr._client.admin.command = AsyncMock(
        side_effect=ServerSelectionTimeoutError("no servers")
    )

    assert await mgr.health_check() is False


def test_close_resets_client():
    mgr = MongoConnectionManager()
    client = MagicMock()
    mgr._client = client

    mgr.close()
    mgr.close()

    client.close.assert_called_once()
    assert not mgr.is_connected
