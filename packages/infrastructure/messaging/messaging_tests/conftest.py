"""Pytest fixtures for messaging tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
def mock_connection() -> MagicMock:
    """KafkaConnectionManager stand-in with a fixed consumer config."""
    conn = MagicMock()
    conn.consumer_config.return_value = {"bootstrap_servers": "localhost:9092"}
    conn.health_check = AsyncMock(return_value=True)
    return conn


@pytest.fixture
def mock_consumer() -> MagicMock:
    """aiokafka consumer stand-in; ``getmany`` returns no records by default."""
    consumer = MagicMock()
    consumer.start = AsyncMock()
    consumer.stop = AsyncMock()
    consumer.commit = AsyncMock()
    consumer.getmany = AsyncMock(return_value={})
    return consumer
