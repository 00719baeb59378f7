"""Fixtures that replace the network-facing pieces of the sync worker."""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from mongomock_motor import AsyncMongoMockClient

from userhub_cdc import BackoffSettings, CdcSettings
from userhub_core.ports.stream import StreamMessage
from userhub_persistence_mongo import MongoConnectionManager
from userhub_sync_worker import bootstrap


TOPIC = "hexagonal-postgres.public.users"


class FakeKafkaStreamClient:
    """Stands in for KafkaStreamClient; replays a shared list of records."""

    def __init__(self, connection, **kwargs) -> None:
        self.connection = connection
        self.kwargs = kwargs
        self.records: list[StreamMessage] = []
        self.position = 0
        self.committed: list[int] = []
        self.stopped = False
        self.start_error: BaseException | None = None
        self.on_idle = None

    async def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error

    def subscribe(self, topics) -> None:
        self.topics = list(topics)

    async def poll(self, timeout: float):
        if self.position < len(self.records):
            record = self.records[self.position]
            self.position += 1
            return record
        if self.on_idle is not None:
            self.on_idle()
        await asyncio.sleep(0)
        return None

    async def commit(self, message) -> None:
        self.committed.append(message.offset)

    def rewind(self, message) -> None:
        self.position = self.records.index(message)

    async def stop(self) -> None:
        self.stopped = True


def users_envelope(op: str, user_id: int, lsn: int, **columns) -> bytes:
    row = {
        "Id": user_id,
        "FirstName": "Ann",
        "LastName": "Lee",
        "Email": f"user{user_id}@example.com",
        "PasswordHash": "x",
        **columns,
    }
    return json.dumps(
        {
            "before": row if op in ("u", "d") else None,
            "after": None if op == "d" else row,
            "source": {"db": "HexagonalSkeleton", "table": "users", "lsn": lsn},
            "op": op,
            "ts_ms": 1714555800000,
        }
    ).encode()


@pytest.fixture
def settings() -> CdcSettings:
    return CdcSettings(
        backoff=BackoffSettings(base_delay=0, fatal_base_delay=0, max_delay=0, jitter=False),
        poll_timeout=0.05,
        setup_timeout=1.0,
        drain_timeout=1.0,
    )


@pytest.fixture
def infra(monkeypatch):
    """Patch Mongo, Kafka and the stream client used by the composition root."""
    mongo_client = AsyncMongoMockClient()
    stream = SimpleNamespace(
        clients=[], records=[], start_error=None, on_idle=None
    )

    class FakeMongoConnection(MongoConnectionManager):
        async def connect(self):
            self._client = mongo_client
            return mongo_client

        def close(self) -> None:
            self._client = None

        async def health_check(self) -> bool:
            return self._client is not None

    def make_stream_client(connection, **kwargs):
        client = FakeKafkaStreamClient(connection, **kwargs)
        client.records = stream.records
        client.start_error = stream.start_error
        client.on_idle = stream.on_idle
        stream.clients.append(client)
        return client

    kafka = MagicMock()
    kafka.ensure_topics = AsyncMock(return_value=[TOPIC])
    kafka.health_check = AsyncMock(return_value=True)
    ensure_indexes = AsyncMock(return_value=["ix_deleted"])

    monkeypatch.setattr(bootstrap, "MongoConnectionManager", FakeMongoConnection)
    monkeypatch.setattr(bootstrap, "KafkaConnectionManager", lambda servers: kafka)
    monkeypatch.setattr(bootstrap, "KafkaStreamClient", make_stream_client)
    monkeypatch.setattr(bootstrap, "ensure_user_indexes", ensure_indexes)

    return SimpleNamespace(
        mongo=mongo_client,
        kafka=kafka,
        stream=stream,
        ensure_indexes=ensure_indexes,
        envelope=users_envelope,
    )
