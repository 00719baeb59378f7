"""Shared fakes and builders for the CDC engine tests."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any

import pytest

from userhub_core.instrumentation import HookRegistry
from userhub_core.ports.stream import StreamMessage
from userhub_cdc import (
    EnvelopeDecoder,
    InMemoryProjectionSink,
    ProjectorRegistry,
    SyncConsumer,
    UserProjector,
)


TOPIC = "hexagonal-postgres.public.users"
FIXED_NOW = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


class FakeStreamClient:
    """In-memory partition log with manual commits and rewind."""

    def __init__(
        self,
        messages: list[StreamMessage] | None = None,
        *,
        start_error: BaseException | None = None,
        start_delay: float = 0.0,
        commit_errors: list[BaseException] | None = None,
        poll_errors: list[BaseException] | None = None,
    ) -> None:
        self.log: list[StreamMessage] = list(messages or [])
        self.start_error = start_error
        self.start_delay = start_delay
        self.commit_errors = list(commit_errors or [])
        self.poll_errors = list(poll_errors or [])
        self.position = 0
        self.started = False
        self.stop_calls = 0
        self.subscribed: list[str] = []
        self.committed: list[StreamMessage] = []
        self.rewinds: list[StreamMessage] = []
        self.on_idle: Any = None
        self.block_when_idle = False

    async def start(self) -> None:
        if self.start_delay:
            await asyncio.sleep(self.start_delay)
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    def subscribe(self, topics: list[str]) -> None:
        self.subscribed = list(topics)

    async def poll(self, timeout: float) -> StreamMessage | None:
        if self.poll_errors:
            raise self.poll_errors.pop(0)
        if self.position < len(self.log):
            message = self.log[self.position]
            self.position += 1
            return message
        if self.on_idle is not None:
            self.on_idle()
        if self.block_when_idle:
            await asyncio.sleep(timeout)
        else:
            await asyncio.sleep(0)
        return None

    async def commit(self, message: StreamMessage) -> None:
        if self.commit_errors:
            raise self.commit_errors.pop(0)
        self.committed.append(message)

    def rewind(self, message: StreamMessage) -> None:
        self.rewinds.append(message)
        self.position = self.log.index(message)

    async def stop(self) -> None:
        self.stop_calls += 1

    @property
    def committed_offsets(self) -> list[int]:
        return [m.offset for m in self.committed]


class RecordingBackoff:
    """Zero-delay backoff that records the attempts it was asked about."""

    def __init__(self) -> None:
        self.calls: list[tuple[int, bool]] = []

    def delay_for_attempt(self, attempt: int, *, fatal: bool = False) -> float:
        self.calls.append((attempt, fatal))
        return 0.0


def build_envelope(
    op: str,
    *,
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
    lsn: int | None = None,
    ts_ms: int | None = 1714555800000,
    db: str = "HexagonalSkeleton",
    table: str = "users",
    wrap_schema: bool = False,
) -> bytes:
    payload = {
        "before": before,
        "after": after,
        "source": {
            "version": "2.5.0.Final",
            "connector": "postgresql",
            "name": "hexagonal-postgres",
            "ts_ms": 1714555799000,
            "snapshot": "false",
            "db": db,
            "schema": "public",
            "table": table,
            "txId": 771,
            "lsn": lsn,
        },
        "op": op,
        "ts_ms": ts_ms,
    }
    if wrap_schema:
        payload = {"schema": {"type": "struct", "optional": False}, "payload": payload}
    return json.dumps(payload).encode("utf-8")


def user_row(user_id: int = 42, **overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "Id": user_id,
        "FirstName": "Ann",
        "LastName": "Lee",
        "Email": "ann.lee@example.com",
        "PhoneNumber": "+30 210 0000000",
        "Birthdate": 7425,
        "Latitude": 37.98,
        "Longitude": 23.72,
        "AboutMe": "Hello",
        "CreatedAt": 1714555000000000,
        "UpdatedAt": 1714555000000000,
        "LastLogin": None,
        "IsDeleted": False,
        "DeletedAt": None,
        "PasswordHash": "secret-hash",
        "PasswordSalt": "secret-salt",
    }
    row.update(overrides)
    return row


class MessageLog:
    """Assigns consecutive offsets to messages on one partition."""

    def __init__(self, topic: str = TOPIC) -> None:
        self.topic = topic
        self.next_offset = 0

    def message(self, value: bytes | None, key: str | None = None) -> StreamMessage:
        msg = StreamMessage(
            topic=self.topic,
            partition=0,
            offset=self.next_offset,
            key=key,
            value=value,
        )
        self.next_offset += 1
        return msg


@pytest.fixture
def envelope():
    return build_envelope


@pytest.fixture
def row():
    return user_row


@pytest.fixture
def messages() -> MessageLog:
    return MessageLog()


@pytest.fixture
def fake_client_cls():
    return FakeStreamClient


@pytest.fixture
def backoff() -> RecordingBackoff:
    return RecordingBackoff()


@pytest.fixture
def sink() -> InMemoryProjectionSink:
    return InMemoryProjectionSink()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def projector(sink, clock) -> UserProjector:
    return UserProjector(sink, clock=clock)


@pytest.fixture
def hook_registry() -> HookRegistry:
    return HookRegistry()


@pytest.fixture
def make_consumer(projector, backoff, hook_registry):
    """Build a consumer over a FakeStreamClient that stops once the log is drained."""

    def _make(
        client: FakeStreamClient, *, stop_when_idle: bool = True, **kwargs: Any
    ) -> SyncConsumer:
        kwargs.setdefault("decoder", EnvelopeDecoder())
        kwargs.setdefault("projectors", ProjectorRegistry({"users": projector}))
        kwargs.setdefault("backoff", backoff)
        kwargs.setdefault("hook_registry", hook_registry)
        kwargs.setdefault("poll_timeout", 0.05)
        kwargs.setdefault("setup_timeout", 1.0)
        kwargs.setdefault("drain_timeout", 1.0)
        consumer = SyncConsumer(lambda: client, [TOPIC], **kwargs)
        if stop_when_idle:
            client.on_idle = consumer.request_stop
        return consumer

    return _make
