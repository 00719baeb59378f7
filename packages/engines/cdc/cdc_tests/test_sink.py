"""Tests for InMemoryProjectionSink."""

from __future__ import annotations

from datetime import datetime, timezone

from userhub_core.ports.projection import IProjectionSink

TS = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_implements_port(sink):
    assert isinstance(sink, IProjectionSink)


async def test_dotted_paths_create_and_merge(sink):
    await sink.upsert_by_key("users", "1", {"fullName.firstName": "Ann"})
    await sink.upsert_by_key("users", "1", {"fullName.lastName": "Lee"})

    assert (await sink.find_by_key("users", "1"))["fullName"] == {
        "firstName": "Ann",
        "lastName": "Lee",
    }


async def test_position_guard(sink):
    assert await sink.upsert_by_key("users", "1", {"email": "b"}, position=5)
    assert not await sink.upsert_by_key("users", "1", {"email": "a"}, position=4)
    assert await sink.upsert_by_key("users", "1", {"email": "c"}, position=5)
    assert (await sink.find_by_key("users", "1"))["email"] == "c"


async def test_mark_deleted(sink):
    assert not await sink.mark_deleted_by_key("users", "1", TS)

    await sink.upsert_by_key("users", "1", {"email": "a"}, position=5)

    assert not await sink.mark_deleted_by_key("users", "1", TS, position=4)
    assert await sink.mark_deleted_by_key("users", "1", TS, fields={"syncedAt": TS}, position=6)
    doc = await sink.find_by_key("users", "1")
    assert doc["isDeleted"] is True
    assert doc["deletedAt"] == TS
    assert doc["sourcePosition"] == 6


async def test_find_returns_copies(sink):
    await sink.upsert_by_key("users", "1", {"tags": ["a"]})

    found = await sink.find_by_key("users", "1")
    found["tags"].append("b")

    assert (await sink.find_by_key("users", "1"))["tags"] == ["a"]
    sink.clear()
    assert await sink.find_by_key("users", "1") is None


async def test_on_insert_fields_only_apply_when_creating(sink):
    defaults = {"isDeleted": False, "email": None, "location.latitude": None}

    await sink.upsert_by_key(
        "users", "1", {"email": "a", "location.latitude": 1.5}, on_insert=defaults
    )
    await sink.mark_deleted_by_key("users", "1", TS)
    await sink.upsert_by_key("users", "1", {"aboutMe": "x"}, on_insert=defaults)

    doc = await sink.find_by_key("users", "1")
    assert doc["email"] == "a"
    assert doc["location"] == {"latitude": 1.5}
    assert doc["isDeleted"] is True
