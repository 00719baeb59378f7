"""Tests for HookRegistry."""

from __future__ import annotations

from typing import Any

from userhub_core.instrumentation import HookRegistry


class RecordingHook:
    def __init__(self, name: str, calls: list[str]) -> None:
        self.name = name
        self.calls = calls

    async def __call__(self, operation: str, attributes: dict[str, Any], next_handler: Any) -> Any:
        self.calls.append(f"{self.name}:before")
        result = await next_handler()
        self.calls.append(f"{self.name}:after")
        return result


async def test_execute_all_without_hooks_runs_handler() -> None:
    registry = HookRegistry()

    async def handler() -> str:
        return "done"

    assert await registry.execute_all("cdc.process.t", {}, handler) == "done"


async def test_hooks_run_in_priority_order() -> None:
    calls: list[str] = []
    registry = HookRegistry()
    registry.register(RecordingHook("late", calls), priority=10)
    registry.register(RecordingHook("early", calls), priority=1)

    async def handler() -> None:
        calls.append("handler")

    await registry.execute_all("cdc.process.t", {}, handler)

    assert calls == [
        "early:before",
        "late:before",
        "handler",
        "late:after",
        "early:after",
    ]


async def test_operation_patterns_filter_hooks() -> None:
    calls: list[str] = []
    registry = HookRegistry()
    registry.register(RecordingHook("cdc", calls), operations=["cdc.process.*"])

    async def handler() -> None:
        return None

    await registry.execute_all("checkpoint.save", {}, handler)
    assert calls == []

    await registry.execute_all("cdc.process.hexagonal-postgres.public.users", {}, handler)
    assert calls == ["cdc:before", "cdc:after"]


async def test_disabled_and_predicate_filtered_hooks_are_skipped() -> None:
    calls: list[str] = []
    registry = HookRegistry()
    registry.register(RecordingHook("off", calls), enabled=False)
    registry.register(
        RecordingHook("pred", calls),
        predicate=lambda _op, attrs: attrs.get("topic") == "wanted",
    )

    async def handler() -> None:
        return None

    await registry.execute_all("cdc.process.x", {"topic": "other"}, handler)
    assert calls == []

    await registry.execute_all("cdc.process.x", {"topic": "wanted"}, handler)
    assert calls == ["pred:before", "pred:after"]


async def test_clear_removes_registrations() -> None:
    calls: list[str] = []
    registry = HookRegistry()
    registry.register(RecordingHook("h", calls))
    registry.clear()

    async def handler() -> None:
        return None

    await registry.execute_all("any", {}, handler)
    assert calls == []


def test_equal_priorities_keep_registration_order() -> None:
    registry = HookRegistry()
    first = registry.register(RecordingHook("a", []), priority=5)
    second = registry.register(RecordingHook("b", []), priority=5)

    assert registry.registrations == (first, second)
