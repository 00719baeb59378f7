"""Tests for StructuredLoggingHook."""

from __future__ import annotations

import json
from enum import Enum
from unittest.mock import AsyncMock, MagicMock

import pytest

from userhub_core.correlation import correlation_scope
from userhub_core.instrumentation import HookRegistry
from userhub_observability import StructuredLoggingHook, install_cdc_hooks


class _Outcome(Enum):
    UPSERTED = "upserted"


ATTRS = {"topic": "srv.public.users", "partition": 0, "offset": 7, "key": "42"}


async def test_logs_success_with_message_position() -> None:
    log = MagicMock()
    hook = StructuredLoggingHook(logger=log)
    with correlation_scope("srv.public.users:0:7"):
        result = await hook(
            "cdc.process.srv.public.users",
            ATTRS,
            AsyncMock(return_value=_Outcome.UPSERTED),
        )

    assert result is _Outcome.UPSERTED
    entry = json.loads(log.info.call_args[0][0])
    assert entry["operation"] == "cdc.process.srv.public.users"
    assert entry["offset"] == 7
    assert entry["outcome"] == "upserted"
    assert entry["correlation_id"] == "srv.public.users:0:7"
    assert "duration_ms" in entry


async def test_string_result_is_outcome() -> None:
    log = MagicMock()
    hook = StructuredLoggingHook(logger=log)

    await hook("cdc.process.t", {}, AsyncMock(return_value="skipped_tombstone"))

    assert json.loads(log.info.call_args[0][0])["outcome"] == "skipped_tombstone"


async def test_failure_is_logged_and_not_swallowed() -> None:
    log = MagicMock()
    hook = StructuredLoggingHook(logger=log)

    with pytest.raises(RuntimeError):
        await hook("cdc.process.t", ATTRS, AsyncMock(side_effect=RuntimeError("x")))

    entry = json.loads(log.info.call_args[0][0])
    assert entry["outcome"] == "error"
    assert entry["error_type"] == "RuntimeError"


async def test_install_registers_for_cdc_operations() -> None:
    registry = HookRegistry()
    install_cdc_hooks(registry=registry)
    handler = AsyncMock(return_value="upserted")

    await registry.execute_all("cdc.process.t", {}, handler)
    await registry.execute_all("other.op", {}, handler)

    assert handler.await_count == 2
    [registration] = registry.registrations
    assert isinstance(registration.hook, StructuredLoggingHook)
    assert registration.matches("cdc.process.t", {})
    assert not registration.matches("other.op", {})


def test_install_is_idempotent() -> None:
    registry = HookRegistry()

    first = install_cdc_hooks(registry=registry)
    second = install_cdc_hooks(registry=registry)

    assert first is second
    assert len(registry.registrations) == 1
