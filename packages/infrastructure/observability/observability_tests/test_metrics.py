"""Tests for MetricsHook."""

from __future__ import annotations

from enum import Enum
from unittest.mock import AsyncMock, patch

import pytest
from prometheus_client import CollectorRegistry

from userhub_core.instrumentation import HookRegistry
from userhub_observability import MetricsHook, install_metrics_hook, serve_metrics

TOPIC = "srv.public.users"


class _Outcome(Enum):
    STALE = "stale"


@pytest.fixture
def collector() -> CollectorRegistry:
    return CollectorRegistry()


def _count(collector: CollectorRegistry, outcome: str) -> float | None:
    return collector.get_sample_value(
        "userhub_cdc_messages_total", {"topic": TOPIC, "outcome": outcome}
    )


async def test_records_outcome_per_topic(collector) -> None:
    hook = MetricsHook(collector)

    result = await hook(
        f"cdc.process.{TOPIC}", {"topic": TOPIC}, AsyncMock(return_value=_Outcome.STALE)
    )
    await hook(f"cdc.process.{TOPIC}", {"topic": TOPIC}, AsyncMock(return_value="upserted"))

    assert result is _Outcome.STALE
    assert _count(collector, "stale") == 1.0
    assert _count(collector, "upserted") == 1.0
    assert (
        collector.get_sample_value(
            "userhub_cdc_message_duration_seconds_count",
            {"topic": TOPIC, "outcome": "stale"},
        )
        == 1.0
    )


async def test_failure_is_counted_and_not_swallowed(collector) -> None:
    hook = MetricsHook(collector)

    with pytest.raises(RuntimeError):
        await hook("cdc.process.t", {"topic": TOPIC}, AsyncMock(side_effect=RuntimeError()))

    assert _count(collector, "error") == 1.0


def test_hooks_share_collectors_per_registry(collector) -> None:
    first, second = MetricsHook(collector), MetricsHook(collector)

    assert first.enabled
    assert first._counter is second._counter


async def test_install_registers_for_cdc_operations(collector) -> None:
    registry = HookRegistry()

    registration = install_metrics_hook(registry=registry, collector_registry=collector)
    again = install_metrics_hook(registry=registry, collector_registry=collector)
    await registry.execute_all(
        f"cdc.process.{TOPIC}", {"topic": TOPIC}, AsyncMock(return_value="upserted")
    )
    await registry.execute_all("other.op", {"topic": TOPIC}, AsyncMock())

    assert registration is again
    assert isinstance(registration.hook, MetricsHook)
    assert _count(collector, "upserted") == 1.0
    assert _count(collector, "success") is None


def test_serve_metrics_starts_http_endpoint() -> None:
    with patch("prometheus_client.start_http_server") as start:
        serve_metrics(9464)

    start.assert_called_once_with(9464)
