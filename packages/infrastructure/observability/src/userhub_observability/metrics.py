"""MetricsHook: Prometheus counters/histograms per processed stream message.

Emits ``userhub_cdc_messages_total`` and
``userhub_cdc_message_duration_seconds`` with labels ``{topic, outcome}``.
*outcome* is the projector or skip result (``upserted``, ``stale``,
``skipped_tombstone``, ...) or ``error``. Requires the optional ``[metrics]``
extra; without ``prometheus_client`` the hook only passes messages through.
"""

from __future__ import annotations

import functools
import logging
import time
from typing import TYPE_CHECKING, Any

from .structured_logging import outcome_label

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

_logger = logging.getLogger(__name__)

_LABELS = ["topic", "outcome"]


@functools.lru_cache(maxsize=None)
def _collectors(registry: Any) -> tuple[Any, Any]:
    """Counter and histogram registered once per collector registry."""
    from prometheus_client import REGISTRY, Counter, Histogram

    target = registry if registry is not None else REGISTRY
    counter = Counter(
        "userhub_cdc_messages_total",
        "Stream messages processed by the CDC sync worker",
        _LABELS,
        registry=target,
    )
    histogram = Histogram(
        "userhub_cdc_message_duration_seconds",
        "Time spent processing one stream message",
        _LABELS,
        registry=target,
    )
    return counter, histogram


class MetricsHook:
    """Records duration and outcome of every ``cdc.process.*`` call.

    Implements the ``InstrumentationHook`` protocol. *registry* is a
    ``prometheus_client.CollectorRegistry``; the process-wide default is used
    when omitted.
    """

    def __init__(self, registry: Any = None) -> None:
        self._counter: Any = None
        self._histogram: Any = None
        try:
            self._counter, self._histogram = _collectors(registry)
        except ImportError:
            _logger.info("prometheus_client is not installed; CDC metrics disabled")

    @property
    def enabled(self) -> bool:
        return self._counter is not None

    async def __call__(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        if not self.enabled:
            return await next_handler()
        start = time.monotonic()
        outcome = "error"
        try:
            result = await next_handler()
            outcome = outcome_label(result)
            return result
        finally:
            try:
                labels = {"topic": attributes.get("topic", "unknown"), "outcome": outcome}
                self._histogram.labels(**labels).observe(time.monotonic() - start)
                self._counter.labels(**labels).inc()
            except Exception:  # noqa: BLE001
                _logger.debug("Failed to record CDC metrics", exc_info=True)


def serve_metrics(port: int) -> None:
    """Expose the default registry over HTTP on *port*."""
    from prometheus_client import start_http_server

    start_http_server(port)
    _logger.info("Prometheus metrics served on port %d", port)
