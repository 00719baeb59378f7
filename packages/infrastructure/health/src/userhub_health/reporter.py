"""HealthReporter: logs the aggregated health status at a fixed interval."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

from userhub_core.ports.background_worker import IBackgroundWorker

from .registry import UP

if TYPE_CHECKING:
    from .registry import HealthRegistry

logger = logging.getLogger(__name__)


class HealthReporter(IBackgroundWorker):
    """Background worker that runs every health probe each ``interval`` seconds.

    A healthy report is logged at INFO, an unhealthy one at WARNING with the
    components that are down. The last report is kept for callers that want
    it without probing again.
    """

    def __init__(
        self,
        registry: HealthRegistry,
        interval: float = 60.0,
        *,
        name: str = "health-reporter",
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self._registry = registry
        self._interval = interval
        self._name = name
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self.last_report: dict[str, Any] | None = None

    @property
    def name(self) -> str:
        return self._name

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name=self._name)
        logger.info("HealthReporter started (interval=%.1fs)", self._interval)

    def request_stop(self) -> None:
        self._stop_event.set()

    async def stop(self, timeout: float | None = None) -> None:
        self.request_stop()
        task, self._task = self._task, None
        if task is None:
            return
        done, _ = await asyncio.wait({task}, timeout=5.0 if timeout is None else timeout)
        if not done:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def report_once(self) -> dict[str, Any]:
        """Probe every component and log the result."""
        report = await self._registry.status()
        self.last_report = report
        down = sorted(
            name for name, state in report["components"].items() if state != UP
        )
        if down:
            logger.warning("Health %s; down: %s", report["status"], ", ".join(down))
        else:
            logger.info("Health %s: %s", report["status"], report["components"])
        return report

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            if self._stop_event.is_set():
                break
            try:
                await self.report_once()
            except Exception:
                logger.exception("HealthReporter error")
