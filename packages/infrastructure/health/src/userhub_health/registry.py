"""Health registry: dependency probes plus worker heartbeats."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

UP = "up"
DOWN = "down"


class HealthRegistry:
    """Aggregates dependency probes and worker liveness.

    A probe is a callable returning a truthy value, directly or through an
    awaitable. A probe that raises, returns a falsy value or runs longer than
    ``check_timeout_seconds`` reports ``down``. A worker reports ``down`` once
    its last heartbeat is ``heartbeat_timeout_seconds`` old; a worker that
    stopped cleanly should be forgotten instead.
    """

    def __init__(
        self,
        heartbeat_timeout_seconds: float = 60,
        check_timeout_seconds: float = 5,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._probes: dict[str, Callable[[], Any]] = {}
        self._last_seen: dict[str, float] = {}
        self._heartbeat_timeout = heartbeat_timeout_seconds
        self._check_timeout = check_timeout_seconds
        self._clock = clock or time.monotonic

    @property
    def workers(self) -> tuple[str, ...]:
        return tuple(self._last_seen)

    def register(self, name: str, probe: Callable[[], Any]) -> None:
        self._probes[name] = probe

    def heartbeat(self, worker_name: str) -> None:
        self._last_seen[worker_name] = self._clock()

    def forget(self, worker_name: str) -> None:
        self._last_seen.pop(worker_name, None)

    async def _probe(self, name: str, probe: Callable[[], Any]) -> str:
        try:
            value = probe()
            if inspect.isawaitable(value):
                value = await asyncio.wait_for(value, self._check_timeout)
        except Exception:  # noqa: BLE001
            logger.warning("Health probe %s failed", name, exc_info=True)
            return DOWN
        return UP if value else DOWN

    def _liveness(self) -> dict[str, str]:
        now = self._clock()
        return {
            name: UP if now - seen < self._heartbeat_timeout else DOWN
            for name, seen in self._last_seen.items()
        }

    async def check_all(self) -> dict[str, str]:
        """Run every probe concurrently; map component and worker names to up/down."""
        names = list(self._probes)
        results = await asyncio.gather(
            *(self._probe(name, self._probes[name]) for name in names)
        )
        report = dict(zip(names, results))
        report.update(self._liveness())
        return report

    async def status(self) -> dict[str, Any]:
        components = await self.check_all()
        now = self._clock()
        return {
            "status": "healthy" if all(v == UP for v in components.values()) else "unhealthy",
            "components": components,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "heartbeat_age_seconds": {
                name: round(now - seen, 3) for name, seen in self._last_seen.items()
            },
        }
