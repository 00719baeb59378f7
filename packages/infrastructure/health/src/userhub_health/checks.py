"""Probes for the sync worker's external dependencies."""

from __future__ import annotations

import inspect
from typing import Any, ClassVar


class _ConnectionProbe:
    """Calls the first probe method the wrapped connection offers; errors count as down."""

    probe_methods: ClassVar[tuple[str, ...]] = ("health_check",)

    def __init__(self, connection: Any) -> None:
        self._connection = connection

    async def __call__(self) -> bool:
        for method in self.probe_methods:
            probe = getattr(self._connection, method, None)
            if not callable(probe):
                continue
            try:
                result = probe()
                if inspect.isawaitable(result):
                    result = await result
            except Exception:  # noqa: BLE001
                return False
            return bool(result)
        return False


class MongoHealthCheck(_ConnectionProbe):
    """Pings the read store through ``MongoConnectionManager.health_check``."""


class MessageBrokerHealthCheck(_ConnectionProbe):
    """Lists broker metadata via ``health_check``, or falls back to ``is_connected``."""

    probe_methods = ("health_check", "is_connected")
