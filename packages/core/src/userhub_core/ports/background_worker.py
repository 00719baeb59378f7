"""Background worker port: a long-running loop owned by a service process."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IBackgroundWorker(Protocol):
    """
    ``start`` schedules the loop and returns at once. ``request_stop`` only
    signals; ``stop`` signals and waits up to *timeout* seconds before
    cancelling the loop.
    """

    @property
    def name(self) -> str: ...

    async def start(self) -> None: ...

    def request_stop(self) -> None: ...

    async def stop(self, timeout: float | None = None) -> None: ...
