"""Stream-client port: the narrow slice of a log-based broker the CDC loop needs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence


@dataclass(frozen=True)
class StreamMessage:
    """One record pulled from a topic partition."""

    topic: str
    partition: int
    offset: int
    key: str | None = None
    value: bytes | None = None
    timestamp_ms: int | None = None


@runtime_checkable
class IStreamClient(Protocol):
    """
    Port for pulling records from a partitioned log with manual offset commits.

    Implementations are not safe for concurrent use; one consumer loop owns
    one client.
    """

    async def start(self) -> None:
        """Connect to the cluster."""
        ...

    def subscribe(self, topics: Sequence[str]) -> None:
        """Attach to a fixed list of topics."""
        ...

    async def poll(self, timeout: float) -> StreamMessage | None:
        """Return the next record, or None when nothing arrived within *timeout* seconds."""
        ...

    async def commit(self, message: StreamMessage) -> None:
        """Mark *message* (and everything before it on its partition) as processed."""
        ...

    def rewind(self, message: StreamMessage) -> None:
        """Reposition the partition so *message* is returned by the next poll."""
        ...

    async def stop(self) -> None:
        """Leave the group and release network resources."""
        ...
