"""Correlation ids for stream messages.

While one message is processed every log line carries the same id,
``<topic>:<partition>:<offset>``, so a message can be followed from poll
to commit across hooks, projector and sink.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

_current: ContextVar[str | None] = ContextVar("userhub_correlation_id", default=None)


def correlation_id_for(topic: str, partition: int, offset: int) -> str:
    return f"{topic}:{partition}:{offset}"


def get_correlation_id() -> str | None:
    return _current.get()


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    """Bind *correlation_id* for the duration of a ``with`` block."""
    token = _current.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _current.reset(token)


class CorrelationIdFilter(logging.Filter):
    """Adds ``%(correlation_id)s`` to log records; ``-`` outside a message."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _current.get() or "-"
        return True
