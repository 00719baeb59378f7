"""StructuredLoggingHook: one JSON log entry per processed stream message."""

from __future__ import annotations

import json
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Any

from userhub_core.correlation import get_correlation_id

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

_log = logging.getLogger(__name__)

_ATTRIBUTE_KEYS = ("topic", "partition", "offset", "key")


def outcome_label(result: Any) -> str:
    if isinstance(result, Enum):
        return str(result.value)
    if isinstance(result, str):
        return result
    return "success"


class StructuredLoggingHook:
    """Emits JSON log entries with operation, message position, outcome, duration.

    Implements the ``InstrumentationHook`` protocol. Exceptions from the
    wrapped handler are logged with ``outcome="error"`` and re-raised.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._log = logger or _log

    async def __call__(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        start = time.monotonic()
        outcome = "success"
        error_type: str | None = None
        try:
            result = await next_handler()
            outcome = outcome_label(result)
            return result
        except BaseException as exc:
            outcome = "error"
            error_type = type(exc).__name__
            raise
        finally:
            try:
                duration_ms = (time.monotonic() - start) * 1000
                entry: dict[str, Any] = {
                    "operation": operation,
                    **{k: attributes[k] for k in _ATTRIBUTE_KEYS if k in attributes},
                    "outcome": outcome,
                    "duration_ms": round(duration_ms, 2),
                    "correlation_id": get_correlation_id()
                    or attributes.get("correlation_id"),
                }
                if error_type is not None:
                    entry["error_type"] = error_type
                self._log.info(json.dumps(entry, default=str))
            except Exception:  # noqa: BLE001
                _log.debug("Failed to emit structured log entry", exc_info=True)
