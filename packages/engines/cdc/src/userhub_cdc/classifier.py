"""ErrorClassifier: decides whether a failed message is retried or skipped."""

from __future__ import annotations

import asyncio
import json
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import ValidationError

from userhub_core.primitives.exceptions import TransientInfrastructureError

from .exceptions import DecodeError, FormatApplyError, TransientApplyError

if TYPE_CHECKING:
    from collections.abc import Iterable

_TRANSIENT_TYPES: tuple[type[BaseException], ...] = (
    TransientApplyError,
    TransientInfrastructureError,
    TimeoutError,
    asyncio.TimeoutError,
    asyncio.CancelledError,
    ConnectionError,
)
# Raised by decoding and validation; their messages may echo payload text.
_PAYLOAD_ERRORS: tuple[type[BaseException], ...] = (
    DecodeError,
    FormatApplyError,
    json.JSONDecodeError,
    ValidationError,
)
_FORMAT_TYPES: tuple[type[BaseException], ...] = (ValueError, TypeError, KeyError)
_TRANSIENT_MARKERS = ("timeout", "connection")


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    FORMAT = "format"
    UNKNOWN = "unknown"


class ErrorClassifier:
    """
    Maps an exception raised while processing a message onto an ``ErrorKind``.

    - TRANSIENT: the message is retried (no commit).
    - FORMAT: the message can never succeed; it is logged and committed.
    - UNKNOWN: anything else; logged and committed.

    Transport-specific transient types (e.g. broker connection errors) are
    passed in through ``transient``.

    Order of checks: transient types, decode/validation errors, a message
    mentioning a timeout or a connection problem (transient), then the
    generic ``ValueError``/``TypeError``/``KeyError`` family (format).
    """

    def __init__(
        self,
        *,
        transient: Iterable[type[BaseException]] = (),
        format_errors: Iterable[type[BaseException]] = (),
    ) -> None:
        self._transient = _TRANSIENT_TYPES + tuple(transient)
        self._payload = _PAYLOAD_ERRORS + tuple(format_errors)

    def classify(self, exc: BaseException) -> ErrorKind:
        if isinstance(exc, self._transient):
            return ErrorKind.TRANSIENT
        if isinstance(exc, self._payload):
            return ErrorKind.FORMAT
        message = str(exc).lower()
        if any(marker in message for marker in _TRANSIENT_MARKERS):
            return ErrorKind.TRANSIENT
        if isinstance(exc, _FORMAT_TYPES):
            return ErrorKind.FORMAT
        return ErrorKind.UNKNOWN

