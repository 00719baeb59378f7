"""EnvelopeDecoder: Debezium JSON envelope to ChangeEvent."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, ValidationError

from .change_event import ChangeEvent, Operation, SourceInfo
from .exceptions import DecodeError, EmptyMessageError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

logger = logging.getLogger(__name__)

_REQUIRES_AFTER = frozenset({Operation.CREATE, Operation.READ, Operation.UPDATE})


class _Envelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    op: str
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    source: SourceInfo | None = None
    ts_ms: int | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _find_id(row: Mapping[str, Any] | None) -> str | None:
    if not row:
        return None
    for column, value in row.items():
        if column.lower() == "id" and value is not None and value != "":
            return str(value)
    return None


def _key_from_message_key(message_key: str | None) -> str | None:
    """Extract the entity id from a stream message key.

    Keys produced by the JSON converter are objects (``{"id": 42}``), possibly
    schema-wrapped; plain string keys are used as-is.
    """
    if not message_key:
        return None
    try:
        parsed = json.loads(message_key)
    except json.JSONDecodeError:
        return message_key
    if isinstance(parsed, dict):
        payload = parsed.get("payload")
        if "schema" in parsed and isinstance(payload, dict):
            parsed = payload
        return _find_id(parsed)
    if parsed is None or isinstance(parsed, (list, bool)):
        return None
    return str(parsed)


class EnvelopeDecoder:
    """Decodes raw change-capture messages into ``ChangeEvent`` values.

    Accepts the bare envelope (``before``/``after``/``op``/``source``/``ts_ms``)
    as well as the schema-wrapped form (``{"schema": ..., "payload": ...}``).
    Any problem with the input raises ``DecodeError``; a partially decoded
    event is never returned.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or _utcnow

    def decode(
        self, raw: bytes | str | None, *, message_key: str | None = None
    ) -> ChangeEvent:
        data = self._load(raw)
        envelope = self._parse_envelope(data)

        try:
            operation = Operation(envelope.op)
        except ValueError:
            raise DecodeError(f"Unknown operation code {envelope.op!r}") from None

        if operation in _REQUIRES_AFTER and envelope.after is None:
            raise DecodeError(f"'{operation.value}' event has no 'after' image")
        if operation is Operation.DELETE and envelope.after is not None:
            raise DecodeError("'d' event must not carry an 'after' image")

        before = envelope.before
        if operation in (Operation.CREATE, Operation.READ) and before is not None:
            logger.debug("Ignoring 'before' image on '%s' event", operation.value)
            before = None

        key = (
            _find_id(envelope.after)
            or _find_id(envelope.before)
            or _key_from_message_key(message_key)
        )
        if key is None:
            raise DecodeError("Change event carries no entity key")

        source = envelope.source or SourceInfo()
        return ChangeEvent(
            operation=operation,
            key=key,
            before=before,
            after=envelope.after,
            source=source,
            event_timestamp=self._timestamp(envelope.ts_ms, source.ts_ms),
        )

    def _load(self, raw: bytes | str | None) -> dict[str, Any]:
        if raw is None or len(raw) == 0:
            raise EmptyMessageError("Message value is empty")
        if isinstance(raw, (bytes, bytearray)):
            try:
                text = bytes(raw).decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodeError(f"Message value is not valid UTF-8: {e}") from e
        else:
            text = raw
        if not text.strip():
            raise EmptyMessageError("Message value is blank")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise DecodeError(
                f"Malformed JSON: {e.msg} (line {e.lineno}, column {e.colno})"
            ) from e

        if isinstance(data, dict) and "op" not in data and "payload" in data:
            data = data["payload"]
        if data is None:
            raise EmptyMessageError("Message payload is null")
        if not isinstance(data, dict):
            raise DecodeError(
                f"Envelope must be a JSON object, got {type(data).__name__}"
            )
        return data

    @staticmethod
    def _parse_envelope(data: dict[str, Any]) -> _Envelope:
        try:
            return _Envelope.model_validate(data)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise DecodeError(f"Unexpected envelope shape: {problems}") from e

    def _timestamp(self, *candidates: int | None) -> datetime:
        for ts_ms in candidates:
            if ts_ms is None:
                continue
            try:
                return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                logger.debug("Ignoring out-of-range ts_ms %s", ts_ms)
        return self._clock()
