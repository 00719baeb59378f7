"""Kafka error types the sync consumer treats as transient or fatal."""

from __future__ import annotations

from aiokafka.errors import (
    KafkaConnectionError,
    KafkaError,
    KafkaTimeoutError,
    NodeNotReadyError,
    RequestTimedOutError,
)

KAFKA_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    KafkaConnectionError,
    KafkaTimeoutError,
    RequestTimedOutError,
    NodeNotReadyError,
)


def is_fatal_kafka_error(exc: BaseException) -> bool:
    """True for broker errors the client flags as non-retriable."""
    return isinstance(exc, KafkaError) and not getattr(exc, "retriable", False)
