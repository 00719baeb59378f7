"""Messaging infrastructure: Kafka stream client and retry backoff."""

from __future__ import annotations

from .exceptions import MessagingConnectionError, MessagingError
from .kafka import (
    KAFKA_TRANSIENT_ERRORS,
    KafkaConnectionManager,
    KafkaStreamClient,
    LoggingRebalanceListener,
    is_fatal_kafka_error,
)
from .retry import BackoffPolicy

__all__ = [
    "KAFKA_TRANSIENT_ERRORS",
    "BackoffPolicy",
    "KafkaConnectionManager",
    "KafkaStreamClient",
    "LoggingRebalanceListener",
    "MessagingConnectionError",
    "MessagingError",
    "is_fatal_kafka_error",
]
