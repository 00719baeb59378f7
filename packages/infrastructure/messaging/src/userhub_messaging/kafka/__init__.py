"""Kafka transport adapter."""

from __future__ import annotations

from .connection import KafkaConnectionManager
from .errors import KAFKA_TRANSIENT_ERRORS, is_fatal_kafka_error
from .rebalance import LoggingRebalanceListener
from .stream import KafkaStreamClient

__all__ = [
    "KAFKA_TRANSIENT_ERRORS",
    "KafkaConnectionManager",
    "KafkaStreamClient",
    "LoggingRebalanceListener",
    "is_fatal_kafka_error",
]
