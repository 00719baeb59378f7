"""Health checks and worker heartbeats for the sync worker."""

from __future__ import annotations

from .checks import MessageBrokerHealthCheck, MongoHealthCheck
from .registry import HealthRegistry
from .reporter import HealthReporter

__all__ = [
    "HealthRegistry",
    "HealthReporter",
    "MessageBrokerHealthCheck",
    "MongoHealthCheck",
]
