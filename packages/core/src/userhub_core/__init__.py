"""userhub core: exceptions, correlation, instrumentation and ports."""

from __future__ import annotations

from .correlation import (
    CorrelationIdFilter,
    correlation_id_for,
    correlation_scope,
    get_correlation_id,
)
from .instrumentation import (
    HookRegistry,
    InstrumentationHook,
    get_hook_registry,
    set_hook_registry,
)
from .ports import IBackgroundWorker, IProjectionSink, IStreamClient, StreamMessage
from .primitives.exceptions import (
    ConfigurationError,
    HandlerError,
    InfrastructureError,
    PersistenceError,
    TransientInfrastructureError,
    UserHubError,
)

__all__ = [
    "ConfigurationError",
    "CorrelationIdFilter",
    "HandlerError",
    "HookRegistry",
    "IBackgroundWorker",
    "IProjectionSink",
    "IStreamClient",
    "InfrastructureError",
    "InstrumentationHook",
    "PersistenceError",
    "StreamMessage",
    "TransientInfrastructureError",
    "UserHubError",
    "correlation_id_for",
    "correlation_scope",
    "get_correlation_id",
    "get_hook_registry",
    "set_hook_registry",
]
