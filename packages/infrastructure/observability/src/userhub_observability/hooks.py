"""Connect observability to the core instrumentation hook registry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from userhub_core.instrumentation import get_hook_registry

from .metrics import MetricsHook
from .structured_logging import StructuredLoggingHook

if TYPE_CHECKING:
    from userhub_core.instrumentation import HookRegistration, HookRegistry

logger = logging.getLogger(__name__)

DEFAULT_CDC_OPERATIONS: list[str] = ["cdc.process.*"]


def _installed(target: HookRegistry, hook_type: type) -> HookRegistration | None:
    for existing in target.registrations:
        if isinstance(existing.hook, hook_type):
            return existing
    return None


def install_cdc_hooks(
    *,
    registry: HookRegistry | None = None,
    operations: list[str] | None = None,
    priority: int = -100,
    enabled: bool = True,
) -> HookRegistration:
    """Install the structured logging hook for CDC message processing.

    Installing twice into the same registry returns the existing registration.
    """
    target = registry or get_hook_registry()
    existing = _installed(target, StructuredLoggingHook)
    if existing is not None:
        return existing
    registration = target.register(
        StructuredLoggingHook(),
        priority=priority,
        operations=operations or DEFAULT_CDC_OPERATIONS,
        enabled=enabled,
    )
    logger.info("Structured logging installed for %s", list(registration.operations))
    return registration


def install_metrics_hook(
    *,
    registry: HookRegistry | None = None,
    collector_registry: Any = None,
    operations: list[str] | None = None,
    priority: int = -50,
) -> HookRegistration:
    """Install the Prometheus metrics hook for CDC message processing.

    *collector_registry* is passed to ``MetricsHook``. Installing twice into
    the same hook registry returns the existing registration.
    """
    target = registry or get_hook_registry()
    existing = _installed(target, MetricsHook)
    if existing is not None:
        return existing
    hook = MetricsHook(collector_registry)
    registration = target.register(
        hook,
        priority=priority,
        operations=operations or DEFAULT_CDC_OPERATIONS,
        enabled=hook.enabled,
    )
    if hook.enabled:
        logger.info("CDC metrics installed for %s", list(registration.operations))
    return registration
