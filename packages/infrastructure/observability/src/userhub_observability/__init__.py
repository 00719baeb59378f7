"""Observability hooks for the CDC pipeline."""

from __future__ import annotations

from .hooks import DEFAULT_CDC_OPERATIONS, install_cdc_hooks, install_metrics_hook
from .metrics import MetricsHook, serve_metrics
from .structured_logging import StructuredLoggingHook

__all__ = [
    "DEFAULT_CDC_OPERATIONS",
    "MetricsHook",
    "StructuredLoggingHook",
    "install_cdc_hooks",
    "install_metrics_hook",
    "serve_metrics",
]
