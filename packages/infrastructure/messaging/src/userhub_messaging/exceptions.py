"""Messaging-specific exceptions for userhub-messaging."""

from __future__ import annotations

from userhub_core.primitives.exceptions import InfrastructureError


class MessagingError(InfrastructureError):
    """Base class for all messaging-related infrastructure errors."""


class MessagingConnectionError(MessagingError):
    """Raised when the broker client is unusable (not started, already stopped)."""
