"""Base exception hierarchy shared by every userhub package."""

from __future__ import annotations


class UserHubError(Exception):
    """Root exception for the entire userhub toolkit."""


class ConfigurationError(UserHubError):
    """Raised when settings are missing, malformed or contradictory."""


class InfrastructureError(UserHubError):
    """Base class for all infrastructure-related errors."""


class TransientInfrastructureError(InfrastructureError):
    """Raised when a backing service is temporarily unavailable.

    Callers may retry the same operation later; nothing about the input
    itself is wrong.
    """


class PersistenceError(InfrastructureError):
    """Base class for all persistence-related errors."""


class HandlerError(UserHubError):
    """Base class for all handler related errors (lookup, execution)."""
