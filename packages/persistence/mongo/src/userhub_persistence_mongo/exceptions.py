"""MongoDB persistence exceptions."""

from __future__ import annotations

from userhub_core.primitives.exceptions import (
    PersistenceError,
    TransientInfrastructureError,
)


class MongoPersistenceError(PersistenceError):
    """Base for MongoDB persistence errors."""


class MongoConnectionError(MongoPersistenceError):
    """Raised when the client cannot be created or is used before connect()."""


class MongoUnavailableError(MongoPersistenceError, TransientInfrastructureError):
    """Raised when the server is unreachable or an operation timed out."""
