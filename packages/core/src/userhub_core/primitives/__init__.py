from .exceptions import (
    ConfigurationError,
    HandlerError,
    InfrastructureError,
    PersistenceError,
    TransientInfrastructureError,
    UserHubError,
)

__all__ = [
    "ConfigurationError",
    "HandlerError",
    "InfrastructureError",
    "PersistenceError",
    "TransientInfrastructureError",
    "UserHubError",
]
