"""MongoDB read-store persistence for userhub."""

from __future__ import annotations

from .connection import MongoConnectionManager
from .exceptions import (
    MongoConnectionError,
    MongoPersistenceError,
    MongoUnavailableError,
)
from .indexes import create_compound_index, create_text_index, ensure_user_indexes
from .projection_sink import MongoUserProjectionSink, translate_error

__all__ = [
    "MongoConnectionError",
    "MongoConnectionManager",
    "MongoPersistenceError",
    "MongoUnavailableError",
    "MongoUserProjectionSink",
    "create_compound_index",
    "create_text_index",
    "ensure_user_indexes",
    "translate_error",
]
