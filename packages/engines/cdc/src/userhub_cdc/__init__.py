"""userhub CDC engine: keeps the user read store in sync with captured changes."""

from __future__ import annotations

from .change_event import ChangeEvent, Operation, SourceInfo
from .classifier import ErrorClassifier, ErrorKind
from .config import (
    BackoffSettings,
    CdcSettings,
    KafkaSettings,
    MongoSettings,
    table_from_topic,
    topic_name,
)
from .consumer import ConsumerState, ConsumerStats, IRetryDelays, Skip, SyncConsumer
from .decoder import EnvelopeDecoder
from .exceptions import (
    ApplyError,
    CdcError,
    DecodeError,
    EmptyMessageError,
    FatalSetupError,
    FormatApplyError,
    TransientApplyError,
)
from .filters import SourceDatabaseFilter
from .projector import ApplyOutcome, IProjector, UserProjector
from .records import UserProjection, UserSnapshot
from .registry import ProjectorRegistry
from .sink import InMemoryProjectionSink

__all__ = [
    "ApplyError",
    "ApplyOutcome",
    "BackoffSettings",
    "CdcError",
    "CdcSettings",
    "ChangeEvent",
    "ConsumerState",
    "ConsumerStats",
    "DecodeError",
    "EmptyMessageError",
    "EnvelopeDecoder",
    "ErrorClassifier",
    "ErrorKind",
    "FatalSetupError",
    "FormatApplyError",
    "IProjector",
    "IRetryDelays",
    "InMemoryProjectionSink",
    "KafkaSettings",
    "MongoSettings",
    "Operation",
    "ProjectorRegistry",
    "Skip",
    "SourceDatabaseFilter",
    "SourceInfo",
    "SyncConsumer",
    "TransientApplyError",
    "UserProjection",
    "UserProjector",
    "UserSnapshot",
    "table_from_topic",
    "topic_name",
]
