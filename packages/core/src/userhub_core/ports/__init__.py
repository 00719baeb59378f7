from .background_worker import IBackgroundWorker
from .projection import IProjectionSink
from .stream import IStreamClient, StreamMessage

__all__ = [
    "IBackgroundWorker",
    "IProjectionSink",
    "IStreamClient",
    "StreamMessage",
]
