"""Worker pool and message transports."""

from .factory import TransportConfig, TransportFactory
from .overseer import Overseer, WorkerStatus
from .transport import LocalTransport, Message, MsgTag

__all__ = [
    "LocalTransport",
    "Message",
    "MsgTag",
    "Overseer",
    "TransportConfig",
    "TransportFactory",
    "WorkerStatus",
]
