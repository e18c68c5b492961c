"""Transport module: remote collaborators of the engine."""

from .base import IConfirmer, IMemoryStore, ITransport
from .http_transport import HttpTransport, classify_response
from .memory_store import SessionMemoryStore

__all__ = [
    "ITransport",
    "IMemoryStore",
    "IConfirmer",
    "HttpTransport",
    "classify_response",
    "SessionMemoryStore",
]
