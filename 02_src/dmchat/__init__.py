"""dmchat: message synchronization engine for an RPG chat client."""

from .app import Application, IApplication
from .dice import codec
from .event_bus import EventBus, IEventBus
from .llm import ILLMProvider, LLMError, LLMProvider
from .master import GameMaster, IGameMaster
from .models import (
    BusMessage,
    DiceCommand,
    DiceRoll,
    EngineError,
    ErrorKind,
    Message,
    OutgoingFile,
    RemoteCallError,
    Role,
    Topic,
    TraceEvent,
    TurnInProgressError,
    TurnOutcome,
    TurnStatus,
)
from .session import ChatSession
from .storage import IStorage, Storage
from .sync import Reconciler, TurnController, WorkflowCoordinator
from .tracker import ITracker, Tracker
from .transport import (
    HttpTransport,
    IConfirmer,
    IMemoryStore,
    ITransport,
    SessionMemoryStore,
)

__all__ = [
    # Engine
    "Reconciler",
    "TurnController",
    "WorkflowCoordinator",
    "ChatSession",
    "codec",
    # Models
    "Role",
    "Message",
    "OutgoingFile",
    "DiceCommand",
    "DiceRoll",
    "ErrorKind",
    "EngineError",
    "RemoteCallError",
    "TurnInProgressError",
    "TurnOutcome",
    "TurnStatus",
    "BusMessage",
    "Topic",
    "TraceEvent",
    # Collaborators
    "ITransport",
    "HttpTransport",
    "IMemoryStore",
    "SessionMemoryStore",
    "IConfirmer",
    "IStorage",
    "Storage",
    "IEventBus",
    "EventBus",
    "ITracker",
    "Tracker",
    # Reference server
    "Application",
    "IApplication",
    "GameMaster",
    "IGameMaster",
    "ILLMProvider",
    "LLMError",
    "LLMProvider",
]
