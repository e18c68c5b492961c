"""Core data models for dmchat."""

from .messages import (
    LOCAL_ID_PREFIX,
    MediaAttachment,
    Message,
    OutgoingFile,
    Role,
    is_local_id,
    new_local_id,
)
from .dice import FUDGE, FUDGE_GLYPHS, DiceCommand, DiceRoll
from .errors import (
    EngineError,
    ErrorKind,
    RemoteCallError,
    TurnInProgressError,
    classify_error,
    validation_error,
)
from .turn import (
    BranchReport,
    DeletionReport,
    GenerationResult,
    PendingDeletion,
    ReconcileResult,
    RegenerateReport,
    TurnOutcome,
    TurnState,
    TurnStatus,
)
from .events import BusMessage, Topic
from .tracing import TraceEvent
from .conversation import Conversation

__all__ = [
    # Messages
    "LOCAL_ID_PREFIX",
    "Role",
    "Message",
    "MediaAttachment",
    "OutgoingFile",
    "is_local_id",
    "new_local_id",
    # Dice
    "FUDGE",
    "FUDGE_GLYPHS",
    "DiceCommand",
    "DiceRoll",
    # Errors
    "ErrorKind",
    "EngineError",
    "RemoteCallError",
    "TurnInProgressError",
    "classify_error",
    "validation_error",
    # Turns and workflows
    "TurnState",
    "TurnStatus",
    "TurnOutcome",
    "GenerationResult",
    "ReconcileResult",
    "PendingDeletion",
    "DeletionReport",
    "RegenerateReport",
    "BranchReport",
    # Events
    "BusMessage",
    "Topic",
    # Conversations
    "Conversation",
    # Tracing
    "TraceEvent",
]
