"""Turn and workflow data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .dice import DiceRoll
from .errors import EngineError
from .messages import Message


class TurnState(str, Enum):
    """Lifecycle of the outgoing turn."""

    IDLE = "idle"
    SENDING = "sending"
    RECONCILING = "reconciling"
    FAILED = "failed"


class TurnStatus(str, Enum):
    """How a submitted turn ended."""

    ROLLED = "rolled"  # bare dice command, no network call
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class PendingDeletion:
    """A memory the server proposes to delete (requires confirmation)."""

    id: str
    text: str = ""
    category: str = ""

    @classmethod
    def from_wire(cls, record: Any) -> "PendingDeletion":
        if isinstance(record, dict):
            return cls(
                id=str(record["messageid"]),
                text=record.get("text") or "",
                category=record.get("category") or "",
            )
        return cls(id=str(record))


@dataclass
class GenerationResult:
    """Response of the remote generate call."""

    history: list[Message]
    new_vector_memory: list[dict] = field(default_factory=list)
    pending_deletions: list[PendingDeletion] = field(default_factory=list)


@dataclass
class ReconcileResult:
    """Output of a history merge."""

    merged: list[Message]
    newly_added: list[Message]


@dataclass
class TurnOutcome:
    """Result of TurnController.submit_turn()."""

    status: TurnStatus
    error: EngineError | None = None
    newly_added: list[Message] = field(default_factory=list)
    roll: DiceRoll | None = None  # local roll or replayed server roll
    pending_deletions: list[PendingDeletion] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status != TurnStatus.FAILED


@dataclass
class DeletionReport:
    """Aggregate result of a (mass) delete."""

    deleted_ids: list[str] = field(default_factory=list)
    failures: dict[str, EngineError] = field(default_factory=dict)
    cancelled: bool = False
    error: EngineError | None = None  # request rejected before any deletion

    @property
    def ok(self) -> bool:
        return not self.cancelled and self.error is None and not self.failures


@dataclass
class RegenerateReport:
    """Result of regenerating the last turn."""

    deletion: DeletionReport
    turn: TurnOutcome | None = None  # None when there was no user turn


@dataclass
class BranchReport:
    """Result of branching a conversation at a message."""

    new_conversation_id: str | None = None
    cancelled: bool = False
    error: EngineError | None = None

    @property
    def ok(self) -> bool:
        return self.new_conversation_id is not None
