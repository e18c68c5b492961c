"""Message synchronization: reconciliation, turns and workflows."""

from .reconciler import Reconciler
from .turn_controller import (
    TurnController,
    compose_outgoing,
    display_text,
    find_replayable_roll,
)
from .workflows import WorkflowCoordinator

__all__ = [
    "Reconciler",
    "TurnController",
    "WorkflowCoordinator",
    "compose_outgoing",
    "display_text",
    "find_replayable_roll",
]
