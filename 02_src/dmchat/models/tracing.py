"""Tracing and observability data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TraceEvent:
    """A single observability event of the engine or the server."""

    id: str
    event_type: str  # e.g. "turn_submitted", "dice_rolled"
    actor: str  # who created this event
    data: dict  # self-contained data for display
    timestamp: datetime
