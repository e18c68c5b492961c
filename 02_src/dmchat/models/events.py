"""Event bus data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Topic(str, Enum):
    """EventBus topics (side channels of the engine)."""

    DICE_ANIMATION = "dice_animation"
    PENDING_DELETIONS = "pending_deletions"
    NAVIGATION = "navigation"
    TURN_FAILED = "turn_failed"


@dataclass
class BusMessage:
    """A message exchanged through EventBus."""

    id: str
    topic: Topic
    payload: dict  # varies by topic
    source: str  # component that published
    timestamp: datetime
