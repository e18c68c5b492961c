"""Conversation data model."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Conversation:
    """A stored conversation (reference server)."""

    id: str
    title: str
    created_at: datetime
    parent_id: str | None = None  # set on branches
