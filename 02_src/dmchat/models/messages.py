"""Message-related data models."""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

LOCAL_ID_PREFIX = "local_"


class Role(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    DICE = "dice"  # local only, never persisted

    @classmethod
    def from_wire(cls, value: str | None) -> "Role":
        """Decode a wire role. The game server calls the assistant "model"."""
        if value in ("model", "assistant"):
            return cls.ASSISTANT
        if value == "dice":
            return cls.DICE
        return cls.USER


def new_local_id() -> str:
    """Generate a temporary client-side message id."""
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4()}"


def is_local_id(message_id: str) -> bool:
    """Check whether an id was generated locally (never seen by the server)."""
    return message_id.startswith(LOCAL_ID_PREFIX)


@dataclass
class MediaAttachment:
    """Generated media carried by a message (opaque to the engine)."""

    mime_type: str
    data: str  # base64 payload


@dataclass
class OutgoingFile:
    """A raw file sent along with a user turn."""

    name: str
    mime_type: str
    data: bytes


@dataclass
class Message:
    """A single message in a conversation."""

    id: str
    role: Role
    text: str
    attachments: list[MediaAttachment] = field(default_factory=list)
    pending: bool = False  # dice roll waiting for the next outgoing turn

    @property
    def is_local(self) -> bool:
        return is_local_id(self.id)

    @classmethod
    def from_wire(cls, record: dict[str, Any]) -> "Message":
        """Build a Message from a server history record."""
        return cls(
            id=str(record["messageid"]),
            role=Role.from_wire(record.get("role")),
            text=record.get("text") or "",
            attachments=[
                MediaAttachment(
                    mime_type=att.get("mimeType", "application/octet-stream"),
                    data=att.get("data", ""),
                )
                for att in record.get("attachments") or []
            ],
        )

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the server history record format."""
        return {
            "messageid": self.id,
            "role": self.role.value,
            "text": self.text,
            "attachments": [
                {"mimeType": att.mime_type, "data": att.data}
                for att in self.attachments
            ],
        }
