"""Collaborator interfaces injected into the engine."""

from typing import Protocol

from ..models import GenerationResult, Message, OutgoingFile


class ITransport(Protocol):
    """Remote game-server operations. Raise RemoteCallError on failure."""

    async def generate(
        self,
        conversation_id: str,
        text: str,
        vector_memory_context: list[dict],
        files: list[OutgoingFile],
    ) -> GenerationResult:
        """Send a user turn. Returns the complete, ordered history."""
        ...

    async def edit_message(
        self, conversation_id: str, message_id: str, new_text: str
    ) -> None:
        """Replace the text of a stored message."""
        ...

    async def delete_message(self, conversation_id: str, message_id: str) -> None:
        """Delete a stored message."""
        ...

    async def delete_memories(self, conversation_id: str, ids: list[str]) -> None:
        """Delete memories after the user confirmed them."""
        ...

    async def branch(self, conversation_id: str, from_message_id: str) -> str:
        """Create a new conversation from a prefix. Returns its id."""
        ...

    async def get_history(self, conversation_id: str) -> list[Message]:
        """Load the full history of a conversation."""
        ...


class IMemoryStore(Protocol):
    """Vector-memory context of the open conversation."""

    def context(self) -> list[dict]:
        """Memory entries to send along with the next turn."""
        ...

    def replace(self, entries: list[dict]) -> None:
        """Replace the context with what the server returned."""
        ...

    def discard(self, ids: list[str]) -> None:
        """Drop entries whose id was deleted."""
        ...

    def clear(self) -> None:
        """Forget everything (conversation switch)."""
        ...


class IConfirmer(Protocol):
    """Asks the user to confirm a destructive or navigating action."""

    async def confirm(self, prompt: str, title: str) -> bool:
        """Return True if the user accepted."""
        ...
