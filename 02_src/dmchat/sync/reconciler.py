"""Reconciler: the ordered message list and its merge rules."""

from collections.abc import Iterable

from ..logging_config import get_logger
from ..models import Message, ReconcileResult, Role, new_local_id

logger = get_logger(__name__)


class Reconciler:
    """Owns the visible message list.

    Identity is always the message id. Text is never compared: two messages
    may legitimately say the same thing.
    """

    def __init__(self, messages: Iterable[Message] | None = None):
        self._messages: list[Message] = []
        if messages:
            self.reset(messages)

    @property
    def messages(self) -> list[Message]:
        """Copy of the visible list."""
        return self._messages.copy()

    def ids(self) -> list[str]:
        return [msg.id for msg in self._messages]

    def snapshot_ids(self) -> frozenset[str]:
        """Ids known right now, to compare against a later history."""
        return frozenset(msg.id for msg in self._messages)

    def get(self, message_id: str) -> Message | None:
        for msg in self._messages:
            if msg.id == message_id:
                return msg
        return None

    def last_index_of(self, role: Role) -> int:
        """Index of the most recent message with `role`, or -1."""
        for index in range(len(self._messages) - 1, -1, -1):
            if self._messages[index].role == role:
                return index
        return -1

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return any(msg.id == message_id for msg in self._messages)

    def reset(self, history: Iterable[Message]) -> None:
        """Replace the whole list (conversation load). First id wins."""
        seen: set[str] = set()
        messages = []
        for msg in history:
            if msg.id in seen:
                logger.warning("Dropping duplicate message %s from history", msg.id)
                continue
            seen.add(msg.id)
            messages.append(msg)
        self._messages = messages

    def append_optimistic(self, message: Message) -> str:
        """Append a message before the server confirmed it. Returns its id."""
        if not message.id:
            message.id = new_local_id()
        if message.id in self:
            raise ValueError(f"Message id already present: {message.id}")
        self._messages.append(message)
        return message.id

    def revert_optimistic(self, handle: str) -> None:
        """Remove an optimistic message after its request failed."""
        before = len(self._messages)
        self._messages = [msg for msg in self._messages if msg.id != handle]
        if len(self._messages) == before:
            logger.debug("Nothing to revert for %s", handle)

    def reconcile_with_history(
        self,
        server_history: list[Message],
        known_ids: Iterable[str],
        placeholders: Iterable[str] = (),
    ) -> ReconcileResult:
        """Merge a complete server history into the list.

        `known_ids` must be the ids known *before* the request was issued,
        not the current list: a message that was already displayed must never
        be reported as new.
        """
        known = set(known_ids)
        dropped = set(placeholders)

        newly_added = []
        seen: set[str] = set()
        for msg in server_history:
            if msg.id in known or msg.id in seen:
                continue
            seen.add(msg.id)
            newly_added.append(msg)

        merged = [msg for msg in self._messages if msg.id not in dropped]
        present = {msg.id for msg in merged}
        merged.extend(msg for msg in newly_added if msg.id not in present)

        self._messages = merged
        logger.debug(
            "Reconciled history",
            extra={
                "context": {
                    "server_count": len(server_history),
                    "newly_added": len(newly_added),
                    "dropped": len(dropped),
                }
            },
        )
        return ReconcileResult(merged=merged.copy(), newly_added=newly_added)

    def mutate_text(self, message_id: str, new_text: str) -> str:
        """Replace the text of a message in place. Returns the previous text."""
        msg = self.get(message_id)
        if msg is None:
            raise KeyError(message_id)
        previous = msg.text
        msg.text = new_text
        return previous

    def remove_many(self, ids: Iterable[str]) -> list[Message]:
        """Remove every message whose id is in `ids`. Returns the removed ones."""
        doomed = set(ids)
        removed = [msg for msg in self._messages if msg.id in doomed]
        self._messages = [msg for msg in self._messages if msg.id not in doomed]
        return removed

    def pending_dice(self) -> list[Message]:
        return [msg for msg in self._messages if msg.pending]

    def take_pending_dice(self) -> list[tuple[int, Message]]:
        """Remove pending dice messages, remembering where they were."""
        taken = [
            (index, msg) for index, msg in enumerate(self._messages) if msg.pending
        ]
        if taken:
            self._messages = [msg for msg in self._messages if not msg.pending]
        return taken

    def reinstate(self, entries: list[tuple[int, Message]]) -> None:
        """Put messages back at the positions take_pending_dice() reported."""
        for index, msg in sorted(entries, key=lambda entry: entry[0]):
            if msg.id in self:
                continue
            self._messages.insert(min(index, len(self._messages)), msg)

    def local_dice_ids(self) -> list[str]:
        """Ids of local dice records no longer waiting to be sent."""
        return [
            msg.id
            for msg in self._messages
            if msg.role == Role.DICE and msg.is_local and not msg.pending
        ]
