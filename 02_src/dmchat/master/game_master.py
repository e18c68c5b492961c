"""GameMaster: the server side of a conversation."""

import base64
import re
import uuid
from datetime import datetime, timezone
from typing import Protocol

from ..dice import codec
from ..llm import ILLMProvider, LLMError
from ..logging_config import get_logger
from ..models import (
    Conversation,
    GenerationResult,
    Message,
    OutgoingFile,
    PendingDeletion,
    Role,
)
from ..storage import IStorage
from ..sync import display_text
from ..tracker import ITracker

logger = get_logger(__name__)

DEFAULT_TITLE = "New adventure"
BRANCH_SUFFIX = " (Branch)"

MEMORY_WINDOW = 12
MAX_TOKENS = 1024

SYSTEM_PROMPT = """You are the game master of a tabletop role-playing game.
Narrate the world and its characters in the second person and end each reply
in a way that invites the player to act. Never decide the player's actions.

When the outcome of an action is uncertain, ask for a roll by writing a dice
command on its own line, for example `/r 1d20+2` or `/r 4dF`. The roll is made
for you and its result is shown to the player before your narration.
Lines starting with "[Dice results: ...]" in the player's turn are rolls the
player already made.

If a remembered fact below is wrong or obsolete, propose to forget it by
writing <!--FORGET id1, id2 FORGET--> with the ids of those memories."""

_FORGET_RE = re.compile(r"(?:<!--|\[)FORGET\s*(.*?)\s*FORGET(?:-->|\])", re.DOTALL)

NOT_IN_CONTEXT = "(not found in the recent context)"


class GameMasterError(Exception):
    """A request the game master cannot serve."""


class ConversationNotFoundError(GameMasterError):
    pass


class MessageNotFoundError(GameMasterError):
    pass


class EmptyRequestError(GameMasterError):
    pass


def extract_forget_tag(text: str) -> tuple[str, list[str]]:
    """Strip all FORGET tags from a reply. Returns the text and the ids."""
    ids: list[str] = []
    while True:
        m = _FORGET_RE.search(text)
        if not m:
            break
        ids.extend(part.strip() for part in m.group(1).split(",") if part.strip())
        text = text[: m.start()].rstrip() + text[m.end():]
        text = text.strip()
    return text, list(dict.fromkeys(ids))


def build_llm_context(history: list[Message]) -> list[dict]:
    """Convert stored messages to LLM turns.

    Consecutive messages of the same role are merged, and the context always
    starts with a user turn.
    """
    context: list[dict] = []
    for msg in history:
        if msg.role == Role.DICE:
            continue
        role = "assistant" if msg.role == Role.ASSISTANT else "user"
        if not context and role == "assistant":
            continue
        if context and context[-1]["role"] == role:
            context[-1]["content"] += "\n\n" + msg.text
        else:
            context.append({"role": role, "content": msg.text})
    return context


def build_system_prompt(memory_context: list[dict]) -> str:
    if not memory_context:
        return SYSTEM_PROMPT
    lines = [
        f"- [{entry.get('messageid', '?')}] {entry.get('text', '')}"
        for entry in memory_context
    ]
    return SYSTEM_PROMPT + "\n\nWhat you remember:\n" + "\n".join(lines)


def file_blocks(files: list[OutgoingFile]) -> list[dict]:
    """Content blocks for the files attached to the current turn."""
    blocks = []
    for f in files:
        if f.mime_type.startswith("image/"):
            blocks.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": f.mime_type,
                        "data": base64.b64encode(f.data).decode("ascii"),
                    },
                }
            )
        elif f.mime_type.startswith("text/"):
            content = f.data.decode("utf-8", errors="replace")
            blocks.append({"type": "text", "text": f"{f.name}:\n{content}"})
        else:
            logger.debug("Not forwarding %s (%s) to the model", f.name, f.mime_type)
    return blocks


class IGameMaster(Protocol):
    """Conversations of the reference game server."""

    async def create_conversation(self, title: str | None = None) -> Conversation:
        ...

    async def history(self, conversation_id: str) -> list[Message]:
        ...

    async def generate(
        self,
        conversation_id: str,
        text: str,
        memory_context: list[dict],
        files: list[OutgoingFile],
    ) -> GenerationResult:
        ...

    async def edit(self, conversation_id: str, message_id: str, new_text: str) -> None:
        ...

    async def delete(self, conversation_id: str, message_id: str) -> None:
        ...

    async def delete_memories(self, conversation_id: str, ids: list[str]) -> int:
        ...

    async def branch(self, conversation_id: str, message_id: str) -> Conversation:
        ...


class GameMaster:
    """Stores turns, asks the LLM to narrate and rolls the dice it asks for."""

    def __init__(
        self,
        llm_provider: ILLMProvider,
        storage: IStorage,
        tracker: ITracker,
        rng=None,
    ):
        self._llm = llm_provider
        self._storage = storage
        self._tracker = tracker
        self._rng = rng

    async def create_conversation(self, title: str | None = None) -> Conversation:
        conversation = Conversation(
            id=str(uuid.uuid4()),
            title=title or DEFAULT_TITLE,
            created_at=datetime.now(timezone.utc),
        )
        await self._storage.save_conversation(conversation)
        logger.info("Conversation created: %s", conversation.id)
        return conversation

    async def _require_conversation(self, conversation_id: str) -> Conversation:
        conversation = await self._storage.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(f"Unknown conversation: {conversation_id}")
        return conversation

    async def history(self, conversation_id: str) -> list[Message]:
        await self._require_conversation(conversation_id)
        return await self._storage.get_messages(conversation_id)

    async def generate(
        self,
        conversation_id: str,
        text: str,
        memory_context: list[dict],
        files: list[OutgoingFile],
    ) -> GenerationResult:
        """Take a player turn and return the complete history."""
        await self._require_conversation(conversation_id)
        text = text.strip()
        if not text and not files:
            raise EmptyRequestError("Type a message or attach a file.")

        user_message = Message(
            id=str(uuid.uuid4()), role=Role.USER, text=display_text(text, files)
        )
        await self._storage.save_message(conversation_id, user_message)
        await self._tracker.track(
            "turn_received",
            "game_master",
            {"conversation_id": conversation_id, "text": text[:100]},
        )

        history = await self._storage.get_messages(conversation_id)
        context = build_llm_context(history)
        blocks = file_blocks(files)
        if blocks:
            context[-1]["content"] = [
                {"type": "text", "text": context[-1]["content"]},
                *blocks,
            ]

        try:
            reply = await self._llm.complete(
                messages=context,
                system=build_system_prompt(memory_context),
                max_tokens=MAX_TOKENS,
            )
        except LLMError as e:
            # A failed turn leaves no trace in the history
            await self._storage.delete_message(conversation_id, user_message.id)
            logger.warning(
                "Generation failed for %s: %s",
                conversation_id,
                e.message,
                extra={"context": {"error_type": e.error_type}},
            )
            raise

        reply, forget_ids = extract_forget_tag(reply)

        command = codec.find_command(reply)
        if command is not None:
            dice_roll = codec.roll_command(command, rng=self._rng)
            result = codec.format_roll(dice_roll)
            await self._storage.save_message(
                conversation_id,
                Message(id=str(uuid.uuid4()), role=Role.ASSISTANT, text=result),
            )
            logger.info("Game master rolled %s", result)

        if reply:
            await self._storage.save_message(
                conversation_id,
                Message(id=str(uuid.uuid4()), role=Role.ASSISTANT, text=reply),
            )

        history = await self._storage.get_messages(conversation_id)
        await self._tracker.track(
            "turn_narrated",
            "game_master",
            {
                "conversation_id": conversation_id,
                "rolled": command is not None,
                "forget": forget_ids,
            },
        )
        return GenerationResult(
            history=history,
            new_vector_memory=self._memory_window(history),
            pending_deletions=self._proposed_deletions(
                forget_ids, memory_context, history
            ),
        )

    def _memory_window(self, history: list[Message]) -> list[dict]:
        return [
            {"messageid": msg.id, "text": msg.text, "category": msg.role.value}
            for msg in history[-MEMORY_WINDOW:]
        ]

    def _proposed_deletions(
        self,
        ids: list[str],
        memory_context: list[dict],
        history: list[Message],
    ) -> list[PendingDeletion]:
        known = {msg.id: msg for msg in history}
        remembered = {entry.get("messageid"): entry for entry in memory_context}
        proposals = []
        for message_id in ids:
            if message_id in remembered:
                entry = remembered[message_id]
                proposals.append(
                    PendingDeletion(
                        id=message_id,
                        text=entry.get("text", ""),
                        category=entry.get("category", ""),
                    )
                )
            elif message_id in known:
                msg = known[message_id]
                proposals.append(
                    PendingDeletion(id=message_id, text=msg.text, category=msg.role.value)
                )
            else:
                proposals.append(
                    PendingDeletion(id=message_id, text=NOT_IN_CONTEXT, category="?")
                )
        return proposals

    async def edit(self, conversation_id: str, message_id: str, new_text: str) -> None:
        await self._require_conversation(conversation_id)
        if not new_text.strip():
            raise EmptyRequestError("A message cannot be empty.")
        updated = await self._storage.update_message_text(
            conversation_id, message_id, new_text
        )
        if not updated:
            raise MessageNotFoundError(f"Unknown message: {message_id}")
        await self._tracker.track(
            "message_edited",
            "game_master",
            {"conversation_id": conversation_id, "message_id": message_id},
        )

    async def delete(self, conversation_id: str, message_id: str) -> None:
        await self._require_conversation(conversation_id)
        deleted = await self._storage.delete_message(conversation_id, message_id)
        if not deleted:
            raise MessageNotFoundError(f"Unknown message: {message_id}")
        await self._tracker.track(
            "message_deleted",
            "game_master",
            {"conversation_id": conversation_id, "message_id": message_id},
        )

    async def delete_memories(self, conversation_id: str, ids: list[str]) -> int:
        """Forget memories. Each memory is backed by a stored message."""
        await self._require_conversation(conversation_id)
        if not ids:
            raise EmptyRequestError("No memories selected.")
        deleted = 0
        for message_id in ids:
            if await self._storage.delete_message(conversation_id, message_id):
                deleted += 1
        logger.info("Forgot %s of %s memories in %s", deleted, len(ids), conversation_id)
        await self._tracker.track(
            "memories_deleted",
            "game_master",
            {"conversation_id": conversation_id, "ids": ids, "deleted": deleted},
        )
        return deleted

    async def branch(self, conversation_id: str, message_id: str) -> Conversation:
        """Copy the history up to and including `message_id` into a new conversation."""
        source = await self._require_conversation(conversation_id)
        history = await self._storage.get_messages(conversation_id)

        ids = [msg.id for msg in history]
        if message_id not in ids:
            raise MessageNotFoundError(f"Unknown message: {message_id}")
        prefix = history[: ids.index(message_id) + 1]

        branch = Conversation(
            id=str(uuid.uuid4()),
            title=source.title + BRANCH_SUFFIX,
            created_at=datetime.now(timezone.utc),
            parent_id=source.id,
        )
        await self._storage.save_conversation(branch)
        for msg in prefix:
            await self._storage.save_message(branch.id, msg)

        logger.info(
            "Branched %s at %s into %s (%s messages)",
            conversation_id,
            message_id,
            branch.id,
            len(prefix),
        )
        await self._tracker.track(
            "conversation_branched",
            "game_master",
            {
                "conversation_id": conversation_id,
                "message_id": message_id,
                "branch_id": branch.id,
            },
        )
        return branch
