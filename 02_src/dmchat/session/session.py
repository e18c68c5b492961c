"""ChatSession: wires the engine around one open conversation."""

import random

from ..dice import codec
from ..event_bus import EventBus, IEventBus
from ..logging_config import get_logger
from ..models import (
    EngineError,
    Message,
    OutgoingFile,
    TurnOutcome,
    TurnStatus,
    classify_error,
)
from ..storage import IStorage
from ..sync import Reconciler, TurnController, WorkflowCoordinator
from ..tracker import Tracker
from ..transport import IConfirmer, IMemoryStore, ITransport, SessionMemoryStore

logger = get_logger(__name__)


class ChatSession:
    """One open conversation: list, turns, workflows, draft and dice history."""

    def __init__(
        self,
        conversation_id: str,
        transport: ITransport,
        storage: IStorage,
        confirmer: IConfirmer,
        event_bus: IEventBus | None = None,
        memory_store: IMemoryStore | None = None,
        rng: random.Random | None = None,
    ):
        self.conversation_id = conversation_id
        self._transport = transport
        self._storage = storage

        self.event_bus = event_bus or EventBus()
        self.memory = memory_store or SessionMemoryStore()
        self.tracker = Tracker(self.event_bus, storage)
        self.reconciler = Reconciler()
        self.controller = TurnController(
            conversation_id,
            self.reconciler,
            transport,
            self.memory,
            self.event_bus,
            self.tracker,
            rng=rng,
        )
        self.workflows = WorkflowCoordinator(
            conversation_id,
            self.controller,
            self.reconciler,
            transport,
            self.memory,
            self.event_bus,
            self.tracker,
            confirmer,
        )

    async def start(self) -> None:
        await self.tracker.start()
        await self.workflows.start()

    async def stop(self) -> None:
        await self.workflows.stop()
        await self.tracker.stop()

    @property
    def messages(self) -> list[Message]:
        return self.reconciler.messages

    async def load(self) -> EngineError | None:
        """Fetch the full history and replace the local state with it."""
        self.controller.ensure_idle()
        try:
            history = await self._transport.get_history(self.conversation_id)
        except Exception as e:
            error = classify_error(e)
            logger.warning(
                "Could not load %s: %s", self.conversation_id, error.message
            )
            return error

        self.reconciler.reset(history)
        self.memory.clear()
        logger.info(
            "Loaded conversation %s (%s messages)", self.conversation_id, len(history)
        )
        return None

    async def send(
        self, text: str, files: list[OutgoingFile] | None = None
    ) -> TurnOutcome:
        """Submit the input box. Remembers dice commands and clears the draft."""
        outcome = await self.controller.submit_turn(text, files)

        if outcome.status == TurnStatus.ROLLED:
            await self._storage.record_dice_command(text.strip())
        if outcome.ok:
            await self._storage.save_draft(self.conversation_id, "")
        return outcome

    async def save_draft(self, text: str) -> None:
        await self._storage.save_draft(self.conversation_id, text)

    async def load_draft(self) -> str:
        return await self._storage.get_draft(self.conversation_id)

    async def dice_history(self) -> list[str]:
        """Recent dice commands, most recent first."""
        return await self._storage.get_dice_history()

    def dice_preview(self, text: str) -> str | None:
        """Canonical notation of a dice command being typed, if it is one."""
        command = codec.parse_command(text)
        return command.notation if command else None
