"""TurnController: one outgoing player turn at a time."""

import dataclasses
import random
from collections.abc import Iterator
from contextlib import contextmanager

from ..dice import codec
from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import (
    DiceRoll,
    EngineError,
    ErrorKind,
    GenerationResult,
    Message,
    OutgoingFile,
    PendingDeletion,
    Role,
    Topic,
    TurnInProgressError,
    TurnOutcome,
    TurnState,
    TurnStatus,
    classify_error,
    new_local_id,
    validation_error,
)
from ..tracker import ITracker
from ..transport import IMemoryStore, ITransport
from .reconciler import Reconciler

logger = get_logger(__name__)

FILE_MARKER = "[Arquivo: {name}]"
DICE_CONTEXT = "[Dice results: {results}]\n\n{text}"


def display_text(text: str, files: list[OutgoingFile]) -> str:
    """What the player sees for their own turn: text plus file markers."""
    if not files:
        return text
    markers = "\n".join(FILE_MARKER.format(name=f.name) for f in files)
    return f"{text}\n\n{markers}" if text else markers


def compose_outgoing(text: str, dice_results: list[str]) -> str:
    """Prefix the turn with the rolls made since the last send."""
    if not dice_results:
        return text
    return DICE_CONTEXT.format(results="\n".join(dice_results), text=text)


def find_replayable_roll(newly_added: list[Message]) -> DiceRoll | None:
    """Most recent assistant dice result among the new messages, if any."""
    for msg in reversed(newly_added):
        if msg.role != Role.ASSISTANT:
            continue
        dice_roll = codec.decode(msg.text)
        if dice_roll is not None:
            return dice_roll
    return None


class TurnController:
    """Runs a turn: optimistic append, generate, reconcile, side effects."""

    def __init__(
        self,
        conversation_id: str,
        reconciler: Reconciler,
        transport: ITransport,
        memory_store: IMemoryStore,
        event_bus: IEventBus,
        tracker: ITracker,
        rng: random.Random | None = None,
    ):
        self._conversation_id = conversation_id
        self._reconciler = reconciler
        self._transport = transport
        self._memory = memory_store
        self._event_bus = event_bus
        self._tracker = tracker
        self._rng = rng

        self._state = TurnState.IDLE
        self._reserved = False

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._reserved or self._state in (
            TurnState.SENDING,
            TurnState.RECONCILING,
        )

    @property
    def pending_dice_results(self) -> list[str]:
        """Roll strings that will prefix the next outgoing turn."""
        return [msg.text for msg in self._reconciler.pending_dice()]

    def ensure_idle(self) -> None:
        if self.busy:
            raise TurnInProgressError("A turn is already in progress")

    @contextmanager
    def reserved(self) -> Iterator[None]:
        """Keep turns out while a workflow edits the list across awaits."""
        self.ensure_idle()
        self._reserved = True
        try:
            yield
        finally:
            self._reserved = False

    async def _trace(self, event_type: str, data: dict) -> None:
        try:
            await self._tracker.track(event_type, "turn_controller", data)
        except Exception:
            logger.warning("Could not record %s", event_type, exc_info=True)

    async def submit_turn(
        self,
        raw_input: str,
        attachments: list[OutgoingFile] | None = None,
    ) -> TurnOutcome:
        """Submit what the player typed.

        A dice command is always rolled locally; attachments typed along with
        it are not sent and stay with the caller.
        """
        self.ensure_idle()
        files = list(attachments or [])
        text = raw_input.strip()

        if not text and not files:
            return TurnOutcome(
                status=TurnStatus.FAILED,
                error=validation_error("Type a message or attach a file."),
            )

        command = codec.parse_command(text)
        if command is not None:
            return await self._roll_locally(command)

        return await self._send(text, files)

    async def _roll_locally(self, command) -> TurnOutcome:
        dice_roll = codec.roll_command(command, rng=self._rng)
        result = codec.format_roll(dice_roll)

        self._reconciler.append_optimistic(
            Message(id=new_local_id(), role=Role.DICE, text=result, pending=True)
        )
        logger.info("Pending roll: %s", result)

        await self._event_bus.emit(
            Topic.DICE_ANIMATION,
            payload={"result": result, "notation": dice_roll.notation, "local": True},
            source="turn_controller",
        )
        await self._trace(
            "dice_rolled", {"conversation_id": self._conversation_id, "result": result}
        )
        return TurnOutcome(status=TurnStatus.ROLLED, roll=dice_roll)

    async def _send(self, text: str, files: list[OutgoingFile]) -> TurnOutcome:
        self._state = TurnState.SENDING
        try:
            # The pending set is consumed by this attempt whatever the outcome
            folded = self._reconciler.take_pending_dice()
            outgoing = compose_outgoing(text, [msg.text for _, msg in folded])
            stale_dice = self._reconciler.local_dice_ids()

            handle = self._reconciler.append_optimistic(
                Message(id=new_local_id(), role=Role.USER, text=display_text(text, files))
            )
            known_ids = self._reconciler.snapshot_ids()

            logger.info(
                "Submitting turn",
                extra={
                    "context": {
                        "conversation_id": self._conversation_id,
                        "files": len(files),
                        "dice_results": len(folded),
                    }
                },
            )
            await self._trace(
                "turn_submitted",
                {
                    "conversation_id": self._conversation_id,
                    "text": outgoing[:100],
                    "files": [f.name for f in files],
                },
            )

            try:
                result = await self._transport.generate(
                    self._conversation_id,
                    outgoing,
                    self._memory.context(),
                    files,
                )
            except Exception as e:
                error = classify_error(e)
                self._rollback(handle, folded)
                self._state = TurnState.FAILED
                await self._report_failure(error, e)
                return TurnOutcome(status=TurnStatus.FAILED, error=error)
            except BaseException:
                # Cancelled: nothing was applied
                self._rollback(handle, folded)
                raise

            self._state = TurnState.RECONCILING
            return await self._apply(result, known_ids, [handle, *stale_dice])
        finally:
            if self._state != TurnState.FAILED:
                self._state = TurnState.IDLE

    def _rollback(self, handle: str, folded: list[tuple[int, Message]]) -> None:
        """Restore the visible list. Folded rolls come back as plain records."""
        self._reconciler.revert_optimistic(handle)
        self._reconciler.reinstate(
            [(index, dataclasses.replace(msg, pending=False)) for index, msg in folded]
        )

    async def _report_failure(self, error: EngineError, exc: Exception) -> None:
        if error.kind == ErrorKind.UNCLASSIFIED:
            logger.error("Turn failed: %s", exc, exc_info=True)
        else:
            logger.warning("Turn failed (%s): %s", error.kind.value, error.message)

        await self._event_bus.emit(
            Topic.TURN_FAILED,
            payload={"kind": error.kind.value, "message": error.message},
            source="turn_controller",
        )

    async def _apply(
        self,
        result: GenerationResult,
        known_ids: frozenset[str],
        placeholders: list[str],
    ) -> TurnOutcome:
        reconciled = self._reconciler.reconcile_with_history(
            result.history, known_ids, placeholders
        )
        self._memory.replace(result.new_vector_memory)

        replayed = find_replayable_roll(reconciled.newly_added)
        if replayed is not None:
            await self._event_bus.emit(
                Topic.DICE_ANIMATION,
                payload={
                    "result": codec.format_roll(replayed),
                    "notation": replayed.notation,
                    "local": False,
                },
                source="turn_controller",
            )

        if result.pending_deletions:
            await self._surface_deletions(result.pending_deletions)

        logger.info(
            "Turn completed with %s new messages", len(reconciled.newly_added)
        )
        await self._trace(
            "turn_completed",
            {
                "conversation_id": self._conversation_id,
                "new_messages": len(reconciled.newly_added),
                "pending_deletions": len(result.pending_deletions),
            },
        )
        return TurnOutcome(
            status=TurnStatus.COMPLETED,
            newly_added=reconciled.newly_added,
            roll=replayed,
            pending_deletions=list(result.pending_deletions),
        )

    async def _surface_deletions(self, deletions: list[PendingDeletion]) -> None:
        await self._event_bus.emit(
            Topic.PENDING_DELETIONS,
            payload={
                "conversation_id": self._conversation_id,
                "deletions": [
                    {"messageid": d.id, "text": d.text, "category": d.category}
                    for d in deletions
                ],
            },
            source="turn_controller",
        )
