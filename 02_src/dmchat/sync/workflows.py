"""WorkflowCoordinator: user workflows over the message list."""

from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import (
    BranchReport,
    BusMessage,
    DeletionReport,
    EngineError,
    PendingDeletion,
    RegenerateReport,
    Role,
    Topic,
    classify_error,
    is_local_id,
    validation_error,
)
from ..tracker import ITracker
from ..transport import IConfirmer, IMemoryStore, ITransport
from .reconciler import Reconciler
from .turn_controller import TurnController

logger = get_logger(__name__)


class WorkflowCoordinator:
    """Delete, edit, regenerate, branch and memory confirmation.

    Remote failures come back as EngineErrors inside the reports. The list is
    left in its last locally consistent state: there is no global rollback.
    """

    def __init__(
        self,
        conversation_id: str,
        controller: TurnController,
        reconciler: Reconciler,
        transport: ITransport,
        memory_store: IMemoryStore,
        event_bus: IEventBus,
        tracker: ITracker,
        confirmer: IConfirmer,
    ):
        self._conversation_id = conversation_id
        self._controller = controller
        self._reconciler = reconciler
        self._transport = transport
        self._memory = memory_store
        self._event_bus = event_bus
        self._tracker = tracker
        self._confirmer = confirmer

        self._pending_deletions: list[PendingDeletion] = []

    @property
    def pending_deletions(self) -> list[PendingDeletion]:
        """Memory deletions proposed by the last turn, awaiting confirmation."""
        return list(self._pending_deletions)

    async def start(self) -> None:
        self._event_bus.subscribe(Topic.PENDING_DELETIONS, self._on_pending_deletions)

    async def stop(self) -> None:
        self._event_bus.unsubscribe(
            Topic.PENDING_DELETIONS, self._on_pending_deletions
        )

    async def _on_pending_deletions(self, message: BusMessage) -> None:
        if message.payload.get("conversation_id") != self._conversation_id:
            return
        self._pending_deletions = [
            PendingDeletion.from_wire(item)
            for item in message.payload.get("deletions", [])
        ]
        logger.info("%s memory deletions proposed", len(self._pending_deletions))

    async def _trace(self, event_type: str, data: dict) -> None:
        try:
            await self._tracker.track(
                event_type,
                "workflows",
                {"conversation_id": self._conversation_id, **data},
            )
        except Exception:
            logger.warning("Could not record %s", event_type, exc_info=True)

    # Deletion

    async def mass_delete(self, ids: list[str]) -> DeletionReport:
        """Delete the selected messages after confirmation.

        Each deletion is independent; the ones that failed stay in the list.
        """
        with self._controller.reserved():
            selected = list(dict.fromkeys(ids))
            if not selected:
                return DeletionReport(error=validation_error("No messages selected."))

            accepted = await self._confirmer.confirm(
                f"Delete {len(selected)} message(s)? This cannot be undone.",
                "Delete messages",
            )
            if not accepted:
                return DeletionReport(cancelled=True)

            report = await self._delete_each(selected)
            self._reconciler.remove_many(report.deleted_ids)

        logger.info(
            "Mass delete finished",
            extra={
                "context": {
                    "deleted": len(report.deleted_ids),
                    "failed": len(report.failures),
                }
            },
        )
        await self._trace(
            "messages_deleted",
            {"deleted": report.deleted_ids, "failed": list(report.failures)},
        )
        return report

    async def delete_message(self, message_id: str) -> DeletionReport:
        return await self.mass_delete([message_id])

    async def _delete_each(self, ids: list[str]) -> DeletionReport:
        report = DeletionReport()
        for message_id in ids:
            if is_local_id(message_id):
                # Never reached the server
                report.deleted_ids.append(message_id)
                continue
            try:
                await self._transport.delete_message(self._conversation_id, message_id)
            except Exception as e:
                error = classify_error(e)
                logger.warning("Failed to delete %s: %s", message_id, error.message)
                report.failures[message_id] = error
                continue
            report.deleted_ids.append(message_id)
        return report

    # Edit

    async def edit_message(self, message_id: str, new_text: str) -> EngineError | None:
        """Edit a message in place. Returns None on success."""
        with self._controller.reserved():
            text = new_text.strip()
            if not text:
                return validation_error("A message cannot be empty.")
            if message_id not in self._reconciler:
                return validation_error(f"Unknown message: {message_id}")
            if is_local_id(message_id):
                return validation_error("This message has not been saved yet.")

            previous = self._reconciler.mutate_text(message_id, text)
            try:
                await self._transport.edit_message(
                    self._conversation_id, message_id, text
                )
            except Exception as e:
                error = classify_error(e)
                logger.warning(
                    "Edit of %s failed, restoring: %s", message_id, error.message
                )
                self._reconciler.mutate_text(message_id, previous)
                return error

        await self._trace("message_edited", {"message_id": message_id})
        return None

    # Regenerate

    async def regenerate(self) -> RegenerateReport:
        """Drop the last user turn and everything after it, then resend it."""
        with self._controller.reserved():
            index = self._reconciler.last_index_of(Role.USER)
            if index < 0:
                return RegenerateReport(
                    deletion=DeletionReport(
                        error=validation_error("There is no turn to regenerate.")
                    )
                )

            suffix = self._reconciler.messages[index:]
            user_text = suffix[0].text
            logger.info(
                "Regenerating from %s (%s messages)", suffix[0].id, len(suffix)
            )

            deletion = await self._delete_each([msg.id for msg in suffix])
            self._reconciler.remove_many(msg.id for msg in suffix)

        # No await between releasing the controller and resubmitting
        turn = await self._controller.submit_turn(user_text)

        await self._trace(
            "turn_regenerated",
            {
                "removed": [msg.id for msg in suffix],
                "failed": list(deletion.failures),
            },
        )
        return RegenerateReport(deletion=deletion, turn=turn)

    # Branch

    async def branch(self, message_id: str) -> BranchReport:
        """Start a new conversation from the history up to `message_id`."""
        if message_id not in self._reconciler or is_local_id(message_id):
            return BranchReport(
                error=validation_error("Only saved messages can be branched.")
            )

        accepted = await self._confirmer.confirm(
            "Create a new conversation from this point?", "Branch conversation"
        )
        if not accepted:
            return BranchReport(cancelled=True)

        try:
            new_id = await self._transport.branch(self._conversation_id, message_id)
        except Exception as e:
            error = classify_error(e)
            logger.warning("Branch at %s failed: %s", message_id, error.message)
            return BranchReport(error=error)

        logger.info("Branched %s at %s into %s", self._conversation_id, message_id, new_id)
        await self._event_bus.emit(
            Topic.NAVIGATION,
            payload={
                "from_conversation_id": self._conversation_id,
                "conversation_id": new_id,
                "message_id": message_id,
            },
            source="workflows",
        )
        return BranchReport(new_conversation_id=new_id)

    # Memory deletions

    async def confirm_memory_deletions(self, selected_ids: list[str]) -> DeletionReport:
        """Apply the memory deletions the user accepted.

        The proposal is cleared whatever happens.
        """
        with self._controller.reserved():
            selected = list(dict.fromkeys(selected_ids))
            self._pending_deletions = []
            if not selected:
                return DeletionReport()

            try:
                await self._transport.delete_memories(self._conversation_id, selected)
            except Exception as e:
                error = classify_error(e)
                logger.warning("Memory deletion failed: %s", error.message)
                return DeletionReport(error=error)

            self._memory.discard(selected)
            self._reconciler.remove_many(selected)

        await self._trace("memories_deleted", {"ids": selected})
        return DeletionReport(deleted_ids=selected)
