"""Tests for Storage."""

from datetime import datetime, timedelta, timezone

import pytest

from dmchat.models import Conversation, MediaAttachment, Message, Role, TraceEvent


def conversation(conversation_id="c1", title="The Lost Mine", parent_id=None):
    return Conversation(
        id=conversation_id,
        title=title,
        created_at=datetime.now(timezone.utc),
        parent_id=parent_id,
    )


class TestStorageInit:
    """Tests for Storage initialization."""

    async def test_init_creates_tables(self, storage):
        """Test that init creates all tables."""
        async with storage._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ) as cursor:
            tables = [row[0] for row in await cursor.fetchall()]
            assert "conversations" in tables
            assert "messages" in tables
            assert "drafts" in tables
            assert "dice_history" in tables
            assert "trace_events" in tables

    async def test_uninitialized_storage_raises(self):
        from dmchat.storage import Storage

        st = Storage(":memory:")
        with pytest.raises(RuntimeError):
            await st.get_draft("c1")


class TestStorageConversations:
    """Tests for Conversation storage."""

    async def test_save_and_get(self, storage):
        await storage.save_conversation(conversation(parent_id="c0"))

        loaded = await storage.get_conversation("c1")
        assert loaded.title == "The Lost Mine"
        assert loaded.parent_id == "c0"
        assert loaded.created_at.tzinfo is not None

    async def test_get_nonexistent(self, storage):
        assert await storage.get_conversation("missing") is None

    async def test_save_updates_existing(self, storage):
        await storage.save_conversation(conversation())
        await storage.save_conversation(conversation(title="Renamed"))

        loaded = await storage.get_conversation("c1")
        assert loaded.title == "Renamed"


class TestStorageMessages:
    """Tests for Message storage."""

    async def test_messages_kept_in_insertion_order(self, storage):
        for message_id in ["m3", "m1", "m2"]:
            await storage.save_message(
                "c1", Message(id=message_id, role=Role.USER, text=message_id)
            )

        messages = await storage.get_messages("c1")
        assert [m.id for m in messages] == ["m3", "m1", "m2"]

    async def test_messages_scoped_by_conversation(self, storage):
        await storage.save_message("c1", Message(id="m1", role=Role.USER, text="a"))
        await storage.save_message("c2", Message(id="m1", role=Role.USER, text="b"))

        assert [m.text for m in await storage.get_messages("c1")] == ["a"]
        assert [m.text for m in await storage.get_messages("c2")] == ["b"]

    async def test_attachments_round_trip(self, storage):
        message = Message(
            id="m1",
            role=Role.ASSISTANT,
            text="A portrait of the innkeeper",
            attachments=[MediaAttachment(mime_type="image/png", data="aGVsbG8=")],
        )
        await storage.save_message("c1", message)

        [loaded] = await storage.get_messages("c1")
        assert loaded == message

    async def test_update_message_text(self, storage):
        await storage.save_message("c1", Message(id="m1", role=Role.USER, text="old"))

        assert await storage.update_message_text("c1", "m1", "new")
        assert not await storage.update_message_text("c1", "missing", "new")

        [loaded] = await storage.get_messages("c1")
        assert loaded.text == "new"

    async def test_delete_message(self, storage):
        await storage.save_message("c1", Message(id="m1", role=Role.USER, text="a"))

        assert await storage.delete_message("c1", "m1")
        assert not await storage.delete_message("c1", "m1")
        assert await storage.get_messages("c1") == []


class TestStorageDrafts:
    """Tests for draft storage (one per conversation)."""

    async def test_save_and_get(self, storage):
        await storage.save_draft("c1", "I sneak past the")
        assert await storage.get_draft("c1") == "I sneak past the"
        assert await storage.get_draft("c2") == ""

    async def test_overwrite(self, storage):
        await storage.save_draft("c1", "first")
        await storage.save_draft("c1", "second")
        assert await storage.get_draft("c1") == "second"

    async def test_empty_text_removes_draft(self, storage):
        await storage.save_draft("c1", "something")
        await storage.save_draft("c1", "")

        async with storage._conn.execute("SELECT COUNT(*) FROM drafts") as cursor:
            count = await cursor.fetchone()
            assert count[0] == 0


class TestStorageDiceHistory:
    """Tests for the dice command history."""

    async def test_most_recent_first(self, storage):
        await storage.record_dice_command("/r 1d20")
        await storage.record_dice_command("/r 2d6")
        assert await storage.get_dice_history() == ["/r 2d6", "/r 1d20"]

    async def test_reuse_moves_to_front(self, storage):
        for command in ["/r 1d20", "/r 2d6", "/r 1d20"]:
            await storage.record_dice_command(command)
        assert await storage.get_dice_history() == ["/r 1d20", "/r 2d6"]

    async def test_bounded_to_five(self, storage):
        for sides in [4, 6, 8, 10, 12, 20, 100]:
            await storage.record_dice_command(f"/r 1d{sides}")

        history = await storage.get_dice_history()
        assert history == ["/r 1d100", "/r 1d20", "/r 1d12", "/r 1d10", "/r 1d8"]

        async with storage._conn.execute("SELECT COUNT(*) FROM dice_history") as cursor:
            count = await cursor.fetchone()
            assert count[0] == 5


class TestStorageTraceEvents:
    """Tests for TraceEvent storage."""

    async def test_get_trace_events_with_limit(self, storage):
        """Test retrieving trace events with limit."""
        ts = datetime.now(timezone.utc)
        for i in range(10):
            await storage.save_trace_event(
                TraceEvent(
                    id=f"trace{i}", event_type="test", actor="test", data={}, timestamp=ts
                )
            )

        events = await storage.get_trace_events(limit=5)
        assert len(events) == 5

    async def test_filters(self, storage):
        """Test filtering trace events by actor, type and time."""
        now = datetime.now(timezone.utc)
        await storage.save_trace_event(
            TraceEvent(
                id="t1",
                event_type="turn_submitted",
                actor="turn_controller",
                data={"conversation_id": "c1"},
                timestamp=now - timedelta(minutes=5),
            )
        )
        await storage.save_trace_event(
            TraceEvent(
                id="t2",
                event_type="turn_narrated",
                actor="game_master",
                data={},
                timestamp=now,
            )
        )

        by_actor = await storage.get_trace_events(actor="game_master")
        assert [e.id for e in by_actor] == ["t2"]

        by_type = await storage.get_trace_events(event_types=["turn_submitted"])
        assert [e.id for e in by_type] == ["t1"]
        assert by_type[0].data == {"conversation_id": "c1"}

        recent = await storage.get_trace_events(after=now - timedelta(minutes=1))
        assert [e.id for e in recent] == ["t2"]


class TestStorageClear:
    """Tests for clearing storage."""

    async def test_clear_all_data(self, storage):
        """Test clearing all data."""
        await storage.save_conversation(conversation())
        await storage.save_message("c1", Message(id="m1", role=Role.USER, text="Hi"))
        await storage.save_draft("c1", "draft")
        await storage.record_dice_command("/r 1d6")

        await storage.clear()

        assert await storage.get_conversation("c1") is None
        assert await storage.get_messages("c1") == []
        assert await storage.get_draft("c1") == ""
        assert await storage.get_dice_history() == []
