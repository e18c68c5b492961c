"""Tests for EventBus."""

from datetime import datetime, timezone

import pytest

from dmchat.models import BusMessage, Topic


def bus_message(topic=Topic.DICE_ANIMATION, payload=None, message_id="bus1"):
    return BusMessage(
        id=message_id,
        topic=topic,
        payload=payload or {},
        source="test",
        timestamp=datetime.now(timezone.utc),
    )


class TestEventBusSubscribe:
    """Tests for EventBus subscription."""

    def test_every_topic_has_subscriber_list(self, event_bus):
        """Test that all topics start with no subscribers."""
        for topic in Topic:
            assert event_bus._subscribers[topic] == []

    def test_subscribe_multiple_handlers(self, event_bus):
        """Test subscribing multiple handlers to same topic."""

        async def handler1(msg: BusMessage):
            pass

        async def handler2(msg: BusMessage):
            pass

        event_bus.subscribe(Topic.NAVIGATION, handler1)
        event_bus.subscribe(Topic.NAVIGATION, handler2)

        assert len(event_bus._subscribers[Topic.NAVIGATION]) == 2

    @pytest.mark.asyncio
    async def test_unsubscribe(self, event_bus):
        """Test that an unsubscribed handler is no longer called."""
        calls = []

        async def handler(msg: BusMessage):
            calls.append(msg)

        event_bus.subscribe(Topic.TURN_FAILED, handler)
        event_bus.unsubscribe(Topic.TURN_FAILED, handler)
        event_bus.unsubscribe(Topic.TURN_FAILED, handler)  # no-op

        await event_bus.publish(bus_message(Topic.TURN_FAILED))

        assert calls == []


class TestEventBusPublish:
    """Tests for EventBus publishing."""

    @pytest.mark.asyncio
    async def test_publish_single_subscriber(self, event_bus):
        """Test publishing to a single subscriber."""
        calls = []

        async def handler(msg: BusMessage):
            calls.append(msg)

        event_bus.subscribe(Topic.DICE_ANIMATION, handler)

        await event_bus.publish(bus_message(payload={"result": "1d6 = 4 { 4 }"}))

        assert len(calls) == 1
        assert calls[0].id == "bus1"
        assert calls[0].payload == {"result": "1d6 = 4 { 4 }"}

    @pytest.mark.asyncio
    async def test_publish_different_topics(self, event_bus):
        """Test that subscribers only receive messages from their topic."""
        dice_calls = []
        navigation_calls = []

        async def dice_handler(msg: BusMessage):
            dice_calls.append(msg)

        async def navigation_handler(msg: BusMessage):
            navigation_calls.append(msg)

        event_bus.subscribe(Topic.DICE_ANIMATION, dice_handler)
        event_bus.subscribe(Topic.NAVIGATION, navigation_handler)

        await event_bus.publish(bus_message(Topic.DICE_ANIMATION))

        assert len(dice_calls) == 1
        assert len(navigation_calls) == 0

    @pytest.mark.asyncio
    async def test_publish_generates_id(self, event_bus):
        """Test that publish() fills in a missing id."""
        msg = bus_message(message_id="")

        await event_bus.publish(msg)

        assert msg.id

    @pytest.mark.asyncio
    async def test_publish_error_in_handler(self, event_bus):
        """Test that errors in one handler don't affect others."""
        calls = []

        async def failing_handler(msg: BusMessage):
            calls.append("failing")
            raise RuntimeError("Test error")

        async def normal_handler(msg: BusMessage):
            calls.append("normal")

        event_bus.subscribe(Topic.PENDING_DELETIONS, failing_handler)
        event_bus.subscribe(Topic.PENDING_DELETIONS, normal_handler)

        # Should not raise error
        await event_bus.publish(bus_message(Topic.PENDING_DELETIONS))

        assert "failing" in calls
        assert "normal" in calls


class TestEventBusEmit:
    """Tests for EventBus.emit()."""

    @pytest.mark.asyncio
    async def test_emit_builds_message(self, event_bus):
        calls = []

        async def handler(msg: BusMessage):
            calls.append(msg)

        event_bus.subscribe(Topic.NAVIGATION, handler)

        message = await event_bus.emit(
            Topic.NAVIGATION, {"conversation_id": "c2"}, source="workflows"
        )

        assert calls == [message]
        assert message.id
        assert message.source == "workflows"
        assert message.timestamp.tzinfo is not None
