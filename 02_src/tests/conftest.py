"""Pytest configuration and fixtures."""

import random
import sys
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dmchat.models import GenerationResult, Message, Role  # noqa: E402


class FakeTransport:
    """ITransport double. Records calls; failures are configured per test."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.history: list[Message] = []
        self.generate_result: GenerationResult | None = None
        self.generate_error: Exception | None = None
        self.delete_errors: dict[str, Exception] = {}
        self.edit_error: Exception | None = None
        self.branch_result = "branch-1"
        self.branch_error: Exception | None = None
        self.memories_error: Exception | None = None
        self.history_error: Exception | None = None

    async def generate(self, conversation_id, text, vector_memory_context, files):
        self.calls.append(("generate", conversation_id, text, vector_memory_context, files))
        if self.generate_error:
            raise self.generate_error
        return self.generate_result or GenerationResult(history=list(self.history))

    async def edit_message(self, conversation_id, message_id, new_text):
        self.calls.append(("edit_message", conversation_id, message_id, new_text))
        if self.edit_error:
            raise self.edit_error

    async def delete_message(self, conversation_id, message_id):
        self.calls.append(("delete_message", conversation_id, message_id))
        if message_id in self.delete_errors:
            raise self.delete_errors[message_id]

    async def delete_memories(self, conversation_id, ids):
        self.calls.append(("delete_memories", conversation_id, list(ids)))
        if self.memories_error:
            raise self.memories_error

    async def branch(self, conversation_id, from_message_id):
        self.calls.append(("branch", conversation_id, from_message_id))
        if self.branch_error:
            raise self.branch_error
        return self.branch_result

    async def get_history(self, conversation_id):
        self.calls.append(("get_history", conversation_id))
        if self.history_error:
            raise self.history_error
        return list(self.history)

    def calls_to(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]


class SequenceRng:
    """Returns preset faces in order, for both randint() and choice()."""

    def __init__(self, values):
        self._values = list(values)

    def randint(self, low, high):
        value = self._values.pop(0)
        assert low <= value <= high
        return value

    def choice(self, options):
        value = self._values.pop(0)
        assert value in options
        return value


class FakeConfirmer:
    """IConfirmer double answering a fixed value."""

    def __init__(self, answer: bool = True):
        self.answer = answer
        self.prompts: list[tuple[str, str]] = []

    async def confirm(self, prompt: str, title: str) -> bool:
        self.prompts.append((prompt, title))
        return self.answer


def msg(message_id: str, role: Role = Role.USER, text: str | None = None) -> Message:
    """Shorthand for building history records."""
    return Message(id=message_id, role=role, text=text if text is not None else message_id)


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from dmchat.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def event_bus():
    """Create an EventBus."""
    from dmchat.event_bus import EventBus

    return EventBus()


@pytest.fixture
def tracker(storage, event_bus):
    """Create Tracker with storage and event bus."""
    from dmchat.tracker import Tracker

    return Tracker(event_bus=event_bus, storage=storage)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def confirmer():
    return FakeConfirmer()


@pytest.fixture
def memory_store():
    from dmchat.transport import SessionMemoryStore

    return SessionMemoryStore()


@pytest.fixture
def rng():
    """Seeded random source for deterministic rolls."""
    return random.Random(42)


@pytest.fixture
def reconciler():
    from dmchat.sync import Reconciler

    return Reconciler()


@pytest.fixture
def controller(reconciler, transport, memory_store, event_bus, tracker, rng):
    """TurnController on conversation "chat-1"."""
    from dmchat.sync import TurnController

    return TurnController(
        "chat-1", reconciler, transport, memory_store, event_bus, tracker, rng=rng
    )


@pytest_asyncio.fixture
async def workflows(
    controller, reconciler, transport, memory_store, event_bus, tracker, confirmer
):
    """Started WorkflowCoordinator on conversation "chat-1"."""
    from dmchat.sync import WorkflowCoordinator

    wf = WorkflowCoordinator(
        "chat-1",
        controller,
        reconciler,
        transport,
        memory_store,
        event_bus,
        tracker,
        confirmer,
    )
    await wf.start()
    yield wf
    await wf.stop()


@pytest.fixture
def recorded(event_bus):
    """Collects every BusMessage published on the event bus."""
    from dmchat.models import Topic

    messages = []

    async def handler(message):
        messages.append(message)

    for topic in Topic:
        event_bus.subscribe(topic, handler)
    return messages


@pytest.fixture
def mock_llm():
    """Create mock LLM provider."""
    llm = Mock()
    llm.complete = AsyncMock(return_value="The tavern falls silent.")
    return llm


@pytest_asyncio.fixture
async def game_master(mock_llm, storage, tracker):
    from dmchat.master import GameMaster

    return GameMaster(
        llm_provider=mock_llm,
        storage=storage,
        tracker=tracker,
        rng=random.Random(7),
    )
