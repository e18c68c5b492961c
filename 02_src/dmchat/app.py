"""Application bootstrap and lifecycle management."""

import os
from typing import Protocol

from .config import resolve_db_path
from .event_bus import EventBus
from .llm import ILLMProvider, LLMProvider
from .logging_config import get_logger
from .master import GameMaster, IGameMaster
from .storage import IStorage, Storage
from .tracker import Tracker

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between test runs."""
        ...

    @property
    def storage(self) -> IStorage:
        ...

    @property
    def game_master(self) -> IGameMaster:
        ...


class Application:
    """Reference game server bootstrap."""

    def __init__(
        self,
        db_path: str | None = None,
        llm_provider: ILLMProvider | None = None,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._event_bus: EventBus | None = None
        self._tracker: Tracker | None = None
        self._llm: ILLMProvider | None = llm_provider
        self._game_master: GameMaster | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. EventBus + Tracker
        self._event_bus = EventBus()
        self._tracker = Tracker(self._event_bus, self._storage)
        await self._tracker.start()

        # 3. LLMProvider (no internal dependencies)
        if self._llm is None:
            self._llm = LLMProvider()
        logger.info("LLM provider initialized")

        # 4. GameMaster (depends on LLM, Storage, Tracker)
        self._game_master = GameMaster(
            llm_provider=self._llm,
            storage=self._storage,
            tracker=self._tracker,
        )
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        self._game_master = None
        if self._tracker:
            await self._tracker.stop()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Reset data between test runs."""
        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def game_master(self) -> GameMaster:
        """Get game master instance."""
        if not self._game_master:
            raise RuntimeError("Application not started")
        return self._game_master
