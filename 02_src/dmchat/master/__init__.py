"""Reference game master (server side)."""

from .game_master import (
    ConversationNotFoundError,
    EmptyRequestError,
    GameMaster,
    GameMasterError,
    IGameMaster,
    MessageNotFoundError,
)

__all__ = [
    "GameMaster",
    "IGameMaster",
    "GameMasterError",
    "ConversationNotFoundError",
    "MessageNotFoundError",
    "EmptyRequestError",
]
