"""Project-level configuration and path helpers."""

import os
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "dmchat.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DEFAULT_API_URL = "http://localhost:8000/api"
DEFAULT_TIMEOUT = 120.0  # generation can take a while

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def resolve_api_url(env_value: str | None = None) -> str:
    """Base URL of the game server API, without trailing slash."""
    url = env_value or os.getenv("DMCHAT_API_URL") or DEFAULT_API_URL
    return url.rstrip("/")


def resolve_timeout(env_value: str | float | None = None) -> float:
    """Request timeout in seconds (DMCHAT_TIMEOUT)."""
    raw = env_value if env_value is not None else os.getenv("DMCHAT_TIMEOUT")
    if raw in (None, ""):
        return DEFAULT_TIMEOUT
    try:
        timeout = float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid DMCHAT_TIMEOUT value: {raw!r}") from None
    if timeout <= 0:
        raise ValueError(f"DMCHAT_TIMEOUT must be positive, got {timeout}")
    return timeout
