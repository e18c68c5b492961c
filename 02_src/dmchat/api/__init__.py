"""FastAPI surface of the reference game server."""

from .app import create_fastapi_app, get_app

__all__ = ["create_fastapi_app", "get_app"]
