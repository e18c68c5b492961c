"""API routers."""

from . import chat, control, observability

__all__ = ["chat", "control", "observability"]
