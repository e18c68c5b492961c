"""Client-side chat session."""

from .session import ChatSession

__all__ = ["ChatSession"]
