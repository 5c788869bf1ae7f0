"""HTTP API route handlers."""

from . import auth, chat, conversations, settings

__all__ = ["auth", "chat", "conversations", "settings"]
