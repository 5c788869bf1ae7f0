"""Pydantic models for data validation and serialization."""

from .agent import AgentStreamChunk, ChatMessage, ChatRequest, StreamEventType, TerminationReason
from .auth import JWTPayload
from .conversation import Conversation, ConversationTurn
from .library import Collection, MediaFilters, MediaItem, MediaStatus, MediaType, Origin
from .settings import AIModel, ApiKeysUpdate, MaskedApiKeys

__all__ = [
    "JWTPayload",
    "MediaItem",
    "MediaFilters",
    "MediaType",
    "MediaStatus",
    "Origin",
    "Collection",
    "Conversation",
    "ConversationTurn",
    "ChatMessage",
    "ChatRequest",
    "AgentStreamChunk",
    "StreamEventType",
    "TerminationReason",
    "AIModel",
    "ApiKeysUpdate",
    "MaskedApiKeys",
]
