"""Pydantic models for stored conversations."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

MessageRole = Literal["user", "assistant", "system"]


class ConversationTurn(BaseModel):
    """A single message in a stored conversation."""
    id: Optional[str] = Field(None, description="Message ID (None until persisted)")
    role: MessageRole = Field(..., description="Message role")
    content: str = Field(..., description="Message content")
    position: int = Field(0, ge=0, description="Ordered position within the conversation")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Tool usage and termination details")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Message timestamp"
    )


class Conversation(BaseModel):
    """Conversation header owned by one user."""
    id: str
    user_id: str
    title: str
    created_at: str
    updated_at: str


class ConversationCreate(BaseModel):
    """Request payload for creating a conversation."""
    title: str = Field(..., min_length=1, max_length=200)


class ConversationUpdate(BaseModel):
    """Request payload for renaming a conversation."""
    title: str = Field(..., min_length=1, max_length=200)


class ConversationMessagesResponse(BaseModel):
    """Response payload for a conversation's message history."""
    conversation_id: str
    messages: List[ConversationTurn] = Field(default_factory=list)
