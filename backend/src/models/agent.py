"""Pydantic models for the library assistant chat stream."""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class StreamEventType(str, Enum):
    """SSE stream event types for assistant responses."""
    TEXT_DELTA = "text_delta"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    STATUS = "status"
    ERROR = "error"
    DONE = "done"


class ToolCallStatus(str, Enum):
    """Lifecycle of a single tool invocation."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class TerminationReason(str, Enum):
    """Why the orchestration loop stopped."""
    ANSWERED = "answered"
    BUDGET_EXHAUSTED = "budget_exhausted"
    CANCELLED = "cancelled"


class ChatMessage(BaseModel):
    """A turn sent by the client."""
    role: Literal["user", "assistant", "system"] = Field(..., description="Message role")
    content: str = Field(..., max_length=20000, description="Message text")


class ChatRequest(BaseModel):
    """Request payload for a chat turn.

    ``messages`` holds the prior turns followed by the new user turn. When
    ``conversation_id`` names a stored conversation, its stored history takes
    precedence over the prior turns in the payload.
    """
    messages: List[ChatMessage] = Field(..., min_length=1, description="Prior turns plus the new user turn")
    conversation_id: Optional[str] = Field(None, description="Conversation to continue (None = create new)")


class ToolInvocation(BaseModel):
    """Runtime record of one model-requested tool call."""
    id: str = Field(..., description="Tool call ID assigned by the model")
    name: str = Field(..., description="Requested tool name")
    arguments: Dict[str, Any] = Field(default_factory=dict, description="Parsed arguments")
    status: ToolCallStatus = ToolCallStatus.PENDING
    result: Optional[str] = Field(None, description="JSON result payload or error document")
    error: Optional[str] = Field(None, description="Error message for failed calls")


class AgentStreamChunk(BaseModel):
    """Server-sent event chunk for streaming responses."""
    type: StreamEventType = Field(..., description="Chunk type")
    content: Optional[str] = Field(None, description="Text for text_delta and status chunks")
    tool_call: Optional[Dict[str, Any]] = Field(None, description="Tool call info (tool_call chunks)")
    tool_call_id: Optional[str] = Field(None, description="Tool call ID for associating results with calls")
    tool_result: Optional[str] = Field(None, description="Tool result (tool_result chunks)")
    status: Optional[ToolCallStatus] = Field(None, description="Tool status (tool_call/tool_result chunks)")
    conversation_id: Optional[str] = Field(None, description="Conversation the turn was saved to (done chunk)")
    model_used: Optional[str] = Field(None, description="Model used (done chunk only)")
    steps_used: Optional[int] = Field(None, description="Tool-execution rounds consumed (done chunk only)")
    termination_reason: Optional[TerminationReason] = Field(None, description="Why the turn ended (done chunk)")
    error: Optional[str] = Field(None, description="Error message (error chunk only)")
    metadata: Optional[Dict[str, Any]] = Field(None, description="Additional metadata")

    def to_sse_data(self) -> str:
        """Serialize for an SSE ``data:`` field."""
        return self.model_dump_json(exclude_none=True)
