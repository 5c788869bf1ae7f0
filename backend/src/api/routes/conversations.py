"""API routes for stored assistant conversations."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..middleware import AuthContext, require_auth_context
from ...models.conversation import (
    Conversation,
    ConversationCreate,
    ConversationMessagesResponse,
    ConversationUpdate,
)
from ...services.conversation_service import ConversationService, get_conversation_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


def _not_found(conversation_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "not_found", "message": f"Conversation not found: {conversation_id}"},
    )


@router.get("", response_model=List[Conversation])
async def list_conversations(
    auth: AuthContext = Depends(require_auth_context),
    conversations: ConversationService = Depends(get_conversation_service),
):
    """List the user's conversations, most recently updated first."""
    return conversations.list_conversations(auth.user_id)


@router.post("", response_model=Conversation, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    payload: ConversationCreate,
    auth: AuthContext = Depends(require_auth_context),
    conversations: ConversationService = Depends(get_conversation_service),
):
    """Create an empty conversation."""
    return conversations.create_conversation(auth.user_id, payload.title)


@router.patch("/{conversation_id}", response_model=Conversation)
async def rename_conversation(
    conversation_id: str,
    payload: ConversationUpdate,
    auth: AuthContext = Depends(require_auth_context),
    conversations: ConversationService = Depends(get_conversation_service),
):
    """Rename a conversation."""
    conversation = conversations.rename_conversation(auth.user_id, conversation_id, payload.title)
    if conversation is None:
        raise _not_found(conversation_id)
    return conversation


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: str,
    auth: AuthContext = Depends(require_auth_context),
    conversations: ConversationService = Depends(get_conversation_service),
):
    """Delete a conversation and its messages."""
    if not conversations.delete_conversation(auth.user_id, conversation_id):
        raise _not_found(conversation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{conversation_id}/messages", response_model=ConversationMessagesResponse)
async def get_conversation_messages(
    conversation_id: str,
    auth: AuthContext = Depends(require_auth_context),
    conversations: ConversationService = Depends(get_conversation_service),
):
    """Get a conversation's messages in order."""
    messages = conversations.get_messages(auth.user_id, conversation_id)
    if messages is None:
        raise _not_found(conversation_id)
    return ConversationMessagesResponse(conversation_id=conversation_id, messages=messages)
