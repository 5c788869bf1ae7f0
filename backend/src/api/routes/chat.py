"""Chat API endpoints - streaming library assistant.

One POST to ``/api/chat`` runs one user turn through the library agent and
streams its progress as server-sent events. Each event's data is an
:class:`AgentStreamChunk` serialized as JSON.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncGenerator, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sse_starlette.sse import EventSourceResponse

from ..dependencies import (
    ModelClientFactory,
    SearchFactory,
    get_credential_vault,
    get_model_client_factory,
    get_search_factory,
)
from ..middleware import AuthContext, require_auth_context
from ...models.agent import AgentStreamChunk, ChatRequest, StreamEventType
from ...models.settings import ProviderKey
from ...services.conversation_service import (
    ConversationService,
    get_conversation_service,
    title_from_message,
)
from ...services.credential_vault import CredentialVault, DecryptionError
from ...services.library_agent import LibraryAgent
from ...services.library_service import LibraryService, get_library_service
from ...services.model_client import ModelProviderError
from ...services.profile_service import ProfileService, get_profile_service
from ...services.tool_executor import ToolExecutor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

# Active chat turns for cancellation support
# Maps user_id to the running LibraryAgent
_active_sessions: Dict[str, LibraryAgent] = {}


def _missing_key() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={
            "error": "missing_api_key",
            "message": "No Gemini API key configured. Please configure your key in Settings.",
        },
    )


@router.post("")
async def chat(
    request: ChatRequest,
    auth: AuthContext = Depends(require_auth_context),
    vault: CredentialVault = Depends(get_credential_vault),
    profiles: ProfileService = Depends(get_profile_service),
    conversations: ConversationService = Depends(get_conversation_service),
    library: LibraryService = Depends(get_library_service),
    model_factory: ModelClientFactory = Depends(get_model_client_factory),
    search_factory: Optional[SearchFactory] = Depends(get_search_factory),
):
    """
    Run one assistant turn and stream it as server-sent events.

    **Request Body:**
    - `messages`: Prior turns followed by the new user turn
    - `conversation_id`: Conversation to continue (omit to start a new one)

    **Events** (``data`` is JSON):
    - `text_delta`: Streamed answer text
    - `tool_call` / `tool_result`: Tool activity
    - `status`: Step-limit notices
    - `done`: Conversation id, model, steps used and termination reason
    - `error`: The model provider failed; the turn ends
    """
    try:
        api_key = await asyncio.get_running_loop().run_in_executor(
            None,
            lambda: profiles.get_provider_key(auth.user_id, vault, ProviderKey.GEMINI),
        )
    except DecryptionError:
        logger.warning("Stored credentials could not be decrypted", extra={"user_id": auth.user_id})
        api_key = None
    if not api_key:
        raise _missing_key()

    latest = request.messages[-1]
    if latest.role != "user" or not latest.content.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_request", "message": "The last message must be a non-empty user message."},
        )

    history: List[Dict[str, str]]
    if request.conversation_id:
        conversation = conversations.get_conversation(auth.user_id, request.conversation_id)
        if conversation is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"error": "not_found", "message": "Conversation not found"},
            )
        history = conversations.load_history(auth.user_id, conversation.id)
    else:
        conversation = conversations.create_conversation(auth.user_id, title_from_message(latest.content))
        history = [
            {"role": m.role, "content": m.content}
            for m in request.messages[:-1]
            if m.role != "system"
        ]

    model = profiles.get_preferred_model(auth.user_id)
    executor = ToolExecutor(
        library_service=library,
        profile_service=profiles,
        vault=vault,
        search_factory=search_factory,
    )
    agent = LibraryAgent(
        model_client=model_factory(api_key, model.value),
        tool_executor=executor,
        conversations=conversations,
        user_id=auth.user_id,
        model_name=model.value,
    )

    # Cancel any existing turn for this user
    if auth.user_id in _active_sessions:
        logger.info(f"Cancelling existing chat session for user {auth.user_id}")
        _active_sessions[auth.user_id].cancel()

    _active_sessions[auth.user_id] = agent

    async def event_generator() -> AsyncGenerator[str, None]:
        """Generate SSE events from the agent stream."""
        chunk_counter = 0
        try:
            logger.info(
                f"Chat turn from user {auth.user_id} in conversation {conversation.id} "
                f"(model={model.value}, history={len(history)})"
            )
            async for chunk in agent.run(latest.content, conversation.id, history):
                chunk_counter += 1
                logger.debug(
                    f"[SSE #{chunk_counter}] type={chunk.type.value} "
                    f"content_preview={chunk.content[:50] if chunk.content else 'N/A'}"
                )
                yield chunk.to_sse_data()

        except ModelProviderError as e:
            logger.warning(f"Model provider failed for user {auth.user_id}: {e.message}")
            yield AgentStreamChunk(type=StreamEventType.ERROR, error=e.message).to_sse_data()

        except Exception as e:
            logger.exception("Chat streaming failed")
            yield AgentStreamChunk(
                type=StreamEventType.ERROR,
                error=f"Streaming error: {str(e)}",
            ).to_sse_data()

        finally:
            agent.cancel()
            if _active_sessions.get(auth.user_id) is agent:
                del _active_sessions[auth.user_id]

    return EventSourceResponse(event_generator())


@router.post("/cancel")
async def cancel_chat(
    auth: AuthContext = Depends(require_auth_context),
):
    """
    Cancel the active chat turn for the current user.

    No further planning step is started; tools already running finish.

    **Response:**
    - `{"status": "cancelled"}`: Cancelled an active turn
    - `{"status": "no_active_session"}`: Nothing to cancel
    """
    agent = _active_sessions.pop(auth.user_id, None)
    if agent is not None:
        agent.cancel()
        logger.info(f"Cancelled chat session for user {auth.user_id}")
        return {"status": "cancelled"}

    logger.debug(f"No active chat session to cancel for user {auth.user_id}")
    return {"status": "no_active_session"}
