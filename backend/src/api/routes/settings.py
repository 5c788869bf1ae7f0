"""API routes for assistant settings: provider keys and model selection."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ..dependencies import get_credential_vault
from ..middleware import AuthContext, require_auth_context
from ...models.settings import (
    AI_MODEL_LABELS,
    AIModel,
    ApiKeysUpdate,
    MaskedApiKeys,
    ModelOption,
    ModelOptionsResponse,
    ModelPreferenceUpdate,
)
from ...services.credential_vault import CredentialVault
from ...services.profile_service import ProfileService, get_profile_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("/api-keys", response_model=MaskedApiKeys)
async def get_api_keys(
    auth: AuthContext = Depends(require_auth_context),
    vault: CredentialVault = Depends(get_credential_vault),
    profiles: ProfileService = Depends(get_profile_service),
):
    """
    Get the user's provider keys in masked form.

    Plaintext keys are never returned.
    """
    return profiles.get_masked_api_keys(auth.user_id, vault)


@router.put("/api-keys", response_model=MaskedApiKeys)
async def update_api_keys(
    update: ApiKeysUpdate,
    auth: AuthContext = Depends(require_auth_context),
    vault: CredentialVault = Depends(get_credential_vault),
    profiles: ProfileService = Depends(get_profile_service),
):
    """
    Store provider keys encrypted at rest.

    **Request Body:**
    - `gemini_key`: New Gemini key, "" to remove, omit to keep
    - `tavily_key`: New Tavily key, "" to remove, omit to keep
    """
    return profiles.save_api_keys(auth.user_id, update, vault)


def _model_options(selected: AIModel) -> ModelOptionsResponse:
    return ModelOptionsResponse(
        models=[ModelOption(value=model, label=AI_MODEL_LABELS[model]) for model in AIModel],
        selected=selected,
    )


@router.get("/models", response_model=ModelOptionsResponse)
async def list_models(
    auth: AuthContext = Depends(require_auth_context),
    profiles: ProfileService = Depends(get_profile_service),
):
    """Get the selectable models and the user's current choice."""
    return _model_options(profiles.get_preferred_model(auth.user_id))


@router.put("/model", response_model=ModelOptionsResponse)
async def update_model(
    update: ModelPreferenceUpdate,
    auth: AuthContext = Depends(require_auth_context),
    profiles: ProfileService = Depends(get_profile_service),
):
    """Select the model used by the assistant."""
    selected = profiles.set_preferred_model(auth.user_id, update.model)
    logger.info(f"User {auth.user_id} selected model {selected.value}")
    return _model_options(selected)
