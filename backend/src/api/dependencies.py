"""FastAPI dependencies that build per-request collaborators."""

from __future__ import annotations

from typing import Callable, Optional

from fastapi import HTTPException, status

from ..services.config import get_agent_config, get_config
from ..services.credential_vault import CredentialVault
from ..services.library_agent import ChatModel
from ..services.model_client import ModelClient
from ..services.tavily_service import TavilySearchService

ModelClientFactory = Callable[[str, str], ChatModel]
SearchFactory = Callable[[str], TavilySearchService]


def get_credential_vault() -> CredentialVault:
    """Vault keyed by the configured application secret."""
    secret = get_config().encryption_secret
    if not secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "encryption_not_configured",
                "message": "ENCRYPTION_SECRET is not configured on the server.",
            },
        )
    return CredentialVault(secret)


def get_model_client_factory() -> ModelClientFactory:
    """Build model clients from ``(api_key, model)``."""
    max_tokens = get_agent_config().max_output_tokens

    def factory(api_key: str, model: str) -> ChatModel:
        return ModelClient(api_key=api_key, model=model, max_tokens=max_tokens)

    return factory


def get_search_factory() -> Optional[SearchFactory]:
    """Web search client factory; None selects the default Tavily client."""
    return None


__all__ = [
    "ModelClientFactory",
    "SearchFactory",
    "get_credential_vault",
    "get_model_client_factory",
    "get_search_factory",
]
