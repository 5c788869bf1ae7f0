"""Web search tool backed by Tavily with the caller's own API key."""

from __future__ import annotations

import logging
from typing import Any, Dict

from pydantic import BaseModel, Field

from ...models.settings import ProviderKey
from ..credential_vault import DecryptionError
from .registry import NOT_AUTHENTICATED, ToolContext, ToolDefinition, ToolGroup, ToolName

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "No Tavily API key configured. Please add it in Settings."


class SearchWebInput(BaseModel):
    """Arguments for ``search_web``."""
    query: str = Field(..., min_length=1, max_length=400, description="Search query")
    max_results: int = Field(5, ge=1, le=10, description="Number of results to return")


async def search_web(args: SearchWebInput, ctx: ToolContext) -> Dict[str, Any]:
    """Search the web; every failure becomes ``{"results": [], "error": ...}``."""
    if not ctx.user_id:
        return {"results": [], "error": NOT_AUTHENTICATED}
    if ctx.vault is None:
        return {"results": [], "error": "Credential storage is not configured", "configured": False}

    try:
        api_key = await ctx.run_sync(ctx.profiles.get_provider_key, ctx.user_id, ctx.vault, ProviderKey.TAVILY)
    except DecryptionError:
        return {"results": [], "error": "Failed to decrypt API keys"}
    if not api_key:
        return {"results": [], "error": NOT_CONFIGURED, "configured": False}

    service = ctx.search_service(api_key)
    max_results = min(args.max_results, ctx.config.web_search_max_results)
    try:
        response = await service.search(args.query, max_results=max_results)
    except Exception as e:
        status = getattr(getattr(e, "response", None), "status_code", None)
        logger.warning(
            f"[WEB_SEARCH] failed: {type(e).__name__}" + (f" (HTTP {status})" if status else ""),
            extra={"user_id": ctx.user_id},
        )
        if status:
            return {"results": [], "error": f"Tavily API error: {status}"}
        return {"results": [], "error": "Web search failed"}

    return {
        "query": args.query,
        "results": [
            {"title": r.title, "url": r.url, "content": r.content, "score": r.score}
            for r in response.results
        ],
    }


WEB_TOOLS = (
    ToolDefinition(
        name=ToolName.SEARCH_WEB,
        description=(
            "Search the web for information using Tavily, e.g. to look up details about a "
            "title before adding it. Requires the user's Tavily key."
        ),
        input_model=SearchWebInput,
        executor=search_web,
        group=ToolGroup.WEB_SEARCH,
    ),
)
