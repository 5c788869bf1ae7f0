"""Tavily Search Service for the assistant's web search tool."""

from dataclasses import dataclass, field
from typing import List, Literal, Optional
import logging

from tavily import AsyncTavilyClient

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_CHARS = 500
MAX_RESULTS_CAP = 10


@dataclass
class TavilySearchResult:
    """Single search result from Tavily."""
    url: str
    title: str
    content: str  # Snippet, truncated to the service's content budget
    score: float  # Relevance score 0-1


@dataclass
class TavilySearchResponse:
    """Response from Tavily search."""
    query: str
    results: List[TavilySearchResult] = field(default_factory=list)
    answer: Optional[str] = None  # Tavily's AI answer if requested


class TavilySearchService:
    """Tavily web search bound to one user's API key.

    A new instance is created per tool call with the caller's decrypted key,
    so no key outlives the request that needed it.
    """

    def __init__(
        self,
        api_key: Optional[str],
        content_chars: int = DEFAULT_CONTENT_CHARS,
        max_results_cap: int = MAX_RESULTS_CAP,
    ):
        self.api_key = api_key
        self.content_chars = content_chars
        self.max_results_cap = max_results_cap
        self._client: Optional[AsyncTavilyClient] = None

    @property
    def client(self) -> AsyncTavilyClient:
        """Lazy-load the async client."""
        if self._client is None:
            if not self.api_key:
                raise ValueError("Tavily API key not configured")
            self._client = AsyncTavilyClient(api_key=self.api_key)
        return self._client

    def is_configured(self) -> bool:
        """Check if a key was supplied."""
        return bool(self.api_key)

    async def search(
        self,
        query: str,
        max_results: int = 5,
        topic: Literal["general", "news", "finance"] = "general",
        include_answer: bool = False,
    ) -> TavilySearchResponse:
        """Execute a single search query.

        ``max_results`` is clamped to ``1..max_results_cap`` and each
        result's content is cut to ``content_chars`` characters.
        """
        max_results = max(1, min(max_results, self.max_results_cap))
        try:
            response = await self.client.search(
                query=query,
                max_results=max_results,
                topic=topic,
                include_answer=include_answer,
            )
        except Exception as e:
            logger.error(f"Tavily search failed for '{query}': {type(e).__name__}")
            raise

        results = [
            TavilySearchResult(
                url=r.get("url", ""),
                title=r.get("title", ""),
                content=(r.get("content") or "")[: self.content_chars],
                score=r.get("score", 0.0),
            )
            for r in response.get("results", [])[:max_results]
        ]

        return TavilySearchResponse(
            query=query,
            results=results,
            answer=response.get("answer"),
        )
