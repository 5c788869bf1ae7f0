"""Tests for Tavily service."""
import pytest
from unittest.mock import AsyncMock, MagicMock

from backend.src.services.tavily_service import (
    TavilySearchService,
    TavilySearchResponse,
)


class TestTavilySearchService:
    """Tests for TavilySearchService."""

    def test_is_configured_without_key(self):
        """Should return False when no API key."""
        assert not TavilySearchService(api_key=None).is_configured()

    def test_is_configured_with_key(self):
        """Should return True when API key provided."""
        assert TavilySearchService(api_key="test-key").is_configured()

    def test_client_raises_without_key(self):
        """Should raise ValueError when accessing client without API key."""
        service = TavilySearchService(api_key=None)
        with pytest.raises(ValueError, match="Tavily API key not configured"):
            _ = service.client

    @pytest.mark.asyncio
    async def test_search_returns_structured_response(self):
        """Should return properly structured TavilySearchResponse."""
        service = TavilySearchService(api_key="test-key", content_chars=10)

        mock_response = {
            "query": "test query",
            "results": [
                {
                    "url": "http://example.com",
                    "title": "Example Title",
                    "content": "Example content that runs long",
                    "score": 0.95,
                    "raw_content": None,
                }
            ],
            "answer": "Test answer",
        }

        mock_client = MagicMock()
        mock_client.search = AsyncMock(return_value=mock_response)
        service._client = mock_client

        response = await service.search("test query", include_answer=True)

        assert isinstance(response, TavilySearchResponse)
        assert response.query == "test query"
        assert response.answer == "Test answer"
        assert len(response.results) == 1
        assert response.results[0].url == "http://example.com"
        assert response.results[0].content == "Example co"
        assert response.results[0].score == 0.95

    @pytest.mark.asyncio
    async def test_max_results_clamped(self):
        """Should never ask the provider for more than the cap."""
        service = TavilySearchService(api_key="test-key", max_results_cap=3)
        mock_client = MagicMock()
        mock_client.search = AsyncMock(return_value={"results": []})
        service._client = mock_client

        await service.search("q", max_results=50)
        assert mock_client.search.call_args.kwargs["max_results"] == 3

        await service.search("q", max_results=0)
        assert mock_client.search.call_args.kwargs["max_results"] == 1

    @pytest.mark.asyncio
    async def test_search_error_propagates(self):
        """Provider errors are logged and re-raised."""
        service = TavilySearchService(api_key="test-key")
        mock_client = MagicMock()
        mock_client.search = AsyncMock(side_effect=RuntimeError("provider down"))
        service._client = mock_client

        with pytest.raises(RuntimeError, match="provider down"):
            await service.search("q")
