"""Tests for the analyze_data tool."""

import pytest

from backend.src.services.config import AgentConfig
from backend.src.services.library_service import LibraryService
from backend.src.services.profile_service import ProfileService
from backend.src.services.tools import ToolContext
from backend.src.services.tools.analytics_tools import (
    AnalyzeDataInput,
    analyze_data,
    distribution,
    timeline,
    top_tags,
)


class TestAggregations:
    def test_distribution_sorted_by_count(self):
        rows = [{"type": "book"}, {"type": "comic"}, {"type": "book"}, {"type": None}]
        assert distribution(rows, "type") == [
            {"label": "book", "count": 2},
            {"label": "comic", "count": 1},
        ]

    def test_top_tags_limited(self):
        rows = [{"tags": [f"tag{i}" for i in range(15)]}, {"tags": ["tag3"]}]
        result = top_tags(rows)
        assert len(result) == 10
        assert result[0] == {"tag": "tag3", "count": 2}

    def test_timeline_by_month(self):
        rows = [
            {"created_at": "2024-01-03T10:00:00+00:00", "completed_at": "2024-02-01T00:00:00+00:00"},
            {"created_at": "2024-01-20T10:00:00+00:00", "completed_at": None},
            {"created_at": "2024-02-11T10:00:00+00:00", "completed_at": None},
        ]
        assert timeline(rows) == {
            "total_items": 3,
            "completed": 1,
            "by_month": [
                {"month": "2024-01", "added": 2, "completed": 0},
                {"month": "2024-02", "added": 1, "completed": 1},
            ],
        }


class TestAnalyzeData:
    @pytest.fixture
    def ctx(self, library: LibraryService, profiles: ProfileService) -> ToolContext:
        library.create_media("alice", {"title": "Dune", "type": "book", "tags": ["scifi"]})
        library.create_media("alice", {"title": "Akira", "type": "comic", "tags": ["scifi", "cyberpunk"]})
        library.create_media("alice", {"title": "Mushishi", "type": "comic", "user_status": "completed"})
        library.create_media("bob", {"title": "Other", "type": "game"})
        return ToolContext(user_id="alice", library=library, profiles=profiles, config=AgentConfig())

    @pytest.mark.asyncio
    async def test_distribution_by_type(self, ctx: ToolContext):
        result = await analyze_data(AnalyzeDataInput(analysis_type="distribution", group_by="type"), ctx)
        assert result["data"] == [{"label": "comic", "count": 2}, {"label": "book", "count": 1}]
        assert "comic" in result["insights"]

    @pytest.mark.asyncio
    async def test_distribution_with_no_values(self, ctx: ToolContext):
        result = await analyze_data(AnalyzeDataInput(analysis_type="distribution", group_by="origin"), ctx)
        assert result["data"] == []

    @pytest.mark.asyncio
    async def test_top_tags(self, ctx: ToolContext):
        result = await analyze_data(AnalyzeDataInput(analysis_type="top_tags"), ctx)
        assert result["data"][0] == {"tag": "scifi", "count": 2}

    @pytest.mark.asyncio
    async def test_timeline_counts_only_own_items(self, ctx: ToolContext):
        result = await analyze_data(AnalyzeDataInput(analysis_type="timeline"), ctx)
        assert result["data"]["total_items"] == 3
        assert result["data"]["completed"] == 1

    @pytest.mark.asyncio
    async def test_not_authenticated(self, library: LibraryService, profiles: ProfileService):
        ctx = ToolContext(user_id=None, library=library, profiles=profiles, config=AgentConfig())
        result = await analyze_data(AnalyzeDataInput(analysis_type="timeline"), ctx)
        assert result == {"data": [], "insights": "Not authenticated"}
