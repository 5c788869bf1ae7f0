"""Analytics tool: in-memory aggregation over the caller's library."""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field

from .registry import NOT_AUTHENTICATED, ToolContext, ToolDefinition, ToolGroup, ToolName

GroupField = Literal["type", "origin", "pub_status", "user_status"]

TOP_TAGS_LIMIT = 10


class AnalyzeDataInput(BaseModel):
    """Arguments for ``analyze_data``."""
    analysis_type: Literal["distribution", "top_tags", "timeline"] = Field(
        ..., description="Type of analysis"
    )
    group_by: GroupField = Field("type", description="For distribution analysis, group by this field")


def distribution(rows: List[Dict[str, Any]], group_by: str) -> List[Dict[str, Any]]:
    counts = Counter(row[group_by] for row in rows if row.get(group_by))
    return [{"label": label, "count": count} for label, count in counts.most_common()]


def top_tags(rows: List[Dict[str, Any]], limit: int = TOP_TAGS_LIMIT) -> List[Dict[str, Any]]:
    counts: Counter = Counter()
    for row in rows:
        counts.update(tag for tag in row.get("tags") or [] if tag)
    return [{"tag": tag, "count": count} for tag, count in counts.most_common(limit)]


def timeline(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Totals plus items added and completed per ``YYYY-MM`` month."""
    added = Counter(row["created_at"][:7] for row in rows if row.get("created_at"))
    completed = Counter(row["completed_at"][:7] for row in rows if row.get("completed_at"))
    months = sorted(set(added) | set(completed))
    return {
        "total_items": len(rows),
        "completed": sum(completed.values()),
        "by_month": [
            {"month": month, "added": added.get(month, 0), "completed": completed.get(month, 0)}
            for month in months
        ],
    }


async def analyze_data(args: AnalyzeDataInput, ctx: ToolContext) -> Dict[str, Any]:
    if not ctx.user_id:
        return {"data": [], "insights": NOT_AUTHENTICATED}

    if args.analysis_type == "distribution":
        rows = await ctx.run_sync(ctx.library.fetch_media_columns, ctx.user_id, [args.group_by])
        data = distribution(rows, args.group_by)
        if not data:
            return {"data": [], "insights": f"No items have a {args.group_by} set."}
        top = data[0]
        return {
            "data": data,
            "insights": f"{len(data)} distinct {args.group_by} values; most common is "
                        f"{top['label']} with {top['count']} items.",
        }

    if args.analysis_type == "top_tags":
        rows = await ctx.run_sync(ctx.library.fetch_media_columns, ctx.user_id, ["tags"])
        data = top_tags(rows)
        return {
            "data": data,
            "insights": f"Top {len(data)} tags across {len(rows)} items." if data else "No tags in the library.",
        }

    rows = await ctx.run_sync(ctx.library.fetch_media_columns, ctx.user_id, ["created_at", "completed_at"])
    data = timeline(rows)
    return {
        "data": data,
        "insights": f"{data['completed']} of {data['total_items']} items completed.",
    }


ANALYTICS_TOOLS = (
    ToolDefinition(
        name=ToolName.ANALYZE_DATA,
        description=(
            "Query analytics data about the media library: 'distribution' counts items "
            "grouped by type, origin, pub_status or user_status; 'top_tags' lists the 10 "
            "most used tags; 'timeline' reports totals and items added/completed per month."
        ),
        input_model=AnalyzeDataInput,
        executor=analyze_data,
        group=ToolGroup.ANALYTICS,
    ),
)
