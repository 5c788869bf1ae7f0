"""Library tools: search, create, update and delete media items."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from ...models.library import MediaFilters, MediaStatus, MediaType, Origin
from .registry import NOT_AUTHENTICATED, ToolContext, ToolDefinition, ToolGroup, ToolName

logger = logging.getLogger(__name__)


class SearchMediaInput(MediaFilters):
    """Arguments for ``search_media``."""
    query: Optional[str] = Field(None, max_length=200, description="Search query for title")


class CreateMediaInput(BaseModel):
    """Arguments for ``create_media``."""
    title: str = Field(..., min_length=1, max_length=500, description="Title of the media")
    type: MediaType
    origin: Optional[Origin] = None
    author: Optional[str] = Field(None, max_length=200)
    release_year: Optional[int] = Field(None, ge=0, le=3000)
    rating: Optional[float] = Field(None, ge=0, le=10)
    pub_status: Optional[MediaStatus] = None
    user_status: Optional[MediaStatus] = None
    tags: List[str] = Field(default_factory=list)
    cover_image_url: Optional[str] = Field(None, max_length=2000)
    notes: Optional[str] = Field(None, max_length=5000)


class UpdateMediaInput(BaseModel):
    """Arguments for ``update_media``. Only the fields given are changed."""
    id: str = Field(..., min_length=1, description="Media item ID")
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    type: Optional[MediaType] = None
    origin: Optional[Origin] = None
    author: Optional[str] = Field(None, max_length=200)
    release_year: Optional[int] = Field(None, ge=0, le=3000)
    rating: Optional[float] = Field(None, ge=0, le=10)
    pub_status: Optional[MediaStatus] = None
    user_status: Optional[MediaStatus] = None
    tags: Optional[List[str]] = None
    cover_image_url: Optional[str] = Field(None, max_length=2000)
    notes: Optional[str] = Field(None, max_length=5000)

    @model_validator(mode="after")
    def _has_changes(self) -> "UpdateMediaInput":
        if not self.changes():
            raise ValueError("at least one field besides id must be given")
        return self

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True, exclude={"id"})


class DeleteMediaInput(BaseModel):
    """Arguments for ``delete_media``."""
    ids: List[str] = Field(..., min_length=1, max_length=100, description="Array of media item IDs to delete")


async def search_media(args: SearchMediaInput, ctx: ToolContext) -> Dict[str, Any]:
    if not ctx.user_id:
        return {"items": [], "total": 0, "error": NOT_AUTHENTICATED}
    items, total = await ctx.run_sync(ctx.library.search_media, ctx.user_id, args)
    return {
        "items": [item.model_dump(mode="json", exclude={"user_id"}) for item in items],
        "total": total,
    }


async def create_media(args: CreateMediaInput, ctx: ToolContext) -> Dict[str, Any]:
    if not ctx.user_id:
        return {"id": "", "created": False, "error": NOT_AUTHENTICATED}
    try:
        item_id = await ctx.run_sync(ctx.library.create_media, ctx.user_id, args.model_dump())
    except sqlite3.Error as e:
        logger.warning(f"create_media failed: {e}", extra={"user_id": ctx.user_id})
        return {"id": "", "created": False, "error": str(e)}
    return {"id": item_id, "created": True}


async def update_media(args: UpdateMediaInput, ctx: ToolContext) -> Dict[str, Any]:
    if not ctx.user_id:
        return {"id": args.id, "updated": False, "error": NOT_AUTHENTICATED}
    try:
        updated = await ctx.run_sync(ctx.library.update_media, ctx.user_id, args.id, args.changes())
    except sqlite3.Error as e:
        logger.warning(f"update_media failed: {e}", extra={"user_id": ctx.user_id})
        return {"id": args.id, "updated": False, "error": str(e)}
    if not updated:
        return {"id": args.id, "updated": False, "error": "Media item not found"}
    return {"id": args.id, "updated": True}


async def delete_media(args: DeleteMediaInput, ctx: ToolContext) -> Dict[str, Any]:
    if not ctx.user_id:
        return {"deleted_count": 0, "error": NOT_AUTHENTICATED}
    count = await ctx.run_sync(ctx.library.delete_media, ctx.user_id, args.ids)
    return {"deleted_count": count}


LIBRARY_TOOLS = (
    ToolDefinition(
        name=ToolName.SEARCH_MEDIA,
        description=(
            "Search and filter media items in the user's library. "
            "Returns matching items (newest updates first) and the total match count."
        ),
        input_model=SearchMediaInput,
        executor=search_media,
        group=ToolGroup.LIBRARY,
    ),
    ToolDefinition(
        name=ToolName.CREATE_MEDIA,
        description="Add a new media item to the library",
        input_model=CreateMediaInput,
        executor=create_media,
        group=ToolGroup.LIBRARY,
        mutates=True,
    ),
    ToolDefinition(
        name=ToolName.UPDATE_MEDIA,
        description="Update an existing media item (partial update). Use search_media first to find its id.",
        input_model=UpdateMediaInput,
        executor=update_media,
        group=ToolGroup.LIBRARY,
        mutates=True,
    ),
    ToolDefinition(
        name=ToolName.DELETE_MEDIA,
        description=(
            "Delete one or more media items by id. Use search_media first to find ids. "
            "Returns how many items were deleted."
        ),
        input_model=DeleteMediaInput,
        executor=delete_media,
        group=ToolGroup.LIBRARY,
        mutates=True,
    ),
)
