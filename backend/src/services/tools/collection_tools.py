"""Collection tools: list, create, delete collections and manage membership."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ...models.library import DEFAULT_COLLECTION_COLOR
from .registry import NOT_AUTHENTICATED, ToolContext, ToolDefinition, ToolGroup, ToolName


class SearchCollectionsInput(BaseModel):
    query: Optional[str] = Field(None, max_length=200, description="Search by collection name")
    limit: int = Field(20, ge=1, le=50)


class CreateCollectionInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Collection name")
    color: str = Field(
        DEFAULT_COLLECTION_COLOR,
        pattern=r"^#[0-9A-Fa-f]{6}$",
        description="Color hex from predefined palette",
    )


class CollectionMembershipInput(BaseModel):
    collection_id: str = Field(..., min_length=1, description="Collection ID")
    media_ids: List[str] = Field(..., min_length=1, max_length=100, description="Array of media item IDs")


class DeleteCollectionInput(BaseModel):
    ids: List[str] = Field(..., min_length=1, max_length=100, description="Array of collection IDs to delete")


async def search_collections(args: SearchCollectionsInput, ctx: ToolContext) -> Dict[str, Any]:
    if not ctx.user_id:
        return {"collections": [], "error": NOT_AUTHENTICATED}
    collections = await ctx.run_sync(ctx.library.list_collections, ctx.user_id, args.query, args.limit)
    return {
        "collections": [c.model_dump(exclude={"user_id"}) for c in collections],
    }


async def create_collection(args: CreateCollectionInput, ctx: ToolContext) -> Dict[str, Any]:
    if not ctx.user_id:
        return {"id": "", "created": False, "error": NOT_AUTHENTICATED}
    collection_id = await ctx.run_sync(ctx.library.create_collection, ctx.user_id, args.name, args.color)
    return {"id": collection_id, "created": True}


async def add_media_to_collection(args: CollectionMembershipInput, ctx: ToolContext) -> Dict[str, Any]:
    if not ctx.user_id:
        return {"added_count": 0, "error": NOT_AUTHENTICATED}
    count = await ctx.run_sync(ctx.library.add_to_collection, ctx.user_id, args.collection_id, args.media_ids)
    return {"added_count": count}


async def remove_media_from_collection(args: CollectionMembershipInput, ctx: ToolContext) -> Dict[str, Any]:
    if not ctx.user_id:
        return {"removed_count": 0, "error": NOT_AUTHENTICATED}
    count = await ctx.run_sync(
        ctx.library.remove_from_collection, ctx.user_id, args.collection_id, args.media_ids
    )
    return {"removed_count": count}


async def delete_collection(args: DeleteCollectionInput, ctx: ToolContext) -> Dict[str, Any]:
    if not ctx.user_id:
        return {"deleted_count": 0, "error": NOT_AUTHENTICATED}
    count = await ctx.run_sync(ctx.library.delete_collections, ctx.user_id, args.ids)
    return {"deleted_count": count}


COLLECTION_TOOLS = (
    ToolDefinition(
        name=ToolName.SEARCH_COLLECTIONS,
        description="Search and list collections with their item counts",
        input_model=SearchCollectionsInput,
        executor=search_collections,
        group=ToolGroup.COLLECTIONS,
    ),
    ToolDefinition(
        name=ToolName.CREATE_COLLECTION,
        description="Create a new collection",
        input_model=CreateCollectionInput,
        executor=create_collection,
        group=ToolGroup.COLLECTIONS,
        mutates=True,
    ),
    ToolDefinition(
        name=ToolName.ADD_MEDIA_TO_COLLECTION,
        description="Add media items to a collection. Adding an item that is already a member is a no-op.",
        input_model=CollectionMembershipInput,
        executor=add_media_to_collection,
        group=ToolGroup.COLLECTIONS,
        mutates=True,
    ),
    ToolDefinition(
        name=ToolName.REMOVE_MEDIA_FROM_COLLECTION,
        description="Remove media items from a collection",
        input_model=CollectionMembershipInput,
        executor=remove_media_from_collection,
        group=ToolGroup.COLLECTIONS,
        mutates=True,
    ),
    ToolDefinition(
        name=ToolName.DELETE_COLLECTION,
        description="Delete one or more collections by id. Media items themselves are kept.",
        input_model=DeleteCollectionInput,
        executor=delete_collection,
        group=ToolGroup.COLLECTIONS,
        mutates=True,
    ),
)
