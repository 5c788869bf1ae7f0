"""Data access for media items and collections.

Every method takes the caller's ``user_id`` and scopes reads and writes to
rows owned by that user. Ids belonging to other users are ignored rather
than reported, so bulk operations silently affect only the caller's rows.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..models.library import (
    DEFAULT_COLLECTION_COLOR,
    Collection,
    MediaFilters,
    MediaItem,
    MediaStatus,
)
from .database import DatabaseService

logger = logging.getLogger(__name__)

# Columns the caller may write through create/update
WRITABLE_MEDIA_FIELDS = (
    "title",
    "type",
    "origin",
    "author",
    "release_year",
    "rating",
    "pub_status",
    "user_status",
    "tags",
    "notes",
    "cover_image_url",
)

# Columns exposed to in-memory aggregation
AGGREGATABLE_COLUMNS = frozenset({
    "type",
    "origin",
    "pub_status",
    "user_status",
    "tags",
    "created_at",
    "completed_at",
})


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _unique(ids: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for i in ids:
        if i and i not in seen:
            seen[i] = None
    return list(seen)


def _placeholders(values: Sequence[Any]) -> str:
    return ",".join("?" for _ in values)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def _row_to_media(row: sqlite3.Row) -> MediaItem:
    data = dict(row)
    data["tags"] = json.loads(data.pop("tags_json") or "[]")
    return MediaItem(**data)


class LibraryService:
    """Row-scoped reads and writes against the media library tables."""

    def __init__(self, db_service: Optional[DatabaseService] = None):
        self.db = db_service or DatabaseService()

    # =========================================================================
    # Media items
    # =========================================================================

    def search_media(self, user_id: str, filters: MediaFilters) -> Tuple[List[MediaItem], int]:
        """Return up to ``filters.limit`` matching items and the total match count."""
        clauses = ["user_id = ?"]
        params: List[Any] = [user_id]

        if filters.query:
            clauses.append("title LIKE ? ESCAPE '\\'")
            params.append(f"%{_escape_like(filters.query)}%")
        for column in ("type", "origin", "pub_status", "user_status"):
            values = [_enum_value(v) for v in getattr(filters, column)]
            if values:
                clauses.append(f"{column} IN ({_placeholders(values)})")
                params.extend(values)
        if filters.tags:
            clauses.append(
                f"EXISTS (SELECT 1 FROM json_each(media_items.tags_json) "
                f"WHERE json_each.value IN ({_placeholders(filters.tags)}))"
            )
            params.extend(filters.tags)
        if filters.rating_min is not None:
            clauses.append("rating >= ?")
            params.append(filters.rating_min)
        if filters.rating_max is not None:
            clauses.append("rating <= ?")
            params.append(filters.rating_max)

        where = " AND ".join(clauses)
        conn = self.db.connect()
        try:
            total = conn.execute(
                f"SELECT COUNT(*) FROM media_items WHERE {where}", params
            ).fetchone()[0]
            rows = conn.execute(
                f"SELECT * FROM media_items WHERE {where} "
                f"ORDER BY updated_at DESC LIMIT ?",
                [*params, filters.limit],
            ).fetchall()
        finally:
            conn.close()

        return [_row_to_media(r) for r in rows], int(total)

    def get_media(self, user_id: str, item_id: str) -> Optional[MediaItem]:
        conn = self.db.connect()
        try:
            row = conn.execute(
                "SELECT * FROM media_items WHERE id = ? AND user_id = ?",
                (item_id, user_id),
            ).fetchone()
        finally:
            conn.close()
        return _row_to_media(row) if row else None

    def create_media(self, user_id: str, fields: Dict[str, Any]) -> str:
        """Insert a media item and return its new id."""
        values = {k: _enum_value(v) for k, v in fields.items() if k in WRITABLE_MEDIA_FIELDS}
        if not values.get("title") or not values.get("type"):
            raise ValueError("title and type are required")

        item_id = str(uuid.uuid4())
        now = _now()
        tags = values.pop("tags", None) or []
        completed_at = now if values.get("user_status") == MediaStatus.COMPLETED.value else None

        columns = ["id", "user_id", *values.keys(), "tags_json", "created_at", "updated_at", "completed_at"]
        row = [item_id, user_id, *values.values(), json.dumps(tags), now, now, completed_at]

        conn = self.db.connect()
        try:
            with conn:
                conn.execute(
                    f"INSERT INTO media_items ({', '.join(columns)}) VALUES ({_placeholders(row)})",
                    row,
                )
        finally:
            conn.close()

        logger.info(f"Created media item {item_id}", extra={"user_id": user_id})
        return item_id

    def update_media(self, user_id: str, item_id: str, partial: Dict[str, Any]) -> bool:
        """Apply a partial update. Returns False if the caller owns no such item."""
        values = {k: _enum_value(v) for k, v in partial.items() if k in WRITABLE_MEDIA_FIELDS}
        if "tags" in values:
            values["tags_json"] = json.dumps(values.pop("tags") or [])

        now = _now()
        assignments = [f"{column} = ?" for column in values]
        params: List[Any] = list(values.values())
        assignments.append("updated_at = ?")
        params.append(now)

        if "user_status" in values:
            if values["user_status"] == MediaStatus.COMPLETED.value:
                assignments.append("completed_at = COALESCE(completed_at, ?)")
                params.append(now)
            else:
                assignments.append("completed_at = NULL")

        conn = self.db.connect()
        try:
            with conn:
                cursor = conn.execute(
                    f"UPDATE media_items SET {', '.join(assignments)} WHERE id = ? AND user_id = ?",
                    [*params, item_id, user_id],
                )
        finally:
            conn.close()
        return cursor.rowcount > 0

    def delete_media(self, user_id: str, ids: Sequence[str]) -> int:
        """Delete the caller's items among ``ids``; returns the number removed."""
        ids = _unique(ids)
        if not ids:
            return 0
        conn = self.db.connect()
        try:
            with conn:
                cursor = conn.execute(
                    f"DELETE FROM media_items WHERE user_id = ? AND id IN ({_placeholders(ids)})",
                    [user_id, *ids],
                )
        finally:
            conn.close()
        logger.info(
            f"Deleted {cursor.rowcount} of {len(ids)} requested media items",
            extra={"user_id": user_id},
        )
        return cursor.rowcount

    def fetch_media_columns(self, user_id: str, columns: Sequence[str]) -> List[Dict[str, Any]]:
        """Return the requested columns of every item the caller owns.

        Only columns in ``AGGREGATABLE_COLUMNS`` may be requested.
        """
        unknown = set(columns) - AGGREGATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Columns not available for aggregation: {sorted(unknown)}")
        selected = ["tags_json" if c == "tags" else c for c in columns]

        conn = self.db.connect()
        try:
            rows = conn.execute(
                f"SELECT {', '.join(selected)} FROM media_items WHERE user_id = ?",
                (user_id,),
            ).fetchall()
        finally:
            conn.close()

        results = []
        for row in rows:
            data = dict(row)
            if "tags_json" in data:
                data["tags"] = json.loads(data.pop("tags_json") or "[]")
            results.append(data)
        return results

    # =========================================================================
    # Collections
    # =========================================================================

    def list_collections(
        self,
        user_id: str,
        query: Optional[str] = None,
        limit: int = 20,
    ) -> List[Collection]:
        """List the caller's collections with item counts, newest first."""
        sql = (
            "SELECT c.*, "
            "(SELECT COUNT(*) FROM collection_media cm WHERE cm.collection_id = c.id) AS item_count "
            "FROM collections c WHERE c.user_id = ?"
        )
        params: List[Any] = [user_id]
        if query:
            sql += " AND c.name LIKE ? ESCAPE '\\'"
            params.append(f"%{_escape_like(query)}%")
        sql += " ORDER BY c.created_at DESC LIMIT ?"
        params.append(limit)

        conn = self.db.connect()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [Collection(**dict(r)) for r in rows]

    def create_collection(self, user_id: str, name: str, color: str = DEFAULT_COLLECTION_COLOR) -> str:
        collection_id = str(uuid.uuid4())
        conn = self.db.connect()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO collections (id, user_id, name, color, created_at) VALUES (?, ?, ?, ?, ?)",
                    (collection_id, user_id, name, color, _now()),
                )
        finally:
            conn.close()
        logger.info(f"Created collection {collection_id}", extra={"user_id": user_id})
        return collection_id

    def add_to_collection(self, user_id: str, collection_id: str, item_ids: Sequence[str]) -> int:
        """Upsert (collection, item) pairs for the caller's items.

        Pairs that already exist are left untouched, so repeating a call is a
        no-op. Returns how many of the requested items are now members; ids
        the caller does not own, or a collection the caller does not own,
        contribute nothing.
        """
        item_ids = _unique(item_ids)
        if not item_ids:
            return 0
        conn = self.db.connect()
        try:
            with conn:
                owned = self._owned_collection(conn, user_id, collection_id)
                if not owned:
                    return 0
                rows = conn.execute(
                    f"SELECT id FROM media_items WHERE user_id = ? AND id IN ({_placeholders(item_ids)})",
                    [user_id, *item_ids],
                ).fetchall()
                owned_items = [r["id"] for r in rows]
                now = _now()
                conn.executemany(
                    "INSERT INTO collection_media (collection_id, media_item_id, added_at) VALUES (?, ?, ?) "
                    "ON CONFLICT(collection_id, media_item_id) DO NOTHING",
                    [(collection_id, item_id, now) for item_id in owned_items],
                )
        finally:
            conn.close()
        return len(owned_items)

    def remove_from_collection(self, user_id: str, collection_id: str, item_ids: Sequence[str]) -> int:
        """Remove the given items from one of the caller's collections."""
        item_ids = _unique(item_ids)
        if not item_ids:
            return 0
        conn = self.db.connect()
        try:
            with conn:
                if not self._owned_collection(conn, user_id, collection_id):
                    return 0
                cursor = conn.execute(
                    f"DELETE FROM collection_media WHERE collection_id = ? "
                    f"AND media_item_id IN ({_placeholders(item_ids)})",
                    [collection_id, *item_ids],
                )
        finally:
            conn.close()
        return cursor.rowcount

    def delete_collections(self, user_id: str, ids: Sequence[str]) -> int:
        """Delete the caller's collections among ``ids`` (memberships cascade)."""
        ids = _unique(ids)
        if not ids:
            return 0
        conn = self.db.connect()
        try:
            with conn:
                cursor = conn.execute(
                    f"DELETE FROM collections WHERE user_id = ? AND id IN ({_placeholders(ids)})",
                    [user_id, *ids],
                )
        finally:
            conn.close()
        return cursor.rowcount

    @staticmethod
    def _owned_collection(conn: sqlite3.Connection, user_id: str, collection_id: str) -> bool:
        row = conn.execute(
            "SELECT 1 FROM collections WHERE id = ? AND user_id = ?",
            (collection_id, user_id),
        ).fetchone()
        return row is not None


def get_library_service() -> LibraryService:
    """Get instance of LibraryService."""
    return LibraryService()


__all__ = ["LibraryService", "get_library_service", "WRITABLE_MEDIA_FIELDS", "AGGREGATABLE_COLUMNS"]
