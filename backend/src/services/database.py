"""SQLite database helpers for the media library schema."""

from __future__ import annotations

import logging
from pathlib import Path
import sqlite3
from typing import Iterable

from .config import get_config

logger = logging.getLogger(__name__)

DDL_STATEMENTS: tuple[str, ...] = (
    # Profiles: one row per user, holds the encrypted credential bundle
    """
    CREATE TABLE IF NOT EXISTS profiles (
        user_id TEXT PRIMARY KEY,
        display_name TEXT,
        preferred_ai_model TEXT NOT NULL DEFAULT 'gemini-2.5-flash',
        ai_credentials_encrypted TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    # Media items (tags stored as a JSON array)
    """
    CREATE TABLE IF NOT EXISTS media_items (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        type TEXT NOT NULL,
        origin TEXT,
        author TEXT,
        release_year INTEGER,
        rating REAL,
        pub_status TEXT,
        user_status TEXT,
        tags_json TEXT NOT NULL DEFAULT '[]',
        notes TEXT,
        cover_image_url TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        completed_at TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_media_user ON media_items(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_media_user_updated ON media_items(user_id, updated_at DESC)",
    # Collections
    """
    CREATE TABLE IF NOT EXISTS collections (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT NOT NULL,
        color TEXT NOT NULL DEFAULT '#EF4444',
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_collections_user ON collections(user_id)",
    # Collection membership, upsert target is the (collection, item) pair
    """
    CREATE TABLE IF NOT EXISTS collection_media (
        collection_id TEXT NOT NULL REFERENCES collections(id) ON DELETE CASCADE,
        media_item_id TEXT NOT NULL REFERENCES media_items(id) ON DELETE CASCADE,
        added_at TEXT NOT NULL,
        PRIMARY KEY (collection_id, media_item_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_collection_media_item ON collection_media(media_item_id)",
    # Conversations and their messages
    """
    CREATE TABLE IF NOT EXISTS conversations (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_conversations_user ON conversations(user_id, updated_at DESC)",
    """
    CREATE TABLE IF NOT EXISTS messages (
        id TEXT PRIMARY KEY,
        conversation_id TEXT NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
        position INTEGER NOT NULL,
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        metadata_json TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id, position)",
)


class DatabaseService:
    """Manage SQLite connections and schema initialization."""

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = Path(db_path) if db_path else get_config().database_path

    def _ensure_directory(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def connect(self) -> sqlite3.Connection:
        """Return a sqlite3 connection with the proper data directory created."""
        self._ensure_directory()
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize(self, statements: Iterable[str] | None = None) -> Path:
        """Create all schema artifacts required by the library services."""
        conn = self.connect()
        try:
            with conn:  # Transactional apply of DDL
                for statement in statements or DDL_STATEMENTS:
                    conn.execute(statement)
        finally:
            conn.close()
        logger.info(f"Database initialized at {self.db_path}")
        return self.db_path


def init_database(db_path: str | Path | None = None) -> Path:
    """Convenience wrapper used at application startup."""
    return DatabaseService(db_path).initialize()


__all__ = ["DatabaseService", "init_database"]
