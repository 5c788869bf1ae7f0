"""Service for persisting assistant conversations and their messages."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..models.conversation import Conversation, ConversationTurn, MessageRole
from .database import DatabaseService

logger = logging.getLogger(__name__)

TITLE_MAX_CHARS = 50
DEFAULT_TITLE = "New conversation"


def title_from_message(content: str) -> str:
    """Derive a conversation title from its first user message."""
    text = " ".join(content.split())
    if not text:
        return DEFAULT_TITLE
    return text[:TITLE_MAX_CHARS].rstrip()


class ConversationService:
    """Reads and writes the ``conversations`` and ``messages`` tables.

    All methods are scoped to ``user_id``; a conversation owned by someone
    else behaves exactly like one that does not exist.
    """

    def __init__(self, db_service: Optional[DatabaseService] = None):
        """Initialize with optional database service."""
        self.db = db_service or DatabaseService()

    def list_conversations(self, user_id: str) -> List[Conversation]:
        """Return the user's conversations, most recently updated first."""
        conn = self.db.connect()
        try:
            rows = conn.execute(
                "SELECT * FROM conversations WHERE user_id = ? ORDER BY updated_at DESC",
                (user_id,),
            ).fetchall()
        finally:
            conn.close()
        return [Conversation(**dict(r)) for r in rows]

    def get_conversation(self, user_id: str, conversation_id: str) -> Optional[Conversation]:
        conn = self.db.connect()
        try:
            row = conn.execute(
                "SELECT * FROM conversations WHERE id = ? AND user_id = ?",
                (conversation_id, user_id),
            ).fetchone()
        finally:
            conn.close()
        return Conversation(**dict(row)) if row else None

    def create_conversation(self, user_id: str, title: str) -> Conversation:
        now = datetime.now(timezone.utc).isoformat()
        conversation = Conversation(
            id=str(uuid.uuid4()),
            user_id=user_id,
            title=title or DEFAULT_TITLE,
            created_at=now,
            updated_at=now,
        )
        conn = self.db.connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO conversations (id, user_id, title, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        conversation.id,
                        conversation.user_id,
                        conversation.title,
                        conversation.created_at,
                        conversation.updated_at,
                    ),
                )
        finally:
            conn.close()
        logger.info(f"Created conversation {conversation.id}", extra={"user_id": user_id})
        return conversation

    def rename_conversation(self, user_id: str, conversation_id: str, title: str) -> Optional[Conversation]:
        """Rename a conversation; returns None if the user does not own it."""
        conn = self.db.connect()
        try:
            with conn:
                cursor = conn.execute(
                    "UPDATE conversations SET title = ?, updated_at = ? WHERE id = ? AND user_id = ?",
                    (title, datetime.now(timezone.utc).isoformat(), conversation_id, user_id),
                )
        finally:
            conn.close()
        if cursor.rowcount == 0:
            return None
        return self.get_conversation(user_id, conversation_id)

    def delete_conversation(self, user_id: str, conversation_id: str) -> bool:
        """Delete a conversation and (by cascade) its messages."""
        conn = self.db.connect()
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM conversations WHERE id = ? AND user_id = ?",
                    (conversation_id, user_id),
                )
        finally:
            conn.close()
        return cursor.rowcount > 0

    def get_messages(self, user_id: str, conversation_id: str) -> Optional[List[ConversationTurn]]:
        """Return the conversation's messages oldest first.

        Returns None if the user does not own the conversation.
        """
        conn = self.db.connect()
        try:
            owner = conn.execute(
                "SELECT 1 FROM conversations WHERE id = ? AND user_id = ?",
                (conversation_id, user_id),
            ).fetchone()
            if owner is None:
                return None
            rows = conn.execute(
                """
                SELECT id, role, content, position, metadata_json, created_at
                FROM messages
                WHERE conversation_id = ?
                ORDER BY position ASC, created_at ASC
                """,
                (conversation_id,),
            ).fetchall()
        finally:
            conn.close()

        return [
            ConversationTurn(
                id=r["id"],
                role=r["role"],
                content=r["content"],
                position=r["position"],
                metadata=json.loads(r["metadata_json"]) if r["metadata_json"] else {},
                created_at=r["created_at"],
            )
            for r in rows
        ]

    def append_message(
        self,
        user_id: str,
        conversation_id: str,
        role: MessageRole,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[ConversationTurn]:
        """Append a message and bump the conversation's ``updated_at``.

        Returns None if the user does not own the conversation.
        """
        now = datetime.now(timezone.utc)
        message_id = str(uuid.uuid4())
        conn = self.db.connect()
        try:
            with conn:
                owner = conn.execute(
                    "SELECT 1 FROM conversations WHERE id = ? AND user_id = ?",
                    (conversation_id, user_id),
                ).fetchone()
                if owner is None:
                    return None
                position = conn.execute(
                    "SELECT COALESCE(MAX(position) + 1, 0) FROM messages WHERE conversation_id = ?",
                    (conversation_id,),
                ).fetchone()[0]
                conn.execute(
                    """
                    INSERT INTO messages (id, conversation_id, position, role, content, metadata_json, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        message_id,
                        conversation_id,
                        position,
                        role,
                        content,
                        json.dumps(metadata or {}),
                        now.isoformat(),
                    ),
                )
                conn.execute(
                    "UPDATE conversations SET updated_at = ? WHERE id = ?",
                    (now.isoformat(), conversation_id),
                )
        finally:
            conn.close()

        return ConversationTurn(
            id=message_id,
            role=role,
            content=content,
            position=position,
            metadata=metadata or {},
            created_at=now,
        )

    def load_history(self, user_id: str, conversation_id: str) -> List[Dict[str, str]]:
        """Return stored turns as ``{"role", "content"}`` dicts for the model."""
        turns = self.get_messages(user_id, conversation_id) or []
        return [{"role": t.role, "content": t.content} for t in turns if t.content]


def get_conversation_service() -> ConversationService:
    """Get instance of ConversationService."""
    return ConversationService()


__all__ = ["ConversationService", "get_conversation_service", "title_from_message", "TITLE_MAX_CHARS"]
