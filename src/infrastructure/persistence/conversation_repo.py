"""
infrastructure.persistence.conversation_repo - SQLite conversation repository.

Stores conversation metadata: owner, title, status, cached counters and the
list-view thumbnail.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from domain.entities import Conversation
from infrastructure.persistence.connection import (
    AsyncSQLiteConnection,
    new_id,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, owner_subject, title, status, total_categories, total_products, "
    "thumbnail_url, created_at, updated_at"
)


class SQLiteConversationRepository:
    """Async SQLite implementation of ConversationRepository."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def create(self, conversation: Conversation) -> Conversation:
        now = utc_now_iso()
        saved = replace(
            conversation,
            id=conversation.id or new_id(),
            created_at=now,
            updated_at=now,
        )
        async with self._conn.acquire() as conn:
            await conn.execute(
                f"INSERT INTO conversations ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (saved.id, saved.owner_subject, saved.title, saved.status,
                 saved.total_categories, saved.total_products,
                 saved.thumbnail_url, saved.created_at, saved.updated_at),
            )
        return saved

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                f"SELECT {_COLUMNS} FROM conversations WHERE id = ?",
                (conversation_id,),
            )
            return self._row_to_entity(rows[0]) if rows else None

    async def list_by_owner(self, owner_subject: str) -> list[Conversation]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                f"""SELECT {_COLUMNS} FROM conversations
                    WHERE owner_subject = ?
                    ORDER BY updated_at DESC""",
                (owner_subject,),
            )
            return [self._row_to_entity(r) for r in rows]

    async def increment_totals(
        self, conversation_id: str, categories: int, products: int,
    ) -> None:
        """Atomically add to the cached counters (single UPDATE, no read)."""
        async with self._conn.acquire() as conn:
            await conn.execute(
                """UPDATE conversations
                   SET total_categories = total_categories + ?,
                       total_products = total_products + ?,
                       updated_at = ?
                   WHERE id = ?""",
                (categories, products, utc_now_iso(), conversation_id),
            )

    async def set_thumbnail(self, conversation_id: str, url: str) -> None:
        async with self._conn.acquire() as conn:
            await conn.execute(
                "UPDATE conversations SET thumbnail_url = ? WHERE id = ?",
                (url, conversation_id),
            )

    async def update_status(self, conversation_id: str, status: str) -> None:
        async with self._conn.acquire() as conn:
            await conn.execute(
                "UPDATE conversations SET status = ?, updated_at = ? WHERE id = ?",
                (status, utc_now_iso(), conversation_id),
            )

    async def delete(self, conversation_id: str) -> None:
        """Delete a conversation; messages, categories and products cascade."""
        async with self._conn.acquire() as conn:
            await conn.execute(
                "DELETE FROM conversations WHERE id = ?", (conversation_id,),
            )

    @staticmethod
    def _row_to_entity(row) -> Conversation:
        return Conversation(
            id=row[0],
            owner_subject=row[1],
            title=row[2] or "",
            status=row[3] or "active",
            total_categories=row[4] or 0,
            total_products=row[5] or 0,
            thumbnail_url=row[6],
            created_at=row[7] or "",
            updated_at=row[8] or "",
        )
