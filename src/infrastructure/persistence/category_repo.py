"""
infrastructure.persistence.category_repo - SQLite search category repository.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from domain.entities import SearchCategory
from infrastructure.persistence.connection import (
    AsyncSQLiteConnection,
    new_id,
    utc_now_iso,
)

logger = logging.getLogger(__name__)


class SQLiteCategoryRepository:
    """Async SQLite implementation of CategoryRepository."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def create(self, category: SearchCategory) -> SearchCategory:
        saved = replace(category, id=category.id or new_id(), created_at=utc_now_iso())
        async with self._conn.acquire() as conn:
            await conn.execute(
                """INSERT INTO search_categories
                   (id, conversation_id, message_id, label, search_query,
                    description, sort_order, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (saved.id, saved.conversation_id, saved.message_id, saved.label,
                 saved.search_query, saved.description, saved.sort_order,
                 saved.created_at),
            )
        return saved

    async def get_by_message(self, message_id: str) -> list[SearchCategory]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT id, conversation_id, message_id, label, search_query,
                          description, sort_order, created_at
                   FROM search_categories
                   WHERE message_id = ?
                   ORDER BY sort_order ASC""",
                (message_id,),
            )
            return [
                SearchCategory(
                    id=r[0],
                    conversation_id=r[1],
                    message_id=r[2],
                    label=r[3],
                    search_query=r[4],
                    description=r[5] or "",
                    sort_order=r[6],
                    created_at=r[7] or "",
                )
                for r in rows
            ]
