"""
infrastructure.persistence.message_repo - SQLite message repository.

Stores user and assistant turns. Assistant messages are written in two
phases: an empty placeholder (so categories can reference its id), then a
single finalize() with the summary and structured metadata.
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Any

from domain.entities import Message
from infrastructure.persistence.connection import (
    AsyncSQLiteConnection,
    new_id,
    utc_now_iso,
)

logger = logging.getLogger(__name__)


class SQLiteMessageRepository:
    """Async SQLite implementation of MessageRepository."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def create(self, message: Message) -> Message:
        now = utc_now_iso()
        saved = replace(
            message, id=message.id or new_id(), created_at=now, updated_at=now,
        )
        async with self._conn.acquire() as conn:
            await conn.execute(
                """INSERT INTO messages
                   (id, conversation_id, role, content, metadata,
                    created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (saved.id, saved.conversation_id, saved.role, saved.content,
                 json.dumps(saved.metadata), now, now),
            )
        return saved

    async def finalize(
        self, message_id: str, content: str, metadata: dict[str, Any],
    ) -> None:
        async with self._conn.acquire() as conn:
            await conn.execute(
                """UPDATE messages
                   SET content = ?, metadata = ?, updated_at = ?
                   WHERE id = ?""",
                (content, json.dumps(metadata), utc_now_iso(), message_id),
            )

    async def get_by_conversation(self, conversation_id: str) -> list[Message]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT id, conversation_id, role, content, metadata,
                          created_at, updated_at
                   FROM messages
                   WHERE conversation_id = ?
                   ORDER BY created_at ASC, rowid ASC""",
                (conversation_id,),
            )
            return [self._row_to_entity(r) for r in rows]

    @staticmethod
    def _row_to_entity(row) -> Message:
        try:
            metadata = json.loads(row[4]) if row[4] else {}
        except json.JSONDecodeError:
            logger.warning("Corrupt metadata on message %s", row[0])
            metadata = {}
        return Message(
            id=row[0],
            conversation_id=row[1],
            role=row[2] or "",
            content=row[3] or "",
            metadata=metadata,
            created_at=row[5] or "",
            updated_at=row[6] or "",
        )
