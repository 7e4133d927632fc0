"""
infrastructure.persistence.rate_limit_repo - Rolling-window request counters.

take() is a single upsert statement: it starts a fresh window when the old
one has expired and otherwise increments, returning the resulting row.
Counters are never decremented; they only reset with the window.
"""

from __future__ import annotations

import logging
from typing import Optional

from domain.entities import RateLimitRecord
from infrastructure.persistence.connection import AsyncSQLiteConnection, utc_now_iso

logger = logging.getLogger(__name__)


class SQLiteRateLimitRepository:
    """Async SQLite implementation of RateLimitRepository."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def get(self, subject: str) -> Optional[RateLimitRecord]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                "SELECT subject, window_start, request_count FROM rate_limits WHERE subject = ?",
                (subject,),
            )
            if not rows:
                return None
            return RateLimitRecord(
                subject=rows[0][0],
                window_start=rows[0][1],
                request_count=rows[0][2],
            )

    async def take(
        self, subject: str, window_seconds: int, now: float,
    ) -> RateLimitRecord:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """INSERT INTO rate_limits (subject, window_start, request_count, updated_at)
                   VALUES (?, ?, 1, ?)
                   ON CONFLICT(subject) DO UPDATE SET
                       request_count = CASE
                           WHEN rate_limits.window_start + ? <= excluded.window_start
                           THEN 1
                           ELSE rate_limits.request_count + 1
                       END,
                       window_start = CASE
                           WHEN rate_limits.window_start + ? <= excluded.window_start
                           THEN excluded.window_start
                           ELSE rate_limits.window_start
                       END,
                       updated_at = excluded.updated_at
                   RETURNING subject, window_start, request_count""",
                (subject, now, utc_now_iso(), window_seconds, window_seconds),
            )
        row = rows[0]
        return RateLimitRecord(subject=row[0], window_start=row[1], request_count=row[2])
