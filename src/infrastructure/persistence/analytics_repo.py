"""
infrastructure.persistence.analytics_repo - Per-subject search counters.

Best-effort usage tracking: callers log and ignore failures. Increments are
a single upsert so concurrent searches never lose a count.
"""

from __future__ import annotations

import logging

from infrastructure.persistence.connection import AsyncSQLiteConnection, utc_now_iso

logger = logging.getLogger(__name__)


class SQLiteAnalyticsRepository:
    """Async SQLite implementation of AnalyticsRepository."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def increment(self, subject: str, event_type: str) -> None:
        async with self._conn.acquire() as conn:
            await conn.execute(
                """INSERT INTO search_analytics (subject, event_type, count, updated_at)
                   VALUES (?, ?, 1, ?)
                   ON CONFLICT(subject, event_type) DO UPDATE SET
                       count = search_analytics.count + 1,
                       updated_at = excluded.updated_at""",
                (subject, event_type, utc_now_iso()),
            )

    async def get_counts(self, subject: str) -> dict[str, int]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                "SELECT event_type, count FROM search_analytics WHERE subject = ?",
                (subject,),
            )
        return {r[0]: r[1] for r in rows}
