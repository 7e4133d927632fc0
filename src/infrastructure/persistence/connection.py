"""
infrastructure.persistence.connection - Async SQLite connection manager.

Per-operation aiosqlite connections. SQLite errors surface as
RepositoryError so services never depend on the driver's exception types.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator
from uuid import uuid4

import aiosqlite

from domain.exceptions import RepositoryError

logger = logging.getLogger(__name__)


def new_id() -> str:
    return uuid4().hex


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class AsyncSQLiteConnection:
    """Async SQLite connection provider with auto-commit/rollback."""

    def __init__(self, db_path: str):
        self._db_path = db_path

    @property
    def db_path(self) -> str:
        return self._db_path

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield an async SQLite connection with FK support.

        Commits on success, rolls back on exception. Driver errors are
        re-raised as RepositoryError.
        """
        async with aiosqlite.connect(self._db_path) as conn:
            await conn.execute("PRAGMA foreign_keys = ON")
            conn.row_factory = aiosqlite.Row
            try:
                yield conn
                await conn.commit()
            except aiosqlite.Error as exc:
                await conn.rollback()
                logger.exception("Database operation failed, transaction rolled back.")
                raise RepositoryError(str(exc)) from exc
            except Exception:
                await conn.rollback()
                raise
