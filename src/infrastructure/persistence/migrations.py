"""
infrastructure.persistence.migrations - Database schema creation.

Called once at startup by the factory (and by the CLI's init-db command).
"""

from __future__ import annotations

import logging

from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)

_TABLES = [
    """CREATE TABLE IF NOT EXISTS conversations (
        id TEXT PRIMARY KEY,
        owner_subject TEXT NOT NULL,
        title TEXT,
        status TEXT NOT NULL DEFAULT 'active'
            CHECK (status IN ('active', 'archived')),
        total_categories INTEGER NOT NULL DEFAULT 0,
        total_products INTEGER NOT NULL DEFAULT 0,
        thumbnail_url TEXT,
        created_at TEXT,
        updated_at TEXT
    )""",
    """CREATE INDEX IF NOT EXISTS conversations_owner_idx
        ON conversations(owner_subject, updated_at)""",
    """CREATE TABLE IF NOT EXISTS messages (
        id TEXT PRIMARY KEY,
        conversation_id TEXT NOT NULL,
        role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
        content TEXT NOT NULL DEFAULT '',
        metadata TEXT NOT NULL DEFAULT '{}',
        created_at TEXT,
        updated_at TEXT,
        FOREIGN KEY (conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
    )""",
    """CREATE INDEX IF NOT EXISTS messages_conversation_idx
        ON messages(conversation_id, created_at)""",
    """CREATE TABLE IF NOT EXISTS search_categories (
        id TEXT PRIMARY KEY,
        conversation_id TEXT NOT NULL,
        message_id TEXT NOT NULL,
        label TEXT NOT NULL,
        search_query TEXT NOT NULL,
        description TEXT,
        sort_order INTEGER NOT NULL DEFAULT 0,
        created_at TEXT,
        FOREIGN KEY (conversation_id) REFERENCES conversations(id) ON DELETE CASCADE,
        FOREIGN KEY (message_id) REFERENCES messages(id) ON DELETE CASCADE
    )""",
    """CREATE INDEX IF NOT EXISTS search_categories_message_idx
        ON search_categories(message_id, sort_order)""",
    """CREATE TABLE IF NOT EXISTS search_products (
        id TEXT PRIMARY KEY,
        category_id TEXT NOT NULL,
        position INTEGER NOT NULL DEFAULT 0,
        title TEXT NOT NULL,
        price TEXT,
        price_cents INTEGER,
        image_url TEXT,
        affiliate_url TEXT NOT NULL,
        source TEXT NOT NULL DEFAULT 'Amazon',
        asin TEXT,
        rating REAL,
        review_count INTEGER,
        brand TEXT,
        created_at TEXT,
        FOREIGN KEY (category_id) REFERENCES search_categories(id) ON DELETE CASCADE
    )""",
    """CREATE INDEX IF NOT EXISTS search_products_category_idx
        ON search_products(category_id, position)""",
    """CREATE TABLE IF NOT EXISTS rate_limits (
        subject TEXT PRIMARY KEY,
        window_start REAL NOT NULL,
        request_count INTEGER NOT NULL DEFAULT 0,
        updated_at TEXT
    )""",
    """CREATE TABLE IF NOT EXISTS search_analytics (
        subject TEXT NOT NULL,
        event_type TEXT NOT NULL,
        count INTEGER NOT NULL DEFAULT 0,
        updated_at TEXT,
        PRIMARY KEY (subject, event_type)
    )""",
]


async def run_migrations(connection: AsyncSQLiteConnection) -> None:
    """Create all tables if they don't exist.

    Safe to call multiple times (uses IF NOT EXISTS).
    """
    async with connection.acquire() as conn:
        for ddl in _TABLES:
            await conn.execute(ddl)
    logger.info("All tables created (or already exist).")
