"""
infrastructure.persistence.product_repo - SQLite search product repository.

Products are bulk-inserted per category and read back so callers see the
stored ids and timestamps. position preserves provider order.
"""

from __future__ import annotations

import logging
from typing import Sequence

from domain.entities import SearchProduct
from domain.models import ProductHit
from infrastructure.persistence.connection import (
    AsyncSQLiteConnection,
    new_id,
    utc_now_iso,
)

logger = logging.getLogger(__name__)


class SQLiteProductRepository:
    """Async SQLite implementation of ProductRepository."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def insert_many(
        self, category_id: str, products: Sequence[ProductHit],
    ) -> None:
        if not products:
            return
        now = utc_now_iso()
        rows = [
            (new_id(), category_id, position, p.title, p.price, p.price_cents,
             p.image_url, p.affiliate_url, p.source, p.asin, p.rating,
             p.review_count, p.brand, now)
            for position, p in enumerate(products)
        ]
        async with self._conn.acquire() as conn:
            await conn.executemany(
                """INSERT INTO search_products
                   (id, category_id, position, title, price, price_cents,
                    image_url, affiliate_url, source, asin, rating,
                    review_count, brand, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                rows,
            )

    async def get_by_category(self, category_id: str) -> list[SearchProduct]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT id, category_id, position, title, price, price_cents,
                          image_url, affiliate_url, source, asin, rating,
                          review_count, brand, created_at
                   FROM search_products
                   WHERE category_id = ?
                   ORDER BY position ASC""",
                (category_id,),
            )
            return [self._row_to_entity(r) for r in rows]

    @staticmethod
    def _row_to_entity(row) -> SearchProduct:
        return SearchProduct(
            id=row[0],
            category_id=row[1],
            position=row[2],
            title=row[3],
            price=row[4],
            price_cents=row[5],
            image_url=row[6],
            affiliate_url=row[7],
            source=row[8] or "Amazon",
            asin=row[9],
            rating=row[10],
            review_count=row[11],
            brand=row[12],
            created_at=row[13] or "",
        )
