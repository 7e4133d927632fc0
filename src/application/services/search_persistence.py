"""
application.services.search_persistence - Staged writes for one search.

Write order for a search:
    1. conversation create-or-load
    2. user message, then the EMPTY assistant placeholder (categories need its id)
    3. one category row + its product rows per completed tool call
    4. placeholder finalized exactly once with content and metadata
    5. best-effort extras: aggregate counters, thumbnail, analytics

Steps 1-4 raise on failure. Step 5 helpers log and swallow their errors
because the search result is already complete and persisted.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Sequence

from application.context import SearchContext
from application.dto import CategoryWithProducts
from domain.entities import Conversation, Message, SearchCategory
from domain.exceptions import ConversationNotFoundError
from domain.models import CategoryResult, FinalAnswer, Identity
from domain.ports import (
    AnalyticsRepository,
    CategoryRepository,
    ConversationRepository,
    MessageRepository,
    ProductRepository,
)

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 100
TEXT_SEARCH_EVENT = "text_search"

_WORD = re.compile(r"[a-z0-9]+")


class SearchPersistenceService:
    """Persists conversations, messages, categories and products for searches."""

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        message_repo: MessageRepository,
        category_repo: CategoryRepository,
        product_repo: ProductRepository,
        analytics_repo: Optional[AnalyticsRepository] = None,
    ):
        self._conversation_repo = conversation_repo
        self._message_repo = message_repo
        self._category_repo = category_repo
        self._product_repo = product_repo
        self._analytics_repo = analytics_repo

    # ── Phase one: conversation and messages ──────────────────

    async def resolve_conversation(
        self, identity: Identity, conversation_id: Optional[str], query: str,
    ) -> tuple[Conversation, bool]:
        """Load the caller's conversation or create a new one.

        Returns (conversation, created).

        Raises:
            ConversationNotFoundError: If the id is unknown or owned by someone else.
        """
        if conversation_id:
            existing = await self._conversation_repo.get(conversation_id)
            if existing is None or existing.owner_subject != identity.subject:
                raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
            return existing, False

        conversation = await self._conversation_repo.create(Conversation(
            owner_subject=identity.subject,
            title=query.strip()[:TITLE_MAX_LENGTH],
        ))
        logger.info("Created conversation %s for %s", conversation.id, identity.subject)
        return conversation, True

    async def load_history(self, conversation_id: str) -> list[Message]:
        """Load all messages for a conversation, oldest first."""
        return await self._message_repo.get_by_conversation(conversation_id)

    async def save_user_message(self, conversation_id: str, content: str) -> Message:
        return await self._message_repo.create(Message(
            conversation_id=conversation_id, role="user", content=content,
        ))

    async def create_placeholder(self, conversation_id: str) -> Message:
        """Insert the empty assistant message that categories will reference."""
        return await self._message_repo.create(Message(
            conversation_id=conversation_id, role="assistant", content="",
        ))

    # ── Phase two: per tool call ──────────────────────────────

    async def save_category(
        self, ctx: SearchContext, result: CategoryResult, sort_order: int,
    ) -> CategoryWithProducts:
        """Persist one category and its products, then read the products back."""
        category = await self._category_repo.create(SearchCategory(
            conversation_id=ctx.conversation_id,
            message_id=ctx.message_id,
            label=result.label,
            search_query=result.search_query,
            description=result.description,
            sort_order=sort_order,
        ))
        await self._product_repo.insert_many(category.id, result.products)
        products = await self._product_repo.get_by_category(category.id)
        logger.debug(
            "Saved category '%s' (#%d) with %d product(s)",
            category.label, sort_order, len(products),
        )
        return CategoryWithProducts(category=category, products=products)

    # ── Phase three: finalize ─────────────────────────────────

    async def finalize_message(
        self, message_id: str, answer: FinalAnswer, categories_count: int = 0,
    ) -> None:
        payload = answer.to_payload()
        metadata = {
            "recommendations": payload["recommendations"],
            "followUpQuestion": payload["followUpQuestion"],
            "followUpOptions": payload["followUpOptions"],
            "categoriesCount": categories_count,
        }
        await self._message_repo.finalize(message_id, answer.summary, metadata)

    # ── Best-effort extras ────────────────────────────────────

    async def update_aggregates(
        self, conversation_id: str, categories: Sequence[CategoryWithProducts],
    ) -> None:
        product_count = sum(len(c.products) for c in categories)
        try:
            await self._conversation_repo.increment_totals(
                conversation_id, len(categories), product_count,
            )
        except Exception:
            logger.exception("Failed to update totals for conversation %s", conversation_id)

    async def update_thumbnail(
        self,
        conversation: Conversation,
        created: bool,
        categories: Sequence[CategoryWithProducts],
        answer: FinalAnswer,
    ) -> Optional[str]:
        """Set the conversation thumbnail unless one is already in place.

        Returns the URL that was written, if any.
        """
        if not created and conversation.thumbnail_url:
            return None
        url = select_thumbnail(categories, answer)
        if not url:
            return None
        try:
            await self._conversation_repo.set_thumbnail(conversation.id, url)
        except Exception:
            logger.exception("Failed to set thumbnail for conversation %s", conversation.id)
            return None
        return url

    async def record_analytics(self, identity: Identity) -> None:
        if self._analytics_repo is None or identity.is_guest:
            return
        try:
            await self._analytics_repo.increment(identity.subject, TEXT_SEARCH_EVENT)
        except Exception:
            logger.exception("Failed to record analytics for %s", identity.subject)


def select_thumbnail(
    categories: Sequence[CategoryWithProducts], answer: FinalAnswer,
) -> Optional[str]:
    """Pick a thumbnail from the first category.

    Prefers the product that best matches the first recommendation's title,
    else the first product that has an image.
    """
    if not categories:
        return None
    with_images = [p for p in categories[0].products if p.image_url]
    if not with_images:
        return None

    if answer.recommendations:
        wanted = answer.recommendations[0].product_title.strip().lower()
        if wanted:
            for p in with_images:
                if p.title.strip().lower() == wanted:
                    return p.image_url
            for p in with_images:
                title = p.title.lower()
                if wanted in title or title in wanted:
                    return p.image_url
            wanted_words = set(_WORD.findall(wanted))
            best, best_overlap = None, 0
            for p in with_images:
                overlap = len(wanted_words & set(_WORD.findall(p.title.lower())))
                if overlap > best_overlap:
                    best, best_overlap = p, overlap
            if best is not None:
                return best.image_url

    return with_images[0].image_url
