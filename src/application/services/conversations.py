"""
application.services.conversations - Owner-scoped conversation queries.

Every method takes the caller's Identity; a conversation owned by someone
else is reported exactly like a missing one.
"""

from __future__ import annotations

import logging

from application.dto import CategoryWithProducts, ConversationDetail, MessageView
from domain.entities import Conversation
from domain.exceptions import ConversationNotFoundError, InvalidRequestError
from domain.models import Identity
from domain.ports import (
    CategoryRepository,
    ConversationRepository,
    MessageRepository,
    ProductRepository,
)

logger = logging.getLogger(__name__)

CONVERSATION_STATUSES = ("active", "archived")


class ConversationService:
    def __init__(
        self,
        conversation_repo: ConversationRepository,
        message_repo: MessageRepository,
        category_repo: CategoryRepository,
        product_repo: ProductRepository,
    ):
        self._conversation_repo = conversation_repo
        self._message_repo = message_repo
        self._category_repo = category_repo
        self._product_repo = product_repo

    async def list_for(self, identity: Identity) -> list[Conversation]:
        """List the caller's conversations, most recently updated first."""
        return await self._conversation_repo.list_by_owner(identity.subject)

    async def get_owned(self, identity: Identity, conversation_id: str) -> Conversation:
        conversation = await self._conversation_repo.get(conversation_id)
        if conversation is None or conversation.owner_subject != identity.subject:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
        return conversation

    async def get_detail(
        self, identity: Identity, conversation_id: str,
    ) -> ConversationDetail:
        """Conversation with messages, and each message's categories by sort order."""
        conversation = await self.get_owned(identity, conversation_id)
        messages = await self._message_repo.get_by_conversation(conversation_id)

        views = []
        for message in messages:
            categories = []
            if message.role == "assistant":
                for category in await self._category_repo.get_by_message(message.id):
                    products = await self._product_repo.get_by_category(category.id)
                    categories.append(CategoryWithProducts(category=category, products=products))
            views.append(MessageView(message=message, categories=categories))
        return ConversationDetail(conversation=conversation, messages=views)

    async def set_status(
        self, identity: Identity, conversation_id: str, status: str,
    ) -> Conversation:
        if status not in CONVERSATION_STATUSES:
            raise InvalidRequestError(
                f"status must be one of {', '.join(CONVERSATION_STATUSES)}"
            )
        await self.get_owned(identity, conversation_id)
        await self._conversation_repo.update_status(conversation_id, status)
        logger.info("Conversation %s set to %s", conversation_id, status)
        return await self.get_owned(identity, conversation_id)

    async def delete(self, identity: Identity, conversation_id: str) -> None:
        await self.get_owned(identity, conversation_id)
        await self._conversation_repo.delete(conversation_id)
        logger.info("Deleted conversation %s", conversation_id)
