"""
domain.ports - Abstract interfaces (Protocols) for all system boundaries.

These define WHAT the system needs without specifying HOW. Infrastructure
modules provide concrete implementations. Application services depend only
on these protocols, never on concrete classes.

Using typing.Protocol (structural typing) instead of ABC: any class that
implements the methods satisfies the port without explicit inheritance.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from domain.models import (
    AssistantTurn,
    Identity,
    ProductHit,
    ProductSearchRequest,
    ProductSearchResponse,
)
from domain.entities import (
    Conversation,
    Message,
    RateLimitRecord,
    SearchCategory,
    SearchProduct,
)


# ---------------------------------------------------------------------------
# External Collaborator Ports
# ---------------------------------------------------------------------------

@runtime_checkable
class ChatModelPort(Protocol):
    """Chat-completion-with-tools endpoint.

    Raises UpstreamLLMError on any non-success response.
    """

    async def complete(
        self, messages: Sequence[Any], tools: list[dict[str, Any]],
    ) -> AssistantTurn: ...


@runtime_checkable
class SearchProviderPort(Protocol):
    """Retailer product search. Raises UpstreamSearchError on failure."""

    name: str

    async def search(self, request: ProductSearchRequest) -> ProductSearchResponse: ...


@runtime_checkable
class IdentityResolverPort(Protocol):
    """Turns request credentials into an Identity or raises AuthenticationError."""

    def resolve(
        self, authorization: Optional[str], anon_token: Optional[str],
    ) -> Identity: ...


# ---------------------------------------------------------------------------
# Repository Ports
# ---------------------------------------------------------------------------

@runtime_checkable
class ConversationRepository(Protocol):
    async def create(self, conversation: Conversation) -> Conversation: ...
    async def get(self, conversation_id: str) -> Conversation | None: ...
    async def list_by_owner(self, owner_subject: str) -> list[Conversation]: ...
    async def increment_totals(
        self, conversation_id: str, categories: int, products: int,
    ) -> None: ...
    async def set_thumbnail(self, conversation_id: str, url: str) -> None: ...
    async def update_status(self, conversation_id: str, status: str) -> None: ...
    async def delete(self, conversation_id: str) -> None: ...


@runtime_checkable
class MessageRepository(Protocol):
    async def create(self, message: Message) -> Message: ...
    async def finalize(
        self, message_id: str, content: str, metadata: dict[str, Any],
    ) -> None: ...
    async def get_by_conversation(self, conversation_id: str) -> list[Message]: ...


@runtime_checkable
class CategoryRepository(Protocol):
    async def create(self, category: SearchCategory) -> SearchCategory: ...
    async def get_by_message(self, message_id: str) -> list[SearchCategory]: ...


@runtime_checkable
class ProductRepository(Protocol):
    async def insert_many(
        self, category_id: str, products: Sequence[ProductHit],
    ) -> None: ...
    async def get_by_category(self, category_id: str) -> list[SearchProduct]: ...


@runtime_checkable
class RateLimitRepository(Protocol):
    """Rolling-window counters. take() is the atomic increment primitive."""

    async def get(self, subject: str) -> RateLimitRecord | None: ...
    async def take(
        self, subject: str, window_seconds: int, now: float,
    ) -> RateLimitRecord: ...


@runtime_checkable
class AnalyticsRepository(Protocol):
    async def increment(self, subject: str, event_type: str) -> None: ...
    async def get_counts(self, subject: str) -> dict[str, int]: ...
