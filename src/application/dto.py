"""
application.dto - Data Transfer Objects for service input/output.

These are the structured results that services return to callers
(REST endpoints, CLI adapters, tests).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from domain.entities import Conversation, Message, SearchCategory, SearchProduct


@dataclass(frozen=True)
class SearchRequest:
    """Input for one agentic search."""
    query: str
    conversation_id: Optional[str] = None
    country: Optional[str] = None


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a quota check or consumption.

    reason is "guest" or "user" so callers can choose the right wording.
    """
    allowed: bool
    remaining: int
    limit: int
    reset_at: str
    used: int = 0
    reason: str = "user"

    def to_dict(self) -> dict[str, Any]:
        return {
            "remaining": self.remaining,
            "limit": self.limit,
            "reset_at": self.reset_at,
        }


@dataclass(frozen=True)
class CategoryWithProducts:
    category: SearchCategory
    products: list[SearchProduct] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.category.id,
            "label": self.category.label,
            "description": self.category.description,
            "searchQuery": self.category.search_query,
            "sortOrder": self.category.sort_order,
            "products": [p.to_dict() for p in self.products],
        }


@dataclass(frozen=True)
class MessageView:
    message: Message
    categories: list[CategoryWithProducts] = field(default_factory=list)


@dataclass(frozen=True)
class ConversationDetail:
    """A conversation with its messages and each message's result categories."""
    conversation: Conversation
    messages: list[MessageView] = field(default_factory=list)
