"""
domain.entities - Persistence-aware types (have IDs, timestamps).

Decoupled from any persistence strategy: no SQL concerns, no DB imports.
Ids and timestamps are assigned by the repository implementations, not by
the entities themselves.

Ownership is a strict tree:
    Conversation -> Message -> SearchCategory -> SearchProduct
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional


@dataclass
class Conversation:
    """A search conversation owned by one subject."""
    id: str = ""
    owner_subject: str = ""
    title: str = ""
    status: str = "active"  # "active" or "archived"
    total_categories: int = 0
    total_products: int = 0
    thumbnail_url: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Message:
    """A single message in a conversation.

    The assistant message of a search is inserted empty before the agent
    loop starts and finalized exactly once when the loop ends.
    """
    id: str = ""
    conversation_id: str = ""
    role: str = ""  # "user" or "assistant"
    content: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""


@dataclass
class SearchCategory:
    """One model-chosen product grouping attached to an assistant message."""
    id: str = ""
    conversation_id: str = ""
    message_id: str = ""
    label: str = ""
    search_query: str = ""
    description: str = ""
    sort_order: int = 0
    created_at: str = ""


@dataclass
class SearchProduct:
    """A product row. Never mutated after insert."""
    id: str = ""
    category_id: str = ""
    position: int = 0
    title: str = ""
    price: Optional[str] = None
    price_cents: Optional[int] = None
    image_url: Optional[str] = None
    affiliate_url: str = ""
    source: str = "Amazon"
    asin: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    brand: Optional[str] = None
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RateLimitRecord:
    """Current counter for one subject's rolling window."""
    subject: str
    window_start: float
    request_count: int
