"""
domain.models - Value objects for the agentic search pipeline.

Immutable data containers with no business logic and no dependencies on
infrastructure (no LangChain, no SerpAPI, no SQLite).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Identity:
    """Resolved caller identity.

    type:    "user" for authenticated accounts, "anon" for guests.
    subject: Rate-limiting and ownership key, "user:<id>" or "anon:<id>".
    id:      The raw identifier without prefix.
    """
    type: str
    subject: str
    id: str

    @property
    def is_guest(self) -> bool:
        return self.type == "anon"


# ---------------------------------------------------------------------------
# Product search
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProductSearchRequest:
    """One category query handed to a search provider.

    Prices are in major units (e.g. dollars) as the model supplies them.
    """
    query: str
    category_label: str
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    sort_by: Optional[str] = None
    country: Optional[str] = None


@dataclass(frozen=True)
class ProductHit:
    """A normalized product returned by a search provider."""
    title: str
    affiliate_url: str
    price: Optional[str] = None
    price_cents: Optional[int] = None
    image_url: Optional[str] = None
    source: str = "Amazon"
    asin: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    brand: Optional[str] = None


@dataclass(frozen=True)
class ProductSearchResponse:
    category_label: str
    products: list[ProductHit] = field(default_factory=list)
    total_results: int = 0


# ---------------------------------------------------------------------------
# LLM turns
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToolCall:
    """A structured tool request from the model.

    arguments is the raw JSON text; parsing happens in the dispatcher so a
    malformed payload is reported back to the model instead of aborting.
    """
    id: str
    name: str
    arguments: str


@dataclass(frozen=True)
class AssistantTurn:
    """One chat-completion response: final content or tool calls."""
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


@dataclass(frozen=True)
class CategoryResult:
    """Full result set of one successful search tool call."""
    label: str
    search_query: str
    description: str
    products: list[ProductHit] = field(default_factory=list)


@dataclass(frozen=True)
class Recommendation:
    category_label: str = ""
    product_title: str = ""
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "categoryLabel": self.category_label,
            "productTitle": self.product_title,
            "reason": self.reason,
        }


DEFAULT_SUMMARY = "Here are the results I found for you."


@dataclass(frozen=True)
class FinalAnswer:
    """The model's closing answer for a search."""
    summary: str = DEFAULT_SUMMARY
    recommendations: list[Recommendation] = field(default_factory=list)
    follow_up_question: Optional[str] = None
    follow_up_options: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "content": self.summary,
            "recommendations": [r.to_dict() for r in self.recommendations],
            "followUpQuestion": self.follow_up_question,
            "followUpOptions": list(self.follow_up_options),
        }
