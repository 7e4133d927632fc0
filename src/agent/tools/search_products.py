"""
agent.tools.search_products - Product search tool.

Runs one category query against the search provider. The model only sees
a truncated summary of the results; the full set travels in ToolResult.data
for persistence and streaming.
"""

from __future__ import annotations

import json
import logging
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from application.context import SearchContext
from agent.tools.base import BaseTool, ToolResult
from domain.exceptions import UpstreamSearchError
from domain.models import CategoryResult, ProductSearchRequest, ProductSearchResponse
from domain.ports import SearchProviderPort

logger = logging.getLogger(__name__)


class SearchProductsInput(BaseModel):
    """Input schema for the search_products tool."""
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(
        min_length=1,
        description="Search keywords for this category, e.g. 'noise cancelling earbuds'.",
    )
    category_label: str = Field(
        alias="categoryLabel",
        min_length=1,
        description="Short display label for the category, e.g. 'Budget Earbuds'.",
    )
    category_description: Optional[str] = Field(
        default=None,
        alias="categoryDescription",
        description="One sentence on why this category fits the request.",
    )
    min_price: Optional[float] = Field(
        default=None, alias="minPrice", description="Minimum price in major units.",
    )
    max_price: Optional[float] = Field(
        default=None, alias="maxPrice", description="Maximum price in major units.",
    )
    sort_by: Optional[Literal["relevance", "price_asc", "price_desc", "rating"]] = Field(
        default=None, alias="sortBy", description="Result ordering.",
    )


class SearchProductsTool(BaseTool):
    """Search one product category."""

    name = "search_products"
    description = (
        "Search the store for products in one category. Call it once per "
        "category you want to show; several calls in one turn run in parallel. "
        "Use price bounds and sortBy only when the user asked for them."
    )

    def __init__(self, provider: SearchProviderPort, summary_limit: int = 10):
        self._provider = provider
        self._summary_limit = summary_limit

    def get_schema(self) -> type[BaseModel]:
        return SearchProductsInput

    async def execute(
        self,
        ctx: SearchContext,
        query: str = "",
        category_label: str = "",
        category_description: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        sort_by: Optional[str] = None,
        **kwargs,
    ) -> ToolResult:
        request = ProductSearchRequest(
            query=query,
            category_label=category_label,
            min_price=min_price,
            max_price=max_price,
            sort_by=sort_by,
            country=ctx.country,
        )
        try:
            response = await self._provider.search(request)
        except UpstreamSearchError as e:
            logger.warning(
                "Search failed for category '%s' (request=%s): %s",
                category_label, ctx.request_id, e,
            )
            return ToolResult.failure(str(e), category_label)

        category = CategoryResult(
            label=category_label,
            search_query=query,
            description=category_description or "",
            products=list(response.products),
        )
        return ToolResult(
            output=json.dumps(self._summarize(response)),
            data=category,
        )

    def _summarize(self, response: ProductSearchResponse) -> dict:
        return {
            "categoryLabel": response.category_label,
            "totalResults": response.total_results,
            "products": [
                {
                    "title": p.title,
                    "price": p.price,
                    "brand": p.brand,
                    "rating": p.rating,
                    "reviewCount": p.review_count,
                }
                for p in response.products[: self._summary_limit]
            ],
        }
