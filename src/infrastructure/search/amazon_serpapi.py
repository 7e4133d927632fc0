"""
infrastructure.search.amazon_serpapi - Amazon product search through SerpAPI.

Implements SearchProviderPort using SerpAPI's Amazon engine. Uses requests
via run_in_executor for async compat.

SerpAPI has no native min/max price filter for this engine, so price bounds
are applied after normalization (see infrastructure.search.normalize).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import requests

from domain.exceptions import UpstreamSearchError
from domain.models import ProductHit, ProductSearchRequest, ProductSearchResponse
from infrastructure.search.normalize import (
    append_referral_tag,
    filter_by_price,
    parse_price_cents,
    to_cents,
)

logger = logging.getLogger(__name__)

SERPAPI_URL = "https://serpapi.com/search"

DEFAULT_DOMAIN = "amazon.com"
DEFAULT_LANGUAGE = "en_US"

# ISO 3166-1 alpha-2 country code -> (marketplace domain, SerpAPI language)
MARKETPLACES: dict[str, tuple[str, str]] = {
    "US": ("amazon.com", "en_US"),
    "CA": ("amazon.ca", "en_CA"),
    "GB": ("amazon.co.uk", "en_GB"),
    "DE": ("amazon.de", "de_DE"),
    "FR": ("amazon.fr", "fr_FR"),
    "ES": ("amazon.es", "es_ES"),
    "IT": ("amazon.it", "it_IT"),
    "NL": ("amazon.nl", "nl_NL"),
    "SE": ("amazon.se", "sv_SE"),
    "PL": ("amazon.pl", "pl_PL"),
    "BE": ("amazon.com.be", "nl_BE"),
    "AU": ("amazon.com.au", "en_AU"),
    "JP": ("amazon.co.jp", "ja_JP"),
    "IN": ("amazon.in", "en_IN"),
    "SG": ("amazon.sg", "en_SG"),
    "AE": ("amazon.ae", "en_AE"),
    "SA": ("amazon.sa", "ar_SA"),
    "TR": ("amazon.com.tr", "tr_TR"),
    "BR": ("amazon.com.br", "pt_BR"),
    "MX": ("amazon.com.mx", "es_MX"),
    "EG": ("amazon.eg", "ar_EG"),
}

_SORT_VALUES = {
    "price_asc": "price-asc-rank",
    "price_desc": "price-desc-rank",
    "rating": "review-rank",
}


def resolve_marketplace(country: Optional[str]) -> tuple[str, str]:
    """Return (domain, language) for a country code; unknown codes fall back."""
    if not country:
        return DEFAULT_DOMAIN, DEFAULT_LANGUAGE
    return MARKETPLACES.get(country.strip().upper(), (DEFAULT_DOMAIN, DEFAULT_LANGUAGE))


def map_sort(sort_by: Optional[str]) -> Optional[str]:
    # "relevance" and anything unknown use the upstream default ordering
    return _SORT_VALUES.get(sort_by or "")


class AmazonSerpApiProvider:
    """Search Amazon through SerpAPI.

    Implements SearchProviderPort (structural typing, no explicit inheritance).
    """

    name = "amazon-serpapi"

    def __init__(
        self,
        api_key: str,
        partner_tag: str,
        default_country: str = "US",
        timeout: float = 20.0,
        session: Optional[requests.Session] = None,
    ):
        self._api_key = api_key
        self._partner_tag = partner_tag
        self._default_country = default_country
        self._timeout = timeout
        self._session = session or requests.Session()

    async def search(self, request: ProductSearchRequest) -> ProductSearchResponse:
        """Run one category query and return normalized, price-filtered hits.

        Raises:
            UpstreamSearchError: On transport failure, non-200 status or an
                error reported in the SerpAPI payload.
        """
        domain, language = resolve_marketplace(request.country or self._default_country)
        params = {
            "engine": "amazon",
            "k": request.query,
            "amazon_domain": domain,
            "language": language,
            "api_key": self._api_key,
            "json_restrictor": "organic_results,search_information",
        }
        sort_value = map_sort(request.sort_by)
        if sort_value:
            params["s"] = sort_value

        loop = asyncio.get_event_loop()
        try:
            data = await loop.run_in_executor(None, self._fetch, params)
        except UpstreamSearchError:
            raise
        except Exception as e:
            raise UpstreamSearchError(f"Amazon search via SerpAPI failed: {e}") from e

        hits = []
        for item in data.get("organic_results") or []:
            if item.get("sponsored"):
                continue
            hit = self._normalize(item, domain)
            if hit is not None:
                hits.append(hit)

        hits = filter_by_price(hits, request.min_price, request.max_price)
        total = (data.get("search_information") or {}).get("total_results") or len(hits)

        logger.info(
            "SerpAPI '%s' (%s) -> %d product(s)", request.query, domain, len(hits),
        )
        return ProductSearchResponse(
            category_label=request.category_label,
            products=hits,
            total_results=total,
        )

    def _fetch(self, params: dict[str, Any]) -> dict[str, Any]:
        response = self._session.get(SERPAPI_URL, params=params, timeout=self._timeout)
        if response.status_code != 200:
            raise UpstreamSearchError(
                f"SerpAPI returned {response.status_code}: {response.text[:200]}"
            )
        data = response.json()
        if data.get("error"):
            raise UpstreamSearchError(f"SerpAPI error: {data['error']}")
        return data

    def _normalize(self, item: dict[str, Any], domain: str) -> Optional[ProductHit]:
        asin = item.get("asin")
        if not asin:
            return None

        extracted = item.get("extracted_price")
        display = item.get("price")
        if extracted is not None:
            price_cents = to_cents(float(extracted))
            display = display or f"${float(extracted):.2f}"
        else:
            price_cents = parse_price_cents(display)

        base_url = item.get("link_clean") or f"https://www.{domain}/dp/{asin}"
        return ProductHit(
            title=item.get("title") or "Unknown Product",
            affiliate_url=append_referral_tag(base_url, "tag", self._partner_tag),
            price=display or None,
            price_cents=price_cents,
            image_url=item.get("thumbnail"),
            source="Amazon",
            asin=asin,
            rating=item.get("rating"),
            review_count=item.get("reviews"),
            brand=item.get("brand"),
        )
