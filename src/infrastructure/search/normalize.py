"""
infrastructure.search.normalize - Provider-independent product normalization.

Price handling works in integer minor units (cents). A product whose price
is unknown is never filtered out by a price bound: null is not zero.
"""

from __future__ import annotations

import re
from typing import Optional, Sequence
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from domain.models import ProductHit

_NON_NUMERIC = re.compile(r"[^0-9.]")


def parse_price_cents(text: Optional[str]) -> Optional[int]:
    """Parse a display price like "$1,299.99" into cents.

    Strips everything but digits and the decimal point, then rounds to
    minor units. Returns None when nothing parseable remains.
    """
    if not text:
        return None
    cleaned = _NON_NUMERIC.sub("", text)
    if not cleaned:
        return None
    try:
        return round(float(cleaned) * 100)
    except ValueError:
        return None


def to_cents(amount: Optional[float]) -> Optional[int]:
    if amount is None:
        return None
    return round(amount * 100)


def filter_by_price(
    products: Sequence[ProductHit],
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
) -> list[ProductHit]:
    """Apply min/max bounds (major units) post-hoc, preserving order."""
    min_cents = to_cents(min_price)
    max_cents = to_cents(max_price)
    kept = []
    for p in products:
        if p.price_cents is not None:
            if min_cents is not None and p.price_cents < min_cents:
                continue
            if max_cents is not None and p.price_cents > max_cents:
                continue
        kept.append(p)
    return kept


def append_referral_tag(url: str, param: str, tag: str) -> str:
    """Add ?<param>=<tag> unless the URL already carries that parameter."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url
    query = parse_qsl(parts.query, keep_blank_values=True)
    if any(key == param for key, _ in query):
        return url
    query.append((param, tag))
    return urlunsplit(parts._replace(query=urlencode(query)))
