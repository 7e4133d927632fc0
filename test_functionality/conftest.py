"""Shared fixtures: temporary SQLite database, scripted chat model, fake search provider."""

import asyncio
import itertools
import json
from pathlib import Path

import pytest

from domain.exceptions import UpstreamSearchError
from domain.models import (
    AssistantTurn,
    Identity,
    ProductHit,
    ProductSearchResponse,
    ToolCall,
)
from infrastructure.config import Settings
from infrastructure.persistence.connection import AsyncSQLiteConnection
from infrastructure.persistence.migrations import run_migrations


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def make_hit(title, price_cents=None, image_url="https://img.example/x.jpg", asin=None, **extra):
    price = f"${price_cents / 100:.2f}" if price_cents is not None else None
    return ProductHit(
        title=title,
        affiliate_url=f"https://www.amazon.com/dp/{asin or title[:10]}?tag=test-20",
        price=price,
        price_cents=price_cents,
        image_url=image_url,
        asin=asin or title.replace(" ", "")[:10].upper(),
        **extra,
    )


def search_call(call_id, label, query=None, **extra):
    args = {"query": query or label.lower(), "categoryLabel": label, **extra}
    return ToolCall(id=call_id, name="search_products", arguments=json.dumps(args))


def tool_turn(*calls):
    return AssistantTurn(content="", tool_calls=list(calls))


def final_turn(summary="Found some great options.", **extra):
    payload = {
        "summary": summary,
        "recommendations": extra.pop("recommendations", []),
        "followUpQuestion": extra.pop("followUpQuestion", "What is your budget?"),
        "followUpOptions": extra.pop("followUpOptions", ["Under $50", "Under $100"]),
    }
    return AssistantTurn(content=json.dumps(payload))


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class ScriptedChatModel:
    """Returns pre-scripted turns in order. Exceptions in the script are raised."""

    def __init__(self, turns, repeat=False):
        self._turns = itertools.cycle(turns) if repeat else iter(turns)
        self.calls = []

    async def complete(self, messages, tools):
        self.calls.append({"messages": list(messages), "tools": tools})
        try:
            turn = next(self._turns)
        except StopIteration:
            raise AssertionError("chat model called more often than scripted")
        if isinstance(turn, Exception):
            raise turn
        return turn


class FakeSearchProvider:
    """In-memory provider keyed by category label.

    delays: label -> seconds to sleep before answering (controls completion order).
    failures: labels that raise UpstreamSearchError.
    """

    name = "fake"

    def __init__(self, results=None, failures=(), delays=None, default_count=3):
        self._results = results or {}
        self._failures = set(failures)
        self._delays = delays or {}
        self._default_count = default_count
        self.requests = []

    async def search(self, request):
        self.requests.append(request)
        await asyncio.sleep(self._delays.get(request.category_label, 0))
        if request.category_label in self._failures:
            raise UpstreamSearchError(f"upstream down for {request.category_label}")
        products = self._results.get(request.category_label)
        if products is None:
            products = [
                make_hit(f"{request.category_label} item {i}", price_cents=1000 + i * 500)
                for i in range(self._default_count)
            ]
        return ProductSearchResponse(
            category_label=request.category_label,
            products=list(products),
            total_results=len(products),
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        project_root=tmp_path,
        db_path=str(tmp_path / "test.db"),
        jwt_secret="test-user-secret",
        anon_jwt_secret="test-anon-secret",
        rate_limit_authenticated=3,
        rate_limit_anonymous=2,
        serpapi_key="test-key",
    )


@pytest.fixture
async def connection(settings) -> AsyncSQLiteConnection:
    conn = AsyncSQLiteConnection(settings.db_path)
    await run_migrations(conn)
    return conn


@pytest.fixture
def guest() -> Identity:
    return Identity(type="anon", subject="anon:guest-1", id="guest-1")


@pytest.fixture
def user() -> Identity:
    return Identity(type="user", subject="user:42", id="42")
