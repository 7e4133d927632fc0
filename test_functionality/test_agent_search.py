"""End-to-end orchestrator runs against SQLite with a scripted model and fake provider."""

import json

import pytest

from application.dto import SearchRequest
from application.events import GENERIC_ERROR_MESSAGE
from domain.exceptions import UpstreamLLMError
from domain.models import AssistantTurn, DEFAULT_SUMMARY
from factory import ServiceFactory

from conftest import (
    FakeSearchProvider,
    ScriptedChatModel,
    final_turn,
    make_hit,
    search_call,
    tool_turn,
)


async def _factory(settings, turns, provider=None, repeat=False):
    factory = ServiceFactory(
        settings,
        chat_model=ScriptedChatModel(turns, repeat=repeat),
        search_provider=provider or FakeSearchProvider(),
    )
    await factory.initialize()
    return factory


async def _search(factory, identity, query="wireless earbuds", **kwargs):
    service = factory.create_agent_search_service()
    events = [e async for e in service.stream(identity, SearchRequest(query=query, **kwargs))]
    return events


def _names(events):
    return [e.name for e in events]


async def test_two_categories_full_stream(settings, guest):
    provider = FakeSearchProvider(
        results={
            "Budget": [make_hit("Budget A", 1999), make_hit("Budget B", 2499)],
            "Premium": [make_hit("Premium A", 24999, image_url="https://img/premium.jpg")],
        },
        delays={"Budget": 0.03},
    )
    factory = await _factory(settings, [
        tool_turn(search_call("c1", "Budget"), search_call("c2", "Premium")),
        final_turn(
            "Premium is worth it.",
            recommendations=[{"categoryLabel": "Budget", "productTitle": "Budget B", "reason": "value"}],
        ),
    ], provider)

    events = await _search(factory, guest)

    assert _names(events) == [
        "status", "status", "category", "category", "status", "summary", "done",
    ]
    assert events[1].data == {"text": "Searching 2 categories..."}

    first, second = events[2].data, events[3].data
    # completion order: Premium finished first
    assert (first["label"], first["sortOrder"]) == ("Premium", 0)
    assert (second["label"], second["sortOrder"]) == ("Budget", 1)
    assert [p["title"] for p in second["products"]] == ["Budget A", "Budget B"]

    summary = events[5].data
    assert summary["content"] == "Premium is worth it."
    assert summary["recommendations"][0]["productTitle"] == "Budget B"

    done = events[-1].data
    assert done["categories"] == [first, second]
    assert done["rateLimit"]["remaining"] == settings.rate_limit_anonymous - 1
    assert done["rateLimit"]["limit"] == settings.rate_limit_anonymous

    conversations = factory.create_conversation_service()
    conversation = (await conversations.list_for(guest))[0]
    assert conversation.id == done["conversationId"]
    assert conversation.title == "wireless earbuds"
    assert conversation.total_categories == 2
    assert conversation.total_products == 3
    # thumbnail: first category (Premium) by sort order
    assert conversation.thumbnail_url == "https://img/premium.jpg"

    detail = await conversations.get_detail(guest, conversation.id)
    assistant = detail.messages[-1]
    assert assistant.message.id == done["messageId"]
    assert assistant.message.content == "Premium is worth it."
    assert assistant.message.metadata["categoriesCount"] == 2
    assert [c.category.label for c in assistant.categories] == ["Premium", "Budget"]


async def test_failed_category_is_not_streamed_or_persisted(settings, user):
    provider = FakeSearchProvider(failures={"Broken"})
    factory = await _factory(settings, [
        tool_turn(search_call("c1", "Working"), search_call("c2", "Broken")),
        final_turn(),
    ], provider)

    events = await _search(factory, user)

    categories = [e.data for e in events if e.name == "category"]
    assert [c["label"] for c in categories] == ["Working"]
    assert events[-1].name == "done"
    assert [c["label"] for c in events[-1].data["categories"]] == ["Working"]

    model = factory._get_chat_model()
    tool_messages = [m for m in model.calls[1]["messages"] if m.type == "tool"]
    errors = [json.loads(m.content) for m in tool_messages if "error" in json.loads(m.content)]
    assert errors == [{"error": "upstream down for Broken", "categoryLabel": "Broken", "products": []}]


async def test_non_json_final_answer_degrades_to_text(settings, guest):
    factory = await _factory(settings, [
        tool_turn(search_call("c1", "Kettles")),
        AssistantTurn(content="I found some kettles you might like."),
    ])

    events = await _search(factory, guest, query="electric kettle")

    summary = next(e for e in events if e.name == "summary")
    assert summary.data == {
        "content": "I found some kettles you might like.",
        "recommendations": [],
        "followUpQuestion": None,
        "followUpOptions": [],
    }
    assert events[-1].name == "done"


async def test_model_failure_emits_single_error_frame(settings, guest):
    factory = await _factory(settings, [UpstreamLLMError("model down")])

    events = await _search(factory, guest)

    assert _names(events) == ["status", "error"]
    assert events[-1].data == {"message": GENERIC_ERROR_MESSAGE}
    # quota not consumed on failure
    status = await factory.create_rate_limiter().status(guest)
    assert status.remaining == settings.rate_limit_anonymous


async def test_failure_after_categories_keeps_terminal_last(settings, guest):
    factory = await _factory(settings, [
        tool_turn(search_call("c1", "First")),
        UpstreamLLMError("model down on second turn"),
    ])

    events = await _search(factory, guest)

    assert "category" in _names(events)
    assert events[-1].name == "error"
    assert sum(e.is_terminal for e in events) == 1


async def test_exhausted_loops_use_default_summary(settings, guest):
    factory = await _factory(
        settings, [tool_turn(search_call("c", "Again"))], repeat=True,
    )

    events = await _search(factory, guest)

    categories = [e.data for e in events if e.name == "category"]
    assert [c["sortOrder"] for c in categories] == list(range(settings.agent_max_loops))
    summary = next(e for e in events if e.name == "summary")
    assert summary.data["content"] == DEFAULT_SUMMARY
    assert events[-1].name == "done"


async def test_follow_up_search_uses_history(settings, user):
    factory = await _factory(settings, [
        tool_turn(search_call("c1", "Earbuds")),
        final_turn("Here are earbuds."),
        final_turn("Those are all under $50."),
    ])

    first = await _search(factory, user)
    conversation_id = first[-1].data["conversationId"]

    second = await _search(factory, user, query="which are cheapest?", conversation_id=conversation_id)
    assert second[-1].data["conversationId"] == conversation_id
    assert second[-1].data["categories"] == []

    model = factory._get_chat_model()
    contents = [m.content for m in model.calls[-1]["messages"][1:]]
    assert contents == ["wireless earbuds", "Here are earbuds.", "which are cheapest?"]

    conversation = (await factory.create_conversation_service().list_for(user))[0]
    assert conversation.total_categories == 1


async def test_unknown_conversation_yields_error(settings, guest):
    factory = await _factory(settings, [])

    events = await _search(factory, guest, conversation_id="missing")

    assert _names(events) == ["error"]


async def test_country_reaches_provider(settings, guest):
    provider = FakeSearchProvider()
    factory = await _factory(settings, [tool_turn(search_call("c1", "Tea")), final_turn()], provider)

    await _search(factory, guest, country="GB")

    assert provider.requests[0].country == "GB"


@pytest.mark.parametrize("count", [0, 1])
async def test_done_is_always_last(settings, guest, count):
    calls = [search_call(f"c{i}", f"Cat {i}") for i in range(count)]
    turns = [tool_turn(*calls), final_turn()] if calls else [final_turn()]
    factory = await _factory(settings, turns)

    events = await _search(factory, guest)

    assert events[-1].name == "done"
    assert _names(events).count("done") == 1
    assert _names(events).count("summary") == 1
