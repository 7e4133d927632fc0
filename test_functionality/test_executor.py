import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from agent.executor import (
    AgentExecutor,
    AgentFinished,
    StatusUpdate,
    ToolCompleted,
    searching_status,
)
from agent.memory import ConversationMemory
from agent.tools.registry import ToolRegistry
from agent.tools.search_products import SearchProductsTool
from application.context import SearchContext
from domain.entities import Message
from domain.exceptions import UpstreamLLMError
from domain.models import AssistantTurn, DEFAULT_SUMMARY

from conftest import (
    FakeSearchProvider,
    ScriptedChatModel,
    final_turn,
    search_call,
    tool_turn,
)


def _executor(model, provider=None, max_loops=3):
    registry = ToolRegistry()
    registry.register(SearchProductsTool(provider or FakeSearchProvider()))
    return AgentExecutor(model, registry, max_loops=max_loops)


async def _run(executor, identity, memory=None):
    memory = memory or ConversationMemory("system")
    memory.add_user_message("find earbuds")
    events = [e async for e in executor.run(SearchContext(identity=identity), memory)]
    return events, memory


async def test_direct_answer_without_tools(guest):
    model = ScriptedChatModel([final_turn("No search needed.")])
    events, _ = await _run(_executor(model), guest)

    assert events[0] == StatusUpdate("Analyzing your query...")
    assert isinstance(events[-1], AgentFinished)
    assert events[-1].answer.summary == "No search needed."
    assert events[-1].loops == 1
    assert len(model.calls) == 1


async def test_tool_loop_feeds_results_back_in_request_order(guest):
    provider = FakeSearchProvider(delays={"Slow": 0.03})
    model = ScriptedChatModel([
        tool_turn(search_call("c1", "Slow"), search_call("c2", "Fast")),
        final_turn(),
    ])
    events, memory = await _run(_executor(model, provider), guest)

    statuses = [e.text for e in events if isinstance(e, StatusUpdate)]
    assert statuses == ["Analyzing your query...", "Searching 2 categories...", "Refining results..."]

    completed = [e.outcome.call.id for e in events if isinstance(e, ToolCompleted)]
    assert completed == ["c2", "c1"]

    second_call_messages = model.calls[1]["messages"]
    assert isinstance(second_call_messages[0], SystemMessage)
    assert isinstance(second_call_messages[1], HumanMessage)
    assert isinstance(second_call_messages[2], AIMessage)
    assert [tc["id"] for tc in second_call_messages[2].tool_calls] == ["c1", "c2"]
    tool_messages = [m for m in second_call_messages if isinstance(m, ToolMessage)]
    assert [m.tool_call_id for m in tool_messages] == ["c1", "c2"]


async def test_loops_exhausted_gives_default_answer(guest):
    model = ScriptedChatModel([tool_turn(search_call("c", "Again"))], repeat=True)
    events, _ = await _run(_executor(model, max_loops=2), guest)

    finished = events[-1]
    assert isinstance(finished, AgentFinished)
    assert finished.exhausted is True
    assert finished.answer.summary == DEFAULT_SUMMARY
    assert len(model.calls) == 2
    assert sum(isinstance(e, ToolCompleted) for e in events) == 2


async def test_non_json_final_content_becomes_summary(guest):
    model = ScriptedChatModel([AssistantTurn(content="Here are a few earbuds.")])
    events, _ = await _run(_executor(model), guest)
    assert events[-1].answer.summary == "Here are a few earbuds."
    assert events[-1].answer.recommendations == []


async def test_model_failure_propagates(guest):
    model = ScriptedChatModel([UpstreamLLMError("model unavailable")])
    with pytest.raises(UpstreamLLMError):
        await _run(_executor(model), guest)


def test_memory_skips_empty_history_and_caps_length():
    memory = ConversationMemory("system", max_messages=2)
    loaded = memory.load([
        Message(role="user", content="first"),
        Message(role="assistant", content=""),
        Message(role="assistant", content="answer one"),
        Message(role="user", content="second"),
    ])
    assert loaded == 2
    assert [m.content for m in memory.messages] == ["system", "answer one", "second"]


def test_searching_status_pluralization():
    assert searching_status(1) == "Searching 1 category..."
    assert searching_status(3) == "Searching 3 categories..."
