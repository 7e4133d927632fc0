import json

from agent.dispatcher import ToolDispatcher
from agent.tools.registry import ToolRegistry
from agent.tools.search_products import SearchProductsTool
from application.context import SearchContext
from domain.models import CategoryResult, ToolCall

from conftest import FakeSearchProvider, make_hit, search_call


def _dispatcher(provider):
    registry = ToolRegistry()
    registry.register(SearchProductsTool(provider))
    return ToolDispatcher(registry)


async def _collect(dispatcher, ctx, calls):
    return [outcome async for outcome in dispatcher.dispatch(ctx, calls)]


async def test_outcomes_arrive_in_completion_order(guest):
    provider = FakeSearchProvider(delays={"Slow": 0.05, "Medium": 0.02, "Fast": 0})
    calls = [search_call("1", "Slow"), search_call("2", "Medium"), search_call("3", "Fast")]

    outcomes = await _collect(_dispatcher(provider), SearchContext(identity=guest), calls)

    assert [o.call.id for o in outcomes] == ["3", "2", "1"]
    assert [o.index for o in outcomes] == [2, 1, 0]
    # all three were started before any finished
    assert {r.category_label for r in provider.requests} == {"Slow", "Medium", "Fast"}


async def test_failure_is_isolated_to_its_call(guest):
    provider = FakeSearchProvider(failures={"Broken"})
    calls = [search_call("1", "Working"), search_call("2", "Broken")]

    outcomes = {o.call.id: o.result for o in await _collect(
        _dispatcher(provider), SearchContext(identity=guest), calls,
    )}

    assert outcomes["1"].ok
    assert isinstance(outcomes["1"].data, CategoryResult)
    assert not outcomes["2"].ok
    payload = json.loads(outcomes["2"].output)
    assert payload["categoryLabel"] == "Broken"
    assert payload["products"] == []
    assert "upstream down" in payload["error"]


async def test_unknown_tool_and_bad_arguments_become_error_results(guest):
    calls = [
        ToolCall(id="1", name="delete_everything", arguments="{}"),
        ToolCall(id="2", name="search_products", arguments="{not json"),
        ToolCall(id="3", name="search_products", arguments='["a"]'),
        ToolCall(id="4", name="search_products", arguments=json.dumps({"categoryLabel": "No query"})),
        ToolCall(id="5", name="search_products", arguments=json.dumps(
            {"query": "x", "categoryLabel": "Bad sort", "sortBy": "cheapest"}
        )),
    ]
    outcomes = await _collect(_dispatcher(FakeSearchProvider()), SearchContext(identity=guest), calls)

    results = {o.call.id: o.result for o in outcomes}
    assert len(results) == 5
    assert all(not r.ok for r in results.values())
    assert "Unknown tool" in results["1"].error
    assert json.loads(results["4"].output)["categoryLabel"] == "No query"
    assert "sortBy" in results["5"].error


async def test_arguments_reach_the_provider(guest):
    provider = FakeSearchProvider()
    call = search_call(
        "1", "Budget", query="wireless earbuds",
        minPrice=10, maxPrice=50.5, sortBy="price_asc", categoryDescription="Cheap picks",
    )
    ctx = SearchContext(identity=guest, country="GB")

    [outcome] = await _collect(_dispatcher(provider), ctx, [call])

    request = provider.requests[0]
    assert request.query == "wireless earbuds"
    assert request.min_price == 10
    assert request.max_price == 50.5
    assert request.sort_by == "price_asc"
    assert request.country == "GB"
    assert outcome.result.data.description == "Cheap picks"


async def test_model_summary_is_truncated_but_data_is_complete(guest):
    products = [make_hit(f"Item {i}", price_cents=100 * i) for i in range(15)]
    provider = FakeSearchProvider(results={"Many": products})

    [outcome] = await _collect(
        _dispatcher(provider), SearchContext(identity=guest), [search_call("1", "Many")],
    )

    summary = json.loads(outcome.result.output)
    assert summary["categoryLabel"] == "Many"
    assert summary["totalResults"] == 15
    assert len(summary["products"]) == 10
    assert set(summary["products"][0]) == {"title", "price", "brand", "rating", "reviewCount"}
    assert len(outcome.result.data.products) == 15


def test_tool_definition_uses_wire_names():
    definition = SearchProductsTool(FakeSearchProvider()).definition()
    params = definition["function"]["parameters"]
    assert definition["function"]["name"] == "search_products"
    assert {"query", "categoryLabel", "minPrice", "maxPrice", "sortBy"} <= set(params["properties"])
    assert set(params["required"]) == {"query", "categoryLabel"}
