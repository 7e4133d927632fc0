"""REST adapter tests through FastAPI's TestClient."""

import pytest
from fastapi.testclient import TestClient

from adapters.client.stream_client import StreamReconstructor
from adapters.rest.app import create_app
from factory import ServiceFactory

from conftest import FakeSearchProvider, ScriptedChatModel, final_turn, search_call, tool_turn


@pytest.fixture
def factory(settings):
    model = ScriptedChatModel(
        [tool_turn(search_call("c1", "Budget"), search_call("c2", "Premium")), final_turn()],
        repeat=True,
    )
    return ServiceFactory(settings, chat_model=model, search_provider=FakeSearchProvider())


@pytest.fixture
def client(factory):
    with TestClient(create_app(factory)) as test_client:
        yield test_client


@pytest.fixture
def resolver(factory):
    return factory.create_identity_resolver()


@pytest.fixture
def guest_headers(resolver):
    return {"X-Anon-Token": resolver.create_anon_token("guest-1")}


@pytest.fixture
def user_headers(resolver):
    return {"Authorization": f"Bearer {resolver.create_user_token('42')}"}


def _search(client, headers, **body):
    body.setdefault("query", "wireless earbuds")
    return client.post("/search", json=body, headers=headers)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok", "version": "0.1.0"}


def test_search_requires_identity(client):
    response = _search(client, {})
    assert response.status_code == 401
    assert response.json()["code"] == "auth_required"
    assert response.json()["error"] == "Authentication required"


def test_search_streams_events(client, guest_headers):
    response = _search(client, guest_headers, country="GB")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"

    result = StreamReconstructor(is_guest=True).on_complete(
        response.status_code, response.headers["content-type"], response.text,
    )
    assert result.conversation_id
    assert result.message_id
    assert {c["label"] for c in result.categories} == {"Budget", "Premium"}
    assert sorted(c["sortOrder"] for c in result.categories) == [0, 1]
    assert result.summary == "Found some great options."
    assert result.follow_up_options == ["Under $50", "Under $100"]
    assert result.rate_limit["remaining"] == 1
    assert result.rate_limit["limit"] == 2

    lines = [line for line in response.text.split("\n") if line.startswith("event: ")]
    assert lines[0] == "event: status"
    assert lines[-2:] == ["event: summary", "event: done"]


@pytest.mark.parametrize("body", [{"query": ""}, {"query": "   "}, {}])
def test_blank_query_is_rejected(client, guest_headers, body):
    response = client.post("/search", json=body, headers=guest_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "query is required"}


def test_invalid_json_is_rejected(client, guest_headers):
    response = client.post(
        "/search",
        content=b"{not json",
        headers={**guest_headers, "Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON body"}


def test_guest_quota_exhaustion(client, guest_headers):
    for _ in range(2):
        assert _search(client, guest_headers).status_code == 200

    rate = client.get("/rate-limit", headers=guest_headers).json()
    assert rate["remaining"] == 0
    assert rate["reason"] == "guest"

    response = _search(client, guest_headers)
    assert response.status_code == 429
    data = response.json()
    assert data["code"] == "rate_limited"
    assert data["reason"] == "guest"
    assert data["remaining"] == 0
    assert data["limit"] == 2
    assert data["reset_at"]

    # quota is checked before the body is looked at
    assert client.post("/search", json={}, headers=guest_headers).status_code == 429


def test_users_have_separate_quota(client, guest_headers, user_headers):
    for _ in range(2):
        _search(client, guest_headers)
    rate = client.get("/rate-limit", headers=user_headers).json()
    assert rate == {**rate, "remaining": 3, "limit": 3, "used": 0, "reason": "user"}


def test_conversation_endpoints(client, guest_headers, user_headers):
    response = _search(client, guest_headers)
    result = StreamReconstructor().on_complete(200, response.headers["content-type"], response.text)
    conversation_id = result.conversation_id

    listed = client.get("/conversations", headers=guest_headers).json()
    assert [c["id"] for c in listed] == [conversation_id]
    assert listed[0]["total_categories"] == 2
    assert listed[0]["total_products"] == 6

    detail = client.get(f"/conversations/{conversation_id}", headers=guest_headers).json()
    assert [m["role"] for m in detail["messages"]] == ["user", "assistant"]
    assert len(detail["messages"][1]["categories"]) == 2
    assert detail["messages"][1]["metadata"]["categoriesCount"] == 2

    # other callers cannot see it
    assert client.get(f"/conversations/{conversation_id}", headers=user_headers).status_code == 404
    assert client.get("/conversations", headers=user_headers).json() == []

    patched = client.patch(
        f"/conversations/{conversation_id}", json={"status": "archived"}, headers=guest_headers,
    )
    assert patched.status_code == 200
    assert patched.json()["status"] == "archived"
    assert client.patch(
        f"/conversations/{conversation_id}", json={"status": "gone"}, headers=guest_headers,
    ).status_code == 400

    assert client.delete(f"/conversations/{conversation_id}", headers=guest_headers).status_code == 204
    assert client.get(f"/conversations/{conversation_id}", headers=guest_headers).status_code == 404


def test_follow_up_into_unknown_conversation_streams_error(client, user_headers):
    response = _search(client, user_headers, conversationId="missing")
    assert response.status_code == 200
    assert "event: error" in response.text
    assert "event: done" not in response.text
