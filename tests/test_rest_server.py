"""Tests for the REST server."""

import base64
import json

import httpx
import pytest
from conftest import FakeGateway, FakeModel

from lorekeeper.config import Settings
from lorekeeper.memory.broker import WorldBroker
from lorekeeper.memory.gateway import ZepError
from lorekeeper.rest_server import create_app

STRUCTURED_REPLY = json.dumps({
    "assistant_reply": "The gates of Oakvale open.",
    "world_updates": {"new_entities": [{"type": "Location", "name": "Oakvale"}]},
})


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


def _app(settings: Settings, gateway=None, *replies: str):
    broker = WorldBroker(settings, gateway=gateway, model=FakeModel(*replies))
    return create_app(broker=broker, config=settings)


@pytest.mark.asyncio
async def test_health_and_openapi(test_settings):
    app = _app(test_settings, FakeGateway())
    async with _client(app) as client:
        health = await client.get("/health")
        assert health.status_code == 200
        assert health.json()["status"] == "healthy"
        assert health.json()["graph_enabled"] is True

        openapi = await client.get("/openapi.json")
        assert openapi.status_code == 200
        schema = openapi.json()
        assert "/api/v1/chat" in schema["paths"]
        assert "ChatRequest" in schema["components"]["schemas"]

        docs = await client.get("/docs")
        assert docs.status_code == 200
        assert "swagger-ui" in docs.text


@pytest.mark.asyncio
async def test_chat_returns_reply_and_finalizes(test_settings):
    gateway = FakeGateway()
    app = _app(test_settings, gateway, STRUCTURED_REPLY)
    async with _client(app) as client:
        response = await client.post("/api/v1/chat", json={
            "thread_id": "t-1",
            "messages": [{"role": "user", "content": "Open the gates"}],
        })

    assert response.status_code == 200
    body = response.json()
    assert body["reply"] == "The gates of Oakvale open."
    assert body["structured"] is True
    assert body["thread_id"] == "t-1"
    assert body["world_updates"]["new_entities"] == 1
    # Post-response task has run by the time the transport returns.
    assert gateway.names()[-2:] == ["add_thread_messages", "add_data"]


@pytest.mark.asyncio
async def test_chat_plain_reply(test_settings):
    app = _app(test_settings, FakeGateway(), "Just talk.")
    async with _client(app) as client:
        response = await client.post("/api/v1/chat", json={
            "thread_id": "t-1",
            "messages": [{"role": "user", "content": "hello"}],
        })
    assert response.json() == {"thread_id": "t-1", "reply": "Just talk.", "structured": False, "world_updates": None}


@pytest.mark.asyncio
async def test_chat_validation_errors(test_settings):
    app = _app(test_settings, FakeGateway())
    async with _client(app) as client:
        missing = await client.post("/api/v1/chat", json={"thread_id": "t-1", "messages": []})
        assert missing.status_code == 422

        not_json = await client.post("/api/v1/chat", content=b"{oops", headers={"content-type": "application/json"})
        assert not_json.status_code == 400
        assert "error" in not_json.json()

        no_user = await client.post("/api/v1/chat", json={
            "thread_id": "t-1",
            "messages": [{"role": "assistant", "content": "hi"}],
        })
        assert no_user.status_code == 400


@pytest.mark.asyncio
async def test_auth_guard():
    settings = Settings(api_key="abc123", zep_api_key="z", llm_api_key="k")
    app = _app(settings, FakeGateway())
    async with _client(app) as client:
        unauthorized = await client.get("/api/v1/threads")
        assert unauthorized.status_code == 401
        assert unauthorized.json() == {"error": "Unauthorized"}

        authorized = await client.get("/api/v1/threads", headers={"Authorization": "Bearer abc123"})
        assert authorized.status_code == 200

        health = await client.get("/health")
        assert health.status_code == 200


@pytest.mark.asyncio
async def test_thread_routes(test_settings):
    gateway = FakeGateway()
    gateway.thread_context = "Aria distrusts the guild."
    app = _app(test_settings, gateway)
    async with _client(app) as client:
        listed = await client.get("/api/v1/threads", params={"page_size": 10, "asc": "true"})
        assert listed.json()["total_count"] == 1
        assert gateway.calls_to("list_threads")[0]["page_size"] == 10
        assert gateway.calls_to("list_threads")[0]["asc"] is True

        created = await client.post("/api/v1/threads", json={"user_id": "alice"})
        assert created.json()["user_id"] == "alice"

        deleted = await client.delete("/api/v1/threads/t-9")
        assert deleted.json() == {"thread_id": "t-9", "deleted": True}

        context = await client.get("/api/v1/threads/t-9/context", params={"mode": "summary"})
        assert context.json() == {"thread_id": "t-9", "context": "Aria distrusts the guild."}

        bad_mode = await client.get("/api/v1/threads/t-9/context", params={"mode": "verbose"})
        assert bad_mode.status_code == 400

        bad_page = await client.get("/api/v1/threads", params={"page_size": "lots"})
        assert bad_page.status_code == 400


@pytest.mark.asyncio
async def test_world_updates_route(test_settings):
    gateway = FakeGateway()
    app = _app(test_settings, gateway)
    async with _client(app) as client:
        response = await client.post("/api/v1/graph/world-updates", json={
            "graph_id": "world",
            "world_updates": {
                "new_events": [{"name": "Eclipse", "participants": [{"entity_name": "Aria"}]}],
            },
        })
        assert response.status_code == 200
        assert response.json()["write_count"] == 2

        invalid = await client.post("/api/v1/graph/world-updates", json={
            "world_updates": {"new_entities": [{"type": "Dragon", "name": "Smaug"}]},
        })
        assert invalid.status_code == 422


@pytest.mark.asyncio
async def test_ingest_route(test_settings):
    gateway = FakeGateway()
    app = _app(test_settings, gateway)
    encoded = base64.b64encode("Second file.".encode()).decode()
    async with _client(app) as client:
        response = await client.post("/api/v1/ingest", json={
            "graph_id": "world",
            "documents": [
                {"filename": "one.md", "text": "First file.\n\nMore lore."},
                {"filename": "two.txt", "content_base64": encoded},
            ],
        })
        assert response.status_code == 200
        assert response.json() == {"ok": True, "files": 2, "chunks": 2}

        empty = await client.post("/api/v1/ingest", json={"documents": []})
        assert empty.status_code == 400
        assert empty.json()["error"] == "Missing file upload"

        bad = await client.post("/api/v1/ingest", json={
            "documents": [{"filename": "x.docx", "content_base64": "!!not base64!!"}],
        })
        assert bad.status_code == 400


@pytest.mark.asyncio
async def test_graph_routes(test_settings):
    gateway = FakeGateway()
    app = _app(test_settings, gateway)
    async with _client(app) as client:
        created = await client.post("/api/v1/graphs", json={"graph_id": "world"})
        assert created.json() == {"graph_id": "world", "name": "world"}

        triplets = await client.get("/api/v1/graph/triplets", params={"graph_id": "world"})
        assert triplets.json() == []
        assert gateway.calls_to("list_nodes")[0]["scope"].graph_id == "world"

        search = await client.post("/api/v1/graph/search", json={"query": "Aria"})
        assert search.json()["formatted"] == "(empty)"


@pytest.mark.asyncio
async def test_graph_service_errors_map_to_502(test_settings):
    gateway = FakeGateway()
    gateway.fail_on["search"] = ZepError(500, "search exploded")
    app = _app(test_settings, gateway)
    async with _client(app) as client:
        response = await client.post("/api/v1/graph/search", json={"query": "Aria"})
    assert response.status_code == 502
    assert "search exploded" in response.json()["error"]


@pytest.mark.asyncio
async def test_graph_disabled_maps_to_503():
    settings = Settings(zep_api_key="", llm_api_key="k")
    app = _app(settings, None, "plain chat still works")
    async with _client(app) as client:
        graph = await client.get("/api/v1/graphs")
        assert graph.status_code == 503

        chat = await client.post("/api/v1/chat", json={
            "thread_id": "t-1",
            "messages": [{"role": "user", "content": "hello"}],
        })
        assert chat.status_code == 200
        assert chat.json()["reply"] == "plain chat still works"


@pytest.mark.asyncio
async def test_model_disabled_maps_to_503():
    settings = Settings(zep_api_key="z", llm_api_key="")
    app = create_app(broker=WorldBroker(settings, gateway=FakeGateway()), config=settings)
    async with _client(app) as client:
        response = await client.post("/api/v1/chat", json={
            "thread_id": "t-1",
            "messages": [{"role": "user", "content": "hello"}],
        })
    assert response.status_code == 503
