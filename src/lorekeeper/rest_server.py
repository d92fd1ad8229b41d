"""REST/OpenAPI server for Lorekeeper."""

from __future__ import annotations

import base64
import binascii
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import uvicorn
from pydantic import BaseModel, Field, ValidationError
from starlette.applications import Starlette
from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse
from starlette.routing import Route

from lorekeeper.config import Settings, settings
from lorekeeper.memory.broker import GraphUnavailableError, WorldBroker
from lorekeeper.memory.gateway import ZepError
from lorekeeper.memory.llm_client import ModelUnavailableError
from lorekeeper.models.world import WorldUpdates

logger = logging.getLogger(__name__)


class ChatMessage(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    thread_id: str = Field(min_length=1)
    messages: list[ChatMessage] = Field(min_length=1)
    user_id: str | None = None
    graph_id: str | None = None


class ThreadCreateRequest(BaseModel):
    user_id: str | None = None


class GraphCreateRequest(BaseModel):
    graph_id: str = Field(min_length=1)
    name: str | None = None


class GraphSearchRequest(BaseModel):
    query: str = Field(min_length=1)
    user_id: str | None = None
    graph_id: str | None = None
    limit: int | None = None


class WorldUpdateRequest(BaseModel):
    world_updates: WorldUpdates
    user_id: str | None = None
    graph_id: str | None = None


class IngestDocument(BaseModel):
    """Either plain ``text`` or base64 ``content`` (for .docx)."""

    filename: str = Field(min_length=1)
    text: str | None = None
    content_base64: str | None = None


class IngestRequest(BaseModel):
    documents: list[IngestDocument]
    user_id: str | None = None
    graph_id: str | None = None
    chunk_size: int | None = Field(default=None, gt=0)


def _build_openapi_schema(base_url: str) -> dict[str, Any]:
    """Build a compact OpenAPI schema for the REST endpoints."""
    components = {
        "ChatRequest": ChatRequest.model_json_schema(),
        "ThreadCreateRequest": ThreadCreateRequest.model_json_schema(),
        "GraphCreateRequest": GraphCreateRequest.model_json_schema(),
        "GraphSearchRequest": GraphSearchRequest.model_json_schema(),
        "WorldUpdateRequest": WorldUpdateRequest.model_json_schema(),
        "IngestRequest": IngestRequest.model_json_schema(),
    }

    def req(name: str) -> dict[str, Any]:
        return {
            "required": True,
            "content": {
                "application/json": {
                    "schema": {"$ref": f"#/components/schemas/{name}"},
                }
            },
        }

    def ok(description: str) -> dict[str, Any]:
        return {"200": {"description": description}}

    return {
        "openapi": "3.1.0",
        "info": {
            "title": "Lorekeeper REST API",
            "version": "0.1.0",
            "description": "World-building chat with a persistent knowledge graph and thread memory.",
        },
        "servers": [{"url": base_url}],
        "paths": {
            "/health": {"get": {"summary": "Health check", "responses": ok("OK")}},
            "/api/v1/chat": {"post": {"summary": "Chat turn with world updates", "requestBody": req("ChatRequest"), "responses": ok("Reply")}},
            "/api/v1/threads": {
                "get": {"summary": "List threads", "responses": ok("Threads")},
                "post": {"summary": "Create thread", "requestBody": req("ThreadCreateRequest"), "responses": ok("Thread")},
            },
            "/api/v1/threads/{thread_id}": {"delete": {"summary": "Delete thread", "responses": ok("Deleted")}},
            "/api/v1/threads/{thread_id}/context": {"get": {"summary": "Thread memory context", "responses": ok("Context")}},
            "/api/v1/graphs": {
                "get": {"summary": "List graphs", "responses": ok("Graphs")},
                "post": {"summary": "Create graph", "requestBody": req("GraphCreateRequest"), "responses": ok("Graph")},
            },
            "/api/v1/graphs/{graph_id}": {"delete": {"summary": "Delete graph", "responses": ok("Deleted")}},
            "/api/v1/graph/search": {"post": {"summary": "Search the world graph", "requestBody": req("GraphSearchRequest"), "responses": ok("Results")}},
            "/api/v1/graph/triplets": {"get": {"summary": "All nodes and edges as triplets", "responses": ok("Triplets")}},
            "/api/v1/graph/episodes": {"get": {"summary": "Recent episodes", "responses": ok("Episodes")}},
            "/api/v1/graph/episodes/{uuid}": {"delete": {"summary": "Delete episode", "responses": ok("Deleted")}},
            "/api/v1/graph/entity-types": {"get": {"summary": "Registered entity types", "responses": ok("Types")}},
            "/api/v1/graph/world-updates": {"post": {"summary": "Apply a world-update payload", "requestBody": req("WorldUpdateRequest"), "responses": ok("Applied writes")}},
            "/api/v1/ingest": {"post": {"summary": "Ingest world documents", "requestBody": req("IngestRequest"), "responses": ok("Ingested")}},
        },
        "components": {"schemas": components},
    }


def _decode_document(document: IngestDocument) -> tuple[str, bytes]:
    if document.content_base64 is not None:
        try:
            return document.filename, base64.b64decode(document.content_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 content for {document.filename}") from e
    return document.filename, (document.text or "").encode("utf-8")


def create_app(
    broker: WorldBroker | None = None,
    config: Settings | None = None,
) -> Starlette:
    """Create a Starlette app exposing Lorekeeper as REST + OpenAPI."""
    app_settings = config or settings
    app_broker = broker or WorldBroker(app_settings)

    def error(message: str, status: int = 400) -> JSONResponse:
        return JSONResponse({"error": message}, status_code=status)

    def require_auth(request: Request) -> JSONResponse | None:
        if not app_settings.api_key:
            return None
        auth = request.headers.get("authorization", "")
        expected = f"Bearer {app_settings.api_key}"
        if auth == expected:
            return None
        return error("Unauthorized", status=401)

    def guarded(
        handler: Callable[[Request], Awaitable[JSONResponse]],
    ) -> Callable[[Request], Awaitable[JSONResponse]]:
        """Apply bearer auth and map domain errors to HTTP statuses."""

        @functools.wraps(handler)
        async def wrapper(request: Request) -> JSONResponse:
            auth = require_auth(request)
            if auth:
                return auth
            try:
                return await handler(request)
            except ValidationError as e:
                return error(str(e), status=422)
            except (GraphUnavailableError, ModelUnavailableError) as e:
                return error(str(e), status=503)
            except ZepError as e:
                logger.warning("Graph service error on %s: %s", request.url.path, e)
                return error(f"Graph service error: {e.message}", status=502)
            except httpx.HTTPError as e:
                logger.warning("Graph service unreachable on %s: %s", request.url.path, e)
                return error("Graph service unreachable", status=502)
            except ValueError as e:
                return error(str(e), status=400)

        return wrapper

    async def parse_json(request: Request, model: type[BaseModel]) -> Any:
        try:
            payload = await request.json()
        except ValueError as e:
            raise ValueError("Request body must be valid JSON") from e
        return model.model_validate(payload)

    def query_int(request: Request, name: str, default: int) -> int:
        raw = request.query_params.get(name)
        if raw is None:
            return default
        try:
            return int(raw)
        except ValueError as e:
            raise ValueError(f"Query parameter '{name}' must be an integer") from e

    def scope_params(request: Request) -> dict[str, str | None]:
        return {
            "user_id": request.query_params.get("user_id"),
            "graph_id": request.query_params.get("graph_id"),
        }

    async def health(_: Request) -> JSONResponse:
        return JSONResponse(app_broker.health_check())

    async def openapi(request: Request) -> JSONResponse:
        base_url = str(request.base_url).rstrip("/")
        return JSONResponse(_build_openapi_schema(base_url))

    async def docs(_: Request) -> HTMLResponse:
        return HTMLResponse(
            """<!doctype html>
<html>
  <head>
    <meta charset="utf-8"/>
    <title>Lorekeeper REST API Docs</title>
    <link rel="stylesheet" href="https://unpkg.com/swagger-ui-dist@5/swagger-ui.css" />
  </head>
  <body>
    <div id="swagger-ui"></div>
    <script src="https://unpkg.com/swagger-ui-dist@5/swagger-ui-bundle.js"></script>
    <script>
      SwaggerUIBundle({ url: '/openapi.json', dom_id: '#swagger-ui' });
    </script>
  </body>
</html>""",
        )

    @guarded
    async def chat(request: Request) -> JSONResponse:
        body = await parse_json(request, ChatRequest)
        turn = await app_broker.chat(
            [m.model_dump() for m in body.messages],
            thread_id=body.thread_id,
            user_id=body.user_id,
            graph_id=body.graph_id,
        )
        updates = turn.payload.world_updates.counts() if turn.payload is not None else None
        return JSONResponse(
            {
                "thread_id": turn.thread_id,
                "reply": turn.reply,
                "structured": turn.structured,
                "world_updates": updates,
            },
            background=BackgroundTask(app_broker.finalize_turn, turn),
        )

    @guarded
    async def list_threads(request: Request) -> JSONResponse:
        asc = request.query_params.get("asc", "false").lower() in ("1", "true", "yes")
        result = await app_broker.list_threads(
            page_number=query_int(request, "page_number", 1),
            page_size=query_int(request, "page_size", 100),
            order_by=request.query_params.get("order_by", "created_at"),
            asc=asc,
        )
        return JSONResponse(result)

    @guarded
    async def create_thread(request: Request) -> JSONResponse:
        body = await parse_json(request, ThreadCreateRequest)
        return JSONResponse(await app_broker.create_thread(body.user_id))

    @guarded
    async def delete_thread(request: Request) -> JSONResponse:
        return JSONResponse(await app_broker.delete_thread(request.path_params["thread_id"]))

    @guarded
    async def get_thread_context(request: Request) -> JSONResponse:
        mode = request.query_params.get("mode")
        if mode is not None and mode not in ("basic", "summary"):
            raise ValueError("mode must be 'basic' or 'summary'")
        result = await app_broker.get_thread_context(
            request.path_params["thread_id"],
            mode=mode,
            template_id=request.query_params.get("template_id"),
        )
        return JSONResponse(result)

    @guarded
    async def list_graphs(_: Request) -> JSONResponse:
        return JSONResponse(await app_broker.list_graphs())

    @guarded
    async def create_graph(request: Request) -> JSONResponse:
        body = await parse_json(request, GraphCreateRequest)
        return JSONResponse(await app_broker.create_graph(body.graph_id, name=body.name))

    @guarded
    async def delete_graph(request: Request) -> JSONResponse:
        return JSONResponse(await app_broker.delete_graph(request.path_params["graph_id"]))

    @guarded
    async def search_graph(request: Request) -> JSONResponse:
        body = await parse_json(request, GraphSearchRequest)
        result = await app_broker.search(
            body.query,
            user_id=body.user_id,
            graph_id=body.graph_id,
            limit=body.limit,
        )
        return JSONResponse(result)

    @guarded
    async def get_triplets(request: Request) -> JSONResponse:
        return JSONResponse(await app_broker.get_triplets(**scope_params(request)))

    @guarded
    async def list_episodes(request: Request) -> JSONResponse:
        return JSONResponse(await app_broker.list_episodes(**scope_params(request)))

    @guarded
    async def delete_episode(request: Request) -> JSONResponse:
        return JSONResponse(await app_broker.delete_episode(request.path_params["uuid"]))

    @guarded
    async def list_entity_types(request: Request) -> JSONResponse:
        return JSONResponse(await app_broker.list_entity_types(**scope_params(request)))

    @guarded
    async def apply_world_updates(request: Request) -> JSONResponse:
        body = await parse_json(request, WorldUpdateRequest)
        result = await app_broker.apply_world_updates(
            body.world_updates,
            user_id=body.user_id,
            graph_id=body.graph_id,
        )
        return JSONResponse(result)

    @guarded
    async def ingest(request: Request) -> JSONResponse:
        body = await parse_json(request, IngestRequest)
        documents = [_decode_document(d) for d in body.documents]
        result = await app_broker.ingest_documents(
            documents,
            user_id=body.user_id,
            graph_id=body.graph_id,
            chunk_size=body.chunk_size,
        )
        return JSONResponse({"ok": True, **result})

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/openapi.json", openapi, methods=["GET"]),
        Route("/docs", docs, methods=["GET"]),
        Route("/api/v1/chat", chat, methods=["POST"]),
        Route("/api/v1/threads", list_threads, methods=["GET"]),
        Route("/api/v1/threads", create_thread, methods=["POST"]),
        Route("/api/v1/threads/{thread_id}", delete_thread, methods=["DELETE"]),
        Route("/api/v1/threads/{thread_id}/context", get_thread_context, methods=["GET"]),
        Route("/api/v1/graphs", list_graphs, methods=["GET"]),
        Route("/api/v1/graphs", create_graph, methods=["POST"]),
        Route("/api/v1/graphs/{graph_id}", delete_graph, methods=["DELETE"]),
        Route("/api/v1/graph/search", search_graph, methods=["POST"]),
        Route("/api/v1/graph/triplets", get_triplets, methods=["GET"]),
        Route("/api/v1/graph/episodes", list_episodes, methods=["GET"]),
        Route("/api/v1/graph/episodes/{uuid}", delete_episode, methods=["DELETE"]),
        Route("/api/v1/graph/entity-types", list_entity_types, methods=["GET"]),
        Route("/api/v1/graph/world-updates", apply_world_updates, methods=["POST"]),
        Route("/api/v1/ingest", ingest, methods=["POST"]),
    ]

    return Starlette(debug=False, routes=routes)


def main() -> None:
    """Run the REST server."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting Lorekeeper REST API on %s:%s", settings.host, settings.port)
    app = create_app()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
