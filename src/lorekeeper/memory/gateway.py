"""Async adapter for the hosted graph/thread memory service (Zep REST API)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from lorekeeper.config import Settings
from lorekeeper.memory.ontology import build_ontology_request
from lorekeeper.models.graph import (
    Episode,
    GraphEdge,
    GraphNode,
    GraphScope,
    GraphSearchResults,
    ThreadInfo,
    ThreadMessage,
)

logger = logging.getLogger(__name__)

NODE_PAGE_SIZE = 100
EDGE_PAGE_SIZE = 100
EPISODE_LIMIT = 100


class ZepError(Exception):
    """Non-2xx response from the graph service."""

    def __init__(self, status_code: int, message: str, body: Any = None) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.body = body


def is_already_exists(error: BaseException) -> bool:
    """The service answers duplicate creates with 400 or 409."""
    return isinstance(error, ZepError) and error.status_code in (400, 409)


class OntologyCache:
    """Scopes whose ontology has been registered during this process.

    Append-only with no invalidation. Two concurrent first calls for the same
    scope may both register; the registration call is idempotent.
    """

    def __init__(self) -> None:
        self._keys: set[str] = set()

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def add(self, key: str) -> None:
        self._keys.add(key)


class ZepGateway:
    """Thin async client over the graph and thread endpoints."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.getzep.com/api/v2",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        ontology_cache: OntologyCache | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Graph service API key is required")
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Api-Key {api_key}"},
            timeout=timeout,
            transport=transport,
        )
        self._ontology_cache = ontology_cache if ontology_cache is not None else OntologyCache()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> ZepGateway:
        return cls(
            api_key=settings.zep_api_key,
            base_url=settings.zep_base_url,
            timeout=settings.zep_timeout,
            **kwargs,
        )

    @property
    def ontology_cache(self) -> OntologyCache:
        return self._ontology_cache

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        response = await self._client.request(method, path, json=json, params=params)
        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            message = body.get("message", response.reason_phrase) if isinstance(body, dict) else str(body)
            raise ZepError(response.status_code, message or response.reason_phrase, body)
        if not response.content:
            return None
        return response.json()

    # ── Idempotent ensure-* calls ───────────────────────────────────

    async def ensure_user(self, user_id: str) -> None:
        try:
            await self._request("POST", "/users", json={"user_id": user_id})
        except ZepError as e:
            if is_already_exists(e):
                return
            raise

    async def ensure_thread(self, thread_id: str, user_id: str) -> None:
        try:
            await self._request("POST", "/threads", json={"thread_id": thread_id, "user_id": user_id})
        except ZepError as e:
            if is_already_exists(e):
                return
            raise

    async def ensure_graph(self, graph_id: str | None) -> None:
        if not graph_id:
            return
        try:
            await self._request("POST", "/graph/create", json={"graph_id": graph_id, "name": graph_id})
        except ZepError as e:
            if is_already_exists(e):
                return
            raise

    async def ensure_ontology(self, scope: GraphScope) -> None:
        """Register the world ontology once per scope per process."""
        key = scope.cache_key
        if key in self._ontology_cache:
            return
        await self._request("PUT", "/entity-types", json=build_ontology_request(scope))
        self._ontology_cache.add(key)
        logger.info("Registered world ontology for %s", key)

    # ── Threads ─────────────────────────────────────────────────────

    async def create_thread(self, thread_id: str, user_id: str) -> ThreadInfo:
        data = await self._request("POST", "/threads", json={"thread_id": thread_id, "user_id": user_id})
        return ThreadInfo.model_validate(data or {"thread_id": thread_id, "user_id": user_id})

    async def get_thread(self, thread_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/threads/{thread_id}") or {}

    async def list_threads(
        self,
        page_number: int = 1,
        page_size: int = 50,
        order_by: str = "created_at",
        asc: bool = False,
    ) -> tuple[list[ThreadInfo], int]:
        """One page of threads plus the total count."""
        data = await self._request(
            "GET",
            "/threads",
            params={
                "page_number": page_number,
                "page_size": page_size,
                "order_by": order_by,
                "asc": "true" if asc else "false",
            },
        ) or {}
        threads = [ThreadInfo.model_validate(t) for t in data.get("threads") or []]
        return threads, int(data.get("total_count") or 0)

    async def delete_thread(self, thread_id: str) -> None:
        await self._request("DELETE", f"/threads/{thread_id}")

    async def add_thread_messages(
        self,
        thread_id: str,
        messages: list[ThreadMessage],
        return_context: bool = False,
        ignore_roles: list[str] | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "messages": [m.model_dump(exclude_none=True) for m in messages],
        }
        if return_context:
            body["return_context"] = True
        if ignore_roles:
            body["ignore_roles"] = ignore_roles
        logger.debug("Adding %d messages to thread %s", len(messages), thread_id)
        return await self._request("POST", f"/threads/{thread_id}/messages", json=body) or {}

    async def get_thread_context(
        self,
        thread_id: str,
        template_id: str | None = None,
        min_rating: float | None = None,
        mode: str | None = None,
    ) -> str:
        """Assembled memory context for a thread, as opaque text."""
        data = await self._request(
            "GET",
            f"/threads/{thread_id}/context",
            params={"template_id": template_id or None, "min_rating": min_rating, "mode": mode},
        ) or {}
        return data.get("context") or ""

    # ── Graph writes ────────────────────────────────────────────────

    async def add_data(
        self,
        data: str,
        scope: GraphScope,
        data_type: str = "text",
        source_description: str | None = None,
        created_at: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"data": data, "type": data_type, **scope.target()}
        if source_description:
            body["source_description"] = source_description
        if created_at:
            body["created_at"] = created_at
        return await self._request("POST", "/graph", json=body) or {}

    async def add_data_batch(self, episodes: list[Episode], scope: GraphScope) -> list[dict[str, Any]]:
        body = {
            "episodes": [e.model_dump(exclude_none=True) for e in episodes],
            **scope.target(),
        }
        return await self._request("POST", "/graph-batch", json=body) or []

    async def add_fact_triple(
        self,
        fact: str,
        fact_name: str,
        source_node_name: str,
        target_node_name: str,
        scope: GraphScope,
        created_at: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "fact": fact,
            "fact_name": fact_name,
            "source_node_name": source_node_name,
            "target_node_name": target_node_name,
            **scope.target(),
        }
        if created_at:
            body["created_at"] = created_at
        return await self._request("POST", "/graph/add-fact-triple", json=body) or {}

    # ── Graph reads ─────────────────────────────────────────────────

    async def search(
        self,
        query: str,
        scope: GraphScope,
        limit: int = 20,
        min_fact_rating: float | None = None,
    ) -> GraphSearchResults:
        body: dict[str, Any] = {"query": query, "limit": limit, **scope.target()}
        if min_fact_rating is not None:
            body["min_fact_rating"] = min_fact_rating
        data = await self._request("POST", "/graph/search", json=body) or {}
        return GraphSearchResults.model_validate(data)

    async def _paginate(self, path: str, page_size: int) -> list[dict[str, Any]]:
        """Cursor through a uuid-ordered listing until a short page comes back."""
        items: list[dict[str, Any]] = []
        cursor = ""
        while True:
            page = await self._request("POST", path, json={"limit": page_size, "uuid_cursor": cursor}) or []
            items.extend(page)
            if len(page) < page_size:
                return items
            cursor = page[-1]["uuid"]

    @staticmethod
    def _scope_path(kind: str, scope: GraphScope) -> str:
        if scope.graph_id:
            return f"/graph/{kind}/graph/{scope.graph_id}"
        return f"/graph/{kind}/user/{scope.user_id}"

    async def list_nodes(self, scope: GraphScope, page_size: int = NODE_PAGE_SIZE) -> list[GraphNode]:
        raw = await self._paginate(self._scope_path("node", scope), page_size)
        return [GraphNode.model_validate(n) for n in raw]

    async def list_edges(self, scope: GraphScope, page_size: int = EDGE_PAGE_SIZE) -> list[GraphEdge]:
        raw = await self._paginate(self._scope_path("edge", scope), page_size)
        return [GraphEdge.model_validate(e) for e in raw]

    async def list_episodes(self, scope: GraphScope, lastn: int = EPISODE_LIMIT) -> list[dict[str, Any]]:
        data = await self._request("GET", self._scope_path("episodes", scope), params={"lastn": lastn}) or {}
        return data.get("episodes") or []

    async def delete_episode(self, episode_uuid: str) -> None:
        await self._request("DELETE", f"/graph/episodes/{episode_uuid}")

    # ── Graph admin ─────────────────────────────────────────────────

    async def list_graphs(self) -> list[dict[str, str]]:
        data = await self._request("GET", "/graph/list-all") or {}
        graphs = []
        for graph in data.get("graphs") or []:
            graph_id = graph.get("graph_id") or graph.get("id") or ""
            graphs.append({"graph_id": graph_id, "name": graph.get("name") or graph_id})
        return graphs

    async def delete_graph(self, graph_id: str) -> None:
        await self._request("DELETE", f"/graph/{graph_id}")

    async def list_entity_types(self, scope: GraphScope | None = None) -> dict[str, Any]:
        params = scope.target() if scope else None
        return await self._request("GET", "/entity-types", params=params) or {}
