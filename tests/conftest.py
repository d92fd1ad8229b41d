"""Shared test fixtures."""

from typing import Any

import pytest

from lorekeeper.config import Settings
from lorekeeper.memory.gateway import OntologyCache
from lorekeeper.memory.llm_client import ModelReply
from lorekeeper.models.graph import (
    Episode,
    GraphEdge,
    GraphNode,
    GraphScope,
    GraphSearchResults,
    ThreadInfo,
    ThreadMessage,
)


class FakeGateway:
    """In-memory stand-in for ZepGateway that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.search_results = GraphSearchResults()
        self.thread_context = ""
        self.nodes: list[GraphNode] = []
        self.edges: list[GraphEdge] = []
        self.fail_on: dict[str, Exception] = {}
        self.ontology_cache = OntologyCache()

    def _record(self, name: str, **kwargs: Any) -> None:
        self.calls.append((name, kwargs))
        if name in self.fail_on:
            raise self.fail_on[name]

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def calls_to(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for called, kwargs in self.calls if called == name]

    async def aclose(self) -> None:
        pass

    async def ensure_user(self, user_id: str) -> None:
        self._record("ensure_user", user_id=user_id)

    async def ensure_thread(self, thread_id: str, user_id: str) -> None:
        self._record("ensure_thread", thread_id=thread_id, user_id=user_id)

    async def ensure_graph(self, graph_id: str | None) -> None:
        self._record("ensure_graph", graph_id=graph_id)

    async def ensure_ontology(self, scope: GraphScope) -> None:
        self._record("ensure_ontology", scope=scope)
        self.ontology_cache.add(scope.cache_key)

    async def search(self, query: str, scope: GraphScope, limit: int = 20, min_fact_rating=None):
        self._record("search", query=query, scope=scope, limit=limit)
        return self.search_results

    async def get_thread_context(self, thread_id: str, template_id=None, min_rating=None, mode=None) -> str:
        self._record("get_thread_context", thread_id=thread_id, template_id=template_id, mode=mode)
        return self.thread_context

    async def add_thread_messages(self, thread_id: str, messages: list[ThreadMessage], **kwargs: Any):
        self._record("add_thread_messages", thread_id=thread_id, messages=messages)
        return {}

    async def add_data(self, data: str, scope: GraphScope, data_type: str = "text",
                       source_description=None, created_at=None):
        self._record(
            "add_data",
            data=data,
            scope=scope,
            data_type=data_type,
            source_description=source_description,
            created_at=created_at,
        )
        return {}

    async def add_data_batch(self, episodes: list[Episode], scope: GraphScope):
        self._record("add_data_batch", episodes=episodes, scope=scope)
        return []

    async def add_fact_triple(self, fact: str, fact_name: str, source_node_name: str,
                              target_node_name: str, scope: GraphScope, created_at=None):
        self._record(
            "add_fact_triple",
            fact=fact,
            fact_name=fact_name,
            source_node_name=source_node_name,
            target_node_name=target_node_name,
            scope=scope,
        )
        return {}

    async def list_nodes(self, scope: GraphScope) -> list[GraphNode]:
        self._record("list_nodes", scope=scope)
        return self.nodes

    async def list_edges(self, scope: GraphScope) -> list[GraphEdge]:
        self._record("list_edges", scope=scope)
        return self.edges

    async def create_thread(self, thread_id: str, user_id: str) -> ThreadInfo:
        self._record("create_thread", thread_id=thread_id, user_id=user_id)
        return ThreadInfo(thread_id=thread_id, user_id=user_id)

    async def list_threads(self, page_number=1, page_size=50, order_by="created_at", asc=False):
        self._record("list_threads", page_number=page_number, page_size=page_size,
                     order_by=order_by, asc=asc)
        return [ThreadInfo(thread_id="t-1", user_id="demo-user")], 1

    async def delete_thread(self, thread_id: str) -> None:
        self._record("delete_thread", thread_id=thread_id)


class FakeModel:
    """Chat model returning canned replies."""

    def __init__(self, *replies: str) -> None:
        self.replies = list(replies)
        self.requests: list[tuple[str, list[dict[str, str]]]] = []

    async def complete(self, system: str, messages: list[dict[str, str]]):
        self.requests.append((system, messages))
        return ModelReply(text=self.replies.pop(0))


@pytest.fixture
def test_settings():
    """Settings with both external services configured and no auth."""
    return Settings(
        api_key="",
        zep_api_key="test-zep-key",
        llm_api_key="test-llm-key",
        default_user_id="demo-user",
        default_graph_id="",
        context_template_id="",
        min_fact_rating=None,
    )


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def user_scope():
    return GraphScope(user_id="demo-user")
