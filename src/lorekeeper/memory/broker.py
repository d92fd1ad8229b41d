"""Central world broker - orchestrates model, context, and graph writes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import httpx

from lorekeeper.config import Settings
from lorekeeper.memory.chunking import chunk_text
from lorekeeper.memory.context import EMPTY_CONTEXT, ContextAssembler, format_graph_context
from lorekeeper.memory.documents import extract_text
from lorekeeper.memory.gateway import ZepError, ZepGateway
from lorekeeper.memory.llm_client import ChatModel, build_system_prompt
from lorekeeper.memory.payload import parse_world_update_payload
from lorekeeper.memory.planner import apply_world_updates, describe_writes
from lorekeeper.memory.triplets import build_triplets
from lorekeeper.models.graph import Episode, GraphScope, ThreadMessage
from lorekeeper.models.world import WorldUpdatePayload, WorldUpdates

logger = logging.getLogger(__name__)


class GraphUnavailableError(RuntimeError):
    """A graph-only operation was requested without a graph service credential."""


@dataclass
class ChatTurn:
    """One completed model turn, before its side effects are applied."""

    thread_id: str
    user_id: str
    graph_id: str | None
    user_message: str
    raw_reply: str
    payload: WorldUpdatePayload | None = None
    context: str = EMPTY_CONTEXT

    @property
    def reply(self) -> str:
        """Text shown to the user."""
        if self.payload is not None:
            return self.payload.assistant_reply
        return self.raw_reply

    @property
    def structured(self) -> bool:
        return self.payload is not None

    @property
    def scope(self) -> GraphScope:
        return GraphScope(user_id=self.user_id, graph_id=self.graph_id)


class WorldBroker:
    """Central orchestrator coordinating the chat model and the graph service.

    Without a graph credential every turn is plain model chat: no context, no
    persistence, no world updates.
    """

    def __init__(
        self,
        settings: Settings,
        gateway: ZepGateway | None = None,
        model: ChatModel | None = None,
    ) -> None:
        self._settings = settings
        if gateway is None and settings.graph_enabled:
            gateway = ZepGateway.from_settings(settings)
        self._gateway = gateway
        self._model = model
        self._context = ContextAssembler(gateway, settings) if gateway is not None else None
        if gateway is None:
            logger.info("Graph service not configured; running model-only chat")

    @property
    def graph_enabled(self) -> bool:
        return self._gateway is not None

    @property
    def gateway(self) -> ZepGateway:
        if self._gateway is None:
            raise GraphUnavailableError(
                "Graph service is not configured. Set LOREKEEPER_ZEP_API_KEY."
            )
        return self._gateway

    @property
    def model(self) -> ChatModel:
        if self._model is None:
            self._model = ChatModel(self._settings)
        return self._model

    def resolve_scope(self, user_id: str | None = None, graph_id: str | None = None) -> GraphScope:
        """Fill in the configured default user/graph where the caller gave none."""
        return GraphScope(
            user_id=user_id or self._settings.default_user_id or None,
            graph_id=graph_id or self._settings.default_graph_id or None,
        )

    async def _prepare_scope(self, scope: GraphScope) -> None:
        gateway = self.gateway
        if scope.user_id:
            await gateway.ensure_user(scope.user_id)
        await gateway.ensure_graph(scope.graph_id)
        await gateway.ensure_ontology(scope)

    async def aclose(self) -> None:
        if self._gateway is not None:
            await self._gateway.aclose()

    # ── Chat ─────────────────────────────────────────────────────────

    async def chat(
        self,
        messages: list[dict[str, str]],
        thread_id: str,
        user_id: str | None = None,
        graph_id: str | None = None,
    ) -> ChatTurn:
        """Run one model turn with graph + memory context.

        The returned turn has not been persisted; pass it to ``finalize_turn``
        once the reply has gone out.
        """
        user_text = next(
            (m.get("content", "") for m in reversed(messages) if m.get("role") == "user"),
            "",
        )
        if not user_text.strip():
            raise ValueError("Chat request must end with a non-empty user message")

        owner = user_id or self._settings.default_user_id
        if not owner:
            raise ValueError("Chat requires a user_id")

        model = self.model
        scope = self.resolve_scope(owner, graph_id)
        context_block = EMPTY_CONTEXT

        if self._context is not None:
            try:
                await self.gateway.ensure_user(owner)
                await self.gateway.ensure_thread(thread_id, owner)
                await self.gateway.ensure_graph(scope.graph_id)
                await self.gateway.ensure_ontology(scope)
                context_block = await self._context.assemble(user_text, thread_id, scope)
            except (ZepError, httpx.HTTPError) as e:
                logger.warning(
                    "Graph service unavailable for thread %s; answering without context: %s",
                    thread_id,
                    e,
                )

        reply = await model.complete(build_system_prompt(context_block), messages)
        payload = parse_world_update_payload(reply.text)
        if payload is None:
            logger.debug("Thread %s: unstructured reply", thread_id)

        return ChatTurn(
            thread_id=thread_id,
            user_id=owner,
            graph_id=scope.graph_id,
            user_message=user_text,
            raw_reply=reply.text,
            payload=payload,
            context=context_block,
        )

    async def finalize_turn(self, turn: ChatTurn) -> dict[str, Any]:
        """Persist both messages, then apply the turn's world updates.

        Runs after the reply has been sent, so nothing here raises: failures
        are logged and reported in the returned summary only.
        """
        summary: dict[str, Any] = {"persisted": False, "writes": 0, "errors": []}
        if self._gateway is None:
            return summary

        assistant_metadata = None
        if turn.payload is not None:
            assistant_metadata = {"world_updates": turn.payload.world_updates.counts()}
        messages = [
            ThreadMessage(role="user", content=turn.user_message),
            ThreadMessage(role="assistant", content=turn.reply, metadata=assistant_metadata),
        ]
        try:
            await self._gateway.add_thread_messages(turn.thread_id, messages)
            summary["persisted"] = True
        except Exception as e:
            logger.exception("Failed to persist messages for thread %s", turn.thread_id)
            summary["errors"].append(f"persist: {e}")

        if turn.payload is not None and not turn.payload.world_updates.is_empty:
            try:
                writes = await apply_world_updates(self._gateway, turn.payload, turn.scope)
                summary["writes"] = len(writes)
            except Exception as e:
                logger.exception("World update failed for thread %s", turn.thread_id)
                summary["errors"].append(f"world_updates: {e}")

        return summary

    # ── World graph ──────────────────────────────────────────────────

    async def apply_world_updates(
        self,
        updates: WorldUpdatePayload | WorldUpdates,
        user_id: str | None = None,
        graph_id: str | None = None,
    ) -> dict[str, Any]:
        """Apply a caller-supplied payload. Write failures propagate."""
        scope = self.resolve_scope(user_id, graph_id)
        await self._prepare_scope(scope)
        writes = await apply_world_updates(self.gateway, updates, scope)
        return {"scope": scope.cache_key, "write_count": len(writes), "writes": describe_writes(writes)}

    async def search(
        self,
        query: str,
        user_id: str | None = None,
        graph_id: str | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        scope = self.resolve_scope(user_id, graph_id)
        results = await self.gateway.search(
            query,
            scope,
            limit=limit or self._settings.search_limit,
            min_fact_rating=self._settings.min_fact_rating,
        )
        return {
            "nodes": [n.model_dump() for n in results.nodes],
            "edges": [e.model_dump() for e in results.edges],
            "formatted": format_graph_context(results) or EMPTY_CONTEXT,
        }

    async def ingest_documents(
        self,
        documents: list[tuple[str, bytes]],
        user_id: str | None = None,
        graph_id: str | None = None,
        chunk_size: int | None = None,
    ) -> dict[str, int]:
        """Chunk uploaded documents into text episodes and batch them into the graph."""
        if not documents:
            raise ValueError("Missing file upload")
        scope = self.resolve_scope(user_id, graph_id)
        size = chunk_size or self._settings.chunk_size
        created_at = datetime.now(timezone.utc).isoformat()

        await self._prepare_scope(scope)

        episodes: list[Episode] = []
        for filename, content in documents:
            text = extract_text(filename, content)
            if not text.strip():
                logger.info("No text extracted from %s; skipping", filename)
                continue
            chunks = chunk_text(text, size)
            for index, chunk in enumerate(chunks, start=1):
                episodes.append(Episode(
                    data=chunk,
                    type="text",
                    source_description=f"{filename} (chunk {index}/{len(chunks)})",
                    created_at=created_at,
                ))

        if not episodes:
            raise ValueError("No valid text extracted from files")

        batch_size = max(1, self._settings.ingest_batch_size)
        for start in range(0, len(episodes), batch_size):
            await self.gateway.add_data_batch(episodes[start:start + batch_size], scope)

        logger.info("Ingested %d files as %d episodes into %s", len(documents), len(episodes), scope.cache_key)
        return {"files": len(documents), "chunks": len(episodes)}

    async def get_triplets(self, user_id: str | None = None, graph_id: str | None = None) -> list[dict[str, Any]]:
        scope = self.resolve_scope(user_id, graph_id)
        nodes = await self.gateway.list_nodes(scope)
        edges = await self.gateway.list_edges(scope)
        return [t.model_dump() for t in build_triplets(edges, nodes)]

    async def list_episodes(self, user_id: str | None = None, graph_id: str | None = None) -> list[dict[str, Any]]:
        return await self.gateway.list_episodes(self.resolve_scope(user_id, graph_id))

    async def delete_episode(self, episode_uuid: str) -> dict[str, Any]:
        await self.gateway.delete_episode(episode_uuid)
        return {"uuid": episode_uuid, "deleted": True}

    async def list_entity_types(self, user_id: str | None = None, graph_id: str | None = None) -> dict[str, Any]:
        scope = GraphScope(user_id=user_id, graph_id=graph_id) if (user_id or graph_id) else None
        return await self.gateway.list_entity_types(scope)

    async def list_graphs(self) -> list[dict[str, str]]:
        return await self.gateway.list_graphs()

    async def create_graph(self, graph_id: str, name: str | None = None) -> dict[str, str]:
        """Create a graph and register the world ontology on it."""
        await self.gateway.ensure_user(self._settings.default_user_id)
        await self.gateway.ensure_graph(graph_id)
        await self.gateway.ensure_ontology(GraphScope(graph_id=graph_id))
        return {"graph_id": graph_id, "name": name or graph_id}

    async def delete_graph(self, graph_id: str) -> dict[str, Any]:
        await self.gateway.delete_graph(graph_id)
        return {"graph_id": graph_id, "deleted": True}

    # ── Threads ──────────────────────────────────────────────────────

    async def list_threads(
        self,
        page_number: int = 1,
        page_size: int = 100,
        order_by: str = "created_at",
        asc: bool = False,
    ) -> dict[str, Any]:
        threads, total = await self.gateway.list_threads(
            page_number=page_number,
            page_size=page_size,
            order_by=order_by,
            asc=asc,
        )
        return {"threads": [t.model_dump() for t in threads], "total_count": total}

    async def create_thread(self, user_id: str | None = None) -> dict[str, str]:
        owner = user_id or self._settings.default_user_id
        await self.gateway.ensure_user(owner)
        thread_id = str(uuid4())
        await self.gateway.create_thread(thread_id, owner)
        return {
            "thread_id": thread_id,
            "user_id": owner,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }

    async def delete_thread(self, thread_id: str) -> dict[str, Any]:
        await self.gateway.delete_thread(thread_id)
        return {"thread_id": thread_id, "deleted": True}

    async def get_thread_context(
        self,
        thread_id: str,
        mode: str | None = None,
        template_id: str | None = None,
    ) -> dict[str, str]:
        context = await self.gateway.get_thread_context(
            thread_id,
            template_id=template_id or self._settings.context_template_id or None,
            mode=mode or self._settings.context_mode,
        )
        return {"thread_id": thread_id, "context": context}

    # ── Admin ────────────────────────────────────────────────────────

    def health_check(self) -> dict[str, Any]:
        """Check configuration health."""
        return {
            "status": "healthy",
            "graph_enabled": self.graph_enabled,
            "model_enabled": self._model is not None or self._settings.model_enabled,
            "ontology_scopes": len(self._gateway.ontology_cache) if self._gateway is not None else 0,
        }
