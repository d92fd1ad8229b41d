"""Model-facing context: graph search results plus thread memory."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from lorekeeper.config import Settings
from lorekeeper.memory.gateway import ZepError, ZepGateway
from lorekeeper.models.graph import GraphScope, GraphSearchResults

logger = logging.getLogger(__name__)

EMPTY_CONTEXT = "(empty)"


def _format_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def format_graph_context(results: GraphSearchResults) -> str:
    """Render search hits as markdown bullets; empty lists render nothing."""
    lines: list[str] = []

    if results.nodes:
        lines.append("## Relevant entities")
        for node in results.nodes:
            labels = ", ".join(node.labels) if node.labels else "Unknown"
            line = f"- **{node.name}** [{labels}]"
            attrs = [
                f"{key}: {_format_value(value)}"
                for key, value in (node.attributes or {}).items()
                if value is not None and value != ""
            ]
            if attrs:
                line += " — " + "; ".join(attrs)
            lines.append(line)
        lines.append("")

    if results.edges:
        lines.append("## Relevant facts and relationships")
        for edge in results.edges:
            lines.append(f"- {edge.fact}")
        lines.append("")

    return "\n".join(lines).strip()


def render_context_block(graph_text: str, memory_text: str) -> str:
    """Join the labeled sections, or the placeholder when both are empty."""
    sections = []
    if graph_text.strip():
        sections.append(f"# Knowledge graph\n{graph_text.strip()}")
    if memory_text.strip():
        sections.append(f"# Conversation memory\n{memory_text.strip()}")
    if not sections:
        return EMPTY_CONTEXT
    return "\n\n".join(sections)


class ContextAssembler:
    """Builds the context block for one chat turn.

    A failed lookup is logged and leaves its section empty; the turn still
    goes to the model.
    """

    def __init__(self, gateway: ZepGateway, settings: Settings) -> None:
        self._gateway = gateway
        self._settings = settings

    async def search_graph(self, query: str, scope: GraphScope) -> str:
        if not query.strip():
            return ""
        try:
            results = await self._gateway.search(
                query,
                scope,
                limit=self._settings.search_limit,
                min_fact_rating=self._settings.min_fact_rating,
            )
        except (ZepError, httpx.HTTPError) as e:
            logger.warning("Graph search failed for %s: %s", scope.cache_key, e)
            return ""
        return format_graph_context(results)

    async def thread_memory(self, thread_id: str) -> str:
        try:
            return await self._gateway.get_thread_context(
                thread_id,
                template_id=self._settings.context_template_id or None,
                mode=self._settings.context_mode,
            )
        except (ZepError, httpx.HTTPError) as e:
            logger.warning("Thread context lookup failed for %s: %s", thread_id, e)
            return ""

    async def assemble(self, query: str, thread_id: str, scope: GraphScope) -> str:
        """Context for ``query`` from the graph at ``scope`` and the thread's memory."""
        graph_text = await self.search_graph(query, scope)
        memory_text = await self.thread_memory(thread_id)
        return render_context_block(graph_text, memory_text)
