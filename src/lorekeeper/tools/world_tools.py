"""World graph MCP tools: search, world updates, ingestion, graph admin."""

from __future__ import annotations

from typing import Any

from lorekeeper.memory.broker import WorldBroker
from lorekeeper.models.world import WorldUpdates


def register_world_tools(mcp, broker: WorldBroker) -> None:
    """Register world graph tools with the MCP server."""

    @mcp.tool()
    async def search_world(
        query: str,
        user_id: str | None = None,
        graph_id: str | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Search the world knowledge graph for entities and facts.

        Results come back both raw (nodes, edges) and formatted the same way
        the chat model sees them.

        Args:
            query: Natural-language search query
            user_id: User graph to search (defaults to the configured user)
            graph_id: Shared world graph to search (takes precedence over user_id)
            limit: Maximum results per kind (default from settings)

        Returns:
            Dict with nodes, edges, and a formatted markdown summary
        """
        return await broker.search(query, user_id=user_id, graph_id=graph_id, limit=limit)

    @mcp.tool()
    async def apply_world_updates(
        world_updates: dict[str, Any],
        user_id: str | None = None,
        graph_id: str | None = None,
    ) -> dict[str, Any]:
        """Write a world-update payload into the graph.

        Uses the same shape the chat model emits: new_entities, updated_entities,
        new_relationships, updated_relationships, new_events, world_facts.
        New entities may carry a temp_id that later items refer to.

        Args:
            world_updates: The world_updates object
            user_id: Target user graph
            graph_id: Target shared graph

        Returns:
            Scope, number of writes, and a description of each write
        """
        updates = WorldUpdates.model_validate(world_updates)
        return await broker.apply_world_updates(updates, user_id=user_id, graph_id=graph_id)

    @mcp.tool()
    async def ingest_text(
        filename: str,
        text: str,
        user_id: str | None = None,
        graph_id: str | None = None,
    ) -> dict[str, int]:
        """Ingest a lore document into the world graph.

        The text is split on paragraph boundaries into chunks and submitted
        as text episodes.

        Args:
            filename: Name used in each chunk's source description
            text: Document text
            user_id: Target user graph
            graph_id: Target shared graph

        Returns:
            Count of files and chunks ingested
        """
        return await broker.ingest_documents(
            [(filename, text.encode("utf-8"))],
            user_id=user_id,
            graph_id=graph_id,
        )

    @mcp.tool()
    async def get_triplets(
        user_id: str | None = None,
        graph_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Export the whole graph as (source, edge, target) triplets.

        Nodes without edges appear as self-triplets with edge type _isolated_node_.
        """
        return await broker.get_triplets(user_id=user_id, graph_id=graph_id)

    @mcp.tool()
    async def list_episodes(
        user_id: str | None = None,
        graph_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """List the most recent episodes written to a graph."""
        return await broker.list_episodes(user_id=user_id, graph_id=graph_id)

    @mcp.tool()
    async def delete_episode(episode_uuid: str) -> dict[str, Any]:
        """Delete one episode and the graph data derived only from it."""
        return await broker.delete_episode(episode_uuid)

    @mcp.tool()
    async def list_entity_types(
        user_id: str | None = None,
        graph_id: str | None = None,
    ) -> dict[str, Any]:
        """List the entity and edge types registered for a graph."""
        return await broker.list_entity_types(user_id=user_id, graph_id=graph_id)

    @mcp.tool()
    async def list_graphs() -> list[dict[str, str]]:
        """List all shared world graphs."""
        return await broker.list_graphs()

    @mcp.tool()
    async def create_graph(graph_id: str, name: str | None = None) -> dict[str, str]:
        """Create a shared world graph and register the world ontology on it.

        Args:
            graph_id: Identifier for the new graph
            name: Display name (defaults to graph_id)
        """
        return await broker.create_graph(graph_id, name=name)

    @mcp.tool()
    async def delete_graph(graph_id: str) -> dict[str, Any]:
        """Delete a shared world graph."""
        return await broker.delete_graph(graph_id)
