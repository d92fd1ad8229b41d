"""Thread MCP tools: chat turns and thread administration."""

from __future__ import annotations

from typing import Any

from lorekeeper.memory.broker import WorldBroker


def register_thread_tools(mcp, broker: WorldBroker) -> None:
    """Register chat and thread tools with the MCP server."""

    @mcp.tool()
    async def chat(
        message: str,
        thread_id: str,
        user_id: str | None = None,
        graph_id: str | None = None,
    ) -> dict[str, Any]:
        """Send one message to the world keeper and get its reply.

        The reply is grounded in the world graph and the thread's memory.
        Both messages are saved to the thread and any world changes the reply
        describes are written to the graph before this returns.

        Args:
            message: The user's message
            thread_id: Conversation thread (created if missing)
            user_id: Thread owner (defaults to the configured user)
            graph_id: Shared world graph to use instead of the user graph

        Returns:
            The reply text, whether it was structured, and what was persisted
        """
        turn = await broker.chat(
            [{"role": "user", "content": message}],
            thread_id=thread_id,
            user_id=user_id,
            graph_id=graph_id,
        )
        summary = await broker.finalize_turn(turn)
        return {
            "thread_id": turn.thread_id,
            "reply": turn.reply,
            "structured": turn.structured,
            **summary,
        }

    @mcp.tool()
    async def list_threads(
        page_number: int = 1,
        page_size: int = 100,
        order_by: str = "created_at",
        asc: bool = False,
    ) -> dict[str, Any]:
        """List conversation threads, newest first by default.

        Returns:
            Dict with threads and total_count
        """
        return await broker.list_threads(
            page_number=page_number,
            page_size=page_size,
            order_by=order_by,
            asc=asc,
        )

    @mcp.tool()
    async def create_thread(user_id: str | None = None) -> dict[str, str]:
        """Start a new conversation thread for a user."""
        return await broker.create_thread(user_id)

    @mcp.tool()
    async def delete_thread(thread_id: str) -> dict[str, Any]:
        """Delete a conversation thread."""
        return await broker.delete_thread(thread_id)

    @mcp.tool()
    async def get_thread_context(
        thread_id: str,
        mode: str | None = None,
    ) -> dict[str, str]:
        """Get the memory context the service has assembled for a thread.

        Args:
            thread_id: Thread to inspect
            mode: 'basic' or 'summary' (default from settings)
        """
        return await broker.get_thread_context(thread_id, mode=mode)
