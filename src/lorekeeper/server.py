"""FastMCP server entry point for Lorekeeper."""

from __future__ import annotations

import logging

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from lorekeeper.auth import build_auth_provider
from lorekeeper.config import Settings, settings
from lorekeeper.memory.broker import WorldBroker
from lorekeeper.tools.thread_tools import register_thread_tools
from lorekeeper.tools.world_tools import register_world_tools

logger = logging.getLogger(__name__)


def configure_logging(config: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_mcp_server(
    broker: WorldBroker | None = None,
    config: Settings | None = None,
) -> FastMCP:
    """Create the MCP server with all tools registered."""
    cfg = config or settings
    app_broker = broker or WorldBroker(cfg)

    mcp = FastMCP(
        "Lorekeeper",
        instructions="World-building chat backed by a persistent knowledge graph. "
        "Chat in threads, search the world, and record changes to it.",
        auth=build_auth_provider(cfg, logger=logger),
    )

    register_thread_tools(mcp, app_broker)
    register_world_tools(mcp, app_broker)

    @mcp.custom_route("/health", methods=["GET"])
    async def health(request: Request) -> JSONResponse:
        return JSONResponse(app_broker.health_check())

    return mcp


def main() -> None:
    """Run the MCP server."""
    cfg = settings
    configure_logging(cfg)
    mcp = create_mcp_server(config=cfg)
    if cfg.mcp_transport == "stdio":
        logger.info("Starting Lorekeeper MCP server on stdio")
        mcp.run(transport="stdio")
        return
    logger.info("Starting Lorekeeper MCP server on %s:%s", cfg.host, cfg.port)
    mcp.run(transport="streamable-http", host=cfg.host, port=cfg.port)


if __name__ == "__main__":
    main()
