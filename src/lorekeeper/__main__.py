"""Allow running as `python -m lorekeeper`."""

from lorekeeper.config import settings


def main() -> None:
    """Dispatch to the combined, MCP, or REST runtime."""
    if settings.runtime_mode == "rest":
        from lorekeeper.rest_server import main as rest_main

        rest_main()
        return
    if settings.runtime_mode == "combined":
        from lorekeeper.combined_server import main as combined_main

        combined_main()
        return

    from lorekeeper.server import main as mcp_main

    mcp_main()


main()
