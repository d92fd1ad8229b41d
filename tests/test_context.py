"""Tests for context formatting and assembly."""

import httpx
import pytest
from conftest import FakeGateway

from lorekeeper.config import Settings
from lorekeeper.memory.context import (
    EMPTY_CONTEXT,
    ContextAssembler,
    format_graph_context,
    render_context_block,
)
from lorekeeper.memory.gateway import ZepError
from lorekeeper.models.graph import GraphEdge, GraphNode, GraphScope, GraphSearchResults


def _results() -> GraphSearchResults:
    return GraphSearchResults(
        nodes=[
            GraphNode(
                uuid="n1",
                name="Aria",
                labels=["Entity", "Character"],
                attributes={"role": "ranger", "status": "", "goals": None, "aliases": ["Ari", "The Grey"]},
            ),
            GraphNode(uuid="n2", name="Oakvale"),
        ],
        edges=[GraphEdge(uuid="e1", fact="Aria guards Oakvale")],
    )


def test_format_graph_context():
    text = format_graph_context(_results())
    assert text == (
        "## Relevant entities\n"
        "- **Aria** [Entity, Character] — role: ranger; aliases: Ari, The Grey\n"
        "- **Oakvale** [Unknown]\n"
        "\n"
        "## Relevant facts and relationships\n"
        "- Aria guards Oakvale"
    )


def test_format_omits_empty_sections():
    only_edges = GraphSearchResults(edges=[GraphEdge(uuid="e1", fact="The river floods in spring")])
    text = format_graph_context(only_edges)
    assert "Relevant entities" not in text
    assert text == "## Relevant facts and relationships\n- The river floods in spring"
    assert format_graph_context(GraphSearchResults()) == ""


def test_render_empty_context_is_placeholder():
    assert render_context_block("", "") == EMPTY_CONTEXT
    assert render_context_block("  ", "\n") == "(empty)"


def test_render_sections_in_fixed_order():
    block = render_context_block("- fact", "User likes dragons")
    assert block == "# Knowledge graph\n- fact\n\n# Conversation memory\nUser likes dragons"
    assert render_context_block("", "memo") == "# Conversation memory\nmemo"


@pytest.mark.asyncio
async def test_assemble_combines_search_and_memory():
    gateway = FakeGateway()
    gateway.search_results = _results()
    gateway.thread_context = "Aria met the user at the gate."
    assembler = ContextAssembler(gateway, Settings(search_limit=7))

    block = await assembler.assemble("Who guards Oakvale?", "thread-1", GraphScope(graph_id="world"))

    assert block.startswith("# Knowledge graph\n## Relevant entities")
    assert block.endswith("# Conversation memory\nAria met the user at the gate.")
    search = gateway.calls_to("search")[0]
    assert search["limit"] == 7
    assert search["scope"].graph_id == "world"
    assert gateway.calls_to("get_thread_context")[0]["mode"] == "basic"


@pytest.mark.asyncio
async def test_assemble_with_nothing_found():
    assembler = ContextAssembler(FakeGateway(), Settings())
    block = await assembler.assemble("hello", "thread-1", GraphScope(user_id="u"))
    assert block == EMPTY_CONTEXT


@pytest.mark.asyncio
async def test_lookup_failures_degrade_to_empty():
    gateway = FakeGateway()
    gateway.fail_on["search"] = ZepError(500, "search down")
    gateway.fail_on["get_thread_context"] = httpx.ConnectError("no route")
    assembler = ContextAssembler(gateway, Settings())
    block = await assembler.assemble("hello", "thread-1", GraphScope(user_id="u"))
    assert block == EMPTY_CONTEXT


@pytest.mark.asyncio
async def test_blank_query_skips_search():
    gateway = FakeGateway()
    assembler = ContextAssembler(gateway, Settings())
    assert await assembler.search_graph("   ", GraphScope(user_id="u")) == ""
    assert gateway.calls == []
