"""Tests for triplet building."""

from lorekeeper.memory.triplets import ISOLATED_EDGE_TYPE, build_triplets
from lorekeeper.models.graph import GraphEdge, GraphNode


def test_edges_and_isolated_nodes():
    nodes = [
        GraphNode(uuid="a", name="Aria"),
        GraphNode(uuid="b", name="Oakvale"),
        GraphNode(uuid="c", name="Lonely Tower", created_at="2024-01-01"),
    ]
    edges = [
        GraphEdge(uuid="e1", source_node_uuid="a", target_node_uuid="b", name="LIVES_IN", fact="Aria lives in Oakvale"),
        GraphEdge(uuid="e2", source_node_uuid="a", target_node_uuid="missing", fact="dangling"),
    ]

    triplets = build_triplets(edges, nodes)

    assert len(triplets) == 2
    linked, isolated = triplets
    assert (linked.source_node.name, linked.edge.uuid, linked.target_node.name) == ("Aria", "e1", "Oakvale")
    assert isolated.source_node.uuid == isolated.target_node.uuid == "c"
    assert isolated.edge.type == ISOLATED_EDGE_TYPE
    assert isolated.edge.created_at == "2024-01-01"


def test_dangling_edge_does_not_connect_its_known_endpoint():
    nodes = [GraphNode(uuid="a", name="Aria")]
    edges = [GraphEdge(uuid="e1", source_node_uuid="a", target_node_uuid="gone")]
    triplets = build_triplets(edges, nodes)
    assert len(triplets) == 1
    assert triplets[0].edge.type == "_isolated_node_"


def test_empty_graph():
    assert build_triplets([], []) == []
