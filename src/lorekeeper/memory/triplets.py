"""Join bulk-read nodes and edges into triplets for graph views."""

from __future__ import annotations

from lorekeeper.models.graph import GraphEdge, GraphNode, Triplet

ISOLATED_EDGE_TYPE = "_isolated_node_"


def build_triplets(edges: list[GraphEdge], nodes: list[GraphNode]) -> list[Triplet]:
    """One triplet per edge with both endpoints present, then one self-triplet
    per node that no edge touches. Edges with a missing endpoint are dropped.
    """
    by_uuid = {node.uuid: node for node in nodes}
    connected: set[str] = set()
    triplets: list[Triplet] = []

    for edge in edges:
        source = by_uuid.get(edge.source_node_uuid)
        target = by_uuid.get(edge.target_node_uuid)
        if source is None or target is None:
            continue
        connected.add(source.uuid)
        connected.add(target.uuid)
        triplets.append(Triplet(source_node=source, edge=edge, target_node=target))

    for node in nodes:
        if node.uuid in connected:
            continue
        placeholder = GraphEdge(
            uuid=f"isolated-node-{node.uuid}",
            source_node_uuid=node.uuid,
            target_node_uuid=node.uuid,
            type=ISOLATED_EDGE_TYPE,
            created_at=node.created_at,
            updated_at=node.updated_at,
        )
        triplets.append(Triplet(source_node=node, edge=placeholder, target_node=node))

    return triplets
