"""
GRAPH INDEX
Per-call adjacency index over one graph snapshot.

Built fresh for every engine call; never shared between calls. Edges whose
endpoints are missing are dropped here, so the engines can assume every
indexed edge resolves to two known nodes.
"""
import logging
from typing import Dict, Iterable, List, Sequence

import networkx as nx

from core.ontology import EdgeSpec, EdgeType, NodeSpec, NodeType

logger = logging.getLogger("ClaimGraph.GraphIndex")


class GraphIndex:
    """
    Indexed view of nodes and edges.

    The networkx MultiDiGraph answers structural questions such as isolated
    nodes. Incoming/outgoing lists keep edge input order, which
    the engines rely on for deterministic iteration.
    """

    def __init__(self, nodes: Iterable[NodeSpec], edges: Iterable[EdgeSpec]):
        self.nodes: Dict[str, NodeSpec] = {}
        self.edges: List[EdgeSpec] = []
        self.outgoing: Dict[str, List[EdgeSpec]] = {}
        self.incoming: Dict[str, List[EdgeSpec]] = {}
        self.graph = nx.MultiDiGraph()
        self.dropped_edges: List[EdgeSpec] = []

        for node in nodes:
            self.nodes[node.id] = node
            self.graph.add_node(node.id, type=node.type.value)

        for edge in edges:
            if edge.source_id not in self.nodes or edge.target_id not in self.nodes:
                logger.debug(
                    f"Dropping edge {edge.id}: unresolved endpoint "
                    f"{edge.source_id} -> {edge.target_id}"
                )
                self.dropped_edges.append(edge)
                continue
            self.edges.append(edge)
            self.outgoing.setdefault(edge.source_id, []).append(edge)
            self.incoming.setdefault(edge.target_id, []).append(edge)
            self.graph.add_edge(
                edge.source_id,
                edge.target_id,
                key=edge.id,
                type=edge.type.value,
                strength=edge.strength,
            )

    def outgoing_of(self, node_id: str, *edge_types: EdgeType) -> List[EdgeSpec]:
        """Outgoing edges of node_id, optionally filtered by type."""
        edges = self.outgoing.get(node_id, [])
        if not edge_types:
            return list(edges)
        return [e for e in edges if e.type in edge_types]

    def incoming_of(self, node_id: str, *edge_types: EdgeType) -> List[EdgeSpec]:
        """Incoming edges of node_id, optionally filtered by type."""
        edges = self.incoming.get(node_id, [])
        if not edge_types:
            return list(edges)
        return [e for e in edges if e.type in edge_types]

    def edges_of_type(self, *edge_types: EdgeType) -> List[EdgeSpec]:
        return [e for e in self.edges if e.type in edge_types]

    def nodes_of_type(self, *node_types: NodeType) -> List[NodeSpec]:
        return [n for n in self.nodes.values() if n.type in node_types]

    def count_incoming(self, node_id: str, edge_type: EdgeType) -> int:
        return len(self.incoming_of(node_id, edge_type))

    def isolated_node_ids(self) -> List[str]:
        """Nodes with no indexed edge in either direction, in input order."""
        isolated = set(nx.isolates(self.graph))
        return [node_id for node_id in self.nodes if node_id in isolated]


def build_index(nodes: Sequence[NodeSpec], edges: Sequence[EdgeSpec]) -> GraphIndex:
    index = GraphIndex(nodes, edges)
    if index.dropped_edges:
        logger.debug(f"Indexed {len(index.edges)} edges, dropped {len(index.dropped_edges)}")
    return index
