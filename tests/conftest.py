"""
Shared fixtures: small factories for nodes and edges.
"""
import itertools

import pytest

from core.ontology import EdgeSpec, NodeSpec


@pytest.fixture
def make_node():
    def _make(node_id, node_type, status=None, title=None, **kwargs):
        return NodeSpec(
            id=node_id,
            type=node_type,
            title=title or node_id,
            base_status=status,
            **kwargs
        )
    return _make


@pytest.fixture
def make_edge():
    counter = itertools.count(1)

    def _make(source, target, edge_type, edge_id=None, **kwargs):
        return EdgeSpec(
            id=edge_id or f"e{next(counter)}",
            source_id=source,
            target_id=target,
            type=edge_type,
            **kwargs
        )
    return _make


@pytest.fixture
def bakery_graph(make_node, make_edge):
    """
    Goal depends on a constraint, which an action can achieve once its
    prerequisite fact is confirmed.

        open --depends--> permit <--achieves-- apply --depends--> lease
    """
    nodes = [
        make_node("open", "goal", title="Open bakery"),
        make_node("permit", "constraint", title="Permit granted", auto_update=True),
        make_node("apply", "action", title="Apply for permit"),
        make_node("lease", "fact", "confirmed", title="Lease signed"),
    ]
    edges = [
        make_edge("open", "permit", "depends"),
        make_edge("apply", "permit", "achieves"),
        make_edge("apply", "lease", "depends"),
    ]
    return nodes, edges
