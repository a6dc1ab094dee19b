"""
TEXT PROJECTION
Deterministic plain-text rendering of a graph, the format consumed by the
advisory text generator.

    # Scene: Open a bakery
    Optional description

    ## Nodes
    Goal:Open a bakery[not achieved]
    Assumption:Demand is high[uncertain](weight:0.7)(confidence:80%)
      Foot traffic looked busy on weekends

    ## Relations
    Open a bakery -depends-> Demand is high(strength:1.5)
"""
from typing import List, Optional, Sequence

from core.ontology import (
    EDGE_TYPE_LABELS,
    NODE_TYPE_LABELS,
    STATUS_LABELS,
    EdgeSpec,
    NodeSpec,
    NodeType,
)


DEFAULT_CONFIDENCE = 50


def render_node_line(node: NodeSpec) -> str:
    label = NODE_TYPE_LABELS[node.type]
    status = STATUS_LABELS.get(node.base_status, node.base_status)
    line = f"{label}:{node.title}[{status}]"
    if node.weight is not None and node.weight != 1.0:
        line += f"(weight:{node.weight:.1f})"
    if node.type == NodeType.ASSUMPTION and node.confidence != DEFAULT_CONFIDENCE:
        line += f"(confidence:{node.confidence:g}%)"
    return line


def render_graph_text(
    scene_name: str,
    nodes: Sequence[NodeSpec],
    edges: Sequence[EdgeSpec],
    description: Optional[str] = None,
) -> str:
    """Render the scene header, node list and relation list."""
    lines: List[str] = [f"# Scene: {scene_name}"]
    if description:
        lines.append(description)
    lines.append("")

    lines.append("## Nodes")
    if not nodes:
        lines.append("(no nodes)")
    for node in nodes:
        lines.append(render_node_line(node))
        if node.content:
            lines.append(f"  {node.content}")

    lines.append("")
    lines.append("## Relations")
    by_id = {node.id: node for node in nodes}
    relations = []
    for edge in edges:
        source = by_id.get(edge.source_id)
        target = by_id.get(edge.target_id)
        if source is None or target is None:
            continue
        relation = f"{source.title} -{EDGE_TYPE_LABELS[edge.type]}-> {target.title}"
        if edge.strength != 1.0:
            relation += f"(strength:{edge.strength:.1f})"
        relations.append(relation)
    lines.extend(relations or ["(no relations)"])

    return "\n".join(lines) + "\n"
