"""
GRAPH DIAGNOSTICS
Structural issue detection for a reasoning graph.

Warnings describe modelling gaps (isolated claims, weak assumptions, goals
with nothing behind them). Errors are lifted from a propagation result:
cyclic dependencies and active conflicts.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

from core.ontology import EdgeSpec, EdgeType, NodeSpec, NodeType
from engine.propagation import PropagationResult
from infrastructure.graph_index import build_index


logger = logging.getLogger("ClaimGraph.Diagnostics")

LOW_CONFIDENCE_THRESHOLD = 30


class IssueType(str, Enum):
    ISOLATED_NODE = "isolated_node"
    LOW_CONFIDENCE = "low_confidence"
    NO_GOAL = "no_goal"
    UNSUPPORTED_GOAL = "unsupported_goal"
    CYCLIC_DEPENDENCY = "cyclic_dependency"
    CONFLICT = "conflict"


class IssueSeverity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


@dataclass
class GraphIssue:
    type: IssueType
    severity: IssueSeverity
    node_ids: List[str] = field(default_factory=list)
    message: str = ""
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "nodeIds": list(self.node_ids),
            "message": self.message,
            "suggestion": self.suggestion,
        }


class GraphDiagnostics:
    def __init__(self, nodes: Sequence[NodeSpec], edges: Sequence[EdgeSpec]):
        self.index = build_index(nodes, edges)

    def detect_issues(self, propagation: Optional[PropagationResult] = None) -> List[GraphIssue]:
        """
        Run every structural check.

        Args:
            propagation: Optional result of propagate_states over the same
                graph. When given, its cycles and conflicts become errors.
        """
        issues: List[GraphIssue] = []
        issues.extend(self._isolated_nodes())
        issues.extend(self._low_confidence_assumptions())
        issues.extend(self._goal_coverage())
        if propagation is not None:
            issues.extend(self._propagation_errors(propagation))

        if issues:
            logger.info(f"Detected {len(issues)} issues")
        return issues

    def _isolated_nodes(self) -> List[GraphIssue]:
        # A lone node is a fresh graph, not a defect
        if len(self.index.nodes) <= 1:
            return []
        return [
            GraphIssue(
                IssueType.ISOLATED_NODE,
                IssueSeverity.WARNING,
                [node_id],
                f"'{self.index.nodes[node_id].title}' is not connected to any other node",
                "Link it to the claims it supports, depends on or hinders",
            )
            for node_id in self.index.isolated_node_ids()
        ]

    def _low_confidence_assumptions(self) -> List[GraphIssue]:
        return [
            GraphIssue(
                IssueType.LOW_CONFIDENCE,
                IssueSeverity.WARNING,
                [node.id],
                f"Assumption '{node.title}' has low confidence ({node.confidence:g}%)",
                "Verify it or find supporting facts",
            )
            for node in self.index.nodes_of_type(NodeType.ASSUMPTION)
            if node.confidence < LOW_CONFIDENCE_THRESHOLD
        ]

    def _goal_coverage(self) -> List[GraphIssue]:
        if not self.index.nodes:
            return []

        goals = self.index.nodes_of_type(NodeType.GOAL)
        if not goals:
            return [GraphIssue(
                IssueType.NO_GOAL,
                IssueSeverity.WARNING,
                [],
                "The graph has no goal",
                "Add a goal so next-action analysis has something to plan towards",
            )]

        issues = []
        for goal in goals:
            if goal.is_positive:
                continue
            backed = self.index.incoming_of(goal.id, EdgeType.ACHIEVES, EdgeType.SUPPORTS)
            needs = self.index.outgoing_of(goal.id, EdgeType.DEPENDS)
            if not backed and not needs:
                issues.append(GraphIssue(
                    IssueType.UNSUPPORTED_GOAL,
                    IssueSeverity.WARNING,
                    [goal.id],
                    f"Goal '{goal.title}' has no action, support or prerequisite",
                    "Add an action that achieves it or the conditions it depends on",
                ))
        return issues

    def _propagation_errors(self, propagation: PropagationResult) -> List[GraphIssue]:
        issues = []
        for cycle in propagation.cyclic_dependencies:
            issues.append(GraphIssue(
                IssueType.CYCLIC_DEPENDENCY,
                IssueSeverity.ERROR,
                list(cycle),
                f"Cyclic dependency: {' -> '.join(cycle + cycle[:1])}",
                "Remove one depends/causes edge from the loop",
            ))
        for pair in propagation.conflicts:
            issues.append(GraphIssue(
                IssueType.CONFLICT,
                IssueSeverity.ERROR,
                [pair.node_a, pair.node_b],
                f"Conflicting claims both hold: {pair.node_a} and {pair.node_b}",
                "Revise the status of one of the two claims",
            ))
        return issues


def detect_issues(
    nodes: Sequence[NodeSpec],
    edges: Sequence[EdgeSpec],
    propagation: Optional[PropagationResult] = None,
) -> List[GraphIssue]:
    return GraphDiagnostics(nodes, edges).detect_issues(propagation)
