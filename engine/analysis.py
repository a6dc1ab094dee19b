"""
ANALYSIS ENGINE
Read-only interpretation of an already-propagated graph.

Two independent operations:
    get_next_action()        - Goal/plan tree reading: which action to take next
    evaluate_feasibility(id) - Argument reading: how well-supported one node is

Both expect nodes whose computed_status has been filled in by the
propagation engine. Neither mutates its input.
"""
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, Tuple

from core.ontology import (
    EdgeSpec,
    EdgeType,
    NodeSpec,
    NodeType,
    WeightConfig,
    resolve_weight,
    status_coefficient,
)
from engine.satisfaction import UNMET_STATES, SatisfactionStatus, satisfaction_status
from infrastructure.graph_index import build_index


logger = logging.getLogger("ClaimGraph.Analysis")

DEFAULT_FOLLOW_UP_LIMIT = 3
DEFAULT_MAX_SUGGESTIONS = 5

# Priority weights for ranking candidate actions
UNBLOCK_WEIGHT = 10
SUPPORT_BALANCE_WEIGHT = 5
CONFIDENCE_DIVISOR = 10


class NodeNotFoundError(LookupError):
    """Raised when an analysis target is not part of the graph."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}")


class Verdict(str, Enum):
    HIGHLY_FEASIBLE = "highly_feasible"
    FEASIBLE = "feasible"
    UNCERTAIN = "uncertain"
    CHALLENGING = "challenging"
    INFEASIBLE = "infeasible"


class RiskType(str, Enum):
    STRONG_HINDRANCE = "strong_hindrance"
    DEPENDENCY_GAP = "dependency_gap"
    ASSUMPTION_RISK = "assumption_risk"
    CONFLICT = "conflict"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"


VERDICT_LABELS: Dict[Verdict, str] = {
    Verdict.HIGHLY_FEASIBLE: "highly feasible",
    Verdict.FEASIBLE: "feasible",
    Verdict.UNCERTAIN: "uncertain",
    Verdict.CHALLENGING: "challenging",
    Verdict.INFEASIBLE: "infeasible",
}


def _node_dict(node: NodeSpec) -> Dict:
    return node.model_dump(mode="json", by_alias=True)


# =============================================================================
# RESULT RECORDS
# =============================================================================

@dataclass
class DependencyTreeNode:
    node_id: str
    node: NodeSpec
    status: SatisfactionStatus
    children: List["DependencyTreeNode"] = field(default_factory=list)
    achievable_by: List[NodeSpec] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "nodeId": self.node_id,
            "node": _node_dict(self.node),
            "status": self.status.value,
            "children": [c.to_dict() for c in self.children],
            "achievableBy": [_node_dict(a) for a in self.achievable_by],
        }


@dataclass
class AchievableAction:
    action: NodeSpec
    is_executable: bool
    blocked_by: List[NodeSpec] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "action": _node_dict(self.action),
            "isExecutable": self.is_executable,
            "blockedBy": [_node_dict(n) for n in self.blocked_by],
        }


@dataclass
class BlockingPoint:
    node: NodeSpec
    reason: str
    achievable_actions: List[AchievableAction] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "node": _node_dict(self.node),
            "reason": self.reason,
            "achievableActions": [a.to_dict() for a in self.achievable_actions],
        }


@dataclass
class ExecutableAction:
    action: NodeSpec
    priority: float
    unblocks: List[NodeSpec]
    reason: str

    def to_dict(self) -> Dict:
        return {
            "action": _node_dict(self.action),
            "priority": self.priority,
            "unblocks": [_node_dict(n) for n in self.unblocks],
            "reason": self.reason,
        }


@dataclass
class NextActionResult:
    root_goals: List[NodeSpec]
    blocking_points: List[BlockingPoint]
    suggested_action: Optional[ExecutableAction]
    follow_up_actions: List[ExecutableAction]
    summary: str
    dependency_trees: List[DependencyTreeNode] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "rootGoals": [_node_dict(g) for g in self.root_goals],
            "blockingPoints": [b.to_dict() for b in self.blocking_points],
            "suggestedAction": self.suggested_action.to_dict() if self.suggested_action else None,
            "followUpActions": [a.to_dict() for a in self.follow_up_actions],
            "summary": self.summary,
        }


@dataclass
class Evidence:
    node: NodeSpec
    type: str
    weight: float
    edge_type: EdgeType
    description: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "node": _node_dict(self.node),
            "type": self.type,
            "weight": self.weight,
            "edgeType": self.edge_type.value,
            "description": self.description,
        }


@dataclass
class Prerequisite:
    node: NodeSpec
    status: SatisfactionStatus
    achievable_by: List[NodeSpec] = field(default_factory=list)

    @property
    def is_met(self) -> bool:
        return self.status == SatisfactionStatus.SATISFIED

    def to_dict(self) -> Dict:
        return {
            "node": _node_dict(self.node),
            "status": self.status.value,
            "achievableBy": [_node_dict(a) for a in self.achievable_by],
        }


@dataclass
class Risk:
    type: RiskType
    severity: Severity
    node: NodeSpec
    description: str

    def to_dict(self) -> Dict:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "node": _node_dict(self.node),
            "description": self.description,
        }


@dataclass
class FeasibilityResult:
    target_node: NodeSpec
    feasibility_score: float
    normalized_score: int
    positive_evidence: List[Evidence]
    negative_evidence: List[Evidence]
    prerequisites: List[Prerequisite]
    risks: List[Risk]
    verdict: Verdict
    summary: str
    suggestions: List[str]

    def to_dict(self) -> Dict:
        return {
            "targetNode": _node_dict(self.target_node),
            "feasibilityScore": self.feasibility_score,
            "normalizedScore": self.normalized_score,
            "positiveEvidence": [e.to_dict() for e in self.positive_evidence],
            "negativeEvidence": [e.to_dict() for e in self.negative_evidence],
            "prerequisites": [p.to_dict() for p in self.prerequisites],
            "risks": [r.to_dict() for r in self.risks],
            "verdict": self.verdict.value,
            "summary": self.summary,
            "suggestions": list(self.suggestions),
        }


def normalize_score(feasibility_score: float) -> int:
    """
    Map an unbounded score onto [0, 100] with a tanh curve.

    No evidence gives 50; rounding is half-up.
    """
    return int(math.floor(50 + 50 * math.tanh(feasibility_score / 2) + 0.5))


# =============================================================================
# ENGINE
# =============================================================================

class AnalysisEngine:
    """
    Planning and argument analysis over one propagated snapshot.

    weight_config feeds evidence weights. follow_up_limit and
    max_suggestions cap the list outputs.
    """

    def __init__(
        self,
        nodes: Sequence[NodeSpec],
        edges: Sequence[EdgeSpec],
        weight_config: Optional[WeightConfig] = None,
        follow_up_limit: int = DEFAULT_FOLLOW_UP_LIMIT,
        max_suggestions: int = DEFAULT_MAX_SUGGESTIONS,
    ):
        self.index = build_index(nodes, edges)
        self.nodes = self.index.nodes
        self.weight_config = weight_config
        self.follow_up_limit = follow_up_limit
        self.max_suggestions = max_suggestions
        self._tree_cache: Dict[str, DependencyTreeNode] = {}

    # =========================================================================
    # NEXT ACTION
    # =========================================================================

    def get_next_action(self) -> NextActionResult:
        root_goals = self.find_root_goals()
        if not root_goals:
            logger.info("No goals in graph; nothing to plan")
            return NextActionResult(
                root_goals=[],
                blocking_points=[],
                suggested_action=None,
                follow_up_actions=[],
                summary="No goal nodes found. Create at least one goal first.",
            )

        trees = [self.build_dependency_tree(goal.id) for goal in root_goals]
        blocking_points = self.find_blocking_points(trees)
        ranked = self.rank_actions(blocking_points)

        suggested = ranked[0] if ranked else None
        follow_ups = ranked[1:1 + self.follow_up_limit]
        summary = self._next_action_summary(root_goals, blocking_points, suggested)

        logger.info(
            f"Next action: {len(root_goals)} root goals, {len(blocking_points)} blocking points, "
            f"suggested={suggested.action.id if suggested else None}"
        )
        return NextActionResult(
            root_goals=root_goals,
            blocking_points=blocking_points,
            suggested_action=suggested,
            follow_up_actions=follow_ups,
            summary=summary,
            dependency_trees=trees,
        )

    def find_root_goals(self) -> List[NodeSpec]:
        """Goals not advanced by another goal or action."""
        sub_goals: Set[str] = set()
        for edge in self.index.edges_of_type(EdgeType.SUPPORTS, EdgeType.ACHIEVES):
            target = self.nodes[edge.target_id]
            source = self.nodes[edge.source_id]
            if target.type == NodeType.GOAL and source.type in (NodeType.GOAL, NodeType.ACTION):
                sub_goals.add(target.id)
        return [g for g in self.index.nodes_of_type(NodeType.GOAL) if g.id not in sub_goals]

    def build_dependency_tree(self, node_id: str) -> Optional[DependencyTreeNode]:
        """
        Recursive walk along outgoing depends edges.

        A dependency already on the current path is cut to break cycles.
        Subtrees built without any cut do not depend on the path that
        reached them, so each is built once per engine and shared.
        """
        tree, _ = self._build_tree(node_id, set())
        return tree

    def _build_tree(
        self, node_id: str, path: Set[str]
    ) -> Tuple[Optional[DependencyTreeNode], bool]:
        """Returns the subtree and whether the cycle guard cut any branch of it."""
        if node_id in path:
            return None, True
        cached = self._tree_cache.get(node_id)
        if cached is not None:
            return cached, False

        path.add(node_id)
        children = []
        was_cut = False
        for edge in self.index.outgoing_of(node_id, EdgeType.DEPENDS):
            child, child_cut = self._build_tree(edge.target_id, path)
            was_cut = was_cut or child_cut
            if child is not None:
                children.append(child)
        path.discard(node_id)

        node = self.nodes[node_id]
        tree = DependencyTreeNode(
            node_id=node_id,
            node=node,
            status=satisfaction_status(node, children),
            children=children,
            achievable_by=self.achieving_actions(node_id),
        )
        if not was_cut:
            self._tree_cache[node_id] = tree
        return tree, was_cut

    def find_blocking_points(self, trees: Sequence[Optional[DependencyTreeNode]]) -> List[BlockingPoint]:
        """Deepest unmet tree nodes, each recorded once across all trees."""
        blocking_points: List[BlockingPoint] = []
        seen: Set[str] = set()
        # Shared subtrees are expanded once
        expanded: Set[int] = set()

        def visit(tree: Optional[DependencyTreeNode]) -> None:
            if tree is None or tree.node_id in seen or id(tree) in expanded:
                return
            expanded.add(id(tree))
            if tree.status in UNMET_STATES:
                has_unmet_child = any(c.status in UNMET_STATES for c in tree.children)
                if not has_unmet_child:
                    seen.add(tree.node_id)
                    blocking_points.append(BlockingPoint(
                        node=tree.node,
                        reason=self._blocking_reason(tree.node),
                        achievable_actions=[
                            self._check_candidate(action) for action in tree.achievable_by
                        ],
                    ))
            for child in tree.children:
                visit(child)

        for tree in trees:
            visit(tree)
        return blocking_points

    def rank_actions(self, blocking_points: Sequence[BlockingPoint]) -> List[ExecutableAction]:
        """
        priority = 10 * unblocked + 5 * (supports in - hinders in) + confidence / 10

        Direct candidates unblock their blocking point. For a candidate that
        cannot run yet, actions achieving its unmet prerequisites are scored
        instead.
        """
        candidates: Dict[str, Dict] = {}

        def credit(action: NodeSpec, unblocked: NodeSpec, reason: str) -> None:
            entry = candidates.setdefault(action.id, {"action": action, "unblocks": [], "reason": reason})
            if all(n.id != unblocked.id for n in entry["unblocks"]):
                entry["unblocks"].append(unblocked)

        for point in blocking_points:
            for candidate in point.achievable_actions:
                if candidate.is_executable:
                    credit(candidate.action, point.node, "")
                    continue
                for blocker in candidate.blocked_by:
                    for action in self.find_actions_to_achieve(blocker.id):
                        credit(action, blocker, f"Makes '{candidate.action.title}' executable")

        ranked = []
        for entry in candidates.values():
            action = entry["action"]
            unblocks = entry["unblocks"]
            ranked.append(ExecutableAction(
                action=action,
                priority=self.action_priority(action, unblocks),
                unblocks=unblocks,
                reason=entry["reason"] or f"Satisfies: {', '.join(n.title for n in unblocks)}",
            ))
        ranked.sort(key=lambda a: a.priority, reverse=True)
        return ranked

    def action_priority(self, action: NodeSpec, unblocks: Sequence[NodeSpec]) -> float:
        supports = self.index.count_incoming(action.id, EdgeType.SUPPORTS)
        hinders = self.index.count_incoming(action.id, EdgeType.HINDERS)
        return (
            len(unblocks) * UNBLOCK_WEIGHT
            + (supports - hinders) * SUPPORT_BALANCE_WEIGHT
            + action.confidence / CONFIDENCE_DIVISOR
        )

    def _check_candidate(self, action: NodeSpec) -> AchievableAction:
        unmet = self.unmet_dependencies(action.id)
        return AchievableAction(action=action, is_executable=not unmet, blocked_by=unmet)

    def _blocking_reason(self, node: NodeSpec) -> str:
        if node.type == NodeType.CONSTRAINT:
            return f"Constraint '{node.title}' is not satisfied"
        if node.type == NodeType.GOAL:
            return f"Prerequisites of goal '{node.title}' are not met"
        return f"'{node.title}' is unresolved"

    def _next_action_summary(
        self,
        root_goals: Sequence[NodeSpec],
        blocking_points: Sequence[BlockingPoint],
        suggested: Optional[ExecutableAction],
    ) -> str:
        if not blocking_points:
            titles = ", ".join(g.title for g in root_goals)
            return f"All goal prerequisites are met. Root goals: {titles}"
        if suggested is None:
            return (
                f"Found {len(blocking_points)} blocking points but no action that can run now. "
                f"Consider adding action nodes."
            )
        names = ", ".join(bp.node.title for bp in blocking_points[:3])
        more = ", ..." if len(blocking_points) > 3 else ""
        return (
            f"{len(blocking_points)} blocking points ({names}{more}). "
            f"Suggested next step: {suggested.action.title}. {suggested.reason}"
        )

    # =========================================================================
    # FEASIBILITY
    # =========================================================================

    def evaluate_feasibility(self, node_id: str) -> FeasibilityResult:
        target = self.nodes.get(node_id)
        if target is None:
            raise NodeNotFoundError(node_id)

        positive, negative = self.collect_evidence(node_id)
        prerequisites = self.collect_prerequisites(node_id)

        score = sum(e.weight for e in positive) - sum(e.weight for e in negative)
        normalized = normalize_score(score)

        risks = self.identify_risks(positive, negative, prerequisites)
        verdict = self.verdict_for(normalized, prerequisites, risks)

        logger.info(f"Feasibility of {node_id}: {normalized}/100 ({verdict.value})")
        return FeasibilityResult(
            target_node=target,
            feasibility_score=score,
            normalized_score=normalized,
            positive_evidence=positive,
            negative_evidence=negative,
            prerequisites=prerequisites,
            risks=risks,
            verdict=verdict,
            summary=self._feasibility_summary(target, normalized, verdict, risks),
            suggestions=self._suggestions(prerequisites, risks),
        )

    def collect_evidence(self, node_id: str):
        """Split incoming edges into (positive, negative) evidence lists."""
        positive: List[Evidence] = []
        negative: List[Evidence] = []
        for edge in self.index.incoming_of(node_id):
            source = self.nodes[edge.source_id]
            weight = resolve_weight(source, self.weight_config) * status_coefficient(source) * edge.strength
            if edge.type in (EdgeType.SUPPORTS, EdgeType.ACHIEVES):
                positive.append(Evidence(source, "positive", weight, edge.type, edge.description))
            elif edge.type in (EdgeType.HINDERS, EdgeType.CONFLICTS):
                negative.append(Evidence(source, "negative", weight, edge.type, edge.description))
        return positive, negative

    def collect_prerequisites(self, node_id: str) -> List[Prerequisite]:
        return [
            Prerequisite(
                node=dependency,
                status=satisfaction_status(dependency),
                achievable_by=self.find_actions_to_achieve(dependency.id),
            )
            for dependency in self.dependencies_of(node_id)
        ]

    def identify_risks(
        self,
        positive: Sequence[Evidence],
        negative: Sequence[Evidence],
        prerequisites: Sequence[Prerequisite],
    ) -> List[Risk]:
        risks: List[Risk] = []

        for evidence in negative:
            if evidence.node.type == NodeType.FACT:
                risks.append(Risk(
                    RiskType.STRONG_HINDRANCE, Severity.HIGH, evidence.node,
                    f"{evidence.node.title} is an established obstacle",
                ))

        for prereq in prerequisites:
            if prereq.is_met:
                continue
            if prereq.achievable_by:
                risks.append(Risk(
                    RiskType.DEPENDENCY_GAP, Severity.MEDIUM, prereq.node,
                    f"{prereq.node.title} is not met yet, but an action can achieve it",
                ))
            else:
                risks.append(Risk(
                    RiskType.DEPENDENCY_GAP, Severity.HIGH, prereq.node,
                    f"{prereq.node.title} is not met and no action achieves it",
                ))

        for evidence in positive:
            if evidence.node.type == NodeType.ASSUMPTION:
                risks.append(Risk(
                    RiskType.ASSUMPTION_RISK, Severity.MEDIUM, evidence.node,
                    f"Relies on unverified assumption: {evidence.node.title}",
                ))

        for evidence in negative:
            if evidence.edge_type == EdgeType.CONFLICTS:
                risks.append(Risk(
                    RiskType.CONFLICT, Severity.HIGH, evidence.node,
                    f"Logically contradicts {evidence.node.title}",
                ))

        return risks

    @staticmethod
    def verdict_for(
        normalized: int,
        prerequisites: Sequence[Prerequisite],
        risks: Sequence[Risk],
    ) -> Verdict:
        has_unmet = any(not p.is_met for p in prerequisites)
        has_high_risk = any(r.severity == Severity.HIGH for r in risks)

        if has_high_risk or normalized < 30:
            return Verdict.INFEASIBLE if has_unmet else Verdict.CHALLENGING
        if normalized < 45:
            return Verdict.CHALLENGING
        if normalized < 55 or has_unmet:
            return Verdict.UNCERTAIN
        if normalized < 70:
            return Verdict.FEASIBLE
        return Verdict.HIGHLY_FEASIBLE

    def _feasibility_summary(
        self, target: NodeSpec, normalized: int, verdict: Verdict, risks: Sequence[Risk]
    ) -> str:
        summary = f"'{target.title}' scores {normalized}/100 ({VERDICT_LABELS[verdict]})."
        high = [r for r in risks if r.severity == Severity.HIGH]
        if high:
            summary += f" {len(high)} high-severity risks need attention."
        return summary

    def _suggestions(self, prerequisites: Sequence[Prerequisite], risks: Sequence[Risk]) -> List[str]:
        suggestions = []

        for prereq in prerequisites:
            if prereq.is_met:
                continue
            if prereq.achievable_by:
                suggestions.append(
                    f"Run '{prereq.achievable_by[0].title}' first to satisfy '{prereq.node.title}'"
                )
            else:
                suggestions.append(f"Find a way to satisfy '{prereq.node.title}'")

        for risk in risks:
            if risk.severity != Severity.HIGH:
                continue
            if risk.type == RiskType.STRONG_HINDRANCE:
                suggestions.append(f"Work out how to overcome '{risk.node.title}'")
            elif risk.type == RiskType.CONFLICT:
                suggestions.append(f"Resolve the contradiction with '{risk.node.title}'")
            elif risk.type == RiskType.DEPENDENCY_GAP:
                suggestions.append(f"Create an action that achieves '{risk.node.title}'")

        assumptions = [r.node.title for r in risks if r.type == RiskType.ASSUMPTION_RISK]
        if assumptions:
            suggestions.append(f"Verify these assumptions: {', '.join(assumptions)}")

        return suggestions[:self.max_suggestions]

    # =========================================================================
    # SHARED LOOKUPS
    # =========================================================================

    def dependencies_of(self, node_id: str) -> List[NodeSpec]:
        return [self.nodes[e.target_id] for e in self.index.outgoing_of(node_id, EdgeType.DEPENDS)]

    def unmet_dependencies(self, node_id: str) -> List[NodeSpec]:
        return [
            dep for dep in self.dependencies_of(node_id)
            if satisfaction_status(dep) != SatisfactionStatus.SATISFIED
        ]

    def achieving_actions(self, node_id: str) -> List[NodeSpec]:
        """Actions with an achieves edge into node_id."""
        return [
            self.nodes[e.source_id]
            for e in self.index.incoming_of(node_id, EdgeType.ACHIEVES)
            if self.nodes[e.source_id].type == NodeType.ACTION
        ]

    def find_actions_to_achieve(self, node_id: str) -> List[NodeSpec]:
        """Achieving actions whose own prerequisites are all satisfied."""
        return [a for a in self.achieving_actions(node_id) if not self.unmet_dependencies(a.id)]


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def get_next_action(
    nodes: Sequence[NodeSpec],
    edges: Sequence[EdgeSpec],
    weight_config: Optional[WeightConfig] = None,
    follow_up_limit: int = DEFAULT_FOLLOW_UP_LIMIT,
) -> NextActionResult:
    return AnalysisEngine(nodes, edges, weight_config, follow_up_limit=follow_up_limit).get_next_action()


def evaluate_feasibility(
    nodes: Sequence[NodeSpec],
    edges: Sequence[EdgeSpec],
    node_id: str,
    weight_config: Optional[WeightConfig] = None,
    max_suggestions: int = DEFAULT_MAX_SUGGESTIONS,
) -> FeasibilityResult:
    """Raises NodeNotFoundError if node_id is absent."""
    return AnalysisEngine(
        nodes, edges, weight_config, max_suggestions=max_suggestions
    ).evaluate_feasibility(node_id)
