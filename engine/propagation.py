"""
STATE PROPAGATION ENGINE
Derives computed status for every node and applies automatic base-status
updates along causes/achieves chains.

The pipeline runs eight fixed steps on an internal deep copy:
    1. Cycle detection (depends + causes)
    2. Reset computed status
    3. Causes propagation (topological order)
    4. Achieves propagation
    5. Conflict detection
    6. Dependency blocking
    7. Feasibility scoring
    8. Executable / achievable derivation

Usage:
    result = propagate_states(nodes, edges)
    for update in result.updated_base_statuses:
        repository.set_status(update.node_id, update.new_status)

A single call is one pass. Effects that need a later step to feed an earlier
one (an achieves update feeding a causes edge) surface on the next call;
propagate_until_stable() loops until no further updates appear.
"""
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from core.ontology import (
    ActionStatus,
    EdgeSpec,
    EdgeType,
    NodeSpec,
    NodeType,
    ComputedStatus,
    WeightConfig,
    is_negative_status,
    is_neutral_status,
    positive_status_for,
    resolve_weight,
    status_coefficient,
    validate_base_status,
)
from infrastructure.graph_index import GraphIndex, build_index


logger = logging.getLogger("ClaimGraph.Propagation")

# Edge types that form logical dependency chains (cycles, topological order)
CHAIN_EDGE_TYPES = (EdgeType.DEPENDS, EdgeType.CAUSES)

# Node types that receive a feasibility score in step 7
SCORED_NODE_TYPES = (NodeType.GOAL, NodeType.ACTION, NodeType.CONSTRAINT)

# Node types that step 4 may promote
ACHIEVABLE_NODE_TYPES = (NodeType.GOAL, NodeType.CONSTRAINT)


@dataclass
class StatusUpdate:
    """An automatic base-status change the caller may persist."""
    node_id: str
    old_status: str
    new_status: str

    def to_dict(self) -> Dict:
        return {"nodeId": self.node_id, "oldStatus": self.old_status, "newStatus": self.new_status}


@dataclass
class ConflictPair:
    node_a: str
    node_b: str

    def to_dict(self) -> Dict:
        return {"nodeA": self.node_a, "nodeB": self.node_b}


@dataclass
class PropagationResult:
    nodes: List[NodeSpec]
    updated_base_statuses: List[StatusUpdate] = field(default_factory=list)
    cyclic_dependencies: List[List[str]] = field(default_factory=list)
    conflicts: List[ConflictPair] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)

    def get_node(self, node_id: str) -> Optional[NodeSpec]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_dict(self) -> Dict:
        return {
            "nodes": [n.model_dump(mode="json", by_alias=True) for n in self.nodes],
            "updatedBaseStatuses": [u.to_dict() for u in self.updated_base_statuses],
            "cyclicDependencies": [list(c) for c in self.cyclic_dependencies],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "logs": list(self.logs),
        }


class StatePropagationEngine:
    """
    Runs the eight-step propagation pipeline over one graph snapshot.

    The engine copies every node on construction; the caller's objects are
    never mutated. Construct a new engine per snapshot.
    """

    def __init__(
        self,
        nodes: Sequence[NodeSpec],
        edges: Sequence[EdgeSpec],
        weight_config: Optional[WeightConfig] = None,
    ):
        copies = [node.model_copy(deep=True) for node in nodes]
        self.index: GraphIndex = build_index(copies, edges)
        self.nodes: Dict[str, NodeSpec] = self.index.nodes
        self.weight_config = weight_config
        self.logs: List[str] = []

    def propagate(self) -> PropagationResult:
        """Execute the full pipeline and return the derived snapshot."""
        self.logs = []

        self._log("Step 1: detecting cyclic dependencies...")
        cycles = self.detect_cyclic_dependencies()
        if cycles:
            self._log(f"  found {len(cycles)} cyclic dependencies")

        self._log("Step 2: resetting computed status...")
        self._reset_computed_statuses()

        self._log("Step 3: propagating causes...")
        updates = self._propagate_causes()

        self._log("Step 4: propagating achieves...")
        updates.extend(self._propagate_achieves())

        self._log("Step 5: detecting conflicts...")
        conflicts = self._detect_conflicts()

        self._log("Step 6: checking dependencies...")
        self._check_dependencies()

        self._log("Step 7: scoring feasibility...")
        self._calculate_feasibility_scores()

        self._log("Step 8: deriving executable/achievable...")
        self._calculate_executable_achievable()

        logger.info(
            f"Propagated {len(self.nodes)} nodes: {len(updates)} updates, "
            f"{len(cycles)} cycles, {len(conflicts)} conflicts"
        )
        return PropagationResult(
            nodes=list(self.nodes.values()),
            updated_base_statuses=updates,
            cyclic_dependencies=cycles,
            conflicts=conflicts,
            logs=list(self.logs),
        )

    def _log(self, message: str) -> None:
        self.logs.append(message)
        logger.debug(message)

    # =========================================================================
    # Step 1: CYCLE DETECTION
    # =========================================================================

    def detect_cyclic_dependencies(self) -> List[List[str]]:
        """
        Find cycles over depends/causes edges.

        Every back-edge into the active DFS path yields one cycle, listed
        from the repeated node to the node that closes it. Iterative, so deep
        chains do not hit the recursion limit.
        """
        cycles: List[List[str]] = []
        visited: Set[str] = set()

        for root in self.nodes:
            if root in visited:
                continue
            path: List[str] = [root]
            on_path: Set[str] = {root}
            visited.add(root)
            stack = [iter(self.index.outgoing_of(root, *CHAIN_EDGE_TYPES))]

            while stack:
                edge = next(stack[-1], None)
                if edge is None:
                    stack.pop()
                    on_path.discard(path.pop())
                    continue
                target = edge.target_id
                if target in on_path:
                    cycle = path[path.index(target):]
                    cycles.append(cycle)
                    self._log(f"  cycle: {' -> '.join(cycle + [target])}")
                elif target not in visited:
                    visited.add(target)
                    path.append(target)
                    on_path.add(target)
                    stack.append(iter(self.index.outgoing_of(target, *CHAIN_EDGE_TYPES)))

        return cycles

    # =========================================================================
    # Step 2: RESET
    # =========================================================================

    def _reset_computed_statuses(self) -> None:
        for node in self.nodes.values():
            node.computed_status = ComputedStatus()

    # =========================================================================
    # Step 3: CAUSES
    # =========================================================================

    def _propagate_causes(self) -> List[StatusUpdate]:
        """
        If A --causes--> B, A is positive and B has auto_update, B becomes
        positive. Visited in topological order so chains resolve in one pass.
        """
        updates: List[StatusUpdate] = []

        for node_id in self.topological_order():
            node = self.nodes[node_id]
            if not node.auto_update:
                continue
            for edge in self.index.incoming_of(node_id, EdgeType.CAUSES):
                source = self.nodes[edge.source_id]
                if not source.is_positive:
                    continue
                old_status = node.base_status
                new_status = positive_status_for(node.type)
                if old_status == new_status:
                    continue
                node.base_status = new_status
                node.computed_status.status_source = f"caused by {source.title}"
                updates.append(StatusUpdate(node.id, old_status, new_status))
                self._log(f"  {node.title}: {old_status} -> {new_status} (caused by {source.title})")

        return updates

    # =========================================================================
    # Step 4: ACHIEVES
    # =========================================================================

    def _propagate_achieves(self) -> List[StatusUpdate]:
        """
        If a successful action achieves a goal/constraint with auto_update,
        the target becomes achieved/satisfied.
        """
        updates: List[StatusUpdate] = []

        for node in self.nodes.values():
            if node.type not in ACHIEVABLE_NODE_TYPES or not node.auto_update:
                continue

            successful = [
                self.nodes[edge.source_id]
                for edge in self.index.incoming_of(node.id, EdgeType.ACHIEVES)
                if self.nodes[edge.source_id].type == NodeType.ACTION
                and self.nodes[edge.source_id].base_status == ActionStatus.SUCCESS.value
            ]
            if not successful:
                continue

            achiever = pick_achieving_action(successful)
            old_status = node.base_status
            new_status = positive_status_for(node.type)
            if old_status == new_status:
                continue
            node.base_status = new_status
            node.computed_status.status_source = f"achieved by {achiever.title}"
            updates.append(StatusUpdate(node.id, old_status, new_status))
            self._log(f"  {node.title}: {old_status} -> {new_status} (achieved by {achiever.title})")

        return updates

    # =========================================================================
    # Step 5: CONFLICTS
    # =========================================================================

    def _detect_conflicts(self) -> List[ConflictPair]:
        """Both ends of a conflicts edge positive -> both conflicted."""
        conflicts: List[ConflictPair] = []
        seen: Set[frozenset] = set()

        for edge in self.index.edges_of_type(EdgeType.CONFLICTS):
            if edge.source_id == edge.target_id:
                continue
            node_a = self.nodes[edge.source_id]
            node_b = self.nodes[edge.target_id]
            if not (node_a.is_positive and node_b.is_positive):
                continue

            node_a.computed_status.conflicted = True
            node_b.computed_status.conflicted = True
            if node_b.id not in node_a.computed_status.conflict_with:
                node_a.computed_status.conflict_with.append(node_b.id)
            if node_a.id not in node_b.computed_status.conflict_with:
                node_b.computed_status.conflict_with.append(node_a.id)

            pair = frozenset((node_a.id, node_b.id))
            if pair not in seen:
                seen.add(pair)
                conflicts.append(ConflictPair(node_a.id, node_b.id))
                self._log(f"  conflict: {node_a.title} x {node_b.title}")

        return conflicts

    # =========================================================================
    # Step 6: DEPENDS
    # =========================================================================

    def _check_dependencies(self) -> None:
        """A --depends--> B with B negative or neutral -> A blocked by B."""
        for node in self.nodes.values():
            for edge in self.index.outgoing_of(node.id, EdgeType.DEPENDS):
                dependency = self.nodes[edge.target_id]
                unmet = (
                    is_negative_status(dependency.type, dependency.base_status)
                    or is_neutral_status(dependency.type, dependency.base_status)
                )
                if not unmet:
                    continue
                node.computed_status.blocked = True
                if dependency.id not in node.computed_status.blocked_by:
                    node.computed_status.blocked_by.append(dependency.id)
                self._log(f"  {node.title} blocked by {dependency.title}")

    # =========================================================================
    # Step 7: FEASIBILITY SCORE
    # =========================================================================

    def _calculate_feasibility_scores(self) -> None:
        """
        score = sum(weight * coef) over supports/achieves
              - sum(weight * coef) over hinders
        """
        for node in self.nodes.values():
            if node.type not in SCORED_NODE_TYPES:
                continue

            score = 0.0
            for edge in self.index.incoming_of(node.id):
                source = self.nodes[edge.source_id]
                contribution = resolve_weight(source, self.weight_config) * status_coefficient(source)
                if edge.type in (EdgeType.SUPPORTS, EdgeType.ACHIEVES):
                    score += contribution
                elif edge.type == EdgeType.HINDERS:
                    score -= contribution

            node.computed_status.feasibility_score = score
            if score < 0:
                node.computed_status.threatened = True
                self._log(f"  {node.title} threatened (score {score:.2f})")

    # =========================================================================
    # Step 8: EXECUTABLE / ACHIEVABLE
    # =========================================================================

    def _calculate_executable_achievable(self) -> None:
        # Actions first: goal achievability reads action executability.
        for node in self.nodes_of(NodeType.ACTION):
            status = node.computed_status
            if (
                not status.blocked
                and not status.conflicted
                and node.base_status == ActionStatus.PENDING.value
            ):
                status.executable = True
                self._log(f"  {node.title} executable")

        for node in self.nodes_of(NodeType.GOAL):
            status = node.computed_status
            if status.blocked or status.conflicted:
                continue
            has_executable_action = any(
                self.nodes[edge.source_id].computed_status.executable
                for edge in self.index.incoming_of(node.id, EdgeType.ACHIEVES)
            )
            if has_executable_action or node.is_positive:
                status.achievable = True

    # =========================================================================
    # HELPERS
    # =========================================================================

    def nodes_of(self, node_type: NodeType) -> List[NodeSpec]:
        return [n for n in self.nodes.values() if n.type == node_type]

    def topological_order(self) -> List[str]:
        """
        Kahn's algorithm over depends/causes edges.

        Ties follow node input order. Nodes stuck on a cycle are appended in
        input order instead of raising.
        """
        in_degree: Dict[str, int] = {node_id: 0 for node_id in self.nodes}
        for edge in self.index.edges_of_type(*CHAIN_EDGE_TYPES):
            in_degree[edge.target_id] += 1

        queue = deque(node_id for node_id, degree in in_degree.items() if degree == 0)
        result: List[str] = []
        placed: Set[str] = set()

        while queue:
            current = queue.popleft()
            result.append(current)
            placed.add(current)
            for edge in self.index.outgoing_of(current, *CHAIN_EDGE_TYPES):
                in_degree[edge.target_id] -= 1
                if in_degree[edge.target_id] == 0:
                    queue.append(edge.target_id)

        if len(result) < len(self.nodes):
            result.extend(node_id for node_id in self.nodes if node_id not in placed)

        return result


def pick_achieving_action(actions: Sequence[NodeSpec]) -> NodeSpec:
    """
    Tie-break for step 4: the successful action with the lowest node id is
    credited, independent of edge order.
    """
    return min(actions, key=lambda action: action.id)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def propagate_states(
    nodes: Sequence[NodeSpec],
    edges: Sequence[EdgeSpec],
    weight_config: Optional[WeightConfig] = None,
) -> PropagationResult:
    """Run one propagation pass over a snapshot."""
    return StatePropagationEngine(nodes, edges, weight_config).propagate()


def apply_status_updates(
    nodes: Sequence[NodeSpec],
    updates: Sequence[Tuple[str, str]],
) -> List[NodeSpec]:
    """
    Return copies of nodes with (node_id, new_status) pairs applied.

    Raises InvalidStatusError if a new status is outside the node's vocabulary.
    Pairs naming unknown nodes are ignored.
    """
    by_id = dict(updates)
    result = []
    for node in nodes:
        copy = node.model_copy(deep=True)
        if node.id in by_id:
            copy.base_status = validate_base_status(copy.type, by_id[node.id])
        result.append(copy)
    return result


@dataclass
class ConvergenceResult:
    result: PropagationResult
    updates: List[StatusUpdate]
    passes: int
    converged: bool

    def to_dict(self) -> Dict:
        payload = self.result.to_dict()
        payload["updatedBaseStatuses"] = [u.to_dict() for u in self.updates]
        payload["passes"] = self.passes
        payload["converged"] = self.converged
        return payload


def propagate_until_stable(
    nodes: Sequence[NodeSpec],
    edges: Sequence[EdgeSpec],
    weight_config: Optional[WeightConfig] = None,
    max_passes: int = 10,
) -> ConvergenceResult:
    """
    Re-run propagation on its own output until no base status changes.

    Accumulated updates keep the first old_status and last new_status seen
    for each node.
    """
    current: Sequence[NodeSpec] = nodes
    accumulated: Dict[str, StatusUpdate] = {}
    result = None

    for passes in range(1, max_passes + 1):
        result = propagate_states(current, edges, weight_config)
        for update in result.updated_base_statuses:
            if update.node_id in accumulated:
                accumulated[update.node_id].new_status = update.new_status
            else:
                accumulated[update.node_id] = StatusUpdate(
                    update.node_id, update.old_status, update.new_status
                )
        if not result.updated_base_statuses:
            logger.info(f"Propagation stable after {passes} passes")
            return ConvergenceResult(result, list(accumulated.values()), passes, True)
        current = result.nodes

    logger.warning(f"Propagation not stable after {max_passes} passes")
    return ConvergenceResult(result, list(accumulated.values()), max_passes, False)


def simulate_status_changes(
    nodes: Sequence[NodeSpec],
    edges: Sequence[EdgeSpec],
    changes: Sequence[Tuple[str, str]],
    weight_config: Optional[WeightConfig] = None,
) -> PropagationResult:
    """What-if: propagate a copy of the graph with hypothetical status changes."""
    modified = apply_status_updates(nodes, changes)
    return propagate_states(modified, edges, weight_config)
