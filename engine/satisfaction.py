"""
SATISFACTION STATUS
Collapses a node's base + computed status into one of five planning states,
used by the dependency-tree walk in the analysis engine.
"""
from enum import Enum
from typing import Sequence

from core.ontology import (
    ActionStatus,
    AssumptionStatus,
    ConclusionStatus,
    ConstraintStatus,
    FactStatus,
    GoalStatus,
    NodeSpec,
    NodeType,
)


class SatisfactionStatus(str, Enum):
    SATISFIED = "satisfied"
    UNSATISFIED = "unsatisfied"
    BLOCKED = "blocked"
    PENDING = "pending"
    ACHIEVABLE = "achievable"


# States that make a tree node a candidate blocking point
UNMET_STATES = (SatisfactionStatus.UNSATISFIED, SatisfactionStatus.BLOCKED)


def _children_satisfied(children: Sequence) -> SatisfactionStatus:
    if all(child.status == SatisfactionStatus.SATISFIED for child in children):
        return SatisfactionStatus.SATISFIED
    return SatisfactionStatus.BLOCKED


def satisfaction_status(node: NodeSpec, children: Sequence = ()) -> SatisfactionStatus:
    """
    Decision table for one node.

    children are already-evaluated dependency subtrees (anything with a
    .status attribute). Pass none to get the childless view used for
    prerequisite checks.
    """
    computed = node.computed_status
    if computed.conflicted or computed.blocked:
        return SatisfactionStatus.BLOCKED

    status = node.base_status

    if node.type == NodeType.GOAL:
        if status == GoalStatus.ACHIEVED.value:
            return SatisfactionStatus.SATISFIED
        if computed.achievable:
            return SatisfactionStatus.ACHIEVABLE
        if not children:
            return SatisfactionStatus.UNSATISFIED
        return SatisfactionStatus.BLOCKED

    if node.type == NodeType.ACTION:
        if status == ActionStatus.SUCCESS.value:
            return SatisfactionStatus.SATISFIED
        if status == ActionStatus.FAILED.value:
            return SatisfactionStatus.UNSATISFIED
        if status == ActionStatus.IN_PROGRESS.value:
            return SatisfactionStatus.PENDING
        # Pending actions count as satisfied once they can run
        if computed.executable or not children:
            return SatisfactionStatus.SATISFIED
        return _children_satisfied(children)

    if node.type == NodeType.FACT:
        if status == FactStatus.CONFIRMED.value:
            return SatisfactionStatus.SATISFIED
        if status == FactStatus.DENIED.value:
            return SatisfactionStatus.UNSATISFIED
        return SatisfactionStatus.PENDING

    if node.type == NodeType.ASSUMPTION:
        if status == AssumptionStatus.POSITIVE.value:
            return SatisfactionStatus.SATISFIED
        if status == AssumptionStatus.NEGATIVE.value:
            return SatisfactionStatus.UNSATISFIED
        return SatisfactionStatus.PENDING

    if node.type == NodeType.CONSTRAINT:
        if status == ConstraintStatus.SATISFIED.value:
            return SatisfactionStatus.SATISFIED
        if not children:
            return SatisfactionStatus.UNSATISFIED
        return _children_satisfied(children)

    if node.type == NodeType.CONCLUSION:
        if status == ConclusionStatus.ESTABLISHED.value:
            return SatisfactionStatus.SATISFIED
        if status == ConclusionStatus.NOT_ESTABLISHED.value:
            return SatisfactionStatus.UNSATISFIED
        return SatisfactionStatus.PENDING

    return SatisfactionStatus.PENDING
