"""
CLAIMGRAPH ONTOLOGY - The Vocabulary of the Reasoning Graph

This module defines the declarative schema every other layer consults.
The engines CONSULT these tables; they do not hardcode status semantics.

Key Principles:
1. STATUS_TABLES is the SINGLE SOURCE OF TRUTH for what a status means
2. Every NodeType owns a closed status vocabulary (positive/negative/neutral)
3. Node and edge records are validated at the boundary, not inside the engine
4. computed_status is engine-owned and re-derived on every run
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Dict, List, NamedTuple, Optional, Tuple
from enum import Enum


# =============================================================================
# ENUMS (Simple labels - meaning defined in STATUS_TABLES)
# =============================================================================

class NodeType(str, Enum):
    """Types of claims in the reasoning graph."""
    GOAL = "goal"                    # Desired end state
    ACTION = "action"                # Something the user can do
    FACT = "fact"                    # Verifiable information
    ASSUMPTION = "assumption"        # Unverified belief, scored by confidence
    CONSTRAINT = "constraint"        # Condition that must hold
    CONCLUSION = "conclusion"        # Derived from other claims


class EdgeType(str, Enum):
    """Types of logical relations between claims."""
    DEPENDS = "depends"              # A needs B (B is a necessary condition of A)
    SUPPORTS = "supports"            # A helps B hold (positive, not required)
    ACHIEVES = "achieves"            # Action A satisfies goal/constraint B
    HINDERS = "hinders"              # A makes B harder (negative, not fatal)
    CAUSES = "causes"                # A happening brings B about
    CONFLICTS = "conflicts"          # A and B cannot both hold


class GoalStatus(str, Enum):
    ACHIEVED = "achieved"
    NOT_ACHIEVED = "notAchieved"


class ActionStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "inProgress"
    SUCCESS = "success"
    FAILED = "failed"


class FactStatus(str, Enum):
    CONFIRMED = "confirmed"
    DENIED = "denied"
    UNCERTAIN = "uncertain"


class AssumptionStatus(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    UNCERTAIN = "uncertain"


class ConstraintStatus(str, Enum):
    SATISFIED = "satisfied"
    UNSATISFIED = "unsatisfied"


class ConclusionStatus(str, Enum):
    ESTABLISHED = "established"
    NOT_ESTABLISHED = "notEstablished"
    PENDING = "pending"


# =============================================================================
# STATUS TABLES (The Vocabulary)
# =============================================================================

class StatusTable(NamedTuple):
    """Closed status vocabulary of one node type."""
    positive: str
    negative: str
    neutral: Tuple[str, ...]
    default: str

    @property
    def values(self) -> Tuple[str, ...]:
        return (self.positive, self.negative) + self.neutral


# Key: NodeType -> vocabulary. NO OTHER CODE should decide whether a
# status counts as positive, negative or neutral.
STATUS_TABLES: Dict[NodeType, StatusTable] = {
    NodeType.GOAL: StatusTable(
        positive=GoalStatus.ACHIEVED.value,
        negative=GoalStatus.NOT_ACHIEVED.value,
        neutral=(),
        default=GoalStatus.NOT_ACHIEVED.value,
    ),
    NodeType.ACTION: StatusTable(
        positive=ActionStatus.SUCCESS.value,
        negative=ActionStatus.FAILED.value,
        neutral=(ActionStatus.PENDING.value, ActionStatus.IN_PROGRESS.value),
        default=ActionStatus.PENDING.value,
    ),
    NodeType.FACT: StatusTable(
        positive=FactStatus.CONFIRMED.value,
        negative=FactStatus.DENIED.value,
        neutral=(FactStatus.UNCERTAIN.value,),
        default=FactStatus.UNCERTAIN.value,
    ),
    NodeType.ASSUMPTION: StatusTable(
        positive=AssumptionStatus.POSITIVE.value,
        negative=AssumptionStatus.NEGATIVE.value,
        neutral=(AssumptionStatus.UNCERTAIN.value,),
        default=AssumptionStatus.UNCERTAIN.value,
    ),
    NodeType.CONSTRAINT: StatusTable(
        positive=ConstraintStatus.SATISFIED.value,
        negative=ConstraintStatus.UNSATISFIED.value,
        neutral=(),
        default=ConstraintStatus.UNSATISFIED.value,
    ),
    NodeType.CONCLUSION: StatusTable(
        positive=ConclusionStatus.ESTABLISHED.value,
        negative=ConclusionStatus.NOT_ESTABLISHED.value,
        neutral=(ConclusionStatus.PENDING.value,),
        default=ConclusionStatus.PENDING.value,
    ),
}

# Hardcoded per-type weights, used when neither the node nor the project
# configuration provides one.
DEFAULT_WEIGHTS: Dict[NodeType, float] = {
    NodeType.GOAL: 1.0,
    NodeType.ACTION: 1.0,
    NodeType.FACT: 1.0,
    NodeType.ASSUMPTION: 0.5,
    NodeType.CONSTRAINT: 1.0,
    NodeType.CONCLUSION: 0.8,
}

WEIGHT_MIN = 0.1
WEIGHT_MAX = 2.0

# Human-readable labels (text projection, summaries)
NODE_TYPE_LABELS: Dict[NodeType, str] = {
    NodeType.GOAL: "Goal",
    NodeType.ACTION: "Action",
    NodeType.FACT: "Fact",
    NodeType.ASSUMPTION: "Assumption",
    NodeType.CONSTRAINT: "Constraint",
    NodeType.CONCLUSION: "Conclusion",
}

STATUS_LABELS: Dict[str, str] = {
    "achieved": "achieved",
    "notAchieved": "not achieved",
    "pending": "pending",
    "inProgress": "in progress",
    "success": "succeeded",
    "failed": "failed",
    "confirmed": "confirmed",
    "denied": "denied",
    "uncertain": "uncertain",
    "positive": "assumed true",
    "negative": "assumed false",
    "satisfied": "satisfied",
    "unsatisfied": "unsatisfied",
    "established": "established",
    "notEstablished": "not established",
}

EDGE_TYPE_LABELS: Dict[EdgeType, str] = {
    EdgeType.DEPENDS: "depends",
    EdgeType.SUPPORTS: "supports",
    EdgeType.ACHIEVES: "achieves",
    EdgeType.HINDERS: "hinders",
    EdgeType.CAUSES: "causes",
    EdgeType.CONFLICTS: "conflicts",
}


# =============================================================================
# BOUNDARY ERRORS
# =============================================================================

class InvalidStatusError(ValueError):
    """Raised when a base status is outside its node type's vocabulary."""

    def __init__(self, node_type: NodeType, status: str):
        self.node_type = node_type
        self.status = status
        allowed = ", ".join(STATUS_TABLES[node_type].values)
        super().__init__(
            f"'{status}' is not a valid status for {node_type.value} nodes "
            f"(allowed: {allowed})"
        )


class InvalidWeightError(ValueError):
    """Raised when a weight or strength falls outside [0.1, 2.0]."""

    def __init__(self, value: float, field_name: str = "weight"):
        self.value = value
        self.field_name = field_name
        super().__init__(
            f"{field_name} must be between {WEIGHT_MIN} and {WEIGHT_MAX}, got {value}"
        )


def validate_base_status(node_type: NodeType, status: str) -> str:
    """Return status unchanged if it belongs to node_type's vocabulary."""
    if status not in STATUS_TABLES[NodeType(node_type)].values:
        raise InvalidStatusError(NodeType(node_type), status)
    return status


def validate_weight(value: float, field_name: str = "weight") -> float:
    if not WEIGHT_MIN <= value <= WEIGHT_MAX:
        raise InvalidWeightError(value, field_name)
    return value


# =============================================================================
# STATUS QUERIES
# =============================================================================

def is_positive_status(node_type: NodeType, status: str) -> bool:
    return STATUS_TABLES[node_type].positive == status


def is_negative_status(node_type: NodeType, status: str) -> bool:
    return STATUS_TABLES[node_type].negative == status


def is_neutral_status(node_type: NodeType, status: str) -> bool:
    return status in STATUS_TABLES[node_type].neutral


def positive_status_for(node_type: NodeType) -> str:
    """Canonical positive value for a node type (target of auto-updates)."""
    return STATUS_TABLES[node_type].positive


def default_status_for(node_type: NodeType) -> str:
    return STATUS_TABLES[node_type].default


def status_coefficient(node: "NodeSpec") -> float:
    """
    Map a node's base status to a number in [-1, 1].

    Canonical positive -> 1.0, canonical negative -> -1.0, neutral -> 0.0.
    Assumptions are scaled by confidence: positive -> confidence/100,
    uncertain -> confidence/100 * 0.5.
    """
    table = STATUS_TABLES[node.type]
    if node.type == NodeType.ASSUMPTION:
        confidence = node.confidence / 100
        if node.base_status == AssumptionStatus.POSITIVE.value:
            return confidence
        if node.base_status == AssumptionStatus.UNCERTAIN.value:
            return confidence * 0.5
    if node.base_status == table.positive:
        return 1.0
    if node.base_status == table.negative:
        return -1.0
    return 0.0


# =============================================================================
# COMPUTED STATUS (Engine-owned)
# =============================================================================

class ComputedStatus(BaseModel):
    """
    Derived status, owned by the propagation engine.

    Never patched incrementally: every propagation run starts from the
    default instance and re-derives all fields.
    """
    blocked: bool = False
    blocked_by: List[str] = Field(default_factory=list, alias="blockedBy")
    conflicted: bool = False
    conflict_with: List[str] = Field(default_factory=list, alias="conflictWith")
    executable: bool = False
    achievable: bool = False
    threatened: bool = False
    feasibility_score: float = Field(default=0.0, alias="feasibilityScore")
    status_source: Optional[str] = Field(default=None, alias="statusSource")

    class Config:
        populate_by_name = True


# =============================================================================
# NODE SPECIFICATION (The Atomic Claim)
# =============================================================================

class NodeSpec(BaseModel):
    """
    A typed claim in the reasoning graph.

    base_status defaults to the type's default value and is always a member
    of the type's vocabulary. weight is an optional per-node override; see
    WeightConfig.weight_for for the fallback chain.
    """
    id: str = Field(description="Unique identifier")
    type: NodeType = Field(description="Node type from ontology")
    title: str = Field(default="", description="Display title")
    content: Optional[str] = Field(default=None, description="Display body")
    confidence: float = Field(default=50, ge=0, le=100)
    weight: Optional[float] = Field(
        default=None,
        description="Per-node weight override in [0.1, 2.0]. None = use config/default."
    )
    base_status: Optional[str] = Field(default=None, alias="baseStatus")
    auto_update: bool = Field(
        default=False,
        alias="autoUpdate",
        description="Let the engine derive base_status along causes/achieves chains"
    )
    computed_status: ComputedStatus = Field(
        default_factory=ComputedStatus,
        alias="computedStatus"
    )

    class Config:
        populate_by_name = True

    @field_validator("weight")
    @classmethod
    def _check_weight(cls, value: Optional[float]) -> Optional[float]:
        if value is None:
            return value
        return validate_weight(value)

    @model_validator(mode="after")
    def _check_status(self) -> "NodeSpec":
        if self.base_status is None:
            self.base_status = default_status_for(self.type)
        else:
            validate_base_status(self.type, self.base_status)
        return self

    @property
    def is_positive(self) -> bool:
        return is_positive_status(self.type, self.base_status)


# =============================================================================
# EDGE SPECIFICATION
# =============================================================================

class EdgeSpec(BaseModel):
    """Directed relation between two claims."""
    id: str = Field(description="Unique identifier")
    source_id: str = Field(alias="sourceNodeId", description="ID of source node")
    target_id: str = Field(alias="targetNodeId", description="ID of target node")
    type: EdgeType = Field(description="Edge type from ontology")
    strength: float = Field(default=1.0, description="Influence multiplier in [0.1, 2.0]")
    description: Optional[str] = None

    class Config:
        populate_by_name = True

    @field_validator("strength")
    @classmethod
    def _check_strength(cls, value: float) -> float:
        return validate_weight(value, "strength")


# =============================================================================
# WEIGHT CONFIGURATION (Per-project)
# =============================================================================

class WeightConfig(BaseModel):
    """One multiplier per node type; unset fields fall back to DEFAULT_WEIGHTS."""
    goal_weight: float = Field(default=DEFAULT_WEIGHTS[NodeType.GOAL], alias="goalWeight")
    action_weight: float = Field(default=DEFAULT_WEIGHTS[NodeType.ACTION], alias="actionWeight")
    fact_weight: float = Field(default=DEFAULT_WEIGHTS[NodeType.FACT], alias="factWeight")
    assumption_weight: float = Field(
        default=DEFAULT_WEIGHTS[NodeType.ASSUMPTION], alias="assumptionWeight"
    )
    constraint_weight: float = Field(
        default=DEFAULT_WEIGHTS[NodeType.CONSTRAINT], alias="constraintWeight"
    )
    conclusion_weight: float = Field(
        default=DEFAULT_WEIGHTS[NodeType.CONCLUSION], alias="conclusionWeight"
    )

    class Config:
        populate_by_name = True

    @field_validator("*")
    @classmethod
    def _check_range(cls, value: float, info) -> float:
        return validate_weight(value, info.field_name)

    def weight_for(self, node_type: NodeType) -> float:
        return getattr(self, f"{NodeType(node_type).value}_weight")


def resolve_weight(node: NodeSpec, weight_config: Optional[WeightConfig] = None) -> float:
    """Node override, else project config, else hardcoded default."""
    if node.weight is not None:
        return node.weight
    if weight_config is not None:
        return weight_config.weight_for(node.type)
    return DEFAULT_WEIGHTS[node.type]


# =============================================================================
# VALIDATION
# =============================================================================

def validate_status_tables() -> List[str]:
    """
    Validate that every NodeType has a complete, consistent status table.

    Returns list of errors (empty if valid).
    """
    errors = []
    for node_type in NodeType:
        table = STATUS_TABLES.get(node_type)
        if table is None:
            errors.append(f"No status table for {node_type.value}")
            continue
        if len(set(table.values)) != len(table.values):
            errors.append(f"Duplicate status value in {node_type.value} table")
        if table.default not in table.values:
            errors.append(f"Default '{table.default}' not in {node_type.value} vocabulary")
        if node_type not in DEFAULT_WEIGHTS:
            errors.append(f"No default weight for {node_type.value}")
        for value in table.values:
            if value not in STATUS_LABELS:
                errors.append(f"No label for status '{value}' ({node_type.value})")
    for edge_type in EdgeType:
        if edge_type not in EDGE_TYPE_LABELS:
            errors.append(f"No label for edge type {edge_type.value}")
    return errors


# Run validation on module load
_validation_errors = validate_status_tables()
if _validation_errors:
    import warnings
    for err in _validation_errors:
        warnings.warn(f"Status table validation: {err}")
