"""
ClaimGraph Engine Layer

- propagation: eight-step status propagation, convergence and what-if helpers
- analysis: next-action recommendation and feasibility evaluation
- satisfaction: planning-state decision table
- diagnostics: structural issue detection
"""
from engine.propagation import (
    StatePropagationEngine,
    PropagationResult,
    StatusUpdate,
    ConflictPair,
    ConvergenceResult,
    propagate_states,
    propagate_until_stable,
    apply_status_updates,
    simulate_status_changes,
)
from engine.satisfaction import SatisfactionStatus, satisfaction_status
from engine.analysis import (
    AnalysisEngine,
    NodeNotFoundError,
    NextActionResult,
    FeasibilityResult,
    Verdict,
    get_next_action,
    evaluate_feasibility,
)
from engine.diagnostics import GraphDiagnostics, GraphIssue, detect_issues

__all__ = [
    'StatePropagationEngine',
    'PropagationResult',
    'StatusUpdate',
    'ConflictPair',
    'ConvergenceResult',
    'propagate_states',
    'propagate_until_stable',
    'apply_status_updates',
    'simulate_status_changes',
    'SatisfactionStatus',
    'satisfaction_status',
    'AnalysisEngine',
    'NodeNotFoundError',
    'NextActionResult',
    'FeasibilityResult',
    'Verdict',
    'get_next_action',
    'evaluate_feasibility',
    'GraphDiagnostics',
    'GraphIssue',
    'detect_issues',
]
