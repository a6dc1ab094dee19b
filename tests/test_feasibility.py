"""
Feasibility evaluation tests: evidence, normalization, risks and verdicts.
"""
import pytest

from core.ontology import WeightConfig
from engine.analysis import (
    AnalysisEngine,
    NodeNotFoundError,
    RiskType,
    Severity,
    Verdict,
    evaluate_feasibility,
    normalize_score,
)
from engine.propagation import propagate_states


def evaluate(nodes, edges, node_id, **kwargs):
    propagated = propagate_states(nodes, edges)
    return AnalysisEngine(propagated.nodes, edges, **kwargs).evaluate_feasibility(node_id)


class TestNormalization:

    @pytest.mark.parametrize("score, expected", [
        (0.0, 50),
        (1.0, 73),
        (-1.0, 27),
        (2.0, 88),
        (100.0, 100),
        (-100.0, 0),
    ])
    def test_tanh_curve(self, score, expected):
        assert normalize_score(score) == expected


class TestEvidence:

    def test_confirmed_fact_support(self, make_node, make_edge):
        """Single confirmed supporting fact scores 73."""
        nodes = [make_node("G", "goal"), make_node("F", "fact", "confirmed")]
        result = evaluate(nodes, [make_edge("F", "G", "supports")], "G")

        assert [e.weight for e in result.positive_evidence] == [1.0]
        assert result.feasibility_score == 1.0
        assert result.normalized_score == 73
        assert result.risks == []
        assert result.verdict == Verdict.HIGHLY_FEASIBLE

    def test_isolated_goal(self, make_node):
        result = evaluate([make_node("G", "goal")], [], "G")

        assert result.normalized_score == 50
        assert result.verdict == Verdict.UNCERTAIN
        assert result.risks == []
        assert result.suggestions == []

    def test_edge_strength_multiplies(self, make_node, make_edge):
        nodes = [make_node("G", "goal"), make_node("F", "fact", "confirmed")]
        result = evaluate(nodes, [make_edge("F", "G", "supports", strength=2.0)], "G")

        assert result.feasibility_score == pytest.approx(2.0)
        assert result.normalized_score == 88

    def test_weight_config_feeds_evidence(self, make_node, make_edge):
        nodes = [make_node("G", "goal"), make_node("F", "fact", "confirmed")]
        result = evaluate_feasibility(
            nodes, [make_edge("F", "G", "supports")], "G", WeightConfig(fact_weight=0.5)
        )
        assert result.feasibility_score == pytest.approx(0.5)

    def test_unknown_node(self, make_node):
        with pytest.raises(NodeNotFoundError, match="missing") as exc:
            evaluate([make_node("G", "goal")], [], "missing")
        assert exc.value.node_id == "missing"


class TestRisksAndVerdicts:

    def test_hindering_fact(self, make_node, make_edge):
        nodes = [make_node("G", "goal"), make_node("H", "fact", "confirmed", title="Recession")]
        result = evaluate(nodes, [make_edge("H", "G", "hinders")], "G")

        assert result.normalized_score == 27
        assert [(r.type, r.severity) for r in result.risks] == [
            (RiskType.STRONG_HINDRANCE, Severity.HIGH)
        ]
        assert result.verdict == Verdict.CHALLENGING
        assert result.suggestions == ["Work out how to overcome 'Recession'"]

    def test_conflict_edge(self, make_node, make_edge):
        nodes = [make_node("G", "goal"), make_node("A", "assumption", "positive", confidence=100)]
        result = evaluate(nodes, [make_edge("A", "G", "conflicts")], "G")

        assert [e.weight for e in result.negative_evidence] == [pytest.approx(0.5)]
        assert [r.type for r in result.risks] == [RiskType.CONFLICT]
        assert result.verdict == Verdict.CHALLENGING

    def test_assumption_risk(self, make_node, make_edge):
        nodes = [make_node("G", "goal"), make_node("A", "assumption", "positive", confidence=80, title="Demand")]
        result = evaluate(nodes, [make_edge("A", "G", "supports")], "G")

        assert result.normalized_score == 60
        assert [(r.type, r.severity) for r in result.risks] == [
            (RiskType.ASSUMPTION_RISK, Severity.MEDIUM)
        ]
        assert result.verdict == Verdict.FEASIBLE
        assert result.suggestions == ["Verify these assumptions: Demand"]

    def test_gap_with_achieving_action(self, bakery_graph):
        nodes, edges = bakery_graph
        result = evaluate(nodes, edges, "open")

        prereq = result.prerequisites[0]
        assert prereq.node.id == "permit"
        assert [a.id for a in prereq.achievable_by] == ["apply"]
        assert [(r.type, r.severity) for r in result.risks] == [
            (RiskType.DEPENDENCY_GAP, Severity.MEDIUM)
        ]
        assert result.verdict == Verdict.UNCERTAIN
        assert result.suggestions == ["Run 'Apply for permit' first to satisfy 'Permit granted'"]

    def test_gap_without_action_is_infeasible(self, make_node, make_edge):
        nodes = [make_node("G", "goal"), make_node("C", "constraint", title="Licence")]
        result = evaluate(nodes, [make_edge("G", "C", "depends")], "G")

        assert result.risks[0].severity == Severity.HIGH
        assert result.verdict == Verdict.INFEASIBLE
        assert result.suggestions == [
            "Find a way to satisfy 'Licence'",
            "Create an action that achieves 'Licence'",
        ]
        assert "1 high-severity risks" in result.summary

    def test_met_prerequisite(self, make_node, make_edge):
        nodes = [make_node("G", "goal"), make_node("F", "fact", "confirmed")]
        result = evaluate(nodes, [make_edge("G", "F", "depends")], "G")

        assert result.prerequisites[0].is_met
        assert result.risks == []

    def test_suggestions_capped(self, make_node, make_edge):
        nodes = [make_node("G", "goal")] + [make_node(f"c{i}", "constraint") for i in range(6)]
        edges = [make_edge("G", f"c{i}", "depends") for i in range(6)]

        assert len(evaluate(nodes, edges, "G").suggestions) == 5
        assert len(evaluate(nodes, edges, "G", max_suggestions=2).suggestions) == 2

    def test_to_dict(self, make_node, make_edge):
        nodes = [make_node("G", "goal"), make_node("F", "fact", "confirmed")]
        payload = evaluate(nodes, [make_edge("F", "G", "supports")], "G").to_dict()

        assert payload["normalizedScore"] == 73
        assert payload["verdict"] == "highly_feasible"
        assert payload["positiveEvidence"][0]["edgeType"] == "supports"
