"""
Next-action analysis tests: root goals, blocking points and ranking.
"""
from engine.analysis import AnalysisEngine, get_next_action
from engine.propagation import propagate_states
from engine.satisfaction import SatisfactionStatus


def analyse(nodes, edges, **kwargs):
    propagated = propagate_states(nodes, edges)
    return AnalysisEngine(propagated.nodes, edges, **kwargs).get_next_action()


class TestRootGoals:

    def test_no_goals(self, make_node):
        result = get_next_action([make_node("f", "fact")], [])

        assert result.root_goals == []
        assert result.blocking_points == []
        assert result.suggested_action is None
        assert result.follow_up_actions == []
        assert "No goal" in result.summary

    def test_sub_goal_excluded(self, make_node, make_edge):
        """A goal advanced by another goal is not a root."""
        nodes = [make_node("g1", "goal"), make_node("g2", "goal")]
        edges = [make_edge("g2", "g1", "supports")]

        result = analyse(nodes, edges)

        assert [g.id for g in result.root_goals] == ["g2"]

    def test_fact_support_keeps_goal_root(self, make_node, make_edge):
        nodes = [make_node("g", "goal"), make_node("f", "fact", "confirmed")]
        result = analyse(nodes, [make_edge("f", "g", "supports")])
        assert [g.id for g in result.root_goals] == ["g"]


class TestBlockingPoints:

    def test_direct_action_suggested(self, bakery_graph):
        nodes, edges = bakery_graph
        result = analyse(nodes, edges)

        assert [bp.node.id for bp in result.blocking_points] == ["permit"]
        candidate = result.blocking_points[0].achievable_actions[0]
        assert candidate.action.id == "apply"
        assert candidate.is_executable

        suggested = result.suggested_action
        assert suggested.action.id == "apply"
        assert suggested.priority == 15.0
        assert suggested.reason == "Satisfies: Permit granted"
        assert "Suggested next step: Apply for permit" in result.summary

    def test_dependency_tree_statuses(self, bakery_graph):
        nodes, edges = bakery_graph
        tree = analyse(nodes, edges).dependency_trees[0]

        assert tree.status == SatisfactionStatus.BLOCKED
        assert tree.children[0].status == SatisfactionStatus.UNSATISFIED
        assert [a.id for a in tree.children[0].achievable_by] == ["apply"]

    def test_indirect_action_unblocks_candidate(self, make_node, make_edge):
        """An action achieving a blocked candidate's prerequisite is suggested."""
        nodes = [
            make_node("open", "goal", title="Open bakery"),
            make_node("permit", "constraint", title="Permit granted"),
            make_node("apply", "action", title="Apply for permit"),
            make_node("lease", "fact", title="Lease signed"),
            make_node("sign", "action", title="Sign lease"),
        ]
        edges = [
            make_edge("open", "permit", "depends"),
            make_edge("apply", "permit", "achieves"),
            make_edge("apply", "lease", "depends"),
            make_edge("sign", "lease", "achieves"),
        ]

        result = analyse(nodes, edges)

        candidate = result.blocking_points[0].achievable_actions[0]
        assert not candidate.is_executable
        assert [n.id for n in candidate.blocked_by] == ["lease"]
        assert result.suggested_action.action.id == "sign"
        assert result.suggested_action.reason == "Makes 'Apply for permit' executable"

    def test_all_met(self, make_node):
        result = analyse([make_node("g", "goal", "achieved", title="Launch")], [])

        assert result.blocking_points == []
        assert result.suggested_action is None
        assert result.summary == "All goal prerequisites are met. Root goals: Launch"

    def test_blocking_point_without_actions(self, make_node, make_edge):
        nodes = [make_node("g", "goal"), make_node("c", "constraint")]
        result = analyse(nodes, [make_edge("g", "c", "depends")])

        assert len(result.blocking_points) == 1
        assert result.suggested_action is None
        assert "no action that can run now" in result.summary


class TestDependencyTreeShape:
    """Cycles terminate and shared prerequisites are built once."""

    def test_depends_cycle_terminates(self, make_node, make_edge):
        """G -> A -> B -> A still yields the deepest blocker and its action."""
        nodes = [
            make_node("G", "goal"),
            make_node("A", "constraint"),
            make_node("B", "constraint"),
            make_node("act", "action"),
        ]
        edges = [
            make_edge("G", "A", "depends"),
            make_edge("A", "B", "depends"),
            make_edge("B", "A", "depends"),
            make_edge("act", "B", "achieves"),
        ]

        result = analyse(nodes, edges)

        assert [bp.node.id for bp in result.blocking_points] == ["B"]
        assert result.suggested_action.action.id == "act"
        branch = result.dependency_trees[0].children[0].children[0]
        assert branch.node_id == "B"
        assert branch.children == []

    def test_shared_prerequisite_reported_once(self, make_node, make_edge):
        nodes = [
            make_node("g1", "goal"),
            make_node("g2", "goal"),
            make_node("c", "constraint"),
            make_node("act", "action"),
        ]
        edges = [
            make_edge("g1", "c", "depends"),
            make_edge("g2", "c", "depends"),
            make_edge("act", "c", "achieves"),
        ]

        result = analyse(nodes, edges)

        assert [bp.node.id for bp in result.blocking_points] == ["c"]
        assert result.suggested_action.priority == 15.0
        first, second = result.dependency_trees
        assert first.children[0] is second.children[0]

    def test_diamond_ladder_builds_each_node_once(self, make_node, make_edge, monkeypatch):
        """a_i and b_i both depend on a_(i+1) and b_(i+1); tree size stays linear."""
        import engine.analysis as analysis

        depth = 30
        nodes = [make_node("g", "goal")]
        edges = [make_edge("g", "a0", "depends"), make_edge("g", "b0", "depends")]
        for i in range(depth + 1):
            nodes += [make_node(f"a{i}", "constraint"), make_node(f"b{i}", "constraint")]
            if i < depth:
                for source in (f"a{i}", f"b{i}"):
                    edges += [
                        make_edge(source, f"a{i + 1}", "depends"),
                        make_edge(source, f"b{i + 1}", "depends"),
                    ]

        built = []
        tree_node = analysis.DependencyTreeNode

        def counting_tree_node(**kwargs):
            built.append(kwargs["node_id"])
            return tree_node(**kwargs)

        monkeypatch.setattr(analysis, "DependencyTreeNode", counting_tree_node)

        result = analyse(nodes, edges)

        assert len(built) == len(nodes)
        assert [bp.node.id for bp in result.blocking_points] == [f"a{depth}", f"b{depth}"]


class TestRanking:

    def ranked_graph(self, make_node, make_edge):
        nodes = [
            make_node("g", "goal"),
            make_node("c1", "constraint"),
            make_node("c2", "constraint"),
            make_node("act1", "action"),
            make_node("act2", "action"),
            make_node("tip", "fact", "confirmed"),
        ]
        edges = [
            make_edge("g", "c1", "depends"),
            make_edge("g", "c2", "depends"),
            make_edge("act1", "c1", "achieves"),
            make_edge("act2", "c1", "achieves"),
            make_edge("act2", "c2", "achieves"),
            make_edge("tip", "act1", "supports"),
        ]
        return nodes, edges

    def test_priority_order(self, make_node, make_edge):
        """Resolving two blocking points outranks one plus a support edge."""
        result = analyse(*self.ranked_graph(make_node, make_edge))

        assert result.suggested_action.action.id == "act2"
        assert result.suggested_action.priority == 25.0
        assert [a.action.id for a in result.follow_up_actions] == ["act1"]
        assert result.follow_up_actions[0].priority == 20.0

    def test_follow_up_limit(self, make_node, make_edge):
        result = analyse(*self.ranked_graph(make_node, make_edge), follow_up_limit=0)
        assert result.follow_up_actions == []

    def test_ties_keep_discovery_order(self, make_node, make_edge):
        nodes = [
            make_node("g", "goal"),
            make_node("c", "constraint"),
            make_node("b", "action"),
            make_node("a", "action"),
        ]
        edges = [
            make_edge("g", "c", "depends"),
            make_edge("b", "c", "achieves"),
            make_edge("a", "c", "achieves"),
        ]
        result = analyse(nodes, edges)

        assert result.suggested_action.action.id == "b"
        assert [x.action.id for x in result.follow_up_actions] == ["a"]

    def test_to_dict(self, bakery_graph):
        nodes, edges = bakery_graph
        payload = analyse(nodes, edges).to_dict()

        assert payload["suggestedAction"]["action"]["id"] == "apply"
        assert payload["blockingPoints"][0]["achievableActions"][0]["isExecutable"] is True
        assert set(payload) == {
            "rootGoals", "blockingPoints", "suggestedAction", "followUpActions", "summary"
        }
