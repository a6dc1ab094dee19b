"""
CLI tests: each subcommand end to end on a small graph document.
"""
import json

import pytest

from main import cli, parse_assignments


@pytest.fixture
def graph_file(tmp_path):
    document = {
        "name": "Bakery",
        "nodes": [
            {"id": "open", "type": "goal", "title": "Open bakery"},
            {"id": "permit", "type": "constraint", "title": "Permit", "autoUpdate": True},
            {"id": "apply", "type": "action", "title": "Apply"},
        ],
        "edges": [
            {"id": "e1", "sourceNodeId": "open", "targetNodeId": "permit", "type": "depends"},
            {"id": "e2", "sourceNodeId": "apply", "targetNodeId": "permit", "type": "achieves"},
        ],
    }
    path = tmp_path / "graph.json"
    path.write_text(json.dumps(document))
    return str(path)


@pytest.fixture
def no_config(tmp_path):
    return ["-c", str(tmp_path / "missing.yaml")]


def run_cli(argv):
    with pytest.raises(SystemExit) as exc:
        cli(argv)
    return exc.value.code


class TestCommands:

    def test_propagate(self, graph_file, no_config, capsys):
        assert run_cli(no_config + ["propagate", graph_file]) == 0
        payload = json.loads(capsys.readouterr().out)

        open_node = next(n for n in payload["nodes"] if n["id"] == "open")
        assert open_node["computedStatus"]["blockedBy"] == ["permit"]

    def test_propagate_what_if(self, graph_file, no_config, capsys):
        assert run_cli(no_config + ["propagate", graph_file, "--set", "apply=success"]) == 0
        payload = json.loads(capsys.readouterr().out)

        assert payload["updatedBaseStatuses"] == [
            {"nodeId": "permit", "oldStatus": "unsatisfied", "newStatus": "satisfied"}
        ]

    def test_propagate_until_stable(self, graph_file, no_config, capsys):
        assert run_cli(no_config + ["propagate", graph_file, "--until-stable"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["converged"] is True
        assert payload["passes"] == 1

    def test_propagate_what_if_until_stable(self, graph_file, no_config, capsys):
        """Hypothetical statuses feed the iterated propagation."""
        argv = ["propagate", graph_file, "--set", "apply=success", "--until-stable"]
        assert run_cli(no_config + argv) == 0
        payload = json.loads(capsys.readouterr().out)

        assert payload["converged"] is True
        assert payload["passes"] == 2
        assert payload["updatedBaseStatuses"] == [
            {"nodeId": "permit", "oldStatus": "unsatisfied", "newStatus": "satisfied"}
        ]

    def test_next_action(self, graph_file, no_config, capsys):
        assert run_cli(no_config + ["next-action", graph_file]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["suggestedAction"]["action"]["id"] == "apply"

    def test_feasibility_writes_output(self, graph_file, no_config, tmp_path):
        output = tmp_path / "feasibility.json"
        assert run_cli(no_config + ["feasibility", graph_file, "open", "-o", str(output)]) == 0

        payload = json.loads(output.read_text())
        assert payload["verdict"] == "uncertain"

    def test_check_is_clean(self, graph_file, no_config, capsys):
        assert run_cli(no_config + ["check", graph_file]) == 0
        assert json.loads(capsys.readouterr().out) == {"issues": []}

    def test_render(self, graph_file, no_config, capsys):
        assert run_cli(no_config + ["render", graph_file]) == 0
        out = capsys.readouterr().out
        assert out.startswith("# Scene: Bakery\n")
        assert "Apply -achieves-> Permit" in out


class TestErrors:

    def test_unknown_node(self, graph_file, no_config):
        assert run_cli(no_config + ["feasibility", graph_file, "ghost"]) == 2

    def test_missing_document(self, tmp_path, no_config):
        assert run_cli(no_config + ["propagate", str(tmp_path / "none.json")]) == 2

    def test_bad_assignment(self, graph_file, no_config):
        assert run_cli(no_config + ["propagate", graph_file, "--set", "apply"]) == 2

    def test_size_cap(self, graph_file, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("engine:\n  max_nodes: 2\n")
        assert run_cli(["-c", str(config), "propagate", graph_file]) == 2

    def test_check_reports_cycle(self, tmp_path, no_config):
        path = tmp_path / "cycle.yaml"
        path.write_text(
            "nodes:\n"
            "  - {id: a, type: goal}\n"
            "  - {id: b, type: goal}\n"
            "edges:\n"
            "  - {id: e1, sourceNodeId: a, targetNodeId: b, type: depends}\n"
            "  - {id: e2, sourceNodeId: b, targetNodeId: a, type: depends}\n"
        )
        assert run_cli(no_config + ["check", str(path)]) == 1


class TestParseAssignments:

    def test_pairs(self):
        assert parse_assignments(["a=success", " b = denied "]) == [("a", "success"), ("b", "denied")]

    def test_rejects_missing_status(self):
        with pytest.raises(ValueError, match="NODE_ID=STATUS"):
            parse_assignments(["a="])
