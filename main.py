#!/usr/bin/env python3
"""
CLAIMGRAPH MAIN - Command Line Entry Point

Runs the engines over a graph document (JSON or YAML) and prints the result
as JSON.

Usage:
    python main.py propagate plan.yaml
    python main.py propagate plan.yaml --until-stable
    python main.py propagate plan.yaml --set act_1=success      # what-if
    python main.py next-action plan.yaml
    python main.py feasibility plan.yaml goal_1
    python main.py check plan.yaml
    python main.py render plan.yaml
"""
import json
import logging
import sys
from typing import List, Optional, Tuple

from core.ontology import InvalidStatusError
from engine.analysis import AnalysisEngine, NodeNotFoundError
from engine.diagnostics import GraphDiagnostics, IssueSeverity
from engine.propagation import (
    apply_status_updates,
    propagate_states,
    propagate_until_stable,
    simulate_status_changes,
)
from infrastructure.config import ClaimGraphConfig, ConfigError, GraphTooLargeError, load_config
from infrastructure.graph_loader import (
    GraphDocument,
    GraphDocumentError,
    load_graph_document,
    write_result,
)
from infrastructure.text_projection import render_graph_text


logger = logging.getLogger("ClaimGraph.Main")

EXIT_OK = 0
EXIT_ISSUES = 1
EXIT_ERROR = 2


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format='%(asctime)s | %(name)-20s | %(levelname)-7s | %(message)s',
        datefmt='%H:%M:%S'
    )


def parse_assignments(values: Optional[List[str]]) -> List[Tuple[str, str]]:
    """Turn ["id=status", ...] into [(id, status), ...]."""
    pairs = []
    for value in values or []:
        node_id, sep, status = value.partition("=")
        if not sep or not node_id or not status:
            raise ValueError(f"Expected NODE_ID=STATUS, got '{value}'")
        pairs.append((node_id.strip(), status.strip()))
    return pairs


def emit(payload: dict, output: Optional[str]) -> None:
    if output:
        write_result(output, payload)
    else:
        print(json.dumps(payload, indent=2, ensure_ascii=False))


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_propagate(document: GraphDocument, config: ClaimGraphConfig, args) -> int:
    weights = document.weight_config or config.weights
    changes = parse_assignments(args.set)

    if args.until_stable:
        nodes = document.nodes
        if changes:
            logger.info(f"Applying {len(changes)} status changes before iterating")
            nodes = apply_status_updates(nodes, changes)
        outcome = propagate_until_stable(
            nodes, document.edges, weights,
            max_passes=config.propagation.max_passes,
        )
        emit(outcome.to_dict(), args.output)
    elif changes:
        logger.info(f"Simulating {len(changes)} status changes")
        result = simulate_status_changes(document.nodes, document.edges, changes, weights)
        emit(result.to_dict(), args.output)
    else:
        result = propagate_states(document.nodes, document.edges, weights)
        emit(result.to_dict(), args.output)
    return EXIT_OK


def _analysis_engine(document: GraphDocument, config: ClaimGraphConfig) -> AnalysisEngine:
    weights = document.weight_config or config.weights
    propagated = propagate_states(document.nodes, document.edges, weights)
    return AnalysisEngine(
        propagated.nodes,
        document.edges,
        weights,
        follow_up_limit=config.analysis.follow_up_limit,
        max_suggestions=config.analysis.max_suggestions,
    )


def cmd_next_action(document: GraphDocument, config: ClaimGraphConfig, args) -> int:
    result = _analysis_engine(document, config).get_next_action()
    logger.info(result.summary)
    emit(result.to_dict(), args.output)
    return EXIT_OK


def cmd_feasibility(document: GraphDocument, config: ClaimGraphConfig, args) -> int:
    result = _analysis_engine(document, config).evaluate_feasibility(args.node_id)
    logger.info(result.summary)
    emit(result.to_dict(), args.output)
    return EXIT_OK


def cmd_check(document: GraphDocument, config: ClaimGraphConfig, args) -> int:
    weights = document.weight_config or config.weights
    propagation = propagate_states(document.nodes, document.edges, weights)
    issues = GraphDiagnostics(document.nodes, document.edges).detect_issues(propagation)

    for issue in issues:
        log = logger.error if issue.severity == IssueSeverity.ERROR else logger.warning
        log(f"[{issue.type.value}] {issue.message}")
    emit({"issues": [issue.to_dict() for issue in issues]}, args.output)

    if any(issue.severity == IssueSeverity.ERROR for issue in issues):
        return EXIT_ISSUES
    return EXIT_OK


def cmd_render(document: GraphDocument, config: ClaimGraphConfig, args) -> int:
    text = render_graph_text(document.name, document.nodes, document.edges, document.description)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(text)
    else:
        sys.stdout.write(text)
    return EXIT_OK


COMMANDS = {
    "propagate": cmd_propagate,
    "next-action": cmd_next_action,
    "feasibility": cmd_feasibility,
    "check": cmd_check,
    "render": cmd_render,
}


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(
        description="ClaimGraph - status propagation and feasibility analysis for reasoning graphs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py propagate plan.yaml --until-stable
  python main.py next-action plan.yaml -o next.json
  python main.py feasibility plan.yaml goal_1
        """
    )
    parser.add_argument(
        "-c", "--config",
        help="Path to config.yaml (default: $CLAIMGRAPH_CONFIG or .claimgraph/config.yaml)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_command(name: str, help_text: str):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("graph", help="Graph document (.json, .yaml, .yml)")
        sub.add_argument("-o", "--output", help="Write result to this file instead of stdout")
        return sub

    propagate = add_command("propagate", "Derive computed status and automatic updates")
    propagate.add_argument(
        "--until-stable",
        action="store_true",
        help="Re-run propagation until no base status changes"
    )
    propagate.add_argument(
        "--set",
        action="append",
        metavar="NODE_ID=STATUS",
        help="What-if: apply a hypothetical status before propagating (repeatable)"
    )

    add_command("next-action", "Recommend the next action towards the root goals")

    feasibility = add_command("feasibility", "Evaluate how well-supported one node is")
    feasibility.add_argument("node_id", help="Target node id")

    add_command("check", "Report structural issues, cycles and conflicts")
    add_command("render", "Print the plain-text projection of the graph")

    return parser


def run(args) -> int:
    """Execute one parsed command; returns the process exit code."""
    try:
        config = load_config(args.config)
        if not args.verbose:
            logging.getLogger().setLevel(config.logging.level.upper())

        document = load_graph_document(args.graph)
        config.check_size(len(document.nodes))
        return COMMANDS[args.command](document, config, args)
    except (ConfigError, GraphDocumentError, GraphTooLargeError,
            NodeNotFoundError, InvalidStatusError) as e:
        logger.error(str(e))
        return EXIT_ERROR
    except ValueError as e:
        logger.error(f"Invalid argument: {e}")
        return EXIT_ERROR


def cli(argv: Optional[List[str]] = None):
    """Command line interface."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(logging.DEBUG if args.verbose else logging.INFO)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    sys.exit(run(args))


if __name__ == "__main__":
    cli()
