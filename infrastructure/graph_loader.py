"""
GRAPH LOADER
Reads graph documents from disk and writes engine results back out.

A graph document is a JSON or YAML mapping:
    name: "Open a bakery"        # optional
    nodes: [ {id, type, title, baseStatus, ...}, ... ]
    edges: [ {id, sourceNodeId, targetNodeId, type, strength}, ... ]
    weightConfig: {goalWeight: 1.0, ...}   # optional, weight_config also accepted

Field names may be camelCase or snake_case.
"""
import os
import json
import logging
from typing import Any, Dict, List, Optional

import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError

from core.ontology import EdgeSpec, NodeSpec, WeightConfig


logger = logging.getLogger("ClaimGraph.GraphLoader")

JSON_EXTENSIONS = (".json",)
YAML_EXTENSIONS = (".yaml", ".yml")


class GraphDocumentError(ValueError):
    """Raised when a graph document cannot be read or does not validate."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load graph document {path}: {reason}")


class GraphDocument(BaseModel):
    name: str = Field(default="Untitled", description="Scene name used by the text projection")
    description: Optional[str] = None
    nodes: List[NodeSpec] = Field(default_factory=list)
    edges: List[EdgeSpec] = Field(default_factory=list)
    weight_config: Optional[WeightConfig] = Field(
        default=None,
        validation_alias=AliasChoices("weightConfig", "weight_config"),
        serialization_alias="weightConfig",
    )


def _read_raw(path: str) -> Any:
    extension = os.path.splitext(path)[1].lower()
    if extension not in JSON_EXTENSIONS + YAML_EXTENSIONS:
        raise GraphDocumentError(path, f"unsupported extension '{extension}'")

    try:
        with open(path, "r", encoding="utf-8") as f:
            if extension in JSON_EXTENSIONS:
                return json.load(f)
            return yaml.safe_load(f)
    except FileNotFoundError as e:
        raise GraphDocumentError(path, "file not found") from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise GraphDocumentError(path, f"parse error: {e}") from e


def load_graph_document(path: str) -> GraphDocument:
    """
    Load and validate a graph document.

    Raises:
        GraphDocumentError: Missing file, unknown extension, parse failure,
            or a node/edge that fails validation
    """
    raw = _read_raw(path)
    if not isinstance(raw, dict):
        raise GraphDocumentError(path, "document root must be a mapping")

    try:
        document = GraphDocument.model_validate(raw)
    except ValidationError as e:
        raise GraphDocumentError(path, str(e)) from e

    logger.info(f"Loaded {path}: {len(document.nodes)} nodes, {len(document.edges)} edges")
    return document


def write_result(path: str, payload: Dict) -> None:
    """Write a result payload (a to_dict() output) as indented JSON."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
    logger.info(f"Wrote result to {path}")
