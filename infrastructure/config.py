"""
CLAIMGRAPH CONFIGURATION
YAML-backed settings for the engines and the CLI.

Lookup order for the config file:
    1. Explicit path argument
    2. CLAIMGRAPH_CONFIG environment variable
    3. .claimgraph/config.yaml

A missing file is not an error: defaults apply and a warning is logged.

Example config.yaml:
    weights:
      assumptionWeight: 0.7
    propagation:
      max_passes: 5
    analysis:
      follow_up_limit: 3
      max_suggestions: 5
    engine:
      max_nodes: 5000
    logging:
      level: DEBUG
"""
import os
import logging
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from core.ontology import WeightConfig


logger = logging.getLogger("ClaimGraph.Config")

DEFAULT_CONFIG_PATH = ".claimgraph/config.yaml"
CONFIG_ENV_VAR = "CLAIMGRAPH_CONFIG"


class ConfigError(ValueError):
    """Raised when a config file exists but cannot be used."""


class GraphTooLargeError(Exception):
    """Raised when a graph exceeds engine.max_nodes."""

    def __init__(self, node_count: int, max_nodes: int):
        self.node_count = node_count
        self.max_nodes = max_nodes
        super().__init__(f"Graph has {node_count} nodes, limit is {max_nodes}")


class PropagationSettings(BaseModel):
    max_passes: int = Field(default=10, ge=1, description="Cap for propagate_until_stable")


class AnalysisSettings(BaseModel):
    follow_up_limit: int = Field(default=3, ge=0)
    max_suggestions: int = Field(default=5, ge=0)


class EngineSettings(BaseModel):
    max_nodes: Optional[int] = Field(default=None, ge=1, description="None = unlimited")


class LoggingSettings(BaseModel):
    level: str = "INFO"


class ClaimGraphConfig(BaseModel):
    weights: WeightConfig = Field(default_factory=WeightConfig)
    propagation: PropagationSettings = Field(default_factory=PropagationSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def check_size(self, node_count: int) -> None:
        """Raise GraphTooLargeError if node_count exceeds engine.max_nodes."""
        limit = self.engine.max_nodes
        if limit is not None and node_count > limit:
            raise GraphTooLargeError(node_count, limit)


def resolve_config_path(path: Optional[str] = None) -> str:
    if path:
        return path
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        logger.info(f"{CONFIG_ENV_VAR} set: '{env_path}'")
        return env_path
    return DEFAULT_CONFIG_PATH


def load_config(path: Optional[str] = None) -> ClaimGraphConfig:
    """
    Load and validate the config file.

    Raises:
        ConfigError: If the file is not valid YAML or fails validation
    """
    config_path = resolve_config_path(path)
    try:
        with open(config_path, "r") as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Config not found: {config_path}. Using defaults.")
        return ClaimGraphConfig()
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config root must be a mapping: {config_path}")

    try:
        config = ClaimGraphConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {config_path}: {e}") from e

    logger.debug(f"Loaded config from {config_path}")
    return config
