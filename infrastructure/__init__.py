"""
ClaimGraph Infrastructure Layer
"""
from infrastructure.graph_index import GraphIndex, build_index
from infrastructure.config import (
    ClaimGraphConfig,
    ConfigError,
    GraphTooLargeError,
    load_config,
)
from infrastructure.graph_loader import (
    GraphDocument,
    GraphDocumentError,
    load_graph_document,
    write_result,
)
from infrastructure.text_projection import render_graph_text

__all__ = [
    'GraphIndex',
    'build_index',
    'ClaimGraphConfig',
    'ConfigError',
    'GraphTooLargeError',
    'load_config',
    'GraphDocument',
    'GraphDocumentError',
    'load_graph_document',
    'write_result',
    'render_graph_text',
]
