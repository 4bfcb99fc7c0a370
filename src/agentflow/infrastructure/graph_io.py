"""
Graph import/export.

Documents go through two gates on import: the JSON Schema (shape) and
the GraphValidator (structure). Either failure surfaces as
GraphImportError so callers handle one exception type.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import jsonschema

from agentflow.domain.exceptions import GraphImportError, ValidationError
from agentflow.domain.models import WorkflowGraph
from agentflow.domain.validation import GraphValidator
from agentflow.infrastructure.persistence.serialization import (
    dict_to_graph,
    graph_to_dict,
)
from agentflow.schemas import validate_graph_document

logger = logging.getLogger("agentflow.graph_io")


def export_graph(graph: WorkflowGraph) -> str:
    """Serialize a graph to an indented JSON document."""
    return json.dumps(graph_to_dict(graph), indent=2)


def import_graph(
    text: str, validator: GraphValidator | None = None
) -> WorkflowGraph:
    """
    Parse and validate a graph document.

    Args:
        text: JSON document
        validator: Structural validator (defaults to GraphValidator())

    Returns:
        The graph, already structurally valid

    Raises:
        GraphImportError: On malformed JSON, schema violations or
            structural errors. The structural ValidationError is chained.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GraphImportError(f"Invalid JSON: {e}") from e

    try:
        validate_graph_document(data)
    except jsonschema.ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise GraphImportError(f"Schema violation at {location}: {e.message}") from e

    graph = dict_to_graph(data)
    try:
        (validator or GraphValidator()).validate(graph)
    except ValidationError as e:
        raise GraphImportError(f"Invalid graph '{graph.graph_id}': {e}") from e

    logger.debug(
        "Imported graph '%s' (%d nodes, %d edges)",
        graph.graph_id,
        len(graph.nodes),
        len(graph.edges),
    )
    return graph


def load_graph(path: str | Path) -> WorkflowGraph:
    """Read and import a graph document from disk."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise GraphImportError(f"Cannot read {path}: {e}") from e
    return import_graph(text)


def save_graph(graph: WorkflowGraph, path: str | Path) -> Path:
    """Write a graph document to disk. Returns the written path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(export_graph(graph) + "\n", encoding="utf-8")
    return path
