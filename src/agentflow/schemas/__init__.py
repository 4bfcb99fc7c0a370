"""AgentFlow JSON Schema definitions and validation utilities.

Schemas:
    - graph.schema.json: Workflow graph document (nodes, edges, metadata)
    - run_state.schema.json: Run checkpoint written by the filesystem store

Usage:
    from agentflow.schemas import validate_graph_document

    with open("workflow.json") as f:
        data = json.load(f)
    validate_graph_document(data)  # Raises jsonschema.ValidationError if invalid
"""

from __future__ import annotations

import json
from importlib.resources import files
from typing import Any

import jsonschema


def _load_schema(name: str) -> dict[str, Any]:
    """Load a JSON schema from the schemas package.

    Args:
        name: Schema filename (e.g., 'graph.schema.json')

    Returns:
        Parsed JSON schema as a dictionary
    """
    schema_text = files("agentflow.schemas").joinpath(name).read_text()
    result: dict[str, Any] = json.loads(schema_text)
    return result


def get_graph_schema() -> dict[str, Any]:
    """Get the graph document schema."""
    return _load_schema("graph.schema.json")


def get_run_state_schema() -> dict[str, Any]:
    """Get the run checkpoint schema."""
    return _load_schema("run_state.schema.json")


def validate_graph_document(data: dict[str, Any]) -> None:
    """Validate a serialized graph against the schema.

    Args:
        data: Graph document dictionary

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_graph_schema())


def validate_run_state_document(data: dict[str, Any]) -> None:
    """Validate a run checkpoint against the schema.

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_run_state_schema())


__all__ = [
    "get_graph_schema",
    "get_run_state_schema",
    "validate_graph_document",
    "validate_run_state_document",
]
