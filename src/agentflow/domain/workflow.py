"""
Graph fingerprinting and run recovery support.

Implements:
- compute_graph_ref: content-addressed hash of a graph's structure
- verify_graph_ref: integrity check before a persisted run is resumed
- recovery_point: where a persisted run re-enters the graph
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict
from typing import Any

from agentflow.domain.exceptions import GraphIntegrityError
from agentflow.domain.models import (
    AgentNode,
    HumanDecisionNode,
    NodeKind,
    NodeStatus,
    RunState,
    RunStatus,
    WorkflowGraph,
)


def graph_structure(graph: WorkflowGraph) -> dict[str, Any]:
    """Execution-relevant content of a graph.

    Layout, labels, names and timestamps are excluded: moving a node on a
    canvas must not invalidate a parked run.
    """
    nodes: list[dict[str, Any]] = []
    for node in graph.nodes:
        entry: dict[str, Any] = {"id": node.node_id, "kind": node.kind.value}
        if isinstance(node, AgentNode):
            entry["agent_id"] = node.agent_id
            entry["config"] = asdict(node.config)
        elif isinstance(node, HumanDecisionNode):
            entry["options"] = list(node.option_ids)
        nodes.append(entry)
    edges = [
        {
            "id": e.edge_id,
            "source": e.source,
            "target": e.target,
            "condition": e.condition,
        }
        for e in graph.edges
    ]
    return {"graph_id": graph.graph_id, "nodes": nodes, "edges": edges}


def compute_graph_ref(graph: WorkflowGraph) -> str:
    """Compute content-addressed hash of a graph.

    Produces a deterministic hash by:
    1. Canonical JSON serialization (sorted keys, no whitespace)
    2. SHA-256 hash of the canonical form

    Returns:
        Hex-encoded SHA-256 hash string.
    """
    canonical = json.dumps(
        graph_structure(graph), sort_keys=True, separators=(",", ":")
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def verify_graph_ref(state: RunState, graph: WorkflowGraph) -> None:
    """Ensure ``state`` was produced by ``graph``.

    Raises:
        GraphIntegrityError: If the graph id or fingerprint differs
    """
    if state.graph_id != graph.graph_id:
        raise GraphIntegrityError(
            f"Run '{state.run_id}' belongs to graph '{state.graph_id}', "
            f"not '{graph.graph_id}'"
        )
    actual = compute_graph_ref(graph)
    if actual != state.graph_ref:
        raise GraphIntegrityError(
            f"Graph '{graph.graph_id}' changed since run '{state.run_id}' started: "
            f"expected {state.graph_ref[:12]}, got {actual[:12]}"
        )


def recovery_point(state: RunState, graph: WorkflowGraph) -> str | None:
    """Node at which a persisted run continues.

    Returns the pending decision node for a parked run, the in-progress
    node (or the start node) for a run that was executing, the node a
    paused run stopped before, and None for terminal runs.
    """
    if state.status.is_terminal:
        return None
    if state.status is RunStatus.WAITING_ON_DECISION:
        if state.pending_decision is None:
            raise GraphIntegrityError(
                f"Run '{state.run_id}' is waiting on a decision but has none pending"
            )
        return state.pending_decision.node_id
    current = state.current_node_id
    if current is None:
        return graph.start_node().node_id
    if not graph.has_node(current):
        raise GraphIntegrityError(
            f"Run '{state.run_id}' is positioned at unknown node '{current}'"
        )
    node = graph.node(current)
    entered = bool(state.visited) and state.visited[-1] == current
    finished = state.status_of(current) is NodeStatus.COMPLETED
    if entered and finished and node.kind in (NodeKind.START, NodeKind.AGENT):
        # Checkpointed between finishing a node and entering its successor
        return graph.successor(current).target
    return current
