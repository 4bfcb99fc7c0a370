"""
Dict serialization for graphs and run state.

The dict shapes are the on-disk JSON formats described by
``agentflow/schemas/graph.schema.json`` and ``run_state.schema.json``.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from agentflow.domain.models import (
    AgentConfig,
    AgentExecution,
    AgentNode,
    Artifact,
    DecisionOption,
    DecisionRecord,
    Edge,
    EndNode,
    HumanDecisionNode,
    LogEntry,
    LogLevel,
    Message,
    Node,
    NodeKind,
    NodeStatus,
    PendingDecision,
    Position,
    RunState,
    RunStatus,
    StartNode,
    WorkflowGraph,
)

# =============================================================================
# GRAPH
# =============================================================================


def _option_to_dict(option: DecisionOption) -> dict[str, Any]:
    return {
        "id": option.option_id,
        "label": option.label,
        "description": option.description,
    }


def _dict_to_option(data: dict[str, Any]) -> DecisionOption:
    return DecisionOption(
        option_id=data["id"],
        label=data.get("label", ""),
        description=data.get("description", ""),
    )


def node_to_dict(node: Node) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": node.node_id,
        "type": node.kind.value,
        "label": node.label,
        "position": {"x": node.position.x, "y": node.position.y},
    }
    if isinstance(node, AgentNode):
        data["agent_id"] = node.agent_id
        data["config"] = asdict(node.config)
    elif isinstance(node, HumanDecisionNode):
        data["question"] = node.question
        data["options"] = [_option_to_dict(o) for o in node.options]
    return data


def dict_to_node(data: dict[str, Any]) -> Node:
    kind = NodeKind(data["type"])
    position = Position(**data.get("position", {}))
    common: dict[str, Any] = {
        "node_id": data["id"],
        "label": data.get("label", ""),
        "position": position,
    }
    if kind is NodeKind.START:
        return StartNode(**common)
    if kind is NodeKind.END:
        return EndNode(**common)
    if kind is NodeKind.AGENT:
        return AgentNode(
            **common,
            agent_id=data.get("agent_id", ""),
            config=AgentConfig(**data.get("config", {})),
        )
    return HumanDecisionNode(
        **common,
        question=data.get("question", ""),
        options=tuple(_dict_to_option(o) for o in data.get("options", [])),
    )


def edge_to_dict(edge: Edge) -> dict[str, Any]:
    return {
        "id": edge.edge_id,
        "source": edge.source,
        "target": edge.target,
        "condition": edge.condition,
        "label": edge.label,
    }


def dict_to_edge(data: dict[str, Any]) -> Edge:
    return Edge(
        edge_id=data["id"],
        source=data["source"],
        target=data["target"],
        condition=data.get("condition"),
        label=data.get("label", ""),
    )


def graph_to_dict(graph: WorkflowGraph) -> dict[str, Any]:
    """Serialize a graph to a JSON-compatible dict."""
    return {
        "id": graph.graph_id,
        "name": graph.name,
        "description": graph.description,
        "version": graph.version,
        "created_at": graph.created_at,
        "updated_at": graph.updated_at,
        "nodes": [node_to_dict(n) for n in graph.nodes],
        "edges": [edge_to_dict(e) for e in graph.edges],
    }


def dict_to_graph(data: dict[str, Any]) -> WorkflowGraph:
    """Deserialize a graph. Structure is not validated here."""
    return WorkflowGraph(
        graph_id=data["id"],
        name=data["name"],
        description=data.get("description", ""),
        version=data.get("version", "1.0.0"),
        created_at=data.get("created_at", ""),
        updated_at=data.get("updated_at", ""),
        nodes=tuple(dict_to_node(n) for n in data.get("nodes", [])),
        edges=tuple(dict_to_edge(e) for e in data.get("edges", [])),
    )


# =============================================================================
# RUN STATE
# =============================================================================


def run_state_to_dict(state: RunState) -> dict[str, Any]:
    """Serialize run state to a JSON-compatible dict."""
    pending = state.pending_decision
    return {
        "run_id": state.run_id,
        "graph_id": state.graph_id,
        "graph_ref": state.graph_ref,
        "status": state.status.value,
        "specification": state.specification,
        # Serialize tuple of pairs -> dict for JSON object format
        "node_statuses": {nid: s.value for nid, s in state.node_statuses},
        "log": [
            {
                "sequence": e.sequence,
                "timestamp": e.timestamp,
                "node_id": e.node_id,
                "level": e.level.value,
                "message": e.message,
                "attempt": e.attempt,
            }
            for e in state.log
        ],
        "artifacts": [
            {
                "path": a.path,
                "content": a.content,
                "produced_by_node_id": a.produced_by_node_id,
                "language": a.language,
                "created_at": a.created_at,
            }
            for a in state.artifacts
        ],
        "messages": [
            {
                "node_id": m.node_id,
                "agent_id": m.agent_id,
                "content": m.content,
                "created_at": m.created_at,
            }
            for m in state.messages
        ],
        "pending_decision": (
            {
                "node_id": pending.node_id,
                "question": pending.question,
                "options": [_option_to_dict(o) for o in pending.options],
            }
            if pending
            else None
        ),
        "current_node_id": state.current_node_id,
        "visited": list(state.visited),
        "decisions": [
            {"node_id": d.node_id, "option_id": d.option_id, "decided_at": d.decided_at}
            for d in state.decisions
        ],
        "executions": [asdict(e) for e in state.executions],
        "partial_output": dict(state.partial_output),
        "last_error": state.last_error,
        "created_at": state.created_at,
        "updated_at": state.updated_at,
        "completed_at": state.completed_at,
    }


def dict_to_run_state(data: dict[str, Any]) -> RunState:
    """Deserialize run state from a JSON dict."""
    pending_data = data.get("pending_decision")
    pending = (
        PendingDecision(
            node_id=pending_data["node_id"],
            question=pending_data.get("question", ""),
            options=tuple(_dict_to_option(o) for o in pending_data["options"]),
        )
        if pending_data
        else None
    )
    return RunState(
        run_id=data["run_id"],
        graph_id=data["graph_id"],
        graph_ref=data["graph_ref"],
        status=RunStatus(data["status"]),
        specification=data.get("specification", ""),
        # Deserialize dict -> tuple for immutability
        node_statuses=tuple(
            (nid, NodeStatus(s)) for nid, s in data["node_statuses"].items()
        ),
        log=tuple(
            LogEntry(
                sequence=e["sequence"],
                timestamp=e["timestamp"],
                node_id=e.get("node_id"),
                level=LogLevel(e["level"]),
                message=e["message"],
                attempt=e.get("attempt"),
            )
            for e in data.get("log", [])
        ),
        artifacts=tuple(
            Artifact(
                path=a["path"],
                content=a["content"],
                produced_by_node_id=a["produced_by_node_id"],
                language=a.get("language", ""),
                created_at=a.get("created_at", ""),
            )
            for a in data.get("artifacts", [])
        ),
        messages=tuple(
            Message(
                node_id=m["node_id"],
                agent_id=m["agent_id"],
                content=m["content"],
                created_at=m.get("created_at", ""),
            )
            for m in data.get("messages", [])
        ),
        pending_decision=pending,
        current_node_id=data.get("current_node_id"),
        visited=tuple(data.get("visited", [])),
        decisions=tuple(
            DecisionRecord(
                node_id=d["node_id"],
                option_id=d["option_id"],
                decided_at=d.get("decided_at", ""),
            )
            for d in data.get("decisions", [])
        ),
        executions=tuple(
            AgentExecution(**e) for e in data.get("executions", [])
        ),
        partial_output=tuple(data.get("partial_output", {}).items()),
        last_error=data.get("last_error"),
        created_at=data.get("created_at", ""),
        updated_at=data.get("updated_at", ""),
        completed_at=data.get("completed_at"),
    )
