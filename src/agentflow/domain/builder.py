"""Fluent construction of workflow graphs."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Self

from agentflow.domain.models import (
    AgentConfig,
    AgentNode,
    DecisionOption,
    Edge,
    EndNode,
    HumanDecisionNode,
    Node,
    Position,
    StartNode,
    WorkflowGraph,
)

_COLUMN_WIDTH = 250.0


class GraphBuilder:
    """
    Builds a WorkflowGraph step by step.

    Example:
        graph = (
            GraphBuilder("review-flow", "Code with review")
            .start()
            .agent("code", "coder")
            .decision("review", ["approve", "revise"])
            .end()
            .edge("start", "code")
            .edge("code", "review")
            .edge("review", "end", condition="approve")
            .edge("review", "code", condition="revise")
            .build()
        )

    Nodes without an explicit position are laid out left to right.
    """

    def __init__(self, graph_id: str, name: str, description: str = ""):
        self._graph_id = graph_id
        self._name = name
        self._description = description
        self._version = "1.0.0"
        self._nodes: list[Node] = []
        self._edges: list[Edge] = []

    def _next_position(self) -> Position:
        return Position(x=len(self._nodes) * _COLUMN_WIDTH, y=0.0)

    def version(self, version: str) -> Self:
        self._version = version
        return self

    def start(self, node_id: str = "start", label: str = "Start") -> Self:
        self._nodes.append(
            StartNode(node_id=node_id, label=label, position=self._next_position())
        )
        return self

    def agent(
        self,
        node_id: str,
        agent_id: str,
        config: AgentConfig | None = None,
        label: str = "",
    ) -> Self:
        self._nodes.append(
            AgentNode(
                node_id=node_id,
                label=label or agent_id.capitalize(),
                agent_id=agent_id,
                config=config or AgentConfig(),
                position=self._next_position(),
            )
        )
        return self

    def decision(
        self,
        node_id: str,
        options: list[str | DecisionOption],
        question: str = "",
        label: str = "",
    ) -> Self:
        """Add a HumanDecision node. Plain strings become option ids."""
        resolved = tuple(
            o if isinstance(o, DecisionOption) else DecisionOption(option_id=o, label=o)
            for o in options
        )
        self._nodes.append(
            HumanDecisionNode(
                node_id=node_id,
                label=label or "Decision",
                options=resolved,
                question=question,
                position=self._next_position(),
            )
        )
        return self

    def end(self, node_id: str = "end", label: str = "End") -> Self:
        self._nodes.append(
            EndNode(node_id=node_id, label=label, position=self._next_position())
        )
        return self

    def edge(
        self,
        source: str,
        target: str,
        condition: str | None = None,
        label: str = "",
    ) -> Self:
        suffix = f"-{condition}" if condition else ""
        edge_id = f"e-{source}-{target}{suffix}"
        self._edges.append(
            Edge(
                edge_id=edge_id,
                source=source,
                target=target,
                condition=condition,
                label=label or (condition or ""),
            )
        )
        return self

    def chain(self, *node_ids: str) -> Self:
        """Connect consecutive nodes with unconditional edges."""
        for source, target in zip(node_ids, node_ids[1:], strict=False):
            self.edge(source, target)
        return self

    def build(self) -> WorkflowGraph:
        """Create the graph. Validation is the caller's concern."""
        now = datetime.now(UTC).isoformat()
        return WorkflowGraph(
            graph_id=self._graph_id,
            name=self._name,
            description=self._description,
            version=self._version,
            nodes=tuple(self._nodes),
            edges=tuple(self._edges),
            created_at=now,
            updated_at=now,
        )
