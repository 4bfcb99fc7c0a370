"""
Structural validation of workflow graphs.

GraphValidator.validate fails fast on the first violated invariant,
raising a ValidationError that names the offending node or edge. It is
side-effect free and looks at agent configuration only for the presence
of an agent id.
"""

from __future__ import annotations

from collections import deque

from agentflow.domain.exceptions import ValidationError, ValidationErrorKind
from agentflow.domain.models import (
    AgentNode,
    HumanDecisionNode,
    NodeKind,
    WorkflowGraph,
)

MAX_RECOMMENDED_NODES = 15


class GraphValidator:
    """Checks a WorkflowGraph before any run may start."""

    def validate(self, graph: WorkflowGraph) -> None:
        """
        Raise on the first structural defect.

        Order of checks: unique ids, dangling edges, the Start node,
        agent ids, out-degree rules, decision options, cycles on
        unconditional edges, presence of an End node, reachability.

        Raises:
            ValidationError: Identifying the offending element
        """
        self._check_unique_ids(graph)
        self._check_edges_resolve(graph)
        self._check_start(graph)
        self._check_agent_ids(graph)
        self._check_out_degree(graph)
        self._check_decision_options(graph)
        self._check_acyclic(graph)
        self._check_end(graph)
        self._check_reachable(graph)

    def is_valid(self, graph: WorkflowGraph) -> bool:
        try:
            self.validate(graph)
        except ValidationError:
            return False
        return True

    def lint(self, graph: WorkflowGraph) -> list[str]:
        """Non-fatal warnings about an otherwise runnable graph."""
        warnings: list[str] = []
        if not graph.description.strip():
            warnings.append("Graph has no description")
        for node in graph.nodes:
            if isinstance(node, HumanDecisionNode) and not node.question.strip():
                warnings.append(f"Decision node '{node.node_id}' has no question")
        if len(graph.nodes) > MAX_RECOMMENDED_NODES:
            warnings.append(
                f"Graph has {len(graph.nodes)} nodes; consider splitting it "
                f"(more than {MAX_RECOMMENDED_NODES} is hard to follow)"
            )
        return warnings

    # ------------------------------------------------------------------
    # Individual checks
    # ------------------------------------------------------------------

    def _check_unique_ids(self, graph: WorkflowGraph) -> None:
        seen: set[str] = set()
        for node in graph.nodes:
            if node.node_id in seen:
                raise ValidationError(
                    ValidationErrorKind.DUPLICATE_ID,
                    node.node_id,
                    f"Node id '{node.node_id}' is used more than once",
                )
            seen.add(node.node_id)
        seen_edges: set[str] = set()
        for edge in graph.edges:
            if edge.edge_id in seen_edges:
                raise ValidationError(
                    ValidationErrorKind.DUPLICATE_ID,
                    edge.edge_id,
                    f"Edge id '{edge.edge_id}' is used more than once",
                )
            seen_edges.add(edge.edge_id)

    def _check_edges_resolve(self, graph: WorkflowGraph) -> None:
        node_ids = {n.node_id for n in graph.nodes}
        for edge in graph.edges:
            for end, node_id in (("source", edge.source), ("target", edge.target)):
                if node_id not in node_ids:
                    raise ValidationError(
                        ValidationErrorKind.DANGLING_EDGE,
                        edge.edge_id,
                        f"Edge '{edge.edge_id}' {end} '{node_id}' does not exist",
                    )

    def _check_start(self, graph: WorkflowGraph) -> None:
        starts = graph.nodes_of(NodeKind.START)
        if not starts:
            raise ValidationError(
                ValidationErrorKind.MISSING_START, None, "Graph has no start node"
            )
        if len(starts) > 1:
            raise ValidationError(
                ValidationErrorKind.MULTIPLE_START,
                starts[1].node_id,
                f"Graph has {len(starts)} start nodes; exactly one is allowed",
            )
        incoming = graph.incoming(starts[0].node_id)
        if incoming:
            raise ValidationError(
                ValidationErrorKind.START_HAS_INCOMING,
                incoming[0].edge_id,
                f"Edge '{incoming[0].edge_id}' targets the start node",
            )

    def _check_agent_ids(self, graph: WorkflowGraph) -> None:
        for node in graph.nodes:
            if isinstance(node, AgentNode) and not node.agent_id.strip():
                raise ValidationError(
                    ValidationErrorKind.MISSING_AGENT_ID,
                    node.node_id,
                    f"Agent node '{node.node_id}' has no agent id",
                )

    def _check_out_degree(self, graph: WorkflowGraph) -> None:
        for node in graph.nodes:
            outgoing = graph.outgoing(node.node_id)
            if node.kind is NodeKind.END:
                if outgoing:
                    raise ValidationError(
                        ValidationErrorKind.INVALID_OUT_DEGREE,
                        node.node_id,
                        f"End node '{node.node_id}' has outgoing edges",
                    )
            elif node.kind in (NodeKind.START, NodeKind.AGENT):
                if len(outgoing) != 1 or outgoing[0].is_conditional:
                    raise ValidationError(
                        ValidationErrorKind.INVALID_OUT_DEGREE,
                        node.node_id,
                        f"{node.kind.value.capitalize()} node '{node.node_id}' "
                        f"needs exactly one unconditional outgoing edge, "
                        f"found {len(outgoing)} edge(s)",
                    )

    def _check_decision_options(self, graph: WorkflowGraph) -> None:
        for node in graph.nodes:
            if not isinstance(node, HumanDecisionNode):
                continue
            option_ids = node.option_ids
            if not option_ids:
                raise ValidationError(
                    ValidationErrorKind.DECISION_OPTION_MISMATCH,
                    node.node_id,
                    f"Decision node '{node.node_id}' declares no options",
                )
            if len(set(option_ids)) != len(option_ids):
                raise ValidationError(
                    ValidationErrorKind.DECISION_OPTION_MISMATCH,
                    node.node_id,
                    f"Decision node '{node.node_id}' declares duplicate options",
                )
            conditions: list[str] = []
            for edge in graph.outgoing(node.node_id):
                if edge.condition is None:
                    raise ValidationError(
                        ValidationErrorKind.DECISION_OPTION_MISMATCH,
                        edge.edge_id,
                        f"Edge '{edge.edge_id}' leaves decision node "
                        f"'{node.node_id}' without a condition",
                    )
                if edge.condition in conditions:
                    raise ValidationError(
                        ValidationErrorKind.DECISION_OPTION_MISMATCH,
                        edge.edge_id,
                        f"Condition '{edge.condition}' appears on more than one "
                        f"edge leaving '{node.node_id}'",
                    )
                conditions.append(edge.condition)
            if set(conditions) != set(option_ids):
                missing = sorted(set(option_ids) - set(conditions))
                extra = sorted(set(conditions) - set(option_ids))
                raise ValidationError(
                    ValidationErrorKind.DECISION_OPTION_MISMATCH,
                    node.node_id,
                    f"Decision node '{node.node_id}' options and edge conditions "
                    f"differ (options without edge: {missing}, "
                    f"conditions without option: {extra})",
                )

    def _check_acyclic(self, graph: WorkflowGraph) -> None:
        """Kahn's algorithm over unconditional edges only."""
        successors: dict[str, list[str]] = {n.node_id: [] for n in graph.nodes}
        in_degree: dict[str, int] = {n.node_id: 0 for n in graph.nodes}
        for edge in graph.edges:
            if edge.is_conditional:
                continue
            successors[edge.source].append(edge.target)
            in_degree[edge.target] += 1

        queue = deque(nid for nid, deg in in_degree.items() if deg == 0)
        removed = 0
        while queue:
            current = queue.popleft()
            removed += 1
            for target in successors[current]:
                in_degree[target] -= 1
                if in_degree[target] == 0:
                    queue.append(target)

        if removed != len(in_degree):
            in_cycle = next(n.node_id for n in graph.nodes if in_degree[n.node_id] > 0)
            raise ValidationError(
                ValidationErrorKind.CYCLE_DETECTED,
                in_cycle,
                f"Unconditional edges form a cycle through '{in_cycle}'",
            )

    def _check_end(self, graph: WorkflowGraph) -> None:
        if not graph.nodes_of(NodeKind.END):
            raise ValidationError(
                ValidationErrorKind.MISSING_END, None, "Graph has no end node"
            )

    def _check_reachable(self, graph: WorkflowGraph) -> None:
        start = graph.start_node().node_id
        reached = {start}
        queue = deque([start])
        while queue:
            for edge in graph.outgoing(queue.popleft()):
                if edge.target not in reached:
                    reached.add(edge.target)
                    queue.append(edge.target)
        for node in graph.nodes:
            if node.node_id not in reached:
                raise ValidationError(
                    ValidationErrorKind.UNREACHABLE_NODE,
                    node.node_id,
                    f"Node '{node.node_id}' cannot be reached from the start node",
                )
