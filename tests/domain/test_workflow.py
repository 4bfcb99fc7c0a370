"""Tests for graph fingerprinting and recovery points."""

from dataclasses import replace

import pytest

from agentflow.application.ledger import RunLedger
from agentflow.domain.exceptions import GraphIntegrityError
from agentflow.domain.models import (
    DecisionOption,
    NodeStatus,
    PendingDecision,
    Position,
    RunStatus,
    WorkflowGraph,
)
from agentflow.domain.workflow import (
    compute_graph_ref,
    recovery_point,
    verify_graph_ref,
)


class TestComputeGraphRef:
    """Tests for the content-addressed graph fingerprint."""

    def test_is_deterministic(self, linear_graph: WorkflowGraph) -> None:
        assert compute_graph_ref(linear_graph) == compute_graph_ref(linear_graph)
        assert len(compute_graph_ref(linear_graph)) == 64

    def test_ignores_layout_labels_and_timestamps(
        self, linear_graph: WorkflowGraph
    ) -> None:
        moved = replace(
            linear_graph,
            name="Renamed",
            updated_at="2030-01-01T00:00:00+00:00",
            nodes=tuple(
                replace(n, position=Position(x=5.0, y=7.0), label="x")
                for n in linear_graph.nodes
            ),
        )

        assert compute_graph_ref(moved) == compute_graph_ref(linear_graph)

    def test_changes_when_agent_changes(self, linear_graph: WorkflowGraph) -> None:
        nodes = tuple(
            replace(n, agent_id="reviewer") if n.node_id == "code" else n
            for n in linear_graph.nodes
        )

        changed = replace(linear_graph, nodes=nodes)

        assert compute_graph_ref(changed) != compute_graph_ref(linear_graph)

    def test_changes_when_edges_change(self, decision_graph: WorkflowGraph) -> None:
        edges = tuple(
            replace(e, target="end") if e.condition == "reject" else e
            for e in decision_graph.edges
        )

        changed = replace(decision_graph, edges=edges)

        assert compute_graph_ref(changed) != compute_graph_ref(decision_graph)


class TestVerifyGraphRef:
    """Tests for the integrity check used on recovery."""

    def test_accepts_the_original_graph(self, ledger: RunLedger, linear_graph) -> None:
        verify_graph_ref(ledger.snapshot(), linear_graph)

    def test_rejects_another_graph(self, ledger: RunLedger, decision_graph) -> None:
        with pytest.raises(GraphIntegrityError, match="belongs to graph 'linear'"):
            verify_graph_ref(ledger.snapshot(), decision_graph)

    def test_rejects_a_modified_graph(self, ledger: RunLedger, linear_graph) -> None:
        modified = replace(linear_graph, edges=linear_graph.edges[:-1])

        with pytest.raises(GraphIntegrityError, match="changed since run"):
            verify_graph_ref(ledger.snapshot(), modified)


class TestRecoveryPoint:
    """Tests for where a persisted run re-enters the graph."""

    def test_fresh_run_enters_at_start(self, ledger: RunLedger, linear_graph) -> None:
        assert recovery_point(ledger.snapshot(), linear_graph) == "start"

    def test_terminal_run_has_no_entry(self, ledger: RunLedger, linear_graph) -> None:
        state = ledger.finish(RunStatus.COMPLETED)

        assert recovery_point(state, linear_graph) is None

    def test_running_node_is_re_entered(self, ledger: RunLedger, linear_graph) -> None:
        ledger.enter_node("start")
        ledger.set_node_status("start", NodeStatus.COMPLETED)
        ledger.enter_node("plan")
        ledger.set_node_status("plan", NodeStatus.RUNNING)

        assert recovery_point(ledger.snapshot(), linear_graph) == "plan"

    def test_completed_node_moves_to_successor(
        self, ledger: RunLedger, linear_graph
    ) -> None:
        ledger.enter_node("plan")
        ledger.complete_node("plan")

        assert recovery_point(ledger.snapshot(), linear_graph) == "code"

    def test_parked_run_enters_at_decision(self, decision_graph) -> None:
        ledger = RunLedger.open("r", decision_graph)
        ledger.suspend(
            PendingDecision(node_id="review", options=(DecisionOption("approve"),))
        )

        assert recovery_point(ledger.snapshot(), decision_graph) == "review"

    def test_waiting_without_pending_decision_is_corrupt(
        self, ledger: RunLedger, linear_graph
    ) -> None:
        state = replace(ledger.snapshot(), status=RunStatus.WAITING_ON_DECISION)

        with pytest.raises(GraphIntegrityError):
            recovery_point(state, linear_graph)

    def test_unknown_current_node_is_corrupt(
        self, ledger: RunLedger, linear_graph
    ) -> None:
        state = replace(ledger.snapshot(), current_node_id="ghost")

        with pytest.raises(GraphIntegrityError, match="ghost"):
            recovery_point(state, linear_graph)
