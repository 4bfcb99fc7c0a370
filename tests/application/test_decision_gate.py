"""Tests for DecisionGate suspension and resolution."""

import pytest

from agentflow.application.decision_gate import DecisionGate
from agentflow.application.ledger import RunLedger
from agentflow.domain.exceptions import DecisionError, DecisionErrorKind
from agentflow.domain.models import NodeStatus, RunStatus


@pytest.fixture
def parked(decision_graph) -> RunLedger:
    ledger = RunLedger.open("run-d", decision_graph, "spec")
    DecisionGate().suspend(ledger, decision_graph.node("review"))
    return ledger


class TestSuspend:
    """Tests for DecisionGate.suspend()."""

    def test_parks_run_with_pending_decision(self, parked) -> None:
        state = parked.snapshot()

        assert state.status is RunStatus.WAITING_ON_DECISION
        assert state.pending_decision.node_id == "review"
        assert state.pending_decision.option_ids == ("approve", "reject")
        assert state.pending_decision.question == "Ship it?"
        assert state.status_of("review") is NodeStatus.WAITING

    def test_logs_the_question(self, parked) -> None:
        last = parked.snapshot().log[-1]

        assert last.message == "Waiting for decision: Ship it? [approve, reject]"
        assert last.node_id == "review"


class TestResolve:
    """Tests for DecisionGate.resolve()."""

    def test_returns_matching_edge(self, parked, decision_graph) -> None:
        edge = DecisionGate().resolve(parked, decision_graph, "review", "reject")

        assert edge.target == "code"

    def test_resumes_run_and_records_decision(self, parked, decision_graph) -> None:
        DecisionGate().resolve(parked, decision_graph, "review", "approve")
        state = parked.snapshot()

        assert state.status is RunStatus.RUNNING
        assert state.pending_decision is None
        assert state.current_node_id == "end"
        assert state.status_of("review") is NodeStatus.COMPLETED
        assert [(d.node_id, d.option_id) for d in state.decisions] == [
            ("review", "approve")
        ]
        assert state.log[-1].message == (
            "Decision 'approve' taken, continuing to 'end'"
        )

    def test_unknown_option_leaves_state_unchanged(
        self, parked, decision_graph
    ) -> None:
        before = parked.snapshot()

        with pytest.raises(DecisionError) as exc_info:
            DecisionGate().resolve(parked, decision_graph, "review", "maybe")

        assert exc_info.value.kind is DecisionErrorKind.UNKNOWN_OPTION
        assert parked.snapshot() is before

    def test_wrong_node_is_not_waiting(self, parked, decision_graph) -> None:
        with pytest.raises(DecisionError) as exc_info:
            DecisionGate().resolve(parked, decision_graph, "code", "approve")

        assert exc_info.value.kind is DecisionErrorKind.RUN_NOT_WAITING

    def test_second_resolve_is_rejected(self, parked, decision_graph) -> None:
        gate = DecisionGate()
        gate.resolve(parked, decision_graph, "review", "approve")

        with pytest.raises(DecisionError) as exc_info:
            gate.resolve(parked, decision_graph, "review", "approve")

        assert exc_info.value.kind is DecisionErrorKind.RUN_NOT_WAITING
        assert len(parked.snapshot().decisions) == 1
