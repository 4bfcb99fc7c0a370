"""
DecisionGate: suspension and resumption of a run at a HumanDecision node.

Suspending records a PendingDecision in the Run Ledger and hands control
back; nothing waits on the run while it is parked. Resolving checks the
choice against the pending decision and, in one atomic ledger update,
clears it, records the decision and returns the run to running.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime

from agentflow.application.ledger import RunLedger, with_node_status
from agentflow.domain.exceptions import DecisionError, DecisionErrorKind
from agentflow.domain.models import (
    DecisionRecord,
    Edge,
    HumanDecisionNode,
    LogLevel,
    NodeStatus,
    PendingDecision,
    RunState,
    RunStatus,
    WorkflowGraph,
)


class DecisionGate:
    """Parks and resumes runs at decision nodes."""

    def suspend(self, ledger: RunLedger, node: HumanDecisionNode) -> PendingDecision:
        """Transition the run to waiting_on_decision at ``node``."""
        pending = PendingDecision(
            node_id=node.node_id, options=node.options, question=node.question
        )
        ledger.suspend(pending)
        prompt = node.question or "Choose how to continue"
        ledger.append_log(
            LogLevel.INFO,
            f"Waiting for decision: {prompt} [{', '.join(node.option_ids)}]",
            node_id=node.node_id,
        )
        return pending

    def resolve(
        self, ledger: RunLedger, graph: WorkflowGraph, node_id: str, option: str
    ) -> Edge:
        """
        Apply a human choice to a parked run.

        Args:
            ledger: Ledger of the parked run
            graph: The graph the run executes
            node_id: Decision node the caller believes the run waits on
            option: Chosen option id

        Returns:
            The outgoing edge whose condition matches ``option``

        Raises:
            DecisionError: RUN_NOT_WAITING or UNKNOWN_OPTION; the run state
                is left unchanged
        """
        chosen: list[Edge] = []

        def update(state: RunState) -> RunState:
            pending = state.pending_decision
            if state.status is not RunStatus.WAITING_ON_DECISION or pending is None:
                raise DecisionError(
                    DecisionErrorKind.RUN_NOT_WAITING,
                    f"Run '{state.run_id}' is {state.status.value}, "
                    f"not waiting on a decision",
                )
            if pending.node_id != node_id:
                raise DecisionError(
                    DecisionErrorKind.RUN_NOT_WAITING,
                    f"Run '{state.run_id}' is waiting on '{pending.node_id}', "
                    f"not '{node_id}'",
                )
            if option not in pending.option_ids:
                raise DecisionError(
                    DecisionErrorKind.UNKNOWN_OPTION,
                    f"Option '{option}' is not one of "
                    f"{', '.join(pending.option_ids)}",
                )
            edge = next(
                (e for e in graph.outgoing(node_id) if e.condition == option), None
            )
            if edge is None:
                raise DecisionError(
                    DecisionErrorKind.UNKNOWN_OPTION,
                    f"No edge leaves '{node_id}' for option '{option}'",
                )
            chosen.append(edge)
            state = with_node_status(state, node_id, NodeStatus.COMPLETED)
            record = DecisionRecord(
                node_id=node_id,
                option_id=option,
                decided_at=datetime.now(UTC).isoformat(),
            )
            return replace(
                state,
                status=RunStatus.RUNNING,
                pending_decision=None,
                current_node_id=edge.target,
                decisions=state.decisions + (record,),
            )

        ledger.apply(update)
        edge = chosen[0]
        ledger.append_log(
            LogLevel.INFO,
            f"Decision '{option}' taken, continuing to '{edge.target}'",
            node_id=node_id,
        )
        return edge
