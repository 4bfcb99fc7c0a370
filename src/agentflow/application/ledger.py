"""
RunLedger: the single writer of a run's state.

Every mutation builds a new immutable RunState and swaps it in under a
lock, so ``snapshot()`` can be called from any thread or task at any time
and never observes a half-applied update. Log sequence numbers are
assigned under the same lock, which gives the log a total order no
matter which component appends.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import UTC, datetime

from agentflow.domain.models import (
    AgentExecution,
    Artifact,
    LogEntry,
    LogLevel,
    Message,
    NodeStatus,
    PendingDecision,
    RunState,
    RunStatus,
    WorkflowGraph,
)
from agentflow.domain.workflow import compute_graph_ref

logger = logging.getLogger("agentflow.ledger")

_PY_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


def _now() -> str:
    return datetime.now(UTC).isoformat()


class RunLedger:
    """Per-run state holder with copy-on-write updates."""

    def __init__(self, state: RunState):
        """
        Args:
            state: Initial (or recovered) state of the run
        """
        self._state = state
        self._lock = threading.Lock()
        self._sequence = max((e.sequence for e in state.log), default=0)

    @classmethod
    def open(
        cls, run_id: str, graph: WorkflowGraph, specification: str = ""
    ) -> RunLedger:
        """Create the ledger of a new run: every node idle, status running."""
        now = _now()
        state = RunState(
            run_id=run_id,
            graph_id=graph.graph_id,
            graph_ref=compute_graph_ref(graph),
            status=RunStatus.RUNNING,
            node_statuses=tuple((n.node_id, NodeStatus.IDLE) for n in graph.nodes),
            specification=specification,
            created_at=now,
            updated_at=now,
        )
        return cls(state)

    @property
    def run_id(self) -> str:
        return self._state.run_id

    def snapshot(self) -> RunState:
        """Current state. Immutable, safe to hand to any reader."""
        return self._state

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def apply(self, update: Callable[[RunState], RunState]) -> RunState:
        """Atomically replace the state with ``update(state)``.

        ``update`` runs under the ledger lock and may raise to abort
        without any change.
        """
        with self._lock:
            new_state = update(self._state)
            self._state = replace(new_state, updated_at=_now())
            return self._state

    def append_log(
        self,
        level: LogLevel,
        message: str,
        node_id: str | None = None,
        attempt: int | None = None,
    ) -> LogEntry:
        """Append an entry with the next sequence number."""
        with self._lock:
            self._sequence += 1
            entry = LogEntry(
                sequence=self._sequence,
                timestamp=_now(),
                node_id=node_id,
                level=level,
                message=message,
                attempt=attempt,
            )
            self._state = replace(
                self._state, log=self._state.log + (entry,), updated_at=entry.timestamp
            )
        logger.log(
            _PY_LEVELS[level],
            "[%s]%s %s",
            self._state.run_id,
            f" {node_id}:" if node_id else "",
            message,
        )
        return entry

    def set_node_status(self, node_id: str, status: NodeStatus) -> None:
        self.apply(lambda s: with_node_status(s, node_id, status))

    def add_artifact(self, artifact: Artifact) -> None:
        self.apply(lambda s: replace(s, artifacts=s.artifacts + (artifact,)))

    def enter_node(self, node_id: str) -> None:
        """Position the run at ``node_id`` and record the visit."""
        self.apply(
            lambda s: replace(
                s, current_node_id=node_id, visited=s.visited + (node_id,)
            )
        )

    def complete_node(
        self,
        node_id: str,
        artifacts: Iterable[Artifact] = (),
        message: Message | None = None,
    ) -> RunState:
        """Mark a node completed and publish its output in one swap.

        Artifacts only become visible together with the completed status.
        """
        produced = tuple(artifacts)

        def update(state: RunState) -> RunState:
            state = with_node_status(state, node_id, NodeStatus.COMPLETED)
            return replace(
                state,
                artifacts=state.artifacts + produced,
                messages=state.messages + ((message,) if message else ()),
                partial_output=_without_partial(state, node_id),
            )

        return self.apply(update)

    def append_fragment(self, node_id: str, fragment: str) -> None:
        """Accumulate streamed partial output of the running node."""

        def update(state: RunState) -> RunState:
            partial = dict(state.partial_output)
            partial[node_id] = partial.get(node_id, "") + fragment
            return replace(state, partial_output=tuple(partial.items()))

        self.apply(update)

    def clear_fragments(self, node_id: str) -> None:
        self.apply(lambda s: replace(s, partial_output=_without_partial(s, node_id)))

    def suspend(self, pending: PendingDecision) -> RunState:
        """Park the run on a decision."""

        def update(state: RunState) -> RunState:
            state = with_node_status(state, pending.node_id, NodeStatus.WAITING)
            return replace(
                state,
                status=RunStatus.WAITING_ON_DECISION,
                pending_decision=pending,
                current_node_id=pending.node_id,
            )

        return self.apply(update)

    def pause(self, node_id: str) -> RunState:
        """Park the run before ``node_id`` without entering it."""
        return self.apply(
            lambda s: replace(s, status=RunStatus.PAUSED, current_node_id=node_id)
        )

    def unpause(self) -> RunState:
        if self.snapshot().status is not RunStatus.PAUSED:
            raise ValueError(f"Run '{self.run_id}' is not paused")
        return self.apply(lambda s: replace(s, status=RunStatus.RUNNING))

    def record_execution(self, execution: AgentExecution) -> None:
        self.apply(lambda s: replace(s, executions=s.executions + (execution,)))

    def finish(self, status: RunStatus, error: str | None = None) -> RunState:
        """Move the run to a terminal status."""
        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal run status")

        def update(state: RunState) -> RunState:
            return replace(
                state,
                status=status,
                pending_decision=None,
                last_error=error if error is not None else state.last_error,
                completed_at=_now(),
            )

        return self.apply(update)

    def fail_node(self, node_id: str, error: str) -> RunState:
        """Mark a node errored and the run failed, recording the reason."""

        def update(state: RunState) -> RunState:
            state = with_node_status(state, node_id, NodeStatus.ERROR)
            return replace(
                state,
                status=RunStatus.FAILED,
                last_error=error,
                partial_output=_without_partial(state, node_id),
                completed_at=_now(),
            )

        return self.apply(update)


def with_node_status(state: RunState, node_id: str, status: NodeStatus) -> RunState:
    if node_id not in dict(state.node_statuses):
        raise KeyError(f"Node '{node_id}' is not part of run '{state.run_id}'")
    return replace(
        state,
        node_statuses=tuple(
            (nid, status if nid == node_id else current)
            for nid, current in state.node_statuses
        ),
    )


def _without_partial(state: RunState, node_id: str) -> tuple[tuple[str, str], ...]:
    return tuple((nid, text) for nid, text in state.partial_output if nid != node_id)
