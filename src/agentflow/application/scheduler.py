"""
Scheduler: the state machine that walks a workflow graph.

Per node: idle -> waiting -> running -> completed | error.
Per run: running -> completed | failed | cancelled, with a
waiting_on_decision sub-state while parked at a HumanDecision node and
a paused sub-state while parked between nodes on request.

Each run is driven by its own asyncio task. Within a run, nodes execute
strictly one after another along the active path. A run parked on a
decision holds no task; ``resume`` starts a new one at the chosen edge's
target. A paused run likewise holds no task until ``unpause``.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime

from agentflow.application.cancellation import CancelToken
from agentflow.application.decision_gate import DecisionGate
from agentflow.application.event_emitter import RunEventEmitter, RunListener
from agentflow.application.ledger import RunLedger, with_node_status
from agentflow.application.retry import RetryCoordinator
from agentflow.domain.exceptions import (
    AgentError,
    AgentNotFoundError,
    CancellationError,
    DecisionError,
    DecisionErrorKind,
    PermanentError,
    RetriesExhausted,
    RunNotFoundError,
)
from agentflow.domain.interfaces import (
    AgentResolverInterface,
    PersistenceSinkInterface,
    RunEventStoreInterface,
    RunStoreInterface,
)
from agentflow.domain.models import (
    AgentContext,
    AgentExecution,
    AgentPerformance,
    AgentNode,
    Artifact,
    EndNode,
    HumanDecisionNode,
    LogLevel,
    Message,
    NodeStatus,
    RetryPolicy,
    RunState,
    RunStatus,
    StartNode,
    WorkflowGraph,
)
from agentflow.domain.prompts import CorrectionTemplate
from agentflow.domain.run_event import RunEvent
from agentflow.domain.validation import GraphValidator
from agentflow.domain.workflow import recovery_point, verify_graph_ref

logger = logging.getLogger("agentflow.scheduler")


@dataclass
class _ActiveRun:
    """Bookkeeping for a run known to this scheduler."""

    graph: WorkflowGraph
    ledger: RunLedger
    cancel: CancelToken
    emitter: RunEventEmitter
    task: asyncio.Task[RunState] | None = None


class Scheduler:
    """
    Executes workflow graphs.

    Example:
        scheduler = Scheduler(registry, retry_policy=RetryPolicy(max_attempts=3))
        state = await scheduler.start_run(graph, "Build a todo app")
        if state.status is RunStatus.WAITING_ON_DECISION:
            state = await scheduler.resume(state.run_id, "review", "approve")
    """

    def __init__(
        self,
        agents: AgentResolverInterface,
        retry_policy: RetryPolicy | None = None,
        attempt_timeout: float | None = None,
        validator: GraphValidator | None = None,
        run_store: RunStoreInterface | None = None,
        persistence: PersistenceSinkInterface | None = None,
        event_store: RunEventStoreInterface | None = None,
        correction_template: CorrectionTemplate | None = None,
    ):
        """
        Args:
            agents: Resolves agent ids to handlers
            retry_policy: Attempt budget and backoff for agent nodes
            attempt_timeout: Default per-attempt bound in seconds
            validator: Graph validator (default: GraphValidator())
            run_store: Checkpoint target, enables ``recover``
            persistence: Receives artifacts and messages of completed nodes
            event_store: Receives the run event trace
            correction_template: Corrective instruction added on retry
        """
        self._agents = agents
        self._retry_policy = retry_policy or RetryPolicy()
        self._attempt_timeout = attempt_timeout
        self._validator = validator or GraphValidator()
        self._run_store = run_store
        self._persistence = persistence
        self._event_store = event_store
        self._correction_template = correction_template
        self._gate = DecisionGate()
        self._runs: dict[str, _ActiveRun] = {}
        self._listeners: list[RunListener] = []

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def add_listener(self, listener: RunListener) -> Callable[[], None]:
        """Subscribe to events of every run. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def get_run_state(self, run_id: str) -> RunState:
        """Snapshot of a run, from memory or, once discarded, the run store.

        Raises:
            RunNotFoundError: If the run is unknown
        """
        active = self._runs.get(run_id)
        if active is not None:
            return active.ledger.snapshot()
        if self._run_store is not None:
            return self._run_store.load(run_id)
        raise RunNotFoundError(run_id)

    def run_ids(self) -> list[str]:
        return list(self._runs)

    def agent_performance(self) -> dict[str, AgentPerformance]:
        """Per-agent execution statistics over the runs this scheduler holds."""
        states = [active.ledger.snapshot() for active in self._runs.values()]
        return AgentPerformance.collect(states)

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def launch(
        self, graph: WorkflowGraph, specification: str = "", run_id: str | None = None
    ) -> str:
        """
        Validate ``graph`` and start executing it in the background.

        Must be called from a running event loop.

        Raises:
            ValidationError: Synchronously, before any run state exists
        """
        self._validator.validate(graph)
        run_id = run_id or str(uuid.uuid4())
        if run_id in self._runs:
            raise ValueError(f"Run '{run_id}' already exists")

        ledger = RunLedger.open(run_id, graph, specification)
        active = _ActiveRun(
            graph=graph,
            ledger=ledger,
            cancel=CancelToken(),
            emitter=RunEventEmitter(run_id, self._event_store, self._dispatch),
        )
        self._runs[run_id] = active
        ledger.append_log(LogLevel.INFO, f"Run started for graph '{graph.name}'")
        active.emitter.run_started(graph.name)
        self._checkpoint(active)
        self._spawn(active, graph.start_node().node_id)
        return run_id

    async def start_run(
        self, graph: WorkflowGraph, specification: str = "", run_id: str | None = None
    ) -> RunState:
        """Start a run and wait until it parks or terminates."""
        return await self.wait(self.launch(graph, specification, run_id))

    async def wait(self, run_id: str) -> RunState:
        """Wait until the run parks or reaches a terminal status."""
        active = self._active(run_id)
        task = active.task
        if task is not None:
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                # The run task itself was cancelled and left the run cancelled
                if not task.cancelled():
                    raise
        return active.ledger.snapshot()

    async def resume(self, run_id: str, node_id: str, option: str) -> RunState:
        """
        Continue a parked run along the edge matching ``option``.

        Raises:
            DecisionError: RUN_NOT_FOUND, RUN_NOT_WAITING or UNKNOWN_OPTION;
                the run state is unchanged
        """
        active = self._runs.get(run_id)
        if active is None:
            raise DecisionError(
                DecisionErrorKind.RUN_NOT_FOUND, f"Run '{run_id}' not found"
            )
        edge = self._gate.resolve(active.ledger, active.graph, node_id, option)
        active.emitter.decision_made(node_id, option)
        self._checkpoint(active)
        self._spawn(active, edge.target)
        return await self.wait(run_id)

    def cancel(self, run_id: str) -> RunState:
        """
        Request cancellation.

        A parked or paused run is cancelled immediately. An executing run
        stops at its next safe point: before the next node, between
        attempts, or by abandoning the in-flight agent call.

        Raises:
            RunNotFoundError: If the run is unknown
        """
        active = self._active(run_id)
        state = active.ledger.snapshot()
        if state.is_terminal:
            return state
        active.cancel.cancel()
        if state.status in (RunStatus.WAITING_ON_DECISION, RunStatus.PAUSED):
            node_id = state.pending_decision.node_id if state.pending_decision else None
            return self._finish_cancelled(active, node_id)
        return active.ledger.snapshot()

    def pause(self, run_id: str) -> RunState:
        """
        Request a pause.

        An executing run parks as paused before its next node. The agent
        call in flight, retries included, finishes first. A run that is not
        executing is returned unchanged.

        Raises:
            RunNotFoundError: If the run is unknown
        """
        active = self._active(run_id)
        state = active.ledger.snapshot()
        if state.status is RunStatus.RUNNING and not active.cancel.pause_requested:
            active.cancel.request_pause()
            active.ledger.append_log(LogLevel.INFO, "Pause requested")
        return active.ledger.snapshot()

    async def unpause(self, run_id: str) -> RunState:
        """
        Continue a paused run at the node it stopped before.

        A pause that was requested but not yet reached is withdrawn.

        Raises:
            RunNotFoundError: If the run is unknown
            ValueError: If the run is neither paused nor about to pause
        """
        active = self._active(run_id)
        state = active.ledger.snapshot()
        if state.status is RunStatus.RUNNING and active.cancel.pause_requested:
            active.cancel.clear_pause()
            active.ledger.append_log(LogLevel.INFO, "Pause withdrawn")
            return await self.wait(run_id)
        if state.status is not RunStatus.PAUSED:
            raise ValueError(f"Run '{run_id}' is not paused ({state.status.value})")

        entry = state.current_node_id or active.graph.start_node().node_id
        active.ledger.unpause()
        active.ledger.append_log(LogLevel.INFO, f"Run resumed at '{entry}'")
        active.emitter.run_resumed(entry)
        self._checkpoint(active)
        self._spawn(active, entry)
        return await self.wait(run_id)

    async def discard(self, run_id: str) -> RunState:
        """Archive a run and forget it. A live run is cancelled first."""
        active = self._active(run_id)
        if not active.ledger.snapshot().is_terminal:
            self.cancel(run_id)
            await self.wait(run_id)
        self._checkpoint(active)
        del self._runs[run_id]
        return active.ledger.snapshot()

    async def recover(self, run_id: str, graph: WorkflowGraph) -> RunState:
        """
        Reload a persisted run after a restart.

        A run parked on a decision becomes resumable, a run that was
        executing re-enters at the node it was on (that node runs again
        from its first attempt), a paused run stays paused until
        ``unpause``, a terminal run becomes observable.

        Raises:
            RunNotFoundError: If the run store has no such run
            GraphIntegrityError: If ``graph`` is not the graph the run used
        """
        if self._run_store is None:
            raise RuntimeError("Recovering a run requires a run store")
        if run_id in self._runs:
            raise ValueError(f"Run '{run_id}' is already active")

        state = self._run_store.load(run_id)
        verify_graph_ref(state, graph)
        entry = recovery_point(state, graph)

        if state.status is RunStatus.RUNNING and entry is not None:
            status = state.status_of(entry)
            if status in (NodeStatus.WAITING, NodeStatus.RUNNING):
                state = with_node_status(state, entry, NodeStatus.IDLE)
            state = replace(state, partial_output=())

        active = _ActiveRun(
            graph=graph,
            ledger=RunLedger(state),
            cancel=CancelToken(),
            emitter=RunEventEmitter(run_id, self._event_store, self._dispatch),
        )
        self._runs[run_id] = active
        active.ledger.append_log(
            LogLevel.INFO,
            f"Run recovered ({state.status.value})"
            + (f" at '{entry}'" if entry else ""),
        )
        active.emitter.run_recovered(entry)

        if state.status is RunStatus.RUNNING and entry is not None:
            self._spawn(active, entry)
            return await self.wait(run_id)
        self._checkpoint(active)
        return active.ledger.snapshot()

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def _spawn(self, active: _ActiveRun, node_id: str) -> None:
        run_id = active.ledger.run_id
        active.task = asyncio.get_running_loop().create_task(
            self._drive(active, node_id), name=f"agentflow-run-{run_id}"
        )

    async def _drive(self, active: _ActiveRun, node_id: str) -> RunState:
        ledger = active.ledger
        graph = active.graph
        current = node_id
        try:
            while True:
                if active.cancel.cancelled:
                    return self._finish_cancelled(active, None)
                if active.cancel.pause_requested:
                    return self._park_paused(active, current)

                node = graph.node(current)
                ledger.enter_node(current)

                if isinstance(node, StartNode):
                    ledger.set_node_status(current, NodeStatus.COMPLETED)
                    current = graph.successor(current).target

                elif isinstance(node, AgentNode):
                    if not await self._run_agent(active, node):
                        return ledger.snapshot()
                    current = graph.successor(current).target

                elif isinstance(node, HumanDecisionNode):
                    pending = self._gate.suspend(ledger, node)
                    active.emitter.decision_waiting(node.node_id, pending.option_ids)
                    self._checkpoint(active)
                    return ledger.snapshot()

                elif isinstance(node, EndNode):
                    ledger.set_node_status(current, NodeStatus.COMPLETED)
                    ledger.append_log(LogLevel.INFO, "Run completed", node_id=current)
                    state = ledger.finish(RunStatus.COMPLETED)
                    active.emitter.run_completed()
                    self._checkpoint(active)
                    return state

                else:
                    raise TypeError(f"Unsupported node type: {type(node).__name__}")

                self._checkpoint(active)
        except asyncio.CancelledError:
            if not ledger.snapshot().is_terminal:
                active.cancel.cancel()
                self._finish_cancelled(active, current)
            raise
        except Exception as exc:
            logger.exception("Run %s aborted by an internal error", ledger.run_id)
            self._abort(active, current, exc)
            raise
        except BaseException as exc:
            if not ledger.snapshot().is_terminal:
                self._abort(active, current, exc)
            raise

    def _park_paused(self, active: _ActiveRun, node_id: str) -> RunState:
        active.cancel.clear_pause()
        active.ledger.append_log(LogLevel.INFO, f"Run paused before '{node_id}'")
        state = active.ledger.pause(node_id)
        active.emitter.run_paused(node_id)
        self._checkpoint(active)
        return state

    async def _run_agent(self, active: _ActiveRun, node: AgentNode) -> bool:
        """Execute one Agent node. Returns False when the run stopped."""
        ledger = active.ledger
        node_id = node.node_id
        ledger.set_node_status(node_id, NodeStatus.WAITING)

        try:
            handler = self._agents.resolve(node.agent_id)
        except AgentNotFoundError as exc:
            self._fail_node(active, node_id, str(exc.args[0]))
            return False

        started_at = datetime.now(UTC).isoformat()
        ledger.set_node_status(node_id, NodeStatus.RUNNING)
        ledger.append_log(
            LogLevel.INFO, f"Running agent '{node.agent_id}'", node_id=node_id
        )
        active.emitter.node_started(node_id, node.agent_id)
        self._checkpoint(active)

        state = ledger.snapshot()
        context = AgentContext(
            run_id=state.run_id,
            node_id=node_id,
            agent_id=node.agent_id,
            specification=state.specification,
            messages=state.messages,
            artifacts=state.artifacts,
            on_fragment=lambda fragment: ledger.append_fragment(node_id, fragment),
        )

        def attempt_failed(attempt: int, error: AgentError) -> None:
            active.emitter.attempt_failed(node_id, node.agent_id, attempt, error.reason)

        def record(succeeded: bool, files: int = 0) -> None:
            ledger.record_execution(
                AgentExecution(
                    node_id=node_id,
                    agent_id=node.agent_id,
                    started_at=started_at,
                    finished_at=datetime.now(UTC).isoformat(),
                    succeeded=succeeded,
                    files_generated=files,
                )
            )

        coordinator = RetryCoordinator(
            ledger,
            policy=self._retry_policy,
            timeout=self._attempt_timeout,
            correction_template=self._correction_template,
            on_attempt_failed=attempt_failed,
        )
        try:
            result = await coordinator.run_with_retry(
                handler, context, node.config, cancel=active.cancel
            )
        except CancellationError:
            self._finish_cancelled(active, node_id)
            return False
        except RetriesExhausted as exc:
            record(succeeded=False)
            self._fail_node(
                active,
                node_id,
                f"Agent '{node.agent_id}' failed after {exc.attempts} attempts: "
                f"{exc.last_error.reason}",
            )
            return False
        except PermanentError as exc:
            record(succeeded=False)
            self._fail_node(
                active, node_id, f"Agent '{node.agent_id}' failed: {exc.reason}"
            )
            return False

        now = datetime.now(UTC).isoformat()
        artifacts = tuple(
            Artifact(
                path=f.path,
                content=f.content,
                produced_by_node_id=node_id,
                language=f.language,
                created_at=now,
            )
            for f in result.files
        )
        message = Message(
            node_id=node_id,
            agent_id=node.agent_id,
            content=result.content,
            created_at=now,
        )
        ledger.complete_node(node_id, artifacts, message)
        record(succeeded=True, files=len(artifacts))
        ledger.append_log(
            LogLevel.INFO,
            f"Agent '{node.agent_id}' completed with {len(artifacts)} file(s)",
            node_id=node_id,
        )
        active.emitter.node_completed(node_id, node.agent_id, len(artifacts))
        self._hand_off(active, node_id, artifacts, message)
        return True

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    def _fail_node(self, active: _ActiveRun, node_id: str, reason: str) -> RunState:
        active.ledger.append_log(LogLevel.ERROR, reason, node_id=node_id)
        state = active.ledger.fail_node(node_id, reason)
        active.emitter.node_failed(node_id, reason)
        active.emitter.run_failed(reason)
        self._checkpoint(active)
        return state

    def _abort(self, active: _ActiveRun, node_id: str, exc: BaseException) -> None:
        reason = f"Internal error: {type(exc).__name__}: {exc}"
        active.ledger.append_log(LogLevel.ERROR, reason, node_id=node_id)
        active.ledger.finish(RunStatus.FAILED, error=reason)
        active.emitter.run_failed(reason)
        self._checkpoint(active)

    def _finish_cancelled(self, active: _ActiveRun, node_id: str | None) -> RunState:
        ledger = active.ledger
        if node_id is not None:
            status = ledger.snapshot().status_of(node_id)
            if status in (NodeStatus.WAITING, NodeStatus.RUNNING):
                ledger.set_node_status(node_id, NodeStatus.IDLE)
                ledger.clear_fragments(node_id)
                ledger.append_log(
                    LogLevel.WARN, "Interrupted by cancellation", node_id=node_id
                )
        ledger.append_log(LogLevel.WARN, "Run cancelled")
        state = ledger.finish(RunStatus.CANCELLED)
        active.emitter.run_cancelled()
        self._checkpoint(active)
        return state

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    def _hand_off(
        self,
        active: _ActiveRun,
        node_id: str,
        artifacts: tuple[Artifact, ...],
        message: Message,
    ) -> None:
        """Pass completed output to the persistence sink.

        Fire-and-forget: a failure is logged and recorded, never raised.
        """
        sink = self._persistence
        if sink is None:
            return
        run_id = active.ledger.run_id
        for artifact in artifacts:
            try:
                sink.save_artifact(run_id, artifact)
            except Exception as exc:
                self._persistence_failed(active, node_id, f"'{artifact.path}'", exc)
        try:
            sink.save_message(run_id, message)
        except Exception as exc:
            self._persistence_failed(active, node_id, "message", exc)

    def _persistence_failed(
        self, active: _ActiveRun, node_id: str, what: str, exc: Exception
    ) -> None:
        logger.warning(
            "Persisting %s of run %s failed",
            what,
            active.ledger.run_id,
            exc_info=exc,
        )
        active.ledger.append_log(
            LogLevel.WARN, f"Persisting {what} failed: {exc}", node_id=node_id
        )

    def _checkpoint(self, active: _ActiveRun) -> None:
        if self._run_store is None:
            return
        try:
            self._run_store.save(active.ledger.snapshot())
        except Exception:
            logger.warning(
                "Checkpoint of run %s failed", active.ledger.run_id, exc_info=True
            )

    def _dispatch(self, event: RunEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Run listener %r failed", listener)

    def _active(self, run_id: str) -> _ActiveRun:
        active = self._runs.get(run_id)
        if active is None:
            raise RunNotFoundError(run_id)
        return active
