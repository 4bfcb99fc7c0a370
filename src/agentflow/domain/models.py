"""
Domain models for the workflow orchestration engine.

Pure data structures: the graph a run executes (nodes and edges) and the
per-run state the Run Ledger owns. All models are immutable (frozen
dataclasses); collections are tuples so a snapshot handed to an observer
can never change underneath it.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

# =============================================================================
# ENUMS
# =============================================================================


class NodeKind(str, Enum):
    """Variants of a graph node."""

    START = "start"
    AGENT = "agent"
    HUMAN_DECISION = "human_decision"
    END = "end"


class NodeStatus(str, Enum):
    """Per-node state during a run: idle -> waiting -> running -> completed|error."""

    IDLE = "idle"
    WAITING = "waiting"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class RunStatus(str, Enum):
    """Overall state of a run."""

    RUNNING = "running"
    WAITING_ON_DECISION = "waiting_on_decision"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED)


class LogLevel(str, Enum):
    """Severity of a ledger log entry."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


# =============================================================================
# GRAPH MODEL
# =============================================================================


@dataclass(frozen=True)
class Position:
    """Canvas position of a node (layout only, no semantics)."""

    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class AgentConfig:
    """Agent-specific configuration carried by an Agent node."""

    model: str = "gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 2000
    streaming: bool = False
    system_prompt: str = ""
    timeout: float | None = None  # Per-attempt override, seconds
    max_attempts: int | None = None  # Per-node override of the retry budget


@dataclass(frozen=True)
class DecisionOption:
    """One named choice offered by a HumanDecision node."""

    option_id: str
    label: str = ""
    description: str = ""

    @property
    def display(self) -> str:
        return self.label or self.option_id


@dataclass(frozen=True, kw_only=True)
class Node:
    """Base node. Use one of the concrete variants."""

    kind: ClassVar[NodeKind]

    node_id: str
    label: str = ""
    position: Position = field(default_factory=Position)

    @property
    def display(self) -> str:
        return self.label or self.node_id


@dataclass(frozen=True, kw_only=True)
class StartNode(Node):
    """Entry point. Exactly one per graph, never targeted by an edge."""

    kind: ClassVar[NodeKind] = NodeKind.START


@dataclass(frozen=True, kw_only=True)
class AgentNode(Node):
    """Invokes the agent registered under ``agent_id``."""

    kind: ClassVar[NodeKind] = NodeKind.AGENT

    agent_id: str
    config: AgentConfig = field(default_factory=AgentConfig)


@dataclass(frozen=True, kw_only=True)
class HumanDecisionNode(Node):
    """Parks the run until a human picks one of ``options``."""

    kind: ClassVar[NodeKind] = NodeKind.HUMAN_DECISION

    options: tuple[DecisionOption, ...] = ()
    question: str = ""

    @property
    def option_ids(self) -> tuple[str, ...]:
        return tuple(o.option_id for o in self.options)


@dataclass(frozen=True, kw_only=True)
class EndNode(Node):
    """Terminal node; reaching it completes the run."""

    kind: ClassVar[NodeKind] = NodeKind.END


@dataclass(frozen=True)
class Edge:
    """Directed transition. ``condition`` is None for unconditional edges."""

    edge_id: str
    source: str
    target: str
    condition: str | None = None
    label: str = ""

    @property
    def is_conditional(self) -> bool:
        return self.condition is not None


@dataclass(frozen=True)
class WorkflowGraph:
    """
    Immutable description of a workflow.

    Owned by whoever constructs it (template catalog or caller). The
    Scheduler never mutates a graph; all run-time state lives in RunState.
    """

    graph_id: str
    name: str
    nodes: tuple[Node, ...]
    edges: tuple[Edge, ...]
    description: str = ""
    version: str = "1.0.0"
    created_at: str = ""  # ISO 8601
    updated_at: str = ""  # ISO 8601

    def node(self, node_id: str) -> Node:
        """Get a node by id. Raises KeyError if absent."""
        for node in self.nodes:
            if node.node_id == node_id:
                return node
        raise KeyError(f"Node '{node_id}' not found in graph '{self.graph_id}'")

    def has_node(self, node_id: str) -> bool:
        return any(n.node_id == node_id for n in self.nodes)

    def start_node(self) -> Node:
        """The single Start node (graph assumed validated)."""
        for node in self.nodes:
            if node.kind is NodeKind.START:
                return node
        raise KeyError(f"Graph '{self.graph_id}' has no start node")

    def outgoing(self, node_id: str) -> tuple[Edge, ...]:
        return tuple(e for e in self.edges if e.source == node_id)

    def incoming(self, node_id: str) -> tuple[Edge, ...]:
        return tuple(e for e in self.edges if e.target == node_id)

    def successor(self, node_id: str) -> Edge:
        """The single unconditional outgoing edge of a Start/Agent node."""
        for edge in self.outgoing(node_id):
            if not edge.is_conditional:
                return edge
        raise KeyError(f"Node '{node_id}' has no unconditional outgoing edge")

    def nodes_of(self, kind: NodeKind) -> tuple[Node, ...]:
        return tuple(n for n in self.nodes if n.kind is kind)


# =============================================================================
# AGENT CATALOG ENTRY
# =============================================================================


@dataclass(frozen=True)
class AgentProfile:
    """Descriptive metadata for an agent type (built-in or marketplace)."""

    agent_id: str
    name: str
    description: str
    category: str = "custom"
    system_prompt: str = ""
    default_config: AgentConfig = field(default_factory=AgentConfig)
    core: bool = False  # Core agents ship with the engine and cannot be removed
    requires_files: bool = False  # Output without any file is malformed
    tags: tuple[str, ...] = ()


# =============================================================================
# RUN STATE (owned by the Run Ledger)
# =============================================================================


@dataclass(frozen=True)
class LogEntry:
    """Single entry of a run's append-only log."""

    sequence: int
    timestamp: str  # ISO 8601
    node_id: str | None
    level: LogLevel
    message: str
    attempt: int | None = None


@dataclass(frozen=True)
class GeneratedFile:
    """A file as returned by an agent, before it becomes a run artifact."""

    path: str
    content: str
    language: str = ""


@dataclass(frozen=True)
class Artifact:
    """A generated output attached to the run by a completed node."""

    path: str
    content: str
    produced_by_node_id: str
    language: str = ""
    created_at: str = ""


@dataclass(frozen=True)
class Message:
    """Textual output of an agent node, visible to later agents."""

    node_id: str
    agent_id: str
    content: str
    created_at: str = ""


@dataclass(frozen=True)
class PendingDecision:
    """Persisted continuation of a run parked at a HumanDecision node."""

    node_id: str
    options: tuple[DecisionOption, ...]
    question: str = ""

    @property
    def option_ids(self) -> tuple[str, ...]:
        return tuple(o.option_id for o in self.options)


@dataclass(frozen=True)
class DecisionRecord:
    """A decision taken during the run."""

    node_id: str
    option_id: str
    decided_at: str


@dataclass(frozen=True)
class AgentExecution:
    """One execution of an Agent node, from its first attempt to its outcome."""

    node_id: str
    agent_id: str
    started_at: str
    finished_at: str
    succeeded: bool
    files_generated: int = 0

    @property
    def duration_seconds(self) -> float:
        return _elapsed(self.started_at, self.finished_at) or 0.0


@dataclass(frozen=True)
class RunState:
    """
    Complete state of one run.

    Sufficient on its own to observe, report on and recover the run: the
    position (``current_node_id`` or ``pending_decision``), every node's
    status, the ordered log, produced artifacts and the last error.
    """

    run_id: str
    graph_id: str
    graph_ref: str  # Fingerprint of the graph the run was started with
    status: RunStatus
    node_statuses: tuple[tuple[str, NodeStatus], ...]
    specification: str = ""
    log: tuple[LogEntry, ...] = ()
    artifacts: tuple[Artifact, ...] = ()
    messages: tuple[Message, ...] = ()
    pending_decision: PendingDecision | None = None
    current_node_id: str | None = None
    visited: tuple[str, ...] = ()
    decisions: tuple[DecisionRecord, ...] = ()
    executions: tuple[AgentExecution, ...] = ()
    partial_output: tuple[tuple[str, str], ...] = ()  # node_id -> streamed text
    last_error: str | None = None
    created_at: str = ""
    updated_at: str = ""
    completed_at: str | None = None

    def status_of(self, node_id: str) -> NodeStatus:
        for nid, status in self.node_statuses:
            if nid == node_id:
                return status
        raise KeyError(f"Node '{node_id}' is not part of run '{self.run_id}'")

    def node_status_map(self) -> dict[str, NodeStatus]:
        return dict(self.node_statuses)

    def entries_for(self, node_id: str) -> tuple[LogEntry, ...]:
        return tuple(e for e in self.log if e.node_id == node_id)

    def partial_for(self, node_id: str) -> str:
        return dict(self.partial_output).get(node_id, "")

    def files(self) -> dict[str, Artifact]:
        """Latest artifact per path (a revisited node overwrites earlier output)."""
        latest: dict[str, Artifact] = {}
        for artifact in self.artifacts:
            latest[artifact.path] = artifact
        return latest

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


# =============================================================================
# AGENT INVOCATION
# =============================================================================


@dataclass(frozen=True)
class AgentContext:
    """Everything an agent sees when invoked.

    ``corrections`` grows by one corrective instruction per failed attempt.
    ``on_fragment`` receives streamed partial content, when streaming.
    """

    run_id: str
    node_id: str
    agent_id: str
    specification: str
    messages: tuple[Message, ...] = ()
    artifacts: tuple[Artifact, ...] = ()
    corrections: tuple[str, ...] = ()
    attempt: int = 1
    on_fragment: Callable[[str], None] | None = field(
        default=None, compare=False, repr=False
    )

    def emit_fragment(self, fragment: str) -> None:
        if self.on_fragment is not None and fragment:
            self.on_fragment(fragment)


@dataclass(frozen=True)
class AgentResult:
    """Output of a successful agent invocation."""

    content: str
    files: tuple[GeneratedFile, ...] = ()
    metadata: tuple[tuple[str, Any], ...] = ()


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with exponential backoff between attempts."""

    max_attempts: int = 3
    initial_delay: float = 0.0  # seconds
    multiplier: float = 2.0
    max_delay: float = 30.0

    def delay_before(self, attempt: int) -> float:
        """Backoff to wait before ``attempt`` (2..n). Attempt 1 never waits."""
        if attempt <= 1 or self.initial_delay <= 0:
            return 0.0
        delay = self.initial_delay * (self.multiplier ** (attempt - 2))
        return min(delay, self.max_delay)


# =============================================================================
# REPORTING
# =============================================================================


def _elapsed(start: str, end: str | None) -> float | None:
    if not start or not end:
        return None
    delta = datetime.fromisoformat(end) - datetime.fromisoformat(start)
    return round(delta.total_seconds(), 3)


@dataclass(frozen=True)
class RunStatistics:
    """Summary numbers for a run, derived from RunState alone."""

    total_nodes: int
    completed: int
    failed: int
    running: int
    waiting: int
    idle: int
    files_generated: int
    failed_attempts: int
    decisions_made: int
    duration_seconds: float | None = None  # Until completion, or last update

    @property
    def progress(self) -> float:
        """Percentage of nodes that completed (0-100)."""
        if self.total_nodes == 0:
            return 0.0
        return round(100.0 * self.completed / self.total_nodes, 1)

    @classmethod
    def from_state(cls, state: RunState) -> RunStatistics:
        counts = {status: 0 for status in NodeStatus}
        for _, status in state.node_statuses:
            counts[status] += 1
        return cls(
            total_nodes=len(state.node_statuses),
            completed=counts[NodeStatus.COMPLETED],
            failed=counts[NodeStatus.ERROR],
            running=counts[NodeStatus.RUNNING],
            waiting=counts[NodeStatus.WAITING],
            idle=counts[NodeStatus.IDLE],
            files_generated=len(state.files()),
            failed_attempts=sum(
                1
                for e in state.log
                if e.attempt is not None
                and e.level in (LogLevel.WARN, LogLevel.ERROR)
            ),
            decisions_made=len(state.decisions),
            duration_seconds=_elapsed(
                state.created_at, state.completed_at or state.updated_at
            ),
        )


@dataclass(frozen=True)
class AgentPerformance:
    """Execution record of one agent, aggregated over runs."""

    agent_id: str
    executions: int = 0
    successes: int = 0
    failures: int = 0
    total_duration_seconds: float = 0.0
    files_generated: int = 0
    last_execution: str | None = None  # finished_at of the latest execution

    @property
    def average_duration_seconds(self) -> float:
        if self.executions == 0:
            return 0.0
        return round(self.total_duration_seconds / self.executions, 3)

    @property
    def success_rate(self) -> float:
        """Percentage of executions that succeeded (0-100)."""
        if self.executions == 0:
            return 0.0
        return round(100.0 * self.successes / self.executions, 1)

    @classmethod
    def from_executions(
        cls, agent_id: str, executions: Iterable[AgentExecution]
    ) -> AgentPerformance:
        runs = [e for e in executions if e.agent_id == agent_id]
        successes = sum(1 for e in runs if e.succeeded)
        return cls(
            agent_id=agent_id,
            executions=len(runs),
            successes=successes,
            failures=len(runs) - successes,
            total_duration_seconds=round(sum(e.duration_seconds for e in runs), 3),
            files_generated=sum(e.files_generated for e in runs),
            last_execution=max((e.finished_at for e in runs), default=None),
        )

    @classmethod
    def collect(cls, states: Iterable[RunState]) -> dict[str, AgentPerformance]:
        """Per-agent performance over every execution recorded in ``states``."""
        executions = [e for state in states for e in state.executions]
        agent_ids = sorted({e.agent_id for e in executions})
        return {a: cls.from_executions(a, executions) for a in agent_ids}
