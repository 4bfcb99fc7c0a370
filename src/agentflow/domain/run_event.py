"""Run execution trace models."""

from dataclasses import dataclass
from enum import Enum


class RunEventType(str, Enum):
    """Types of run execution events."""

    RUN_STARTED = "RUN_STARTED"
    NODE_STARTED = "NODE_STARTED"
    NODE_COMPLETED = "NODE_COMPLETED"
    NODE_FAILED = "NODE_FAILED"
    ATTEMPT_FAILED = "ATTEMPT_FAILED"
    DECISION_WAITING = "DECISION_WAITING"
    DECISION_MADE = "DECISION_MADE"
    RUN_COMPLETED = "RUN_COMPLETED"
    RUN_FAILED = "RUN_FAILED"
    RUN_CANCELLED = "RUN_CANCELLED"
    RUN_RECOVERED = "RUN_RECOVERED"
    RUN_PAUSED = "RUN_PAUSED"
    RUN_RESUMED = "RUN_RESUMED"

    @property
    def is_terminal(self) -> bool:
        return self in (
            RunEventType.RUN_COMPLETED,
            RunEventType.RUN_FAILED,
            RunEventType.RUN_CANCELLED,
        )


@dataclass(frozen=True)
class RunEvent:
    """Single run state transition.

    The coarse-grained counterpart of the ledger log: one event per node
    or run transition, for listeners and the persisted trace.
    """

    event_id: str
    event_type: RunEventType
    run_id: str
    sequence: int = 0  # Order within the run
    node_id: str | None = None
    agent_id: str | None = None
    attempt: int | None = None
    option: str | None = None  # Chosen option for DECISION_MADE
    summary: str = ""
    created_at: str = ""  # ISO 8601
