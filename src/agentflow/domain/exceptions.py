"""
Domain exceptions for the workflow orchestration engine.

Taxonomy:
- ValidationError: graph malformed, raised before any run starts
- TransientError / PermanentError: agent invocation failures (retried / not)
- RetriesExhausted: the retry budget of a node was spent
- DecisionError: resume called against a run not awaiting that decision
- CancellationError: the run was cancelled while work was pending
"""

from __future__ import annotations

from enum import Enum


class ValidationErrorKind(str, Enum):
    """Structural defects detected by the graph validator."""

    DUPLICATE_ID = "duplicate_id"
    DANGLING_EDGE = "dangling_edge"
    MISSING_START = "missing_start"
    MULTIPLE_START = "multiple_start"
    START_HAS_INCOMING = "start_has_incoming"
    MISSING_AGENT_ID = "missing_agent_id"
    INVALID_OUT_DEGREE = "invalid_out_degree"
    DECISION_OPTION_MISMATCH = "decision_option_mismatch"
    CYCLE_DETECTED = "cycle_detected"
    MISSING_END = "missing_end"
    UNREACHABLE_NODE = "unreachable_node"


class ValidationError(Exception):
    """Raised when a graph violates a structural invariant."""

    def __init__(
        self, kind: ValidationErrorKind, element_id: str | None, message: str
    ):
        """
        Args:
            kind: Which invariant was violated
            element_id: Offending node or edge id (None for graph-level defects)
            message: Human-readable explanation
        """
        super().__init__(message)
        self.kind = kind
        self.element_id = element_id
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class AgentError(Exception):
    """Base class for failures signalled by an agent handler."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class TransientError(AgentError):
    """Recoverable failure (timeout, rate limit, malformed output). Retried."""


class PermanentError(AgentError):
    """Non-recoverable failure (bad configuration, credentials). Never retried."""


class AgentNotFoundError(KeyError):
    """No handler is registered under the requested agent id."""

    def __init__(self, agent_id: str, available: list[str]):
        names = ", ".join(available) or "(none)"
        super().__init__(f"Agent '{agent_id}' not found. Available agents: {names}")
        self.agent_id = agent_id
        self.available = available


class RetriesExhausted(Exception):
    """
    Raised when every attempt of an agent invocation failed.

    Represents the rule that a node must succeed within max_attempts.
    """

    def __init__(self, attempts: int, last_error: AgentError):
        """
        Args:
            attempts: Number of attempts made
            last_error: Failure of the final attempt
        """
        super().__init__(f"Failed after {attempts} attempts: {last_error.reason}")
        self.attempts = attempts
        self.last_error = last_error


class DecisionErrorKind(str, Enum):
    """Reasons a resume call is rejected."""

    RUN_NOT_FOUND = "run_not_found"
    RUN_NOT_WAITING = "run_not_waiting"
    UNKNOWN_OPTION = "unknown_option"


class DecisionError(Exception):
    """Resume rejected; the run state is left unchanged."""

    def __init__(self, kind: DecisionErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class CancellationError(Exception):
    """Work was abandoned because the run was cancelled."""

    def __init__(self, run_id: str, attempts: int = 0):
        super().__init__(f"Run '{run_id}' was cancelled")
        self.run_id = run_id
        self.attempts = attempts


class GraphIntegrityError(Exception):
    """Persisted run does not belong to the supplied graph."""


class RunNotFoundError(KeyError):
    """No run with the given id is known."""

    def __init__(self, run_id: str):
        super().__init__(f"Run '{run_id}' not found")
        self.run_id = run_id


class GraphImportError(ValueError):
    """A serialized graph document could not be loaded."""
