"""
Domain interfaces (Ports) for the workflow orchestration engine.

These abstract base classes define the contracts the engine consumes.
They have no external dependencies; adapters live in infrastructure.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agentflow.domain.models import (
        AgentConfig,
        AgentContext,
        AgentResult,
        Artifact,
        Message,
        RunState,
        RunStatus,
    )
    from agentflow.domain.run_event import RunEvent, RunEventType


class AgentHandler(ABC):
    """
    Capability object behind an agent id.

    Built-in and marketplace agents implement this one operation; the
    Scheduler never dispatches on agent type.

    Note (Errors):
        Implementations signal failure by raising TransientError (worth
        retrying: timeout, rate limit, detectably malformed output) or
        PermanentError (bad configuration, missing credentials). Any other
        exception is treated as permanent by the Retry Coordinator.

    Note (Streaming):
        When ``config.streaming`` is set, partial content should be pushed
        through ``context.emit_fragment`` as it arrives.
    """

    @abstractmethod
    async def invoke(
        self, context: "AgentContext", config: "AgentConfig"
    ) -> "AgentResult":
        """
        Run the agent once.

        Args:
            context: Specification, prior messages/artifacts, corrections
            config: The node's agent configuration

        Returns:
            The produced content and files
        """


class AgentResolverInterface(ABC):
    """Port for looking up agent handlers by id."""

    @abstractmethod
    def resolve(self, agent_id: str) -> AgentHandler:
        """
        Args:
            agent_id: Identifier carried by an Agent node

        Returns:
            The handler registered under that id

        Raises:
            AgentNotFoundError: If nothing is registered under ``agent_id``
        """


class PersistenceSinkInterface(ABC):
    """
    Port for handing completed output to external storage.

    Called whenever an agent node completes. Failures are logged by the
    engine and never fail the run.
    """

    @abstractmethod
    def save_artifact(self, run_id: str, artifact: "Artifact") -> None:
        """Persist one produced artifact."""

    @abstractmethod
    def save_message(self, run_id: str, message: "Message") -> None:
        """Persist one agent message."""


class RunStoreInterface(ABC):
    """Port for checkpointing RunState so runs survive a restart."""

    @abstractmethod
    def save(self, state: "RunState") -> None:
        """Store (or overwrite) the latest state of a run."""

    @abstractmethod
    def load(self, run_id: str) -> "RunState":
        """
        Raises:
            RunNotFoundError: If no state was stored for ``run_id``
        """

    @abstractmethod
    def list_runs(self, status: "RunStatus | None" = None) -> list[str]:
        """Run ids, optionally filtered by status."""


class RunEventStoreInterface(ABC):
    """Port for the run execution trace."""

    @abstractmethod
    def store_event(self, event: "RunEvent") -> str:
        """Append an event. Returns its id."""

    @abstractmethod
    def get_events(
        self,
        run_id: str,
        event_type: "RunEventType | None" = None,
        node_id: str | None = None,
    ) -> list["RunEvent"]:
        """Events of a run in emission order, optionally filtered."""
