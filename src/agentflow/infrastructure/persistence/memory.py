"""
In-memory persistence adapters.

Useful for tests and for embedding the engine where durability is not
needed.
"""

from __future__ import annotations

import threading

from agentflow.domain.exceptions import RunNotFoundError
from agentflow.domain.interfaces import PersistenceSinkInterface, RunStoreInterface
from agentflow.domain.models import Artifact, Message, RunState, RunStatus


class InMemoryRunStore(RunStoreInterface):
    """Keeps the latest state of each run in a dict."""

    def __init__(self) -> None:
        self._states: dict[str, RunState] = {}
        self._lock = threading.Lock()

    def save(self, state: RunState) -> None:
        with self._lock:
            self._states[state.run_id] = state

    def load(self, run_id: str) -> RunState:
        with self._lock:
            if run_id not in self._states:
                raise RunNotFoundError(run_id)
            return self._states[run_id]

    def list_runs(self, status: RunStatus | None = None) -> list[str]:
        with self._lock:
            return [
                run_id
                for run_id, state in self._states.items()
                if status is None or state.status is status
            ]


class InMemoryPersistenceSink(PersistenceSinkInterface):
    """Collects handed-off artifacts and messages per run."""

    def __init__(self) -> None:
        self.artifacts: dict[str, list[Artifact]] = {}
        self.messages: dict[str, list[Message]] = {}

    def save_artifact(self, run_id: str, artifact: Artifact) -> None:
        self.artifacts.setdefault(run_id, []).append(artifact)

    def save_message(self, run_id: str, message: Message) -> None:
        self.messages.setdefault(run_id, []).append(message)

    def files(self, run_id: str) -> dict[str, str]:
        """Latest content per path for a run."""
        return {a.path: a.content for a in self.artifacts.get(run_id, [])}
