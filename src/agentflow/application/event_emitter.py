"""Run event emission service."""

from __future__ import annotations

import itertools
import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from agentflow.domain.interfaces import RunEventStoreInterface
from agentflow.domain.run_event import RunEvent, RunEventType

logger = logging.getLogger("agentflow.events")

RunListener = Callable[[RunEvent], None]


class RunEventEmitter:
    """Emits run events to a store and to listeners.

    Provides convenience methods for the transitions of a run, handling ID
    generation, ordering and timestamps. A failing store or listener is
    logged and never interrupts the run.
    """

    def __init__(
        self,
        run_id: str,
        store: RunEventStoreInterface | None = None,
        notify: RunListener | None = None,
    ) -> None:
        self._run_id = run_id
        self._store = store
        self._notify = notify
        first = len(store.get_events(run_id)) + 1 if store is not None else 1
        self._sequence = itertools.count(first)

    def _now(self) -> str:
        return datetime.now(UTC).isoformat()

    def _emit(self, event_type: RunEventType, **fields: object) -> RunEvent:
        event = RunEvent(
            event_id=str(uuid.uuid4()),
            event_type=event_type,
            run_id=self._run_id,
            sequence=next(self._sequence),
            created_at=self._now(),
            **fields,  # type: ignore[arg-type]
        )
        if self._store is not None:
            try:
                self._store.store_event(event)
            except Exception:
                logger.warning(
                    "Failed to store %s event for run %s",
                    event_type.value,
                    self._run_id,
                    exc_info=True,
                )
        if self._notify is not None:
            self._notify(event)
        return event

    def run_started(self, graph_name: str) -> None:
        self._emit(RunEventType.RUN_STARTED, summary=f"Started '{graph_name}'")

    def run_recovered(self, node_id: str | None) -> None:
        self._emit(RunEventType.RUN_RECOVERED, node_id=node_id)

    def run_paused(self, node_id: str) -> None:
        self._emit(RunEventType.RUN_PAUSED, node_id=node_id)

    def run_resumed(self, node_id: str) -> None:
        self._emit(RunEventType.RUN_RESUMED, node_id=node_id)

    def node_started(self, node_id: str, agent_id: str | None = None) -> None:
        self._emit(RunEventType.NODE_STARTED, node_id=node_id, agent_id=agent_id)

    def node_completed(
        self, node_id: str, agent_id: str | None = None, files: int = 0
    ) -> None:
        self._emit(
            RunEventType.NODE_COMPLETED,
            node_id=node_id,
            agent_id=agent_id,
            summary=f"{files} file(s)" if files else "",
        )

    def node_failed(self, node_id: str, reason: str) -> None:
        self._emit(RunEventType.NODE_FAILED, node_id=node_id, summary=reason[:500])

    def attempt_failed(
        self, node_id: str, agent_id: str, attempt: int, reason: str
    ) -> None:
        self._emit(
            RunEventType.ATTEMPT_FAILED,
            node_id=node_id,
            agent_id=agent_id,
            attempt=attempt,
            summary=reason[:500],
        )

    def decision_waiting(self, node_id: str, options: tuple[str, ...]) -> None:
        self._emit(
            RunEventType.DECISION_WAITING, node_id=node_id, summary=", ".join(options)
        )

    def decision_made(self, node_id: str, option: str) -> None:
        self._emit(RunEventType.DECISION_MADE, node_id=node_id, option=option)

    def run_completed(self) -> None:
        self._emit(RunEventType.RUN_COMPLETED)

    def run_failed(self, reason: str) -> None:
        self._emit(RunEventType.RUN_FAILED, summary=reason[:500])

    def run_cancelled(self) -> None:
        self._emit(RunEventType.RUN_CANCELLED)
