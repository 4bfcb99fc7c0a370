"""Run event store implementations."""

import json
import threading
from pathlib import Path
from typing import Any

from agentflow.domain.interfaces import RunEventStoreInterface
from agentflow.domain.run_event import RunEvent, RunEventType


class InMemoryRunEventStore(RunEventStoreInterface):
    """In-memory implementation for testing."""

    def __init__(self) -> None:
        self._events: list[RunEvent] = []
        self._lock = threading.Lock()

    def store_event(self, event: RunEvent) -> str:
        with self._lock:
            self._events.append(event)
        return event.event_id

    def get_events(
        self,
        run_id: str,
        event_type: RunEventType | None = None,
        node_id: str | None = None,
    ) -> list[RunEvent]:
        with self._lock:
            events = list(self._events)
        return sorted(
            [
                e
                for e in events
                if e.run_id == run_id
                and (event_type is None or e.event_type == event_type)
                and (node_id is None or e.node_id == node_id)
            ],
            key=lambda e: e.sequence,
        )


class FilesystemRunEventStore(RunEventStoreInterface):
    """Filesystem implementation storing events as JSONL, one file per run."""

    def __init__(self, base_path: Path | str) -> None:
        self.base_path = Path(base_path)
        self.events_dir = self.base_path / "events"
        self.events_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _get_run_file(self, run_id: str) -> Path:
        return self.events_dir / f"{run_id}.jsonl"

    def store_event(self, event: RunEvent) -> str:
        path = self._get_run_file(event.run_id)
        with self._lock, open(path, "a") as f:
            f.write(json.dumps(self._event_to_dict(event)) + "\n")
        return event.event_id

    def get_events(
        self,
        run_id: str,
        event_type: RunEventType | None = None,
        node_id: str | None = None,
    ) -> list[RunEvent]:
        path = self._get_run_file(run_id)
        if not path.exists():
            return []
        events: list[RunEvent] = []
        with open(path) as f:
            for line in f:
                if not line.strip():
                    continue
                event = self._dict_to_event(json.loads(line))
                if event_type and event.event_type != event_type:
                    continue
                if node_id and event.node_id != node_id:
                    continue
                events.append(event)
        return sorted(events, key=lambda e: e.sequence)

    def _event_to_dict(self, event: RunEvent) -> dict[str, Any]:
        return {
            "event_id": event.event_id,
            "event_type": event.event_type.value,
            "run_id": event.run_id,
            "sequence": event.sequence,
            "node_id": event.node_id,
            "agent_id": event.agent_id,
            "attempt": event.attempt,
            "option": event.option,
            "summary": event.summary,
            "created_at": event.created_at,
        }

    def _dict_to_event(self, data: dict[str, Any]) -> RunEvent:
        return RunEvent(
            event_id=data["event_id"],
            event_type=RunEventType(data["event_type"]),
            run_id=data["run_id"],
            sequence=data.get("sequence", 0),
            node_id=data.get("node_id"),
            agent_id=data.get("agent_id"),
            attempt=data.get("attempt"),
            option=data.get("option"),
            summary=data.get("summary", ""),
            created_at=data.get("created_at", ""),
        )
