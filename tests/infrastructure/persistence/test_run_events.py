"""Tests for the run event stores."""

import pytest

from agentflow.domain.run_event import RunEvent, RunEventType
from agentflow.infrastructure.persistence import (
    FilesystemRunEventStore,
    InMemoryRunEventStore,
)


def _event(sequence: int, event_type=RunEventType.NODE_STARTED, node_id="code"):
    return RunEvent(
        event_id=f"ev-{sequence}",
        event_type=event_type,
        run_id="r1",
        sequence=sequence,
        node_id=node_id,
        agent_id="coder",
        attempt=1 if event_type is RunEventType.ATTEMPT_FAILED else None,
        summary=f"event {sequence}",
        created_at="2025-01-01T00:00:00+00:00",
    )


@pytest.fixture(params=["memory", "filesystem"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryRunEventStore()
    return FilesystemRunEventStore(tmp_path)


class TestRunEventStores:
    """Behaviour shared by both event store implementations."""

    def test_events_come_back_in_sequence_order(self, store) -> None:
        for sequence in (3, 1, 2):
            store.store_event(_event(sequence))

        events = store.get_events("r1")

        assert [e.sequence for e in events] == [1, 2, 3]
        assert events[0] == _event(1)

    def test_filter_by_type_and_node(self, store) -> None:
        store.store_event(_event(1))
        store.store_event(_event(2, RunEventType.ATTEMPT_FAILED))
        store.store_event(_event(3, RunEventType.ATTEMPT_FAILED, node_id="plan"))

        failed = store.get_events("r1", event_type=RunEventType.ATTEMPT_FAILED)
        on_code = store.get_events("r1", node_id="code")

        assert [e.sequence for e in failed] == [2, 3]
        assert [e.sequence for e in on_code] == [1, 2]

    def test_other_runs_are_separate(self, store) -> None:
        store.store_event(_event(1))

        assert store.get_events("r2") == []

    def test_store_returns_event_id(self, store) -> None:
        assert store.store_event(_event(7)) == "ev-7"


class TestFilesystemRunEventStore:
    """Tests specific to the JSONL layout."""

    def test_one_jsonl_file_per_run(self, tmp_path) -> None:
        store = FilesystemRunEventStore(tmp_path)
        store.store_event(_event(1))
        store.store_event(_event(2))

        lines = (tmp_path / "events" / "r1.jsonl").read_text().splitlines()

        assert len(lines) == 2

    def test_events_survive_reopen(self, tmp_path) -> None:
        FilesystemRunEventStore(tmp_path).store_event(_event(1))

        assert len(FilesystemRunEventStore(tmp_path).get_events("r1")) == 1
