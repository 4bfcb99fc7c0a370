"""Tests for RunEventEmitter."""

from agentflow.application.event_emitter import RunEventEmitter
from agentflow.domain.run_event import RunEvent, RunEventType
from agentflow.infrastructure.persistence import InMemoryRunEventStore


class _FailingStore(InMemoryRunEventStore):
    def store_event(self, event: RunEvent) -> str:
        raise OSError("disk full")


class TestRunEventEmitter:
    """Tests for event emission to store and listener."""

    def test_events_are_stored_in_sequence(self) -> None:
        store = InMemoryRunEventStore()
        emitter = RunEventEmitter("r1", store)

        emitter.run_started("Linear")
        emitter.node_started("plan", "planner")
        emitter.node_completed("plan", "planner", files=2)
        emitter.run_completed()

        events = store.get_events("r1")
        assert [e.event_type for e in events] == [
            RunEventType.RUN_STARTED,
            RunEventType.NODE_STARTED,
            RunEventType.NODE_COMPLETED,
            RunEventType.RUN_COMPLETED,
        ]
        assert [e.sequence for e in events] == [1, 2, 3, 4]
        assert events[2].summary == "2 file(s)"
        assert events[-1].event_type.is_terminal

    def test_sequence_continues_from_store(self) -> None:
        store = InMemoryRunEventStore()
        RunEventEmitter("r1", store).run_started("G")

        RunEventEmitter("r1", store).run_recovered("plan")

        assert [e.sequence for e in store.get_events("r1")] == [1, 2]

    def test_listener_receives_events(self) -> None:
        received: list[RunEvent] = []
        emitter = RunEventEmitter("r1", notify=received.append)

        emitter.decision_waiting("review", ("approve", "reject"))
        emitter.decision_made("review", "approve")

        assert received[0].summary == "approve, reject"
        assert received[1].option == "approve"
        assert received[1].node_id == "review"

    def test_attempt_failed_carries_attempt(self) -> None:
        store = InMemoryRunEventStore()
        RunEventEmitter("r1", store).attempt_failed("code", "coder", 2, "timeout")

        event = store.get_events("r1")[0]
        assert event.attempt == 2
        assert event.agent_id == "coder"
        assert event.summary == "timeout"

    def test_store_failure_does_not_interrupt(self) -> None:
        received: list[RunEvent] = []
        emitter = RunEventEmitter("r1", _FailingStore(), notify=received.append)

        emitter.run_failed("x" * 1000)

        assert len(received) == 1
        assert len(received[0].summary) == 500
