"""Shared pytest fixtures for agentflow tests."""

import pytest

from agentflow.application import RunLedger, Scheduler
from agentflow.domain.builder import GraphBuilder
from agentflow.domain.models import RetryPolicy, WorkflowGraph
from agentflow.infrastructure.agents.mock import MockAgent
from agentflow.infrastructure.persistence import (
    InMemoryPersistenceSink,
    InMemoryRunEventStore,
    InMemoryRunStore,
)
from agentflow.infrastructure.registry import AgentRegistry

PLAN = "1. Create the module\n2. Add a test"
CODE = "Here you go:\n\n```python app.py\nprint('hello')\n```\n"


@pytest.fixture
def linear_graph() -> WorkflowGraph:
    """Start -> plan -> code -> End."""
    return (
        GraphBuilder("linear", "Linear", "Plan then code")
        .start()
        .agent("plan", "planner")
        .agent("code", "coder")
        .end()
        .chain("start", "plan", "code", "end")
        .build()
    )


@pytest.fixture
def decision_graph() -> WorkflowGraph:
    """Start -> code -> review? approve -> End, reject -> code."""
    return (
        GraphBuilder("review", "Review", "Code with a human review")
        .start()
        .agent("code", "coder")
        .decision("review", ["approve", "reject"], question="Ship it?")
        .end()
        .chain("start", "code", "review")
        .edge("review", "end", condition="approve")
        .edge("review", "code", condition="reject")
        .build()
    )


@pytest.fixture
def planner() -> MockAgent:
    return MockAgent([PLAN], repeat_last=True)


@pytest.fixture
def coder() -> MockAgent:
    return MockAgent([CODE], repeat_last=True)


@pytest.fixture
def registry(planner: MockAgent, coder: MockAgent) -> AgentRegistry:
    """Registry without entry point discovery, holding mock agents."""
    registry = AgentRegistry(discover=False)
    registry.register("planner", planner)
    registry.register("coder", coder)
    return registry


@pytest.fixture
def run_store() -> InMemoryRunStore:
    return InMemoryRunStore()


@pytest.fixture
def event_store() -> InMemoryRunEventStore:
    return InMemoryRunEventStore()


@pytest.fixture
def sink() -> InMemoryPersistenceSink:
    return InMemoryPersistenceSink()


@pytest.fixture
def scheduler(
    registry: AgentRegistry,
    run_store: InMemoryRunStore,
    event_store: InMemoryRunEventStore,
    sink: InMemoryPersistenceSink,
) -> Scheduler:
    """Scheduler wired to in-memory stores, three attempts without backoff."""
    return Scheduler(
        registry,
        retry_policy=RetryPolicy(max_attempts=3),
        run_store=run_store,
        persistence=sink,
        event_store=event_store,
    )


@pytest.fixture
def ledger(linear_graph: WorkflowGraph) -> RunLedger:
    return RunLedger.open("run-1", linear_graph, "Build a greeting script")
