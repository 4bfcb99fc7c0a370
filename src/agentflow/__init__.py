"""
AgentFlow: workflow orchestration for AI agents.

Runs a directed graph of agent steps and human decision points,
retrying failed agent calls with corrective instructions and recording
every transition in an observable, recoverable run state.

Example:
    from agentflow import AgentRegistry, MockAgent, Scheduler, TemplateCatalog

    registry = AgentRegistry(discover=False)
    registry.register("planner", MockAgent(["1. Build it"]))
    registry.register("coder", MockAgent(["```python app.py\\nprint('hi')\\n```"]))

    graph = TemplateCatalog().get("simple-linear")
    state = await Scheduler(registry).start_run(graph, "A hello world script")
"""

# Application layer (orchestration)
from agentflow.application import CancelToken, RunLedger, Scheduler
from agentflow.config import EngineConfig

# Domain models (most commonly used)
from agentflow.domain.builder import GraphBuilder

# Domain exceptions
from agentflow.domain.exceptions import (
    AgentNotFoundError,
    DecisionError,
    DecisionErrorKind,
    GraphIntegrityError,
    PermanentError,
    RetriesExhausted,
    TransientError,
    ValidationError,
    ValidationErrorKind,
)

# Domain interfaces (for type hints and custom implementations)
from agentflow.domain.interfaces import (
    AgentHandler,
    PersistenceSinkInterface,
    RunStoreInterface,
)
from agentflow.domain.models import (
    AgentConfig,
    AgentContext,
    AgentPerformance,
    AgentResult,
    LogLevel,
    NodeStatus,
    RetryPolicy,
    RunState,
    RunStatistics,
    RunStatus,
    WorkflowGraph,
)
from agentflow.domain.validation import GraphValidator

# Infrastructure (explicit import encouraged for dependency injection)
from agentflow.infrastructure.agents import MockAgent, OpenAIAgent
from agentflow.infrastructure.persistence import (
    FilesystemRunStore,
    InMemoryRunStore,
)
from agentflow.infrastructure.registry import AgentRegistry
from agentflow.templates import TemplateCatalog

__version__ = "0.3.0"

__all__ = [
    # Version
    "__version__",
    # Domain models
    "AgentConfig",
    "AgentContext",
    "AgentPerformance",
    "AgentResult",
    "GraphBuilder",
    "LogLevel",
    "NodeStatus",
    "RetryPolicy",
    "RunState",
    "RunStatistics",
    "RunStatus",
    "WorkflowGraph",
    "GraphValidator",
    # Domain interfaces
    "AgentHandler",
    "PersistenceSinkInterface",
    "RunStoreInterface",
    # Domain exceptions
    "AgentNotFoundError",
    "DecisionError",
    "DecisionErrorKind",
    "GraphIntegrityError",
    "PermanentError",
    "RetriesExhausted",
    "TransientError",
    "ValidationError",
    "ValidationErrorKind",
    # Application layer
    "CancelToken",
    "RunLedger",
    "Scheduler",
    "EngineConfig",
    # Infrastructure
    "AgentRegistry",
    "FilesystemRunStore",
    "InMemoryRunStore",
    "MockAgent",
    "OpenAIAgent",
    # Templates
    "TemplateCatalog",
]
