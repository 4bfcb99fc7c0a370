"""
Domain layer for the workflow orchestration engine.

Contains the graph model, run state and validation rules, with no
external dependencies.
"""

from agentflow.domain.builder import GraphBuilder
from agentflow.domain.exceptions import (
    AgentError,
    AgentNotFoundError,
    CancellationError,
    DecisionError,
    DecisionErrorKind,
    GraphImportError,
    GraphIntegrityError,
    PermanentError,
    RetriesExhausted,
    RunNotFoundError,
    TransientError,
    ValidationError,
    ValidationErrorKind,
)
from agentflow.domain.interfaces import (
    AgentHandler,
    AgentResolverInterface,
    PersistenceSinkInterface,
    RunEventStoreInterface,
    RunStoreInterface,
)
from agentflow.domain.models import (
    AgentConfig,
    AgentContext,
    AgentExecution,
    AgentNode,
    AgentPerformance,
    AgentProfile,
    AgentResult,
    Artifact,
    DecisionOption,
    DecisionRecord,
    Edge,
    EndNode,
    GeneratedFile,
    HumanDecisionNode,
    LogEntry,
    LogLevel,
    Message,
    Node,
    NodeKind,
    NodeStatus,
    PendingDecision,
    Position,
    RetryPolicy,
    RunState,
    RunStatistics,
    RunStatus,
    StartNode,
    WorkflowGraph,
)
from agentflow.domain.prompts import CorrectionTemplate, PromptTemplate
from agentflow.domain.validation import GraphValidator
from agentflow.domain.workflow import compute_graph_ref, verify_graph_ref

__all__ = [
    # Graph model
    "AgentConfig",
    "AgentNode",
    "DecisionOption",
    "Edge",
    "EndNode",
    "GraphBuilder",
    "HumanDecisionNode",
    "Node",
    "NodeKind",
    "Position",
    "StartNode",
    "WorkflowGraph",
    # Run state
    "AgentExecution",
    "Artifact",
    "DecisionRecord",
    "LogEntry",
    "LogLevel",
    "Message",
    "NodeStatus",
    "PendingDecision",
    "RunState",
    "RunStatistics",
    "RunStatus",
    "AgentPerformance",
    # Agents
    "AgentContext",
    "AgentProfile",
    "AgentResult",
    "GeneratedFile",
    "RetryPolicy",
    # Prompts
    "CorrectionTemplate",
    "PromptTemplate",
    # Validation and integrity
    "GraphValidator",
    "compute_graph_ref",
    "verify_graph_ref",
    # Exceptions
    "AgentError",
    "AgentNotFoundError",
    "CancellationError",
    "DecisionError",
    "DecisionErrorKind",
    "GraphImportError",
    "GraphIntegrityError",
    "PermanentError",
    "RetriesExhausted",
    "RunNotFoundError",
    "TransientError",
    "ValidationError",
    "ValidationErrorKind",
    # Interfaces
    "AgentHandler",
    "AgentResolverInterface",
    "PersistenceSinkInterface",
    "RunEventStoreInterface",
    "RunStoreInterface",
]
