"""
Infrastructure layer for the workflow engine.

Contains adapters for external concerns (agents, persistence, registry,
graph documents).
"""

from agentflow.infrastructure.agents import (
    MockAgent,
    OpenAIAgent,
    OpenAIAgentConfig,
)
from agentflow.infrastructure.graph_io import (
    export_graph,
    import_graph,
    load_graph,
    save_graph,
)
from agentflow.infrastructure.persistence import (
    FilesystemPersistenceSink,
    FilesystemRunEventStore,
    FilesystemRunStore,
    InMemoryPersistenceSink,
    InMemoryRunEventStore,
    InMemoryRunStore,
)
from agentflow.infrastructure.registry import AgentRegistry

__all__ = [
    # Agents
    "MockAgent",
    "OpenAIAgent",
    "OpenAIAgentConfig",
    # Graph documents
    "export_graph",
    "import_graph",
    "load_graph",
    "save_graph",
    # Persistence
    "FilesystemPersistenceSink",
    "FilesystemRunEventStore",
    "FilesystemRunStore",
    "InMemoryPersistenceSink",
    "InMemoryRunEventStore",
    "InMemoryRunStore",
    # Registry
    "AgentRegistry",
]
