"""
Persistence adapters for run state, handed-off output and run events.
"""

from agentflow.infrastructure.persistence.filesystem import (
    FilesystemPersistenceSink,
    FilesystemRunStore,
)
from agentflow.infrastructure.persistence.memory import (
    InMemoryPersistenceSink,
    InMemoryRunStore,
)
from agentflow.infrastructure.persistence.run_events import (
    FilesystemRunEventStore,
    InMemoryRunEventStore,
)

__all__ = [
    "FilesystemPersistenceSink",
    "FilesystemRunEventStore",
    "FilesystemRunStore",
    "InMemoryPersistenceSink",
    "InMemoryRunEventStore",
    "InMemoryRunStore",
]
