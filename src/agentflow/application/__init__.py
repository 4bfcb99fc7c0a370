"""
Application layer for the workflow orchestration engine.

Contains the run state machine and the services it coordinates.
"""

from agentflow.application.cancellation import CancelToken
from agentflow.application.decision_gate import DecisionGate
from agentflow.application.event_emitter import RunEventEmitter, RunListener
from agentflow.application.ledger import RunLedger
from agentflow.application.retry import RetryCoordinator
from agentflow.application.scheduler import Scheduler

__all__ = [
    "CancelToken",
    "DecisionGate",
    "RetryCoordinator",
    "RunEventEmitter",
    "RunLedger",
    "RunListener",
    "Scheduler",
]
