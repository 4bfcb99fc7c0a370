"""Human-in-the-loop helpers."""

from agentflow.interactive.console import ConsoleDecisionPrompt

__all__ = ["ConsoleDecisionPrompt"]
