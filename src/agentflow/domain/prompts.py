"""
Prompt structures for agent invocation.

This module provides:
- PromptTemplate: renders an AgentContext into the user prompt
- CorrectionTemplate: the corrective instruction appended on each retry

These are domain structures only. Agent-specific wording (system prompts)
belongs to the agent profiles in infrastructure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agentflow.domain.models import AgentContext

MAX_ARTIFACT_CHARS = 4000


@dataclass(frozen=True)
class CorrectionTemplate:
    """Corrective instruction added to the context after a failed attempt."""

    text: str = (
        "The previous attempt (#{attempt}) failed: {reason}\n"
        "Instruction: Fix the problem above and answer again."
    )

    def render(self, reason: str, attempt: int) -> str:
        return self.text.format(reason=reason, attempt=attempt)


@dataclass(frozen=True)
class PromptTemplate:
    """Structured user prompt for an agent."""

    task: str = "Complete your part of the work described in the specification."
    constraints: str = ""
    correction_wrapper: str = "CORRECTION REQUIRED:\n{correction}"

    def render(self, context: AgentContext) -> str:
        """Render prompt with context."""
        parts = [f"# SPECIFICATION\n{context.specification}"]

        if self.constraints:
            parts.append(f"# CONSTRAINTS\n{self.constraints}")

        if context.messages:
            parts.append("# PRIOR WORK")
            for message in context.messages:
                header = f"--- {message.agent_id} ({message.node_id}) ---"
                parts.append(f"{header}\n{message.content}")

        if context.artifacts:
            latest = {a.path: a for a in context.artifacts}
            parts.append("# FILES")
            for path, artifact in latest.items():
                content = artifact.content
                if len(content) > MAX_ARTIFACT_CHARS:
                    content = content[:MAX_ARTIFACT_CHARS] + "\n... (truncated)"
                fence = artifact.language or ""
                parts.append(f"## {path}\n```{fence}\n{content}\n```")

        if context.corrections:
            parts.append("# HISTORY (Previous Attempts)")
            for correction in context.corrections:
                parts.append(self.correction_wrapper.format(correction=correction))

        parts.append(f"# TASK\n{self.task}")
        return "\n\n".join(parts)
