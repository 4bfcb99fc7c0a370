"""
Mock agent for testing and demos without a model endpoint.

Returns predefined outcomes in sequence.
"""

from __future__ import annotations

import asyncio

from agentflow.domain.extraction import extract_files
from agentflow.domain.interfaces import AgentHandler
from agentflow.domain.models import AgentConfig, AgentContext, AgentResult

Outcome = str | AgentResult | Exception


class MockAgent(AgentHandler):
    """Returns predefined outcomes for testing.

    A string becomes an AgentResult (files extracted from its code blocks),
    an AgentResult is returned as is, an exception is raised.
    """

    def __init__(
        self,
        responses: list[Outcome],
        delay: float = 0.0,
        stream_chunk: int = 0,
        repeat_last: bool = False,
    ):
        """
        Args:
            responses: Outcomes to produce in sequence
            delay: Seconds to sleep before each outcome
            stream_chunk: When > 0 and streaming is on, emit the content in
                fragments of this many characters
            repeat_last: Keep returning the last outcome once exhausted
        """
        self._responses = responses
        self._delay = delay
        self._stream_chunk = stream_chunk
        self._repeat_last = repeat_last
        self._call_count = 0
        self.contexts: list[AgentContext] = []

    async def invoke(self, context: AgentContext, config: AgentConfig) -> AgentResult:
        """Return the next predefined outcome."""
        if self._call_count >= len(self._responses):
            if not (self._repeat_last and self._responses):
                raise RuntimeError("MockAgent exhausted responses")
            outcome = self._responses[-1]
        else:
            outcome = self._responses[self._call_count]
        self._call_count += 1
        self.contexts.append(context)

        if self._delay:
            await asyncio.sleep(self._delay)
        if isinstance(outcome, Exception):
            raise outcome
        result = (
            outcome
            if isinstance(outcome, AgentResult)
            else AgentResult(content=outcome, files=extract_files(outcome))
        )
        if config.streaming and self._stream_chunk > 0:
            content = result.content
            for start in range(0, len(content), self._stream_chunk):
                context.emit_fragment(content[start : start + self._stream_chunk])
                await asyncio.sleep(0)
        return result

    @property
    def call_count(self) -> int:
        """Number of times invoke() has been called."""
        return self._call_count

    def reset(self) -> None:
        """Reset the call counter to reuse responses."""
        self._call_count = 0
        self.contexts.clear()
