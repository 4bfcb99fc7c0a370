"""
OpenAI-compatible chat agent.

Works with the OpenAI API and any server exposing the same chat
completions endpoint (Ollama, vLLM, LM Studio) via ``base_url``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import openai
from openai import AsyncOpenAI

from agentflow.domain.exceptions import AgentError, PermanentError, TransientError
from agentflow.domain.extraction import extract_files
from agentflow.domain.interfaces import AgentHandler
from agentflow.domain.models import (
    AgentConfig,
    AgentContext,
    AgentProfile,
    AgentResult,
)
from agentflow.domain.prompts import PromptTemplate
from agentflow.infrastructure.registry import AgentRegistry

logger = logging.getLogger("agentflow.agents.openai")


@dataclass
class OpenAIAgentConfig:
    """Configuration for OpenAIAgent.

    This typed config ensures unknown fields are rejected at construction time.
    """

    model: str | None = None  # Overrides the node's model when set
    base_url: str | None = None
    api_key: str | None = None  # Falls back to OPENAI_API_KEY
    timeout: float = 120.0
    max_retries: int = 0  # Client-level retries; the engine retries itself


def _classify(error: openai.OpenAIError) -> AgentError:
    """Map a client error onto the engine's transient/permanent split."""
    if isinstance(error, openai.APITimeoutError):
        return TransientError("request timed out")
    if isinstance(error, openai.APIConnectionError):
        return TransientError(f"connection error: {error}")
    if isinstance(error, openai.RateLimitError):
        return TransientError("rate limited by the model provider")
    if isinstance(error, openai.InternalServerError):
        return TransientError(f"provider error {error.status_code}")
    if isinstance(error, openai.AuthenticationError):
        return PermanentError("authentication failed: check the API key")
    if isinstance(error, openai.PermissionDeniedError):
        return PermanentError("permission denied for this model")
    if isinstance(error, openai.NotFoundError):
        return PermanentError(f"model or endpoint not found: {error}")
    if isinstance(error, openai.BadRequestError):
        return PermanentError(f"request rejected: {error}")
    if isinstance(error, openai.APIStatusError):
        if error.status_code >= 500:
            return TransientError(f"provider error {error.status_code}")
        return PermanentError(f"provider error {error.status_code}: {error}")
    return PermanentError(f"{type(error).__name__}: {error}")


class OpenAIAgent(AgentHandler):
    """Agent backed by a chat completions endpoint."""

    config_class = OpenAIAgentConfig

    def __init__(
        self,
        profile: AgentProfile,
        config: OpenAIAgentConfig | None = None,
        client: AsyncOpenAI | None = None,
        template: PromptTemplate | None = None,
    ):
        """
        Args:
            profile: Supplies the default system prompt and output contract
            config: Connection settings
            client: Pre-built client (shared between agents, or a test double)
            template: Renders the run context into the user message
        """
        self._profile = profile
        self._config = config or OpenAIAgentConfig()
        self._template = template or PromptTemplate()
        if client is None:
            api_key = self._config.api_key or os.environ.get("OPENAI_API_KEY")
            if not api_key and self._config.base_url is None:
                raise ValueError(
                    "No API key: set OPENAI_API_KEY or pass OpenAIAgentConfig.api_key"
                )
            client = AsyncOpenAI(
                api_key=api_key or "unused",
                base_url=self._config.base_url,
                timeout=self._config.timeout,
                max_retries=self._config.max_retries,
            )
        self._client = client

    @property
    def profile(self) -> AgentProfile:
        return self._profile

    @property
    def client(self) -> AsyncOpenAI:
        return self._client

    def build_messages(
        self, context: AgentContext, config: AgentConfig
    ) -> list[dict[str, str]]:
        system_prompt = config.system_prompt or self._profile.system_prompt
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": self._template.render(context)})
        return messages

    async def invoke(self, context: AgentContext, config: AgentConfig) -> AgentResult:
        model = self._config.model or config.model
        messages = self.build_messages(context, config)
        logger.debug(
            "Calling %s for agent '%s' (attempt %d)",
            model,
            context.agent_id,
            context.attempt,
        )
        try:
            if config.streaming:
                content = await self._stream(model, messages, config, context)
                usage: Any = None
            else:
                response = await self._client.chat.completions.create(
                    model=model,
                    messages=messages,  # type: ignore[arg-type]
                    temperature=config.temperature,
                    max_tokens=config.max_tokens,
                )
                content = response.choices[0].message.content or ""
                usage = response.usage
        except openai.OpenAIError as e:
            raise _classify(e) from e

        if not content.strip():
            raise TransientError("model returned an empty response")

        files = extract_files(content)
        if self._profile.requires_files and not files:
            raise TransientError(
                "output contained no files; put each file in a fenced code block "
                "whose info string is the language followed by the file path"
            )

        metadata: tuple[tuple[str, Any], ...] = (("model", model),)
        if usage is not None:
            metadata += (("total_tokens", getattr(usage, "total_tokens", None)),)
        return AgentResult(content=content, files=files, metadata=metadata)

    async def _stream(
        self,
        model: str,
        messages: list[dict[str, str]],
        config: AgentConfig,
        context: AgentContext,
    ) -> str:
        stream = await self._client.chat.completions.create(
            model=model,
            messages=messages,  # type: ignore[arg-type]
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            stream=True,
        )
        parts: list[str] = []
        async for chunk in stream:
            if not chunk.choices:
                continue
            fragment = chunk.choices[0].delta.content
            if fragment:
                parts.append(fragment)
                context.emit_fragment(fragment)
        return "".join(parts)


def register_openai_agents(
    registry: AgentRegistry,
    profiles: Iterable[AgentProfile],
    config: OpenAIAgentConfig | None = None,
    client: AsyncOpenAI | None = None,
) -> AgentRegistry:
    """Register one OpenAIAgent per profile, sharing a single client."""
    config = config or OpenAIAgentConfig()
    shared = client
    for profile in profiles:
        agent = OpenAIAgent(profile, config=config, client=shared)
        shared = agent.client
        if profile.core:
            registry.register(profile.agent_id, agent, profile=profile, replace=True)
        else:
            registry.install(profile, agent)
    return registry
