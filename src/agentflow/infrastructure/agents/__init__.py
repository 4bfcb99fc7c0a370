"""Agent handler implementations."""

from agentflow.infrastructure.agents.mock import MockAgent
from agentflow.infrastructure.agents.openai_agent import (
    OpenAIAgent,
    OpenAIAgentConfig,
    register_openai_agents,
)
from agentflow.infrastructure.agents.profiles import (
    BUILTIN_PROFILES,
    MARKETPLACE_PROFILES,
    find_profile,
)

__all__ = [
    "BUILTIN_PROFILES",
    "MARKETPLACE_PROFILES",
    "MockAgent",
    "OpenAIAgent",
    "OpenAIAgentConfig",
    "find_profile",
    "register_openai_agents",
]
