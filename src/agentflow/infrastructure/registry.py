"""
Agent Registry with Entry Points Discovery.

Maps agent ids to AgentHandler implementations. Built-in agents and
marketplace-installed agents are registered the same way; the Scheduler
only ever calls ``resolve``.

External packages can ship agents via entry points in their pyproject.toml:

    [project.entry-points."agentflow.agents"]
    translator = "mypackage.agents:TranslatorAgent"

The entry point may name an AgentHandler subclass (instantiated without
arguments) or a zero-argument factory returning a handler.
"""

from __future__ import annotations

import logging
import threading
import warnings
from collections.abc import Callable, Mapping
from importlib.metadata import entry_points
from types import MappingProxyType

from agentflow.domain.exceptions import AgentNotFoundError
from agentflow.domain.interfaces import AgentHandler, AgentResolverInterface
from agentflow.domain.models import AgentProfile

logger = logging.getLogger("agentflow.registry")

ENTRY_POINT_GROUP = "agentflow.agents"


class AgentRegistry(AgentResolverInterface):
    """
    Registry for AgentHandler implementations.

    Reads are lock-free: every registration replaces the whole mapping, so a
    run that resolved its agents keeps a consistent view, and a run started
    after a registration sees it. Entry points are loaded lazily on first
    lookup.

    Example usage:
        registry = AgentRegistry()
        registry.register("planner", PlannerAgent(), profile=PLANNER)
        handler = registry.resolve("planner")
    """

    def __init__(self, discover: bool = True):
        """
        Args:
            discover: Load agents from the ``agentflow.agents`` entry points
        """
        self._handlers: Mapping[str, AgentHandler] = MappingProxyType({})
        self._profiles: Mapping[str, AgentProfile] = MappingProxyType({})
        self._lock = threading.Lock()
        self._discover = discover
        self._loaded = not discover

    def _load_entry_points(self) -> None:
        """Load agents from entry points (lazy, called once)."""
        if self._loaded:
            return
        self._loaded = True

        for ep in entry_points(group=ENTRY_POINT_GROUP):
            if ep.name in self._handlers:
                continue
            try:
                target = ep.load()
                handler = _instantiate(target)
            except Exception as e:
                warnings.warn(
                    f"Failed to load agent '{ep.name}' from entry point: {e}",
                    stacklevel=2,
                )
                continue
            self.register(ep.name, handler)

    def register(
        self,
        agent_id: str,
        handler: AgentHandler,
        profile: AgentProfile | None = None,
        replace: bool = False,
    ) -> None:
        """
        Register a handler under ``agent_id``.

        Args:
            agent_id: Identifier used by Agent nodes
            handler: The capability object
            profile: Descriptive metadata (defaults to a bare profile)
            replace: Allow overwriting an existing registration

        Raises:
            ValueError: If ``agent_id`` is taken and ``replace`` is False
        """
        if not agent_id.strip():
            raise ValueError("agent_id must not be empty")
        if profile is not None and profile.agent_id != agent_id:
            raise ValueError(
                f"Profile '{profile.agent_id}' does not match agent id '{agent_id}'"
            )
        with self._lock:
            if agent_id in self._handlers and not replace:
                raise ValueError(f"Agent '{agent_id}' is already registered")
            handlers = dict(self._handlers)
            profiles = dict(self._profiles)
            handlers[agent_id] = handler
            profiles[agent_id] = profile or AgentProfile(
                agent_id=agent_id, name=agent_id, description=""
            )
            self._handlers = MappingProxyType(handlers)
            self._profiles = MappingProxyType(profiles)
        logger.debug("Registered agent '%s'", agent_id)

    def install(self, profile: AgentProfile, handler: AgentHandler) -> None:
        """Install a marketplace agent described by ``profile``."""
        if profile.core:
            raise ValueError(f"'{profile.agent_id}' is a core agent, not installable")
        self.register(profile.agent_id, handler, profile=profile)
        logger.info("Installed agent '%s' (%s)", profile.agent_id, profile.name)

    def uninstall(self, agent_id: str) -> None:
        """
        Remove a marketplace agent. Runs already holding the handler finish.

        Raises:
            AgentNotFoundError: If nothing is registered under ``agent_id``
            ValueError: If the agent is a core agent
        """
        with self._lock:
            if agent_id not in self._handlers:
                raise AgentNotFoundError(agent_id, list(self._handlers))
            if self._profiles[agent_id].core:
                raise ValueError(f"Core agent '{agent_id}' cannot be uninstalled")
            handlers = dict(self._handlers)
            profiles = dict(self._profiles)
            del handlers[agent_id]
            del profiles[agent_id]
            self._handlers = MappingProxyType(handlers)
            self._profiles = MappingProxyType(profiles)
        logger.info("Uninstalled agent '%s'", agent_id)

    def resolve(self, agent_id: str) -> AgentHandler:
        """
        Raises:
            AgentNotFoundError: If agent not found
        """
        self._load_entry_points()
        handlers = self._handlers
        if agent_id not in handlers:
            raise AgentNotFoundError(agent_id, list(handlers))
        return handlers[agent_id]

    def profile(self, agent_id: str) -> AgentProfile:
        self._load_entry_points()
        profiles = self._profiles
        if agent_id not in profiles:
            raise AgentNotFoundError(agent_id, list(profiles))
        return profiles[agent_id]

    def available(self) -> list[str]:
        """List registered agent ids."""
        self._load_entry_points()
        return list(self._handlers)

    def profiles(self) -> list[AgentProfile]:
        self._load_entry_points()
        return list(self._profiles.values())

    def __contains__(self, agent_id: object) -> bool:
        self._load_entry_points()
        return agent_id in self._handlers

    def clear(self) -> None:
        """
        Remove every registration (useful for testing).

        Also resets the loaded flag so entry points can be reloaded.
        """
        with self._lock:
            self._handlers = MappingProxyType({})
            self._profiles = MappingProxyType({})
            self._loaded = not self._discover


def _instantiate(
    target: type[AgentHandler] | Callable[[], AgentHandler],
) -> AgentHandler:
    handler = target()
    if not isinstance(handler, AgentHandler):
        raise TypeError(f"{target!r} did not produce an AgentHandler")
    return handler
