"""Tests for AgentRegistry - agent lookup with entry point discovery."""

from types import SimpleNamespace

import pytest

from agentflow.domain.exceptions import AgentNotFoundError
from agentflow.domain.models import AgentProfile
from agentflow.infrastructure.agents.mock import MockAgent
from agentflow.infrastructure.registry import AgentRegistry

TRANSLATOR = AgentProfile(
    agent_id="translator",
    name="Translator",
    description="Translates documentation",
    category="documentation",
)


def _entry_point(name: str, target):
    return SimpleNamespace(name=name, load=lambda: target)


class TestRegistration:
    """Tests for register/resolve."""

    def test_resolve_returns_registered_handler(self) -> None:
        registry = AgentRegistry(discover=False)
        agent = MockAgent(["ok"])

        registry.register("coder", agent)

        assert registry.resolve("coder") is agent
        assert "coder" in registry
        assert registry.available() == ["coder"]

    def test_unknown_agent_lists_available(self) -> None:
        registry = AgentRegistry(discover=False)
        registry.register("coder", MockAgent([]))

        with pytest.raises(AgentNotFoundError) as exc_info:
            registry.resolve("ghost")

        assert exc_info.value.agent_id == "ghost"
        assert exc_info.value.available == ["coder"]
        assert "Available agents: coder" in str(exc_info.value)

    def test_duplicate_registration_requires_replace(self) -> None:
        registry = AgentRegistry(discover=False)
        registry.register("coder", MockAgent([]))
        replacement = MockAgent([])

        with pytest.raises(ValueError, match="already registered"):
            registry.register("coder", MockAgent([]))

        registry.register("coder", replacement, replace=True)
        assert registry.resolve("coder") is replacement

    def test_empty_id_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            AgentRegistry(discover=False).register(" ", MockAgent([]))

    def test_profile_must_match_id(self) -> None:
        with pytest.raises(ValueError, match="does not match"):
            AgentRegistry(discover=False).register(
                "coder", MockAgent([]), profile=TRANSLATOR
            )

    def test_default_profile(self) -> None:
        registry = AgentRegistry(discover=False)
        registry.register("coder", MockAgent([]))

        profile = registry.profile("coder")

        assert profile.agent_id == "coder"
        assert profile.core is False

    def test_clear(self) -> None:
        registry = AgentRegistry(discover=False)
        registry.register("coder", MockAgent([]))

        registry.clear()

        assert registry.available() == []


class TestMarketplace:
    """Tests for install/uninstall."""

    def test_install_and_uninstall(self) -> None:
        registry = AgentRegistry(discover=False)

        registry.install(TRANSLATOR, MockAgent(["bonjour"]))
        assert registry.profile("translator").name == "Translator"

        registry.uninstall("translator")
        assert "translator" not in registry

    def test_core_agents_cannot_be_installed_or_removed(self) -> None:
        registry = AgentRegistry(discover=False)
        core = AgentProfile(
            agent_id="planner", name="Planner", description="", core=True
        )

        with pytest.raises(ValueError, match="core agent"):
            registry.install(core, MockAgent([]))

        registry.register("planner", MockAgent([]), profile=core)
        with pytest.raises(ValueError, match="cannot be uninstalled"):
            registry.uninstall("planner")

    def test_uninstall_unknown(self) -> None:
        with pytest.raises(AgentNotFoundError):
            AgentRegistry(discover=False).uninstall("ghost")

    def test_resolved_handler_survives_uninstall(self) -> None:
        """A run holding a handler keeps using it after uninstall."""
        registry = AgentRegistry(discover=False)
        agent = MockAgent(["ok"])
        registry.install(TRANSLATOR, agent)
        held = registry.resolve("translator")

        registry.uninstall("translator")

        assert held is agent


class TestEntryPointsLoading:
    """Tests for entry points discovery and loading."""

    def test_loads_handler_classes_and_factories(self, monkeypatch) -> None:
        class EchoAgent(MockAgent):
            def __init__(self) -> None:
                super().__init__(["echo"])

        points = [
            _entry_point("echo", EchoAgent),
            _entry_point("factory", lambda: MockAgent(["made"])),
        ]
        monkeypatch.setattr(
            "agentflow.infrastructure.registry.entry_points",
            lambda group: points,
        )
        registry = AgentRegistry()

        assert sorted(registry.available()) == ["echo", "factory"]
        assert isinstance(registry.resolve("echo"), EchoAgent)

    def test_lazy_and_idempotent(self, monkeypatch) -> None:
        calls: list[str] = []

        def fake_entry_points(group):
            calls.append(group)
            return [_entry_point("echo", lambda: MockAgent([]))]

        monkeypatch.setattr(
            "agentflow.infrastructure.registry.entry_points", fake_entry_points
        )
        registry = AgentRegistry()
        assert calls == []

        registry.available()
        registry.available()

        assert calls == ["agentflow.agents"]

    def test_broken_entry_point_warns(self, monkeypatch) -> None:
        def broken():
            raise ImportError("missing dependency")

        monkeypatch.setattr(
            "agentflow.infrastructure.registry.entry_points",
            lambda group: [SimpleNamespace(name="broken", load=broken)],
        )
        registry = AgentRegistry()

        with pytest.warns(UserWarning, match="Failed to load agent 'broken'"):
            assert registry.available() == []

    def test_non_handler_is_rejected(self, monkeypatch) -> None:
        monkeypatch.setattr(
            "agentflow.infrastructure.registry.entry_points",
            lambda group: [_entry_point("bogus", lambda: object())],
        )

        with pytest.warns(UserWarning, match="did not produce an AgentHandler"):
            assert "bogus" not in AgentRegistry()

    def test_explicit_registration_wins(self, monkeypatch) -> None:
        monkeypatch.setattr(
            "agentflow.infrastructure.registry.entry_points",
            lambda group: [_entry_point("coder", lambda: MockAgent(["ep"]))],
        )
        registry = AgentRegistry()
        mine = MockAgent(["mine"])
        registry.register("coder", mine)

        assert registry.resolve("coder") is mine
