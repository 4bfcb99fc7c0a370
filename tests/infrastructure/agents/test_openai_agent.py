"""Tests for OpenAIAgent against a fake chat completions client."""

from types import SimpleNamespace

import httpx
import openai
import pytest

from agentflow.domain.exceptions import PermanentError, TransientError
from agentflow.domain.models import AgentConfig, AgentContext
from agentflow.infrastructure.agents.openai_agent import (
    OpenAIAgent,
    OpenAIAgentConfig,
    _classify,
    register_openai_agents,
)
from agentflow.infrastructure.agents.profiles import (
    BUILTIN_PROFILES,
    CODER,
    MARKETPLACE_PROFILES,
    PLANNER,
    find_profile,
)
from agentflow.infrastructure.registry import AgentRegistry

REQUEST = httpx.Request("POST", "https://api.test/v1/chat/completions")


def _status_error(cls, status: int):
    return cls(
        f"HTTP {status}",
        response=httpx.Response(status, request=REQUEST),
        body=None,
    )


def _response(content: str):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=42),
    )


class _Stream:
    def __init__(self, fragments: list[str]):
        self._chunks = [
            SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=f))])
            for f in fragments
        ]

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self._chunks:
            yield chunk


class _FakeCompletions:
    def __init__(self, *outcomes):
        self._outcomes = list(outcomes)
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(*outcomes):
    completions = _FakeCompletions(*outcomes)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


@pytest.fixture
def context() -> AgentContext:
    return AgentContext(
        run_id="r1", node_id="plan", agent_id="planner", specification="A todo app"
    )


class TestInvoke:
    """Tests for OpenAIAgent.invoke()."""

    async def test_sends_system_prompt_and_rendered_context(self, context) -> None:
        client, completions = _client(_response("1. Do it"))
        agent = OpenAIAgent(PLANNER, client=client)

        result = await agent.invoke(context, AgentConfig(model="gpt-4o-mini"))

        call = completions.calls[0]
        assert call["model"] == "gpt-4o-mini"
        assert call["messages"][0] == {
            "role": "system",
            "content": PLANNER.system_prompt,
        }
        assert "A todo app" in call["messages"][1]["content"]
        assert result.content == "1. Do it"
        assert dict(result.metadata) == {"model": "gpt-4o-mini", "total_tokens": 42}

    async def test_node_system_prompt_overrides_profile(self, context) -> None:
        client, completions = _client(_response("ok"))
        agent = OpenAIAgent(PLANNER, client=client)

        await agent.invoke(context, AgentConfig(system_prompt="Be brief"))

        assert completions.calls[0]["messages"][0]["content"] == "Be brief"

    async def test_configured_model_wins(self, context) -> None:
        client, completions = _client(_response("ok"))
        agent = OpenAIAgent(
            PLANNER, config=OpenAIAgentConfig(model="llama3"), client=client
        )

        await agent.invoke(context, AgentConfig(model="gpt-4o"))

        assert completions.calls[0]["model"] == "llama3"

    async def test_extracts_files(self, context) -> None:
        client, _ = _client(_response("```python app.py\nprint(1)\n```"))
        agent = OpenAIAgent(CODER, client=client)

        result = await agent.invoke(context, AgentConfig())

        assert [f.path for f in result.files] == ["app.py"]

    async def test_missing_files_is_transient(self, context) -> None:
        client, _ = _client(_response("I would write some code here."))
        agent = OpenAIAgent(CODER, client=client)

        with pytest.raises(TransientError, match="no files"):
            await agent.invoke(context, AgentConfig())

    async def test_empty_response_is_transient(self, context) -> None:
        client, _ = _client(_response("   "))

        with pytest.raises(TransientError, match="empty"):
            await OpenAIAgent(PLANNER, client=client).invoke(context, AgentConfig())

    async def test_client_errors_are_classified(self, context) -> None:
        client, _ = _client(_status_error(openai.RateLimitError, 429))

        with pytest.raises(TransientError, match="rate limited"):
            await OpenAIAgent(PLANNER, client=client).invoke(context, AgentConfig())

    async def test_streaming_emits_fragments(self) -> None:
        fragments: list[str] = []
        context = AgentContext(
            run_id="r1",
            node_id="plan",
            agent_id="planner",
            specification="spec",
            on_fragment=fragments.append,
        )
        client, completions = _client(_Stream(["1. ", "Plan", ""]))
        agent = OpenAIAgent(PLANNER, client=client)

        result = await agent.invoke(context, AgentConfig(streaming=True))

        assert completions.calls[0]["stream"] is True
        assert fragments == ["1. ", "Plan"]
        assert result.content == "1. Plan"
        assert dict(result.metadata) == {"model": "gpt-4o"}


class TestClassify:
    """Tests for mapping client errors to transient/permanent."""

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (openai.APITimeoutError(request=REQUEST), TransientError),
            (openai.APIConnectionError(request=REQUEST), TransientError),
            (_status_error(openai.RateLimitError, 429), TransientError),
            (_status_error(openai.InternalServerError, 503), TransientError),
            (_status_error(openai.AuthenticationError, 401), PermanentError),
            (_status_error(openai.PermissionDeniedError, 403), PermanentError),
            (_status_error(openai.NotFoundError, 404), PermanentError),
            (_status_error(openai.BadRequestError, 400), PermanentError),
            (_status_error(openai.APIStatusError, 502), TransientError),
            (_status_error(openai.APIStatusError, 418), PermanentError),
        ],
    )
    def test_classification(self, error, expected) -> None:
        assert type(_classify(error)) is expected


class TestConstruction:
    """Tests for client construction and bulk registration."""

    def test_requires_api_key_without_base_url(self, monkeypatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            OpenAIAgent(PLANNER)

    def test_local_endpoint_needs_no_key(self, monkeypatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        agent = OpenAIAgent(
            PLANNER, config=OpenAIAgentConfig(base_url="http://localhost:11434/v1")
        )

        assert str(agent.client.base_url).startswith("http://localhost:11434")

    def test_register_openai_agents_shares_client(self) -> None:
        client, _ = _client()
        registry = AgentRegistry(discover=False)
        marketplace = MARKETPLACE_PROFILES[0]

        register_openai_agents(
            registry, BUILTIN_PROFILES + (marketplace,), client=client
        )

        assert set(registry.available()) == {
            p.agent_id for p in BUILTIN_PROFILES + (marketplace,)
        }
        assert registry.resolve("planner").client is client
        assert registry.profile(marketplace.agent_id).core is False

    def test_find_profile(self) -> None:
        assert find_profile("coder") is CODER
        with pytest.raises(KeyError):
            find_profile("ghost")
