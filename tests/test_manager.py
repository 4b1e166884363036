"""Routing, fallback and batch behaviour of the agent manager."""

import pytest

from mcpbridge.agent.llm_interface import LLMError
from mcpbridge.agent.manager import AgentManager
from mcpbridge.agent.specialists import GeneralAgent
from mcpbridge.core.schema import (
    AgentDescriptor,
    BatchItem,
)

from conftest import FakeLLM

WEATHER_CALL = '{"tool": "weather_info", "args": {"location": "Paris"}}'


def test_default_agents(manager: AgentManager) -> None:
    agents = manager.get_available_agents()
    assert set(agents) == {"weather", "calculator", "database", "api"}
    assert agents["calculator"]["tools"] == ["calculator"]


@pytest.mark.asyncio
async def test_auto_routing_to_specialist(manager: AgentManager, fake_llm: FakeLLM) -> None:
    fake_llm.replies = [WEATHER_CALL, "Sunny in Paris."]
    response = await manager.route_message("What's the weather in Paris?", "trip")
    assert response.agent_used == "weather"
    assert response.response == "Sunny in Paris."
    assert response.tools_used == ["weather_info"]
    assert response.routing.confidence == 0.9
    assert response.context.conversation_id == "trip"
    assert response.context.message_count == 2
    assert response.context.last_activity is not None


@pytest.mark.asyncio
async def test_explicit_agent_overrides_routing(manager: AgentManager) -> None:
    """A registered explicit agent is used regardless of message content."""
    response = await manager.route_message("hello", explicit_agent="weather")
    assert response.agent_used == "weather"
    assert response.routing.confidence == 1.0
    assert response.routing.reason == "explicit"


@pytest.mark.asyncio
async def test_unknown_explicit_agent_is_ignored(manager: AgentManager) -> None:
    response = await manager.route_message("hello", explicit_agent="astrology")
    assert response.agent_used == "general"
    assert response.routing.confidence == 0.5


@pytest.mark.asyncio
async def test_unmatched_message_goes_to_general(manager: AgentManager) -> None:
    response = await manager.route_message("Tell me a joke", "jokes")
    assert response.agent_used == "general"
    assert response.response == "OK"
    assert [m.content for m in manager.get_agent_history("general", "jokes")] == [
        "Tell me a joke",
        "OK",
    ]


@pytest.mark.asyncio
async def test_routing_to_unregistered_agent_names_fallback(manager: AgentManager) -> None:
    """A rule pointing at a removed agent yields a decision for the generic handler."""
    manager.unregister_agent("weather")
    response = await manager.route_message("What's the weather in Paris?", "c")
    assert response.agent_used == "general"
    assert response.routing.agent_name in set(manager.get_available_agents()) | {"general"}
    assert response.routing.agent_name == "general"
    assert response.routing.confidence == 0.5
    assert response.routing.reason.startswith("No registered agent 'weather':")


@pytest.mark.asyncio
async def test_specialist_failure_falls_back_to_general(
    manager: AgentManager, fake_llm: FakeLLM, model_down: LLMError
) -> None:
    fake_llm.replies = [model_down, "General answer."]
    response = await manager.route_message("What's the weather in Paris?", "c")
    assert response.agent_used == "general"
    assert response.response == "General answer."
    assert response.routing.agent_name == "general"
    assert response.routing.confidence == 0.5
    assert response.routing.reason.startswith("Fallback due to weather agent error:")
    assert "connection refused" in response.routing.reason


@pytest.mark.asyncio
async def test_general_failure_reports_error(
    manager: AgentManager, fake_llm: FakeLLM, model_down: LLMError
) -> None:
    """When the fallback handler fails too, the error is returned, not raised."""
    fake_llm.replies = [model_down, model_down]
    response = await manager.route_message("What's the weather in Paris?", "c")
    assert response.agent_used == "error"
    assert response.response.startswith("I encountered an error processing your request:")
    assert response.tools_used == []


@pytest.mark.asyncio
async def test_clear_agent_context(manager: AgentManager) -> None:
    assert manager.clear_agent_context("astrology", "c") is False

    await manager.route_message("hello", "c", explicit_agent="calculator")
    assert len(manager.get_agent_history("calculator", "c")) == 2
    assert manager.clear_agent_context("calculator", "c") is True
    assert manager.get_agent_history("calculator", "c") == []


@pytest.mark.asyncio
async def test_default_conversation_id(manager: AgentManager) -> None:
    response = await manager.route_message("Tell me a joke")
    assert response.context.conversation_id == "default"


@pytest.mark.asyncio
async def test_register_and_unregister_at_runtime(manager: AgentManager, orchestrator) -> None:
    echo = GeneralAgent(
        orchestrator,
        descriptor=AgentDescriptor(
            name="echo", description="Echoes", system_prompt="Repeat the user.", allowed_tools=frozenset()
        ),
    )
    manager.register_agent("echo", echo)
    response = await manager.route_message("anything", explicit_agent="echo")
    assert response.agent_used == "echo"
    assert manager.unregister_agent("echo") is True
    assert manager.unregister_agent("echo") is False
    assert manager.get_agent("echo") is None


@pytest.mark.asyncio
async def test_batch_preserves_order(manager: AgentManager, fake_llm: FakeLLM) -> None:
    fake_llm.replies = ["first", "second", "third"]
    results = await manager.process_batch(
        [
            BatchItem(message="Tell me a joke"),
            BatchItem(message="Is the server up?"),
            BatchItem(message="hello", agent="database"),
        ]
    )
    assert [r.response for r in results] == ["first", "second", "third"]
    assert [r.agent_used for r in results] == ["general", "api", "database"]
    assert [r.request for r in results] == ["Tell me a joke", "Is the server up?", "hello"]


@pytest.mark.asyncio
async def test_batch_isolates_failures(
    manager: AgentManager, monkeypatch: pytest.MonkeyPatch
) -> None:
    """An item that blows up yields an error entry and the rest still run."""
    route = manager.route_message

    async def flaky(message, conversation_id=None, explicit_agent=None, model=None):
        if message == "explode":
            raise RuntimeError("kaboom")
        return await route(message, conversation_id, explicit_agent, model)

    monkeypatch.setattr(manager, "route_message", flaky)
    results = await manager.process_batch(
        [BatchItem(message="hello"), BatchItem(message="explode"), BatchItem(message="bye")]
    )
    assert len(results) == 3
    assert results[1].agent_used == "error"
    assert results[1].routing.confidence == 0.0
    assert results[1].routing.reason == "Processing error"
    assert "kaboom" in results[1].response
    assert results[2].agent_used == "general"
