"""Agent contract and the specialist agents."""

import pytest

from mcpbridge.agent.base_agent import BaseAgent
from mcpbridge.agent.orchestrator import ChatOrchestrator
from mcpbridge.agent.specialists import (
    CalculatorAgent,
    GeneralAgent,
    WeatherAgent,
    analyze_weather_request,
)
from mcpbridge.core.schema import AgentDescriptor

from conftest import (
    FakeCatalogClient,
    FakeLLM,
)

WEATHER_CALL = '{"tool": "weather_info", "args": {"location": "Paris"}}'


@pytest.mark.asyncio
async def test_process_request_records_both_turns(
    orchestrator: ChatOrchestrator, fake_llm: FakeLLM
) -> None:
    agent = WeatherAgent(orchestrator)
    fake_llm.replies = [WEATHER_CALL, "Mild and cloudy."]
    result = await agent.process_request("What's the weather in Paris?", "trip")

    assert result.response == "Mild and cloudy."
    assert result.tools_used == ["weather_info"]
    history = agent.get_history("trip")
    assert [(m.role, m.content) for m in history] == [
        ("user", "What's the weather in Paris?"),
        ("assistant", "Mild and cloudy."),
    ]
    assert history[-1].tools_used == ["weather_info"]
    assert len(result.context.messages) == 2


@pytest.mark.asyncio
async def test_prior_turns_reach_the_prompt(
    orchestrator: ChatOrchestrator, fake_llm: FakeLLM
) -> None:
    agent = GeneralAgent(orchestrator)
    fake_llm.replies = ["Nice to meet you, Ada.", "Your name is Ada."]
    await agent.process_request("My name is Ada", "c")
    await agent.process_request("What is my name?", "c")

    second = fake_llm.prompts[1]
    assert "USER: My name is Ada" in second
    assert "ASSISTANT: Nice to meet you, Ada." in second
    assert "Current Request: What is my name?" in second
    assert "USER: What is my name?" not in second


@pytest.mark.asyncio
async def test_agent_sees_only_allowed_tools(
    orchestrator: ChatOrchestrator, fake_llm: FakeLLM, catalog: FakeCatalogClient
) -> None:
    """A calculator agent cannot be talked into the weather tool."""
    agent = CalculatorAgent(orchestrator)
    fake_llm.replies = [WEATHER_CALL]
    result = await agent.process_request("2+2", "c")
    assert result.tools_used == []
    assert catalog.session.calls == []
    assert "weather_info" not in fake_llm.prompts[0]
    assert "You are a Calculator Agent" in fake_llm.prompts[0]


@pytest.mark.asyncio
async def test_agents_keep_separate_histories(orchestrator: ChatOrchestrator) -> None:
    weather = WeatherAgent(orchestrator)
    calculator = CalculatorAgent(orchestrator)
    await weather.process_request("rain?", "shared")
    assert calculator.get_history("shared") == []
    assert len(weather.get_history("shared")) == 2


@pytest.mark.asyncio
async def test_weather_hints_are_not_stored(
    orchestrator: ChatOrchestrator, fake_llm: FakeLLM
) -> None:
    agent = WeatherAgent(orchestrator)
    await agent.process_request("What's the forecast for Oslo?", "c")
    assert "(Detected weather parameters: location=Oslo, units=metric, forecast=true)" in (
        fake_llm.prompts[0]
    )
    assert agent.get_history("c")[0].content == "What's the forecast for Oslo?"


@pytest.mark.asyncio
async def test_get_weather_calls_tool_directly(
    orchestrator: ChatOrchestrator, fake_llm: FakeLLM
) -> None:
    agent = WeatherAgent(orchestrator)
    output = await agent.get_weather("Lima", units="metric")
    assert output == "Weather for Lima: 22°C, partly cloudy"
    assert fake_llm.prompts == []
    history = agent.get_history("direct")
    assert history[0].content == "Get weather for Lima"
    assert history[1].tools_used == ["weather_info"]


@pytest.mark.asyncio
async def test_travel_advice(orchestrator: ChatOrchestrator, fake_llm: FakeLLM) -> None:
    """Travel advice is a canned weather-and-packing request in its own conversation."""
    agent = WeatherAgent(orchestrator)
    fake_llm.replies = ["Pack an umbrella."]
    result = await agent.travel_advice("Lisbon")

    assert result.response == "Pack an umbrella."
    assert result.context.conversation_id == "travel"
    assert (
        "Current Request: What's the weather like in Lisbon and what should I pack for travel?"
        in fake_llm.prompts[0]
    )
    history = agent.get_history("travel")
    assert [m.role for m in history] == ["user", "assistant"]
    assert history[1].content == "Pack an umbrella."
    assert agent.get_history("default") == []


@pytest.mark.asyncio
async def test_get_weather_respects_allow_list(orchestrator: ChatOrchestrator) -> None:
    descriptor = WeatherAgent.DESCRIPTOR.model_copy(
        update={"allowed_tools": frozenset({"get_datetime"})}
    )
    agent = WeatherAgent(orchestrator, descriptor=descriptor)
    with pytest.raises(PermissionError):
        await agent.get_weather("Lima")


@pytest.mark.asyncio
async def test_clear_context(orchestrator: ChatOrchestrator) -> None:
    agent = GeneralAgent(orchestrator)
    await agent.process_request("hello", "c")
    assert agent.clear_context("c") is True
    assert agent.get_history("c") == []
    assert agent.clear_context("c") is False


def test_get_info(orchestrator: ChatOrchestrator) -> None:
    assert WeatherAgent(orchestrator).get_info() == {
        "name": "weather",
        "description": WeatherAgent.DESCRIPTOR.description,
        "tools": ["get_datetime", "weather_info"],
    }
    assert GeneralAgent(orchestrator).get_info()["tools"] == ["all"]


def test_custom_agent_from_descriptor(orchestrator: ChatOrchestrator) -> None:
    descriptor = AgentDescriptor(
        name="clock",
        description="Tells the time",
        system_prompt="You tell the time.",
        allowed_tools=frozenset({"get_datetime"}),
    )
    agent = BaseAgent(orchestrator, descriptor=descriptor)
    assert agent.name == "clock"
    assert agent.is_tool_allowed("get_datetime")
    assert not agent.is_tool_allowed("calculator")


@pytest.mark.parametrize(
    ("message", "location", "units", "forecast"),
    [
        ("What's the weather in New York?", "New York", "imperial", False),
        ("What's the forecast for Oslo?", "Oslo", "metric", True),
        ("What's the temperature in Chicago in celsius?", None, "metric", False),
    ],
)
def test_analyze_weather_request(message: str, location, units: str, forecast: bool) -> None:
    request = analyze_weather_request(message)
    assert request.needs_weather_data
    if location:
        assert request.location == location
    assert request.units == units
    assert request.forecast is forecast


def test_analyze_non_weather_request() -> None:
    request = analyze_weather_request("Tell me a joke")
    assert not request.needs_weather_data
    assert request.location is None
