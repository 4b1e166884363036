"""Concrete agents: weather, calculator, database, api, and the generic fallback handler."""

import logging
import re
from typing import (
    List,
    Optional,
)

from pydantic import BaseModel

from mcpbridge.agent.base_agent import (
    BaseAgent,
    register_agent,
)
from mcpbridge.agent.orchestrator import DEFAULT_SYSTEM_PROMPT
from mcpbridge.core.schema import (
    ALL_TOOLS,
    AgentDescriptor,
    AgentResult,
    ConversationContext,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Weather
# ---------------------------------------------------------------------------
WEATHER_PROMPT = """\
You are a Weather Agent, specialized in providing accurate and helpful weather information.

Your capabilities include:
- Current weather conditions for any location
- Weather forecasts and predictions
- Travel weather advice and weather-related safety information

You have access to weather data through the weather_info tool. When users ask about weather:
1. Extract the location from their request
2. Determine if they want current conditions or forecast
3. Choose appropriate units (metric/imperial) based on location or user preference
4. Use the weather_info tool to get data
5. Provide clear, helpful responses with actionable information

If users don't specify a location, ask them to clarify. Be conversational and friendly while
remaining professional, and interpret the weather data into practical advice."""

_WEATHER_WORDS = ("weather", "temperature", "rain", "snow", "sunny", "cloudy", "forecast", "climate")
_LOCATION_PATTERNS = (
    re.compile(r"(?:weather|temperature|forecast).*?\b(?:in|for|at)\s+([a-zA-Z\s,]+?)\s*(?:\?|$|\.)", re.I),
    re.compile(r"\b(?:in|for|at)\s+([a-zA-Z\s,]+?)\s+.*?(?:weather|temperature|forecast)", re.I),
    re.compile(r"([a-zA-Z,]+(?:\s+[a-zA-Z,]+)?)\s+(?:weather|temperature|forecast)", re.I),
)
_US_LOCATIONS = ("usa", "america", "united states", "new york", "los angeles", "chicago", "miami", "texas")
_NOT_PLACES = {"the", "what", "what's", "whats", "is", "how", "a", "today", "tomorrow"}


class WeatherRequest(BaseModel):
    """Parameters recovered from a free-text weather question."""

    needs_weather_data: bool
    location: Optional[str] = None
    units: str = "metric"
    forecast: bool = False
    needs_time: bool = False


def analyze_weather_request(message: str) -> WeatherRequest:
    """Pull location, units, forecast and timing hints out of *message*."""
    lower = message.lower()
    if not any(word in lower for word in _WEATHER_WORDS):
        return WeatherRequest(needs_weather_data=False)

    location = None
    for pattern in _LOCATION_PATTERNS:
        match = pattern.search(message)
        if match:
            candidate = match.group(1).strip(" ,.?")
            if candidate and candidate.lower() not in _NOT_PLACES:
                location = candidate
                break

    if "fahrenheit" in lower or "°f" in lower or "imperial" in lower:
        units = "imperial"
    elif "kelvin" in lower:
        units = "kelvin"
    elif "celsius" in lower or "°c" in lower or "metric" in lower:
        units = "metric"
    elif location and any(us in location.lower() for us in _US_LOCATIONS):
        units = "imperial"
    else:
        units = "metric"

    forecast = any(word in lower for word in ("forecast", "tomorrow", "week", "days", "will"))
    needs_time = any(word in lower for word in ("now", "current", "today"))
    return WeatherRequest(
        needs_weather_data=True,
        location=location,
        units=units,
        forecast=forecast,
        needs_time=needs_time,
    )


@register_agent("weather")
class WeatherAgent(BaseAgent):
    """Weather conditions, forecasts and weather-related advice."""

    DESCRIPTOR = AgentDescriptor(
        name="weather",
        description="Specialized agent for weather information, forecasts, and weather-related advice",
        system_prompt=WEATHER_PROMPT,
        allowed_tools=frozenset({"weather_info", "get_datetime"}),
    )

    def prepare_request(self, message: str, context: ConversationContext) -> str:
        request = analyze_weather_request(message)
        if not request.needs_weather_data:
            return message
        hints: List[str] = [f"units={request.units}", f"forecast={str(request.forecast).lower()}"]
        if request.location:
            hints.insert(0, f"location={request.location}")
        if request.needs_time:
            hints.append("current time is relevant (get_datetime)")
        return f"{message}\n\n(Detected weather parameters: {', '.join(hints)})"

    async def get_weather(
        self,
        location: str,
        units: str = "metric",
        forecast: bool = False,
        conversation_id: str = "direct",
    ) -> str:
        """Fetch raw weather data without a model round and log it as an exchange."""
        if not self.is_tool_allowed("weather_info"):
            raise PermissionError("weather_info is not available to this agent")
        result = await self.orchestrator.call_tool(
            "weather_info", {"location": location, "units": units, "forecast": forecast}
        )
        self.record_exchange(conversation_id, f"Get weather for {location}", result, ["weather_info"])
        return result

    async def travel_advice(self, location: str, conversation_id: str = "travel") -> AgentResult:
        return await self.process_request(
            f"What's the weather like in {location} and what should I pack for travel?",
            conversation_id,
        )


# ---------------------------------------------------------------------------
# Calculator / database / api
# ---------------------------------------------------------------------------
@register_agent("calculator")
class CalculatorAgent(BaseAgent):
    """Arithmetic and number theory through the calculator tool."""

    DESCRIPTOR = AgentDescriptor(
        name="calculator",
        description="Mathematical calculations: expressions, factorials, Fibonacci numbers, primes",
        system_prompt=(
            "You are a Calculator Agent. Use the calculator tool for any arithmetic instead of "
            "computing it yourself. Pick the operation (evaluate, factorial, fibonacci, "
            "prime_check) that matches the request, then explain the result briefly."
        ),
        allowed_tools=frozenset({"calculator"}),
    )


@register_agent("database")
class DatabaseAgent(BaseAgent):
    """Read-only questions about the service database."""

    DESCRIPTOR = AgentDescriptor(
        name="database",
        description="Answers questions about stored records by running SQL through the service",
        system_prompt=(
            "You are a Database Agent. Translate the user's question into a single SQL query "
            "and run it with the execute_query tool. Prefer SELECT statements with a LIMIT, "
            "then summarise the rows in plain language."
        ),
        allowed_tools=frozenset({"execute_query"}),
    )


@register_agent("api")
class ApiAgent(BaseAgent):
    """Service health and raw API calls."""

    DESCRIPTOR = AgentDescriptor(
        name="api",
        description="Checks service health and calls service API endpoints",
        system_prompt=(
            "You are an API Agent responsible for the custom service. Use service_health for "
            "health or uptime questions and query_custom_service to call a specific endpoint. "
            "Report status codes and data clearly."
        ),
        allowed_tools=frozenset({"service_health", "query_custom_service", "get_datetime"}),
    )


# ---------------------------------------------------------------------------
# Generic fallback
# ---------------------------------------------------------------------------
class GeneralAgent(BaseAgent):
    """No persona restriction, every tool allowed.  Used when routing finds no specialist."""

    DESCRIPTOR = AgentDescriptor(
        name="general",
        description="General assistant with access to every tool",
        system_prompt=DEFAULT_SYSTEM_PROMPT,
        allowed_tools=ALL_TOOLS,
    )
