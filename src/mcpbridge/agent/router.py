"""
Keyword routing of user messages to agents.

The routing table is plain data: an ordered tuple of :class:`RouteRule`.  Rules are tried in
order and the first one whose keywords (or pattern) match wins, so overlapping keywords are
resolved by position in the table, never by counting hits.  New domains are added by adding a
rule.
"""

import logging
import re
from typing import (
    NamedTuple,
    Optional,
    Pattern,
    Sequence,
    Tuple,
)

from mcpbridge.core.schema import RouteDecision

logger = logging.getLogger(__name__)

FALLBACK_AGENT = "general"
FALLBACK_CONFIDENCE = 0.5
FALLBACK_REASON = "No specific agent patterns matched"
EXPLICIT_REASON = "explicit"


class RouteRule(NamedTuple):
    """One row of the routing table."""

    agent_name: str
    keywords: Tuple[str, ...]
    confidence: float
    reason: str
    pattern: Optional[Pattern[str]] = None

    def matches(self, folded: str, original: str) -> bool:
        if any(keyword in folded for keyword in self.keywords):
            return True
        return bool(self.pattern and self.pattern.search(original))


DEFAULT_ROUTES: Tuple[RouteRule, ...] = (
    RouteRule(
        "weather",
        (
            "weather", "temperature", "rain", "snow", "sunny", "cloudy", "forecast", "climate",
            "humidity", "wind", "storm", "cold", "hot", "celsius", "fahrenheit", "degrees",
        ),
        0.9,
        "Message contains weather-related keywords",
    ),
    RouteRule(
        "calculator",
        (
            "calculate", "math", "factorial", "fibonacci", "prime", "addition", "subtraction",
            "multiplication", "division", "+", "-", "*", "/", "equals", "sum", "product",
        ),
        0.85,
        "Message contains mathematical expressions or keywords",
        re.compile(r"\d+\s*[+\-*/]\s*\d+"),
    ),
    RouteRule(
        "database",
        ("query", "database", "select", "users", "table", "sql", "data", "records", "search", "find"),
        0.8,
        "Message contains database-related keywords",
    ),
    RouteRule(
        "api",
        ("api", "service", "endpoint", "call", "request", "health", "status", "server", "connection"),
        0.75,
        "Message contains API/service-related keywords",
    ),
)  # fmt: skip


class IntentRouter:
    """Stateless first-match-wins classifier over an ordered rule table."""

    def __init__(self, rules: Sequence[RouteRule] = DEFAULT_ROUTES):
        self.rules: Tuple[RouteRule, ...] = tuple(rules)

    def route(self, message: str) -> RouteDecision:
        """Return the decision of the first matching rule, or the generic fallback."""
        folded = message.lower()
        for rule in self.rules:
            if rule.matches(folded, message):
                logger.debug("Rule '%s' matched message %r", rule.agent_name, message)
                return RouteDecision(
                    agent_name=rule.agent_name, confidence=rule.confidence, reason=rule.reason
                )
        return RouteDecision(
            agent_name=FALLBACK_AGENT, confidence=FALLBACK_CONFIDENCE, reason=FALLBACK_REASON
        )

    @staticmethod
    def explicit(agent_name: str) -> RouteDecision:
        """Decision for a caller that named the agent itself."""
        return RouteDecision(agent_name=agent_name, confidence=1.0, reason=EXPLICIT_REASON)
