"""
Tools published by the bundled provider.

``get_datetime``, ``calculator`` and ``weather_info`` run locally (weather is mock data);
``service_health``, ``query_custom_service`` and ``execute_query`` forward to the HTTP service at
``SERVICE_BASE_URL``.  Every tool returns text; failures are reported as text too, except where
the caller needs to know the call did not happen (bad arguments raise ``ValueError``).
"""

import ast
import json
import logging
import math
import operator
import os
from datetime import datetime
from datetime import timezone as dt_timezone
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Literal,
    Optional,
)
from zoneinfo import (
    ZoneInfo,
    ZoneInfoNotFoundError,
)

import httpx

from mcpbridge.tools import register_tool

logger = logging.getLogger(__name__)

_HTTP_TIMEOUT = 10.0


def _service_url(path: str) -> str:
    base = os.getenv("SERVICE_BASE_URL", "http://localhost:3000").rstrip("/")
    return f"{base}{path}"


# ---------------------------------------------------------------------------
# Date / time
# ---------------------------------------------------------------------------
@register_tool("get_datetime")
def get_datetime(
    format: Literal["iso", "local", "utc", "timestamp"] = "iso",  # pylint: disable=redefined-builtin
    timezone: Optional[str] = None,  # pylint: disable=redefined-outer-name
) -> str:
    """Get the current date and time in various formats (iso, local, utc, timestamp)."""
    now = datetime.now(dt_timezone.utc)
    if timezone:
        try:
            now = now.astimezone(ZoneInfo(timezone))
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"Unknown timezone '{timezone}'") from exc

    if format == "local":
        result = now.strftime("%m/%d/%Y, %I:%M:%S %p")
    elif format == "utc":
        result = now.astimezone(dt_timezone.utc).strftime("%a, %d %b %Y %H:%M:%S GMT")
    elif format == "timestamp":
        result = str(int(now.timestamp() * 1000))
    else:
        result = now.isoformat()

    if timezone:
        return f"Current date and time ({timezone}): {result}"
    return f"Current date and time: {result}"


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------
_BIN_OPS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS: Dict[type, Callable[[Any], Any]] = {ast.UAdd: operator.pos, ast.USub: operator.neg}


def _eval_node(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        if isinstance(node.op, ast.Pow):
            exponent = _eval_node(node.right)
            if abs(exponent) > 100:
                raise ValueError("Exponent too large")
            return _BIN_OPS[ast.Pow](_eval_node(node.left), exponent)
        return _BIN_OPS[type(node.op)](_eval_node(node.left), _eval_node(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    raise ValueError("Only numbers, + - * / % ** and parentheses are allowed.")


def evaluate_expression(expression: str) -> float:
    """Safely evaluate an arithmetic expression."""
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as exc:
        raise ValueError(f"Invalid expression: {expression!r}") from exc
    return _eval_node(tree)


def _fibonacci(n: int) -> int:
    a, b = 0, 1
    for _ in range(n):
        a, b = b, a + b
    return a


def _is_prime(n: int) -> bool:
    if n < 2:
        return False
    if n % 2 == 0:
        return n == 2
    return all(n % i for i in range(3, math.isqrt(n) + 1, 2))


@register_tool("calculator")
def calculator(
    expression: str = "",
    operation: Literal["evaluate", "factorial", "fibonacci", "prime_check"] = "evaluate",
    number: Optional[int] = None,
) -> str:
    """Perform mathematical calculations: evaluate an expression, factorial, fibonacci, prime_check."""
    try:
        if operation == "evaluate":
            result: Any = evaluate_expression(expression)
            if isinstance(result, float) and result.is_integer():
                result = int(result)
            subject = f"Expression: {expression}"
        else:
            if number is None or number < 0:
                raise ValueError(f"{operation} requires a non-negative integer")
            if operation == "factorial":
                if number > 1000:
                    raise ValueError("factorial is limited to numbers up to 1000")
                result = math.factorial(number)
            elif operation == "fibonacci":
                result = _fibonacci(number)
            else:
                result = _is_prime(number)
            subject = f"Number: {number}"
    except (ValueError, ZeroDivisionError, OverflowError) as exc:
        return f"Calculation Error: {exc}"

    return f"Calculation Result:\nOperation: {operation}\n{subject}\nResult: {result}"


# ---------------------------------------------------------------------------
# Weather (mock data)
# ---------------------------------------------------------------------------
_TEMPERATURE = {"metric": (22, "°C"), "imperial": (72, "°F"), "kelvin": (295, "K")}
_FORECAST = {
    "metric": [("Tomorrow", 25, 18, "Sunny"), ("Day after", 23, 16, "Rainy")],
    "imperial": [("Tomorrow", 77, 64, "Sunny"), ("Day after", 73, 61, "Rainy")],
    "kelvin": [("Tomorrow", 298, 291, "Sunny"), ("Day after", 296, 289, "Rainy")],
}


@register_tool("weather_info")
def weather_info(
    location: str,
    units: Literal["metric", "imperial", "kelvin"] = "metric",
    forecast: bool = False,
) -> str:
    """Get weather information for a location (mock data)."""
    if units not in _TEMPERATURE:
        raise ValueError(f"Unknown units '{units}'")
    temperature, temp_unit = _TEMPERATURE[units]
    wind, wind_unit = (15, "km/h") if units == "metric" else (9.3, "mph")

    lines: List[str] = [
        f"Weather for {location}:",
        "Current Conditions:",
        f"- Temperature: {temperature}{temp_unit}",
        "- Humidity: 65%",
        f"- Wind Speed: {wind} {wind_unit}",
        "- Conditions: Partly cloudy",
        "- Pressure: 1013.2 mb",
    ]
    if forecast:
        lines += ["", "Forecast:"]
        lines += [
            f"- {day}: High {high}{temp_unit}, Low {low}{temp_unit} - {condition}"
            for day, high, low, condition in _FORECAST[units]
        ]
    lines += ["", "(Note: This is mock data. Replace with real weather API integration)"]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Service tools
# ---------------------------------------------------------------------------
def _service_request(method: str, path: str, **kwargs: Any) -> Any:
    url = _service_url(path)
    with httpx.Client(timeout=_HTTP_TIMEOUT) as client:
        resp = client.request(method, url, **kwargs)
        resp.raise_for_status()
        return resp.json()


@register_tool("service_health")
def service_health() -> str:
    """Check the health and status of the custom service."""
    try:
        result = _service_request("GET", "/health")
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Service health check failed: %s", exc)
        return "Service is not responding or unreachable"
    return (
        "Service Health:\n"
        f"Status: {result.get('status')}\n"
        f"Uptime: {result.get('uptime')}s\n"
        f"Version: {result.get('version')}"
    )


@register_tool("query_custom_service")
def query_custom_service(
    endpoint: str,
    method: Literal["GET", "POST", "PUT", "DELETE"] = "GET",
    data: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> str:
    """Query the custom service API with parameters."""
    kwargs: Dict[str, Any] = {"headers": headers or {}}
    if data is not None and method in ("POST", "PUT"):
        kwargs["json"] = data
    try:
        result = _service_request(method, endpoint, **kwargs)
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Service request %s %s failed: %s", method, endpoint, exc)
        return f"Failed to connect to service at {_service_url(endpoint)}"

    text = (
        "Service Response:\n"
        f"Status: {result.get('status')}\n"
        f"Data: {json.dumps(result.get('data'), indent=2)}"
    )
    if result.get("message"):
        text += f"\nMessage: {result['message']}"
    return text


@register_tool("execute_query")
def execute_query(query: str, parameters: Optional[List[Any]] = None) -> str:
    """Execute a database query through the custom service."""
    try:
        result = _service_request(
            "POST", "/api/query", json={"query": query, "parameters": parameters or []}
        )
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Query failed: %s", exc)
        return "Failed to execute database query"
    return (
        "Query Results:\n"
        f"Query: {result.get('query', query)}\n"
        f"Row Count: {result.get('count')}\n"
        f"Data:\n{json.dumps(result.get('rows', []), indent=2)}"
    )
