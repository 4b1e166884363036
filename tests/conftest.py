"""
Shared fakes for the test-suite.

``FakeLLM`` replays scripted completions; ``FakeCatalogClient`` is a real
:class:`ToolCatalogClient` whose transport is replaced by an in-process session, so the
connection lifecycle, catalog checks and error mapping are exercised without a subprocess.
"""

import asyncio
from types import SimpleNamespace
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Union,
)

import pytest

from mcpbridge.agent.llm_interface import (
    BaseChatModel,
    LLMError,
)
from mcpbridge.agent.manager import AgentManager
from mcpbridge.agent.orchestrator import ChatOrchestrator
from mcpbridge.tools.catalog_client import ToolCatalogClient

Reply = Union[str, Exception]


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------
class FakeLLM(BaseChatModel):
    """Returns scripted replies in order; an Exception in the script is raised instead."""

    default_model = "fake-model"

    def __init__(self, replies: Optional[List[Reply]] = None, fallback: str = "OK"):
        self.replies: List[Reply] = list(replies or [])
        self.fallback = fallback
        self.prompts: List[str] = []

    async def complete(
        self, prompt: str, model: str | None = None, system: str | None = None
    ) -> str:
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if self.replies else self.fallback
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def list_models(self) -> List[Dict[str, Any]]:
        return [{"name": self.default_model}]


# ---------------------------------------------------------------------------
# Tool provider
# ---------------------------------------------------------------------------
def text_result(text: str, is_error: bool = False) -> SimpleNamespace:
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)], isError=is_error)


def _weather(args: Dict[str, Any]) -> SimpleNamespace:
    return text_result(f"Weather for {args.get('location', '?')}: 22°C, partly cloudy")


def _calculator(args: Dict[str, Any]) -> SimpleNamespace:
    return text_result(f"Result: {args.get('expression')}")


def _broken(args: Dict[str, Any]) -> SimpleNamespace:
    return text_result("backend exploded", is_error=True)


def _raises(args: Dict[str, Any]) -> SimpleNamespace:
    raise RuntimeError("pipe closed")


DEFAULT_TOOLS: Dict[str, Callable[[Dict[str, Any]], SimpleNamespace]] = {
    "weather_info": _weather,
    "get_datetime": lambda args: text_result("Current date and time: 2024-01-01T00:00:00"),
    "calculator": _calculator,
    "execute_query": lambda args: text_result("Query Results:\nRow Count: 0"),
    "service_health": lambda args: text_result("Service Health:\nStatus: ok"),
    "broken": _broken,
    "raises": _raises,
}


class FakeSession:
    """Stands in for ``mcp.ClientSession``."""

    def __init__(self, tools: Dict[str, Callable[[Dict[str, Any]], SimpleNamespace]]):
        self.tools = tools
        self.calls: List[tuple] = []

    async def list_tools(self) -> SimpleNamespace:
        return SimpleNamespace(
            tools=[
                SimpleNamespace(
                    name=name,
                    description=f"{name} tool",
                    inputSchema={"type": "object", "properties": {"arg": {"type": "string"}}},
                )
                for name in self.tools
            ]
        )

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> SimpleNamespace:
        self.calls.append((name, arguments))
        return self.tools[name](arguments)


class FakeCatalogClient(ToolCatalogClient):
    """Catalog client whose transport is an in-process :class:`FakeSession`."""

    def __init__(
        self,
        tools: Optional[Dict[str, Callable[[Dict[str, Any]], SimpleNamespace]]] = None,
        open_delay: float = 0.0,
        open_error: Optional[Exception] = None,
        connect_timeout: float = 1.0,
    ):
        super().__init__(command="fake", args=[], env={}, connect_timeout=connect_timeout)
        self.session = FakeSession(dict(DEFAULT_TOOLS if tools is None else tools))
        self.open_delay = open_delay
        self.open_error = open_error
        self.open_count = 0

    async def _open_session(self, stack: Any) -> FakeSession:
        self.open_count += 1
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        if self.open_error is not None:
            raise self.open_error
        return self.session


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def catalog() -> FakeCatalogClient:
    return FakeCatalogClient()


@pytest.fixture
def orchestrator(catalog: FakeCatalogClient, fake_llm: FakeLLM) -> ChatOrchestrator:
    return ChatOrchestrator(catalog=catalog, llm=fake_llm, prompt_history=10)


@pytest.fixture
def manager(orchestrator: ChatOrchestrator) -> AgentManager:
    return AgentManager(orchestrator)


@pytest.fixture
def model_down() -> LLMError:
    return LLMError("Failed to communicate with Ollama: connection refused")
