"""
Agent contract shared by every specialist.

An agent is the orchestrator plus a persona (system prompt), a tool allow-list and its own
conversation store.  Specialists only differ in their descriptor and, optionally, in how they
pre-process a request before it reaches the model (:meth:`BaseAgent.prepare_request`).
"""

import logging
from typing import (
    Callable,
    ClassVar,
    Dict,
    Iterable,
    List,
    Type,
)

from mcpbridge.agent.orchestrator import ChatOrchestrator
from mcpbridge.config import settings
from mcpbridge.core.conversation import ConversationStore
from mcpbridge.core.schema import (
    AgentDescriptor,
    AgentResult,
    ConversationContext,
    ConversationMessage,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Registry of default agents
# ---------------------------------------------------------------------------
_AGENT_REGISTRY: dict[str, Type["BaseAgent"]] = {}


def register_agent(name: str) -> Callable:
    """Decorator to register an agent class as one of the defaults under *name*."""

    def wrapper(cls: Type["BaseAgent"]) -> Type["BaseAgent"]:
        _AGENT_REGISTRY[name] = cls
        return cls

    return wrapper


def default_agents(orchestrator: ChatOrchestrator) -> Dict[str, "BaseAgent"]:
    """Instantiate every registered default agent, keyed by registry name."""
    return {name: cls(orchestrator) for name, cls in _AGENT_REGISTRY.items()}


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseAgent:
    """Persona-scoped handler with a restricted tool set and its own memory partition."""

    DESCRIPTOR: ClassVar[AgentDescriptor]

    def __init__(
        self,
        orchestrator: ChatOrchestrator,
        descriptor: AgentDescriptor | None = None,
        store: ConversationStore | None = None,
    ):
        self.orchestrator = orchestrator
        self.descriptor = descriptor or type(self).DESCRIPTOR
        self.store = store or ConversationStore()

    @property
    def name(self) -> str:
        return self.descriptor.name

    def is_tool_allowed(self, tool_name: str) -> bool:
        return self.descriptor.allows(tool_name)

    def prepare_request(self, message: str, context: ConversationContext) -> str:
        """Hook: rewrite the request sent to the model.  The stored message is never changed."""
        return message

    async def process_request(
        self,
        message: str,
        conversation_id: str | None = None,
        model: str | None = None,
    ) -> AgentResult:
        """
        Record *message*, answer it through the orchestrator and record the answer.

        Errors from the first model/tool round propagate; the caller decides the fallback.
        """
        conversation_id = conversation_id or settings.DEFAULT_CONVERSATION_ID
        context = self.store.get_or_create(conversation_id)
        prior = list(context.messages)
        self.store.append(conversation_id, "user", message)

        result = await self.orchestrator.process(
            self.prepare_request(message, context),
            system_prompt=self.descriptor.system_prompt,
            history=prior,
            allowed_tools=self.descriptor.allowed_tools,
            model=model,
        )
        tools_used = [t for t in result.tools_used if self.is_tool_allowed(t)]
        self.store.append(conversation_id, "assistant", result.response_text, tools_used)
        return AgentResult(response=result.response_text, tools_used=tools_used, context=context)

    def get_info(self) -> Dict[str, object]:
        """Name, description and tools, for discovery endpoints."""
        return {
            "name": self.descriptor.name,
            "description": self.descriptor.description,
            "tools": self.descriptor.tool_names(),
        }

    def clear_context(self, conversation_id: str | None = None) -> bool:
        return self.store.clear(conversation_id or settings.DEFAULT_CONVERSATION_ID)

    def get_history(self, conversation_id: str | None = None) -> List[ConversationMessage]:
        return self.store.history(conversation_id or settings.DEFAULT_CONVERSATION_ID)

    def record_exchange(
        self, conversation_id: str, request: str, response: str, tools_used: Iterable[str] = ()
    ) -> None:
        """Log a request/answer pair produced outside :meth:`process_request`."""
        self.store.append(conversation_id, "user", request)
        self.store.append(
            conversation_id, "assistant", response, [t for t in tools_used if self.is_tool_allowed(t)]
        )
