"""
Schema definitions for tool <-> orchestrator <-> agent messages.

These data models serve as the contract between the tool provider, the chat orchestrator, the
agents and the HTTP shell.  We keep them separate from runtime logic so they can be imported
anywhere without side-effects.
"""

from datetime import (
    datetime,
    timezone,
)
from typing import (
    Any,
    Dict,
    FrozenSet,
    List,
    Literal,
    Optional,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

Role = Literal["user", "assistant", "system"]

ALL_TOOLS = "all"
"""Wildcard allow-list value: the agent may use every tool in the catalog."""


def utc_now() -> datetime:
    """Timezone-aware current time (used as a default factory)."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Tool catalog
# ---------------------------------------------------------------------------
class ToolDescriptor(BaseModel):
    """A tool advertised by the tool provider."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique tool name")
    description: str = ""
    parameter_schema: Dict[str, Any] = Field(
        default_factory=dict, description="JSON schema of the tool arguments"
    )


class ToolInvocationResult(BaseModel):
    """Outcome of one tool call; exactly one of output_text / error_text is set."""

    tool_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    output_text: Optional[str] = None
    error_text: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_text is None


# ---------------------------------------------------------------------------
# Conversation memory
# ---------------------------------------------------------------------------
class ConversationMessage(BaseModel):
    """A single entry in a conversation log."""

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    tools_used: List[str] = Field(default_factory=list)


class ConversationContext(BaseModel):
    """Bounded, ordered message history of one conversation within one agent."""

    conversation_id: str
    messages: List[ConversationMessage] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def last_activity(self) -> Optional[datetime]:
        return self.messages[-1].timestamp if self.messages else None


# ---------------------------------------------------------------------------
# Routing / agents
# ---------------------------------------------------------------------------
class RouteDecision(BaseModel):
    """Which agent handles a message, and why."""

    agent_name: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str


class AgentDescriptor(BaseModel):
    """Static configuration of an agent; immutable after construction."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    system_prompt: str
    allowed_tools: Union[Literal["all"], FrozenSet[str]] = ALL_TOOLS

    def allows(self, tool_name: str) -> bool:
        """True if *tool_name* is on this agent's allow-list."""
        if self.allowed_tools == ALL_TOOLS:
            return True
        return tool_name in self.allowed_tools

    def tool_names(self) -> List[str]:
        """Allow-list as a sorted list (``["all"]`` for the wildcard)."""
        if self.allowed_tools == ALL_TOOLS:
            return [ALL_TOOLS]
        return sorted(self.allowed_tools)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
class ChatResult(BaseModel):
    """What the orchestrator produces for one user message."""

    response_text: str
    tools_used: List[str] = Field(default_factory=list)


class AgentResult(BaseModel):
    """What an agent returns from ``process_request``."""

    response: str
    tools_used: List[str] = Field(default_factory=list)
    context: ConversationContext


class ContextSummary(BaseModel):
    """Caller-facing summary of the conversation a response belongs to."""

    conversation_id: str
    message_count: int = 0
    last_activity: Optional[datetime] = None

    @classmethod
    def of(cls, context: ConversationContext) -> "ContextSummary":
        return cls(
            conversation_id=context.conversation_id,
            message_count=len(context.messages),
            last_activity=context.last_activity,
        )


class AgentResponse(BaseModel):
    """Uniform result of ``AgentManager.route_message``."""

    response: str
    agent_used: str
    tools_used: List[str] = Field(default_factory=list)
    routing: RouteDecision
    context: ContextSummary


class BatchItem(BaseModel):
    """One independent request of a batch."""

    message: str = Field(..., min_length=1)
    conversation_id: Optional[str] = None
    agent: Optional[str] = None

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message is required")
        return value


class BatchResult(BaseModel):
    """Per-item outcome of a batch."""

    request: str
    response: str
    agent_used: str
    tools_used: List[str] = Field(default_factory=list)
    routing: RouteDecision
