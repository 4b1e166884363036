"""
Pydantic models for the bridge API requests and responses.

Core result types (``AgentResponse``, ``RouteDecision`` ...) live in
:mod:`mcpbridge.core.schema`; this module only adds the HTTP-facing envelopes.
"""

from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
    field_validator,
)

from mcpbridge.core.schema import (
    BatchItem,
    BatchResult,
    ConversationMessage,
    ToolDescriptor,
)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
class ChatRequest(BaseModel):
    """Incoming user message for plain or tool-augmented chat."""

    message: str = Field(..., description="User message")
    model: Optional[str] = Field(None, description="Model override")

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message is required")
        return value


class AgentChatRequest(ChatRequest):
    """Message routed through the agent layer."""

    conversation_id: Optional[str] = Field(None, description="Conversation to continue")
    agent: Optional[str] = Field(None, description="Explicit agent; skips routing if registered")


class DirectAgentChatRequest(ChatRequest):
    """Message sent to one named agent."""

    conversation_id: Optional[str] = None


class BatchRequest(BaseModel):
    """Independent messages processed in order."""

    items: List[BatchItem] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
class ChatResponse(BaseModel):
    response: str
    model: str
    tools_used: List[str] = Field(default_factory=list)


class ToolListResponse(BaseModel):
    tools: List[ToolDescriptor]
    count: int


class ToolCallResponse(BaseModel):
    tool_name: str
    args: Dict[str, Any]
    result: str


class BatchResponse(BaseModel):
    results: List[BatchResult]


class HistoryResponse(BaseModel):
    agent_name: str
    conversation_id: str
    history: List[ConversationMessage]
    message_count: int


class ClearHistoryResponse(BaseModel):
    success: bool
    message: str
    agent_name: str
    conversation_id: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    tool_provider_connected: bool
    agents: Dict[str, Dict[str, Any]]
