"""
HTTP shell for the bridge.

Exposes the agent layer and the raw tool/model operations as a REST API:
- **GET /api/health**                         - liveness + tool-provider state + agents.
- **GET /api/agents**                         - registered agents and their tools.
- **GET /api/tools**                          - tool catalog.
- **POST /api/tools/{tool_name}**             - call one tool with a JSON body of arguments.
- **POST /api/chat**                          - direct model chat, no tools.
- **POST /api/chat/smart**                    - tool-augmented chat without routing.
- **POST /api/chat/agent**                    - routed chat: {"message", "conversation_id", "agent"}.
- **POST /api/chat/batch**                    - several routed messages, processed in order.
- **POST /api/agents/{agent_name}/chat**      - chat with one named agent.
- **GET|DELETE /api/agents/{agent_name}/history** - read or clear a conversation.
- **GET /api/models**                         - models the back-end can serve.
"""

import logging
from contextlib import asynccontextmanager
from datetime import (
    datetime,
    timezone,
)
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
    Optional,
)

from fastapi import (
    APIRouter,
    Body,
    Depends,
    FastAPI,
    HTTPException,
    Request,
)
from fastapi.middleware.cors import CORSMiddleware

from mcpbridge.agent.llm_interface import LLMError
from mcpbridge.agent.manager import AgentManager
from mcpbridge.agent.orchestrator import ChatOrchestrator
from mcpbridge.api.models import (
    AgentChatRequest,
    BatchRequest,
    BatchResponse,
    ChatRequest,
    ChatResponse,
    ClearHistoryResponse,
    DirectAgentChatRequest,
    HealthResponse,
    HistoryResponse,
    ToolCallResponse,
    ToolListResponse,
)
from mcpbridge.config import settings
from mcpbridge.core.schema import (
    AgentResponse,
    ContextSummary,
)
from mcpbridge.tools.catalog_client import (
    ToolExecutionError,
    ToolProviderConnectionError,
    ToolProviderError,
    UnknownToolError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
def get_manager(request: Request) -> AgentManager:
    return request.app.state.manager


def get_orchestrator(request: Request) -> ChatOrchestrator:
    return request.app.state.orchestrator


def _tool_error(exc: ToolProviderError) -> HTTPException:
    """Map tool-provider failures onto HTTP status codes."""
    if isinstance(exc, UnknownToolError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ToolExecutionError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ToolProviderConnectionError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _model_name(orchestrator: ChatOrchestrator, requested: str | None) -> str:
    return requested or orchestrator.llm.default_model


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(
    manager: AgentManager = Depends(get_manager),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> HealthResponse:
    """Liveness payload; never fails because of the tool provider."""
    try:
        await orchestrator.ensure_connected()
    except ToolProviderError as exc:
        logger.warning("Tool provider unavailable: %s", exc)
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        tool_provider_connected=orchestrator.catalog.connected,
        agents=manager.get_available_agents(),
    )


@router.get("/agents", summary="List agents")
async def list_agents(manager: AgentManager = Depends(get_manager)) -> Dict[str, Any]:
    agents = manager.get_available_agents()
    return {"agents": agents, "count": len(agents)}


@router.get("/tools", response_model=ToolListResponse, summary="List tools")
async def list_tools(orchestrator: ChatOrchestrator = Depends(get_orchestrator)) -> ToolListResponse:
    try:
        tools = await orchestrator.list_tools()
    except ToolProviderError as exc:
        raise _tool_error(exc) from exc
    return ToolListResponse(tools=tools, count=len(tools))


@router.post("/tools/{tool_name}", response_model=ToolCallResponse, summary="Call a tool")
async def call_tool(
    tool_name: str,
    args: Optional[Dict[str, Any]] = Body(None),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> ToolCallResponse:
    args = args or {}
    try:
        result = await orchestrator.call_tool(tool_name, args)
    except ToolProviderError as exc:
        logger.warning("Tool failure: %s", exc)
        raise _tool_error(exc) from exc
    return ToolCallResponse(tool_name=tool_name, args=args, result=result)


@router.post("/chat", response_model=ChatResponse, summary="Direct chat")
async def chat(
    req: ChatRequest, orchestrator: ChatOrchestrator = Depends(get_orchestrator)
) -> ChatResponse:
    try:
        response = await orchestrator.chat(req.message, model=req.model)
    except LLMError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return ChatResponse(response=response, model=_model_name(orchestrator, req.model))


@router.post("/chat/smart", response_model=ChatResponse, summary="Tool-augmented chat")
async def smart_chat(
    req: ChatRequest, orchestrator: ChatOrchestrator = Depends(get_orchestrator)
) -> ChatResponse:
    try:
        result = await orchestrator.process(req.message, model=req.model)
    except ToolProviderError as exc:
        raise _tool_error(exc) from exc
    except LLMError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return ChatResponse(
        response=result.response_text,
        model=_model_name(orchestrator, req.model),
        tools_used=result.tools_used,
    )


@router.post("/chat/agent", response_model=AgentResponse, summary="Agent-routed chat")
async def agent_chat(
    req: AgentChatRequest, manager: AgentManager = Depends(get_manager)
) -> AgentResponse:
    logger.info(
        "Agent chat request: %r (%s)", req.message, f"explicit: {req.agent}" if req.agent else "auto"
    )
    return await manager.route_message(
        req.message, req.conversation_id, explicit_agent=req.agent, model=req.model
    )


@router.post("/chat/batch", response_model=BatchResponse, summary="Batch agent chat")
async def batch_chat(req: BatchRequest, manager: AgentManager = Depends(get_manager)) -> BatchResponse:
    return BatchResponse(results=await manager.process_batch(req.items))


@router.post(
    "/agents/{agent_name}/chat", response_model=AgentResponse, summary="Chat with one agent"
)
async def direct_agent_chat(
    agent_name: str,
    req: DirectAgentChatRequest,
    manager: AgentManager = Depends(get_manager),
) -> AgentResponse:
    agent = manager.get_agent(agent_name)
    if agent is None:
        raise HTTPException(status_code=404, detail=f"Agent '{agent_name}' not found")
    try:
        result = await agent.process_request(req.message, req.conversation_id, model=req.model)
    except ToolProviderError as exc:
        raise _tool_error(exc) from exc
    except LLMError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return AgentResponse(
        response=result.response,
        agent_used=agent_name,
        tools_used=result.tools_used,
        routing=manager.router.explicit(agent_name),
        context=ContextSummary.of(result.context),
    )


@router.get(
    "/agents/{agent_name}/history", response_model=HistoryResponse, summary="Conversation history"
)
async def get_history(
    agent_name: str,
    conversation_id: str | None = None,
    manager: AgentManager = Depends(get_manager),
) -> HistoryResponse:
    conversation_id = conversation_id or settings.DEFAULT_CONVERSATION_ID
    history = manager.get_agent_history(agent_name, conversation_id)
    return HistoryResponse(
        agent_name=agent_name,
        conversation_id=conversation_id,
        history=history,
        message_count=len(history),
    )


@router.delete(
    "/agents/{agent_name}/history", response_model=ClearHistoryResponse, summary="Clear history"
)
async def clear_history(
    agent_name: str,
    conversation_id: str | None = None,
    manager: AgentManager = Depends(get_manager),
) -> ClearHistoryResponse:
    conversation_id = conversation_id or settings.DEFAULT_CONVERSATION_ID
    cleared = manager.clear_agent_context(agent_name, conversation_id)
    return ClearHistoryResponse(
        success=cleared,
        message="History cleared successfully" if cleared else "Agent not found",
        agent_name=agent_name,
        conversation_id=conversation_id,
    )


@router.get("/models", summary="Available models")
async def list_models(
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> Dict[str, List[Dict[str, Any]]]:
    try:
        models = await orchestrator.llm.list_models()
    except LLMError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"models": models}


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------
def create_app(
    manager: AgentManager | None = None, orchestrator: ChatOrchestrator | None = None
) -> FastAPI:
    """
    Build the FastAPI app.

    Components that are not injected are created lazily by the lifespan hook, which also closes
    the tool-provider connection on shutdown.
    """
    if manager is not None and orchestrator is None:
        orchestrator = manager.orchestrator

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "orchestrator", None) is None:
            app.state.orchestrator = ChatOrchestrator()
        if getattr(app.state, "manager", None) is None:
            app.state.manager = AgentManager(app.state.orchestrator)
        try:
            yield
        finally:
            await app.state.orchestrator.disconnect()

    app = FastAPI(
        title="MCP Bridge API",
        version="0.1.0",
        description="Routes chat requests to tool-using agents",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator
    app.state.manager = manager

    # Add CORS middleware to allow requests from browser front-ends
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)

    @app.get("/", summary="API root")
    async def root() -> dict[str, str]:
        """Return a simple welcome message."""
        return {"message": "Welcome to the MCP Bridge API! Use /docs for API documentation."}

    return app


app = create_app()


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in development).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting MCP Bridge API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    logger.debug("API settings: %s", settings.model_dump())

    uvicorn.run(
        "mcpbridge.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m mcpbridge.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
