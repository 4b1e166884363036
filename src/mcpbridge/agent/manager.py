"""
Agent manager: routes each request to a specialist and owns the agent registry.

Resilience is a single fallback tier: a missing or failing specialist hands the request to the
generic handler, and only a failure of that handler is reported (as ``agent_used="error"``).
"""

import logging
from typing import (
    Dict,
    List,
    Optional,
    Sequence,
)

from mcpbridge.agent.base_agent import (
    BaseAgent,
    default_agents,
)
from mcpbridge.agent.orchestrator import ChatOrchestrator
from mcpbridge.agent.router import (
    FALLBACK_AGENT,
    FALLBACK_CONFIDENCE,
    IntentRouter,
)
from mcpbridge.agent.specialists import GeneralAgent
from mcpbridge.config import settings
from mcpbridge.core.schema import (
    AgentResponse,
    AgentResult,
    BatchItem,
    BatchResult,
    ContextSummary,
    ConversationMessage,
    RouteDecision,
)

logger = logging.getLogger(__name__)

ERROR_AGENT = "error"


class RoutingFallbackError(RuntimeError):
    """An agent failed; the request is re-dispatched to the generic handler."""

    def __init__(self, agent_name: str, cause: BaseException):
        super().__init__(f"Fallback due to {agent_name} agent error: {cause}")
        self.agent_name = agent_name
        self.cause = cause


class AgentManager:
    """Process-scoped registry of agents plus the dispatch policy around it."""

    def __init__(
        self,
        orchestrator: ChatOrchestrator,
        router: IntentRouter | None = None,
        agents: Dict[str, BaseAgent] | None = None,
        general: BaseAgent | None = None,
    ):
        self.orchestrator = orchestrator
        self.router = router or IntentRouter()
        self.agents: Dict[str, BaseAgent] = (
            dict(agents) if agents is not None else default_agents(orchestrator)
        )
        self.general = general or GeneralAgent(orchestrator)
        logger.info("AgentManager: initialized agents: %s", list(self.agents))

    # ------------------------------------------------------------------ #
    # Registry
    # ------------------------------------------------------------------ #
    def register_agent(self, name: str, agent: BaseAgent) -> None:
        self.agents[name] = agent
        logger.info("Registered agent: %s", name)

    def unregister_agent(self, name: str) -> bool:
        if self.agents.pop(name, None) is None:
            return False
        logger.info("Unregistered agent: %s", name)
        return True

    def get_agent(self, name: str) -> Optional[BaseAgent]:
        return self.agents.get(name)

    def get_available_agents(self) -> Dict[str, Dict[str, object]]:
        return {key: agent.get_info() for key, agent in self.agents.items()}

    def _history_owner(self, name: str) -> Optional[BaseAgent]:
        if name in self.agents:
            return self.agents[name]
        return self.general if name == FALLBACK_AGENT else None

    def get_agent_history(
        self, agent_name: str, conversation_id: str | None = None
    ) -> List[ConversationMessage]:
        agent = self._history_owner(agent_name)
        return agent.get_history(conversation_id) if agent else []

    def clear_agent_context(self, agent_name: str, conversation_id: str | None = None) -> bool:
        """Forget one conversation of one agent.  False if the agent is unknown."""
        agent = self._history_owner(agent_name)
        if agent is None:
            return False
        agent.clear_context(conversation_id)
        return True

    # ------------------------------------------------------------------ #
    # Dispatch
    # ------------------------------------------------------------------ #
    def resolve_route(self, message: str, explicit_agent: str | None = None) -> RouteDecision:
        if explicit_agent and explicit_agent in self.agents:
            return IntentRouter.explicit(explicit_agent)
        return self.router.route(message)

    async def route_message(
        self,
        message: str,
        conversation_id: str | None = None,
        explicit_agent: str | None = None,
        model: str | None = None,
    ) -> AgentResponse:
        """Pick an agent for *message* and return its answer; never raises for agent errors."""
        conversation_id = conversation_id or settings.DEFAULT_CONVERSATION_ID
        routing = self.resolve_route(message, explicit_agent)
        agent = self.agents.get(routing.agent_name)
        if agent is None:
            if routing.agent_name != FALLBACK_AGENT:
                routing = RouteDecision(
                    agent_name=FALLBACK_AGENT,
                    confidence=min(routing.confidence, FALLBACK_CONFIDENCE),
                    reason=f"No registered agent '{routing.agent_name}': {routing.reason}",
                )
            return await self._handle_general(message, conversation_id, routing, model)

        logger.info(
            "Routing to %s agent (confidence: %.2f)", routing.agent_name, routing.confidence
        )
        try:
            result = await self._dispatch(agent, routing.agent_name, message, conversation_id, model)
        except RoutingFallbackError as fallback:
            logger.exception("Error with %s agent", fallback.agent_name)
            return await self._handle_general(
                message,
                conversation_id,
                RouteDecision(
                    agent_name=FALLBACK_AGENT, confidence=FALLBACK_CONFIDENCE, reason=str(fallback)
                ),
                model,
            )

        return AgentResponse(
            response=result.response,
            agent_used=routing.agent_name,
            tools_used=result.tools_used,
            routing=routing,
            context=ContextSummary.of(result.context),
        )

    @staticmethod
    async def _dispatch(
        agent: BaseAgent, name: str, message: str, conversation_id: str, model: str | None
    ) -> AgentResult:
        try:
            return await agent.process_request(message, conversation_id, model=model)
        except Exception as exc:  # pylint: disable=broad-except
            raise RoutingFallbackError(name, exc) from exc

    async def _handle_general(
        self,
        message: str,
        conversation_id: str,
        routing: RouteDecision,
        model: str | None,
    ) -> AgentResponse:
        logger.info("Using general handler (%s)", routing.reason)
        try:
            result = await self.general.process_request(message, conversation_id, model=model)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("General handler failed")
            return AgentResponse(
                response=f"I encountered an error processing your request: {exc}",
                agent_used=ERROR_AGENT,
                tools_used=[],
                routing=routing,
                context=ContextSummary(conversation_id=conversation_id),
            )
        return AgentResponse(
            response=result.response,
            agent_used=FALLBACK_AGENT,
            tools_used=result.tools_used,
            routing=routing,
            context=ContextSummary.of(result.context),
        )

    async def process_batch(self, items: Sequence[BatchItem]) -> List[BatchResult]:
        """
        Route each item in order, one at a time.

        Items run sequentially so the shared tool-provider connection never sees overlapping
        calls.  A failing item yields an error result and does not stop the batch.
        """
        results: List[BatchResult] = []
        for item in items:
            try:
                outcome = await self.route_message(item.message, item.conversation_id, item.agent)
                results.append(
                    BatchResult(
                        request=item.message,
                        response=outcome.response,
                        agent_used=outcome.agent_used,
                        tools_used=outcome.tools_used,
                        routing=outcome.routing,
                    )
                )
            except Exception as exc:  # pylint: disable=broad-except
                logger.exception("Batch item failed: %r", item.message)
                results.append(
                    BatchResult(
                        request=item.message,
                        response=f"Error: {exc}",
                        agent_used=ERROR_AGENT,
                        tools_used=[],
                        routing=RouteDecision(
                            agent_name=ERROR_AGENT, confidence=0.0, reason="Processing error"
                        ),
                    )
                )
        return results
