"""
Tool-augmented chat orchestration.

One user message becomes one assistant message:

1. build a prompt (persona, recent history, request, allowed tools);
2. ask the model, which either answers or writes a tool intent as text;
3. on a tool intent, call the tool once and ask the model again to phrase the result.

There is never more than one tool round per request.  Anything that goes wrong *after* the first
completion degrades to a plain answer instead of raising.
"""

import json
import logging
from typing import (
    Any,
    Dict,
    List,
    Sequence,
)

from mcpbridge.agent.llm_interface import (
    BaseChatModel,
    LLMError,
    load_backend,
)
from mcpbridge.config import settings
from mcpbridge.core.schema import (
    ALL_TOOLS,
    ChatResult,
    ConversationMessage,
    ToolDescriptor,
    ToolInvocationResult,
)
from mcpbridge.tools.catalog_client import (
    ToolCatalogClient,
    ToolProviderError,
)
from mcpbridge.tools.tool_call_parser import (
    NoToolIntent,
    ToolIntent,
    parse_tool_intent,
)

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are an AI assistant with access to custom service tools. When the user asks for "
    "something that requires these tools, use them and provide the results."
)

TOOL_INSTRUCTIONS = """\
When you need to use a tool, respond ONLY with JSON like:
{"tool": "<name>", "args": { ... }}
If no tool is needed, answer the user directly in plain language.
Use at most one tool, and only one from the list above."""


class ChatOrchestrator:
    """Bridges the chat model and the tool provider."""

    def __init__(
        self,
        catalog: ToolCatalogClient | None = None,
        llm: BaseChatModel | None = None,
        prompt_history: int | None = None,
    ):
        self.catalog = catalog or ToolCatalogClient()
        self.llm = llm or load_backend()
        self.prompt_history = settings.PROMPT_HISTORY if prompt_history is None else prompt_history

    # ------------------------------------------------------------------ #
    # Tool provider helpers
    # ------------------------------------------------------------------ #
    async def ensure_connected(self) -> None:
        """Connect to the tool provider if needed; concurrent callers share one connect."""
        if not self.catalog.connected:
            await self.catalog.connect()

    async def list_tools(self) -> List[ToolDescriptor]:
        await self.ensure_connected()
        return await self.catalog.list_tools()

    async def call_tool(self, name: str, args: Dict[str, Any] | None = None) -> str:
        await self.ensure_connected()
        return await self.catalog.invoke_tool(name, args or {})

    async def disconnect(self) -> None:
        await self.catalog.disconnect()

    async def _invoke(self, intent: ToolIntent) -> ToolInvocationResult:
        try:
            output = await self.call_tool(intent.name, intent.args)
        except ToolProviderError as exc:
            logger.warning("Tool '%s' failed: %s", intent.name, exc)
            return ToolInvocationResult(
                tool_name=intent.name, arguments=intent.args, error_text=str(exc)
            )
        return ToolInvocationResult(tool_name=intent.name, arguments=intent.args, output_text=output)

    # ------------------------------------------------------------------ #
    # Prompting
    # ------------------------------------------------------------------ #
    def build_prompt(
        self,
        message: str,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        history: Sequence[ConversationMessage] = (),
        tools: Sequence[ToolDescriptor] = (),
        tool_mode: bool = True,
    ) -> str:
        """Persona, the last few prior messages, the request, and the tools on offer."""
        parts = [system_prompt.strip()]

        recent = list(history)[-self.prompt_history :] if self.prompt_history else []
        if recent:
            lines = []
            for msg in recent:
                tool_info = f" (used tools: {', '.join(msg.tools_used)})" if msg.tools_used else ""
                lines.append(f"{msg.role.upper()}: {msg.content}{tool_info}")
            parts.append("Conversation History:\n" + "\n".join(lines))

        parts.append(f"Current Request: {message}")

        if tools:
            if tool_mode:
                tool_lines = []
                for tool in tools:
                    params = tool.parameter_schema.get("properties") or {}
                    param_desc = ", ".join(
                        f"{p}: {info.get('type', 'any') if isinstance(info, dict) else 'any'}"
                        for p, info in params.items()
                    )
                    tool_lines.append(f"- {tool.name}({param_desc}): {tool.description}")
                parts.append("Available Tools:\n" + "\n".join(tool_lines))
                parts.append(TOOL_INSTRUCTIONS)
            else:
                parts.append("Available Tools: " + ", ".join(t.name for t in tools))
        return "\n\n".join(parts)

    @staticmethod
    def _synthesis_prompt(base_prompt: str, result: ToolInvocationResult) -> str:
        args = json.dumps(result.arguments, default=str)
        return (
            f"{base_prompt}\n\n"
            f"You called the tool {result.tool_name} with arguments {args}.\n"
            f"{result.tool_name} Result:\n{result.output_text}\n\n"
            "Using this result, answer the current request in plain, helpful language. "
            "Do not output JSON and do not call another tool."
        )

    # ------------------------------------------------------------------ #
    # Public entry points
    # ------------------------------------------------------------------ #
    async def chat(self, message: str, model: str | None = None) -> str:
        """Direct chat: one completion, no tools."""
        return await self.llm.complete(message, model=model)

    async def process(
        self,
        message: str,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        history: Sequence[ConversationMessage] = (),
        allowed_tools: Any = ALL_TOOLS,
        model: str | None = None,
        use_tools: bool = True,
    ) -> ChatResult:
        """
        Answer *message*, optionally with one round of tool augmentation.

        Parameters
        ----------
        allowed_tools:
            ``"all"`` or a collection of tool names the caller may use.
        use_tools:
            ``False`` selects direct-chat mode: tools are only listed, never parsed or invoked.

        Raises
        ------
        ToolProviderError, LLMError
            Only from the first round (listing the catalog, first completion).
        """
        catalog = await self.list_tools()
        if allowed_tools == ALL_TOOLS:
            tools = catalog
        else:
            permitted = set(allowed_tools)
            tools = [t for t in catalog if t.name in permitted]
        prompt = self.build_prompt(message, system_prompt, history, tools, tool_mode=use_tools)
        logger.debug("Prompt:\n%s", prompt)

        first = await self.llm.complete(prompt, model=model)
        logger.debug("First completion: %s", first)
        if not use_tools or not tools:
            return ChatResult(response_text=first)

        intent = parse_tool_intent(first)
        if isinstance(intent, NoToolIntent):
            return ChatResult(response_text=intent.text or first)
        if not isinstance(intent, ToolIntent):
            logger.info("Unparseable tool intent (%s); returning model text", intent.reason)
            return ChatResult(response_text=first)
        if intent.name not in {t.name for t in tools}:
            logger.info("Model asked for tool '%s' which is not allowed here", intent.name)
            return ChatResult(response_text=first)

        logger.info("Calling tool %s with %s", intent.name, intent.args)
        result = await self._invoke(intent)
        if not result.ok:
            return ChatResult(
                response_text=(
                    f"I tried to use the {intent.name} tool to answer this, but it failed: "
                    f"{result.error_text}"
                )
            )

        try:
            final = await self.llm.complete(self._synthesis_prompt(prompt, result), model=model)
        except LLMError as exc:
            logger.warning("Synthesis round failed, returning raw tool output: %s", exc)
            final = f"Here is what the {intent.name} tool returned:\n{result.output_text}"
        if not final.strip():
            final = result.output_text or f"The {intent.name} tool returned no output."
        return ChatResult(response_text=final, tools_used=[intent.name])
