"""Interactive shell for the bridge API."""

from __future__ import annotations

import logging
import time
from typing import (
    Any,
    Dict,
    Optional,
    Tuple,
    cast,
)

import httpx

from mcpbridge.common import (
    AnsiColors,
    colored_print,
    format_agent_table,
    format_tool_list,
)
from mcpbridge.config import settings

logger = logging.getLogger(__name__)

HELP_TEXT = """Commands:
  /agents         list agents and their tools
  /tools          list the tool catalog
  /agent <name>   send every message to one agent
  /auto           go back to automatic routing
  /history        show this conversation as seen by the current agent
  /clear          clear this conversation for the current agent
  exit | quit     leave the shell"""


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    try:
        return input().strip(), True
    except (EOFError, KeyboardInterrupt):
        return "", False


def _error_detail(response: Optional[httpx.Response], exc: httpx.HTTPError) -> str:
    if response is None:
        return f"Error connecting to API: {exc}"
    try:
        detail = response.json().get("detail")
    except ValueError:
        detail = None
    return f"API error: {detail}" if detail else f"API error: {exc}"


def call_api(
    method: str,
    endpoint: str,
    data: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
    max_retries: int = 5,
) -> Dict[str, Any]:
    """
    Call the API and return the decoded JSON body.

    Connection-refused errors are retried with exponential backoff so the shell can start while
    the API thread is still binding.  Any other failure is printed and returned as
    ``{"error": message}``.
    """
    api_url = f"http://localhost:{settings.API_PORT}{endpoint}"

    for attempt in range(max_retries):
        response: Optional[httpx.Response] = None
        try:
            with httpx.Client(timeout=settings.LLM_TIMEOUT + 10) as client:
                response = client.request(method, api_url, json=data, params=params)
                response.raise_for_status()
                return cast(Dict[str, Any], response.json())
        except httpx.HTTPError as e:
            if isinstance(e, httpx.ConnectError) and attempt < max_retries - 1:
                retry_delay = 0.5 * (2**attempt)  # 0.5s, 1s, 2s, 4s...
                logger.info(
                    "API not ready yet, retrying in %.1f seconds (attempt %d/%d)...",
                    retry_delay,
                    attempt + 1,
                    max_retries,
                )
                time.sleep(retry_delay)
                continue

            logger.error("API request error: %s", e)
            error_msg = _error_detail(response, e)
            colored_print(error_msg, AnsiColors.RED)
            return {"error": error_msg}

    error_msg = f"Failed to connect to API after {max_retries} attempts"
    colored_print(error_msg, AnsiColors.RED)
    return {"error": error_msg}


# ---------------------------------------------------------------------------
# Shell
# ---------------------------------------------------------------------------
class ChatShell:
    """Holds the shell's routing mode and conversation between turns."""

    def __init__(self, conversation_id: str = "cli") -> None:
        self.conversation_id = conversation_id
        self.agent: Optional[str] = None
        self.last_agent = "general"

    @property
    def prompt(self) -> str:
        return f"\n🧑 You ({self.agent or 'auto'}): "

    def handle_command(self, line: str) -> bool:
        """Run a slash command. Returns False when *line* is not a command."""
        command, _, arg = line.partition(" ")
        command = command.lower()
        if command == "/help":
            colored_print(HELP_TEXT, AnsiColors.CYAN)
        elif command == "/agents":
            result = call_api("GET", "/api/agents")
            if "agents" in result:
                colored_print(format_agent_table(result["agents"]), AnsiColors.CYAN)
        elif command == "/tools":
            result = call_api("GET", "/api/tools")
            if "tools" in result:
                colored_print(format_tool_list(result["tools"]), AnsiColors.CYAN)
        elif command == "/agent":
            name = arg.strip()
            if not name:
                colored_print("Usage: /agent <name>", AnsiColors.RED)
            else:
                self.agent = name
                colored_print(f"Routing every message to '{name}'", AnsiColors.GREEN)
        elif command == "/auto":
            self.agent = None
            colored_print("Automatic routing enabled", AnsiColors.GREEN)
        elif command == "/history":
            name = self.agent or self.last_agent
            result = call_api(
                "GET",
                f"/api/agents/{name}/history",
                params={"conversation_id": self.conversation_id},
            )
            for message in result.get("history", []):
                color = AnsiColors.BLUE if message["role"] == "user" else AnsiColors.YELLOW
                colored_print(f"[{message['role']}] {message['content']}", color)
            if "history" in result and not result["history"]:
                colored_print("(empty)", AnsiColors.GREY)
        elif command == "/clear":
            name = self.agent or self.last_agent
            result = call_api(
                "DELETE",
                f"/api/agents/{name}/history",
                params={"conversation_id": self.conversation_id},
            )
            if "message" in result:
                colored_print(result["message"], AnsiColors.GREEN)
        else:
            return False
        return True

    def send(self, message: str) -> None:
        payload: Dict[str, Any] = {"message": message, "conversation_id": self.conversation_id}
        if self.agent:
            payload["agent"] = self.agent
        response = call_api("POST", "/api/chat/agent", payload)
        if "error" in response:
            return

        self.last_agent = response.get("agent_used", self.last_agent)
        routing = response.get("routing", {})
        colored_print(
            f"[{self.last_agent} | {routing.get('confidence', 0):.2f} | {routing.get('reason', '')}]",
            AnsiColors.GREY,
        )
        if response.get("tools_used"):
            colored_print(f"🔧 {', '.join(response['tools_used'])}", AnsiColors.GREEN)
        colored_print(response.get("response", "No response from API"), AnsiColors.YELLOW)


def run_cli() -> None:
    """Run the interactive shell against the local API."""
    health = call_api("GET", "/api/health")
    if "error" in health:
        colored_print("⚠️ API is not available", AnsiColors.RED)
        return
    if not health.get("tool_provider_connected"):
        colored_print("⚠️ Tool provider is not connected; answers will not use tools", AnsiColors.RED)

    shell = ChatShell()
    colored_print(
        "\n🔌 MCP bridge shell - type /help for commands, 'exit' or 'quit' (or Ctrl+C) to exit",
        AnsiColors.GREEN,
    )
    while True:
        colored_print(shell.prompt, AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break
        if user_msg.lower() in {"exit", "quit"}:
            break
        if not user_msg:
            continue
        if user_msg.startswith("/"):
            if not shell.handle_command(user_msg):
                colored_print("Unknown command, type /help", AnsiColors.RED)
            continue
        shell.send(user_msg)


if __name__ == "__main__":
    run_cli()
