"""Terminal helpers shared by the interactive client and the entry point."""

from enum import Enum
from typing import (
    Any,
    Dict,
    Iterable,
)


class AnsiColors(Enum):
    """
    ANSI color codes for terminal output.
    """

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    GREY = "\033[90m"


RESET = "\033[0m"


def colorize(text: str, color: AnsiColors) -> str:
    return f"{color.value}{text}{RESET}"


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """
    Print text in color.

    Args:
        text: The text to print
        color: The color to use (AnsiColors enum)
        args: Additional positional arguments for print
        kwargs: Additional keyword arguments for print
    """
    print(colorize(text, color), *args, **kwargs)


def format_agent_table(agents: Dict[str, Dict[str, Any]]) -> str:
    """One line per agent: ``name - description [tools]``."""
    lines = []
    for name, info in sorted(agents.items()):
        tools = ", ".join(info.get("tools", [])) or "none"
        lines.append(f"  {name:<12} {info.get('description', '')} [{tools}]")
    return "\n".join(lines)


def format_tool_list(tools: Iterable[Dict[str, Any]]) -> str:
    return "\n".join(f"  {t['name']:<22} {t.get('description', '')}" for t in tools)
