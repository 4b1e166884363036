"""
Tool registry for the bundled tool provider.

Tools are plain functions registered under a unique name with :func:`register_tool`.  The
provider process (:mod:`mcpbridge.tools.server`) publishes every registered function over MCP;
the bridge itself never calls them directly, it goes through
:class:`mcpbridge.tools.catalog_client.ToolCatalogClient`.
"""

import logging
from typing import (
    Callable,
    Dict,
)

logger = logging.getLogger(__name__)

TOOL_REGISTRY: Dict[str, Callable] = {}
"""Global registry of tool functions published by the provider."""


def register_tool(name: str) -> Callable:
    """
    Register a tool function with the given name.

    Used as a decorator:
        @register_tool("my_tool")
        def my_tool_function(arg1: str) -> str:
            \"\"\"Description shown to the model.\"\"\"
            return result

    The function's docstring becomes the tool description and its signature the argument schema.

    Raises
    ------
    ValueError
        If a function with the same name is already registered.
    """
    if name in TOOL_REGISTRY:
        raise ValueError(f"Tool '{name}' is already registered.")
    logger.debug("Registering tool '%s'", name)

    def wrapper(fn: Callable) -> Callable:
        TOOL_REGISTRY[name] = fn
        return fn

    return wrapper
