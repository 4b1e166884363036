"""
Bundled tool provider.

Publishes every function in :data:`mcpbridge.tools.TOOL_REGISTRY` as an MCP tool over stdio.
This is the process :class:`~mcpbridge.tools.catalog_client.ToolCatalogClient` spawns by default
(``python -m mcpbridge.tools.server``).  stdout carries the protocol, so logs go to stderr.
"""

import logging
import sys

from mcp.server.fastmcp import FastMCP

from mcpbridge.tools import TOOL_REGISTRY
from mcpbridge.tools import builtin  # noqa: F401  # pylint: disable=unused-import

logger = logging.getLogger(__name__)


def build_server(name: str = "mcpbridge-tools") -> FastMCP:
    """Create a FastMCP server with all registered tools attached."""
    server = FastMCP(name)
    for tool_name, fn in TOOL_REGISTRY.items():
        server.add_tool(fn, name=tool_name, description=(fn.__doc__ or "").strip())
        logger.debug("Published tool '%s'", tool_name)
    return server


def run_server(log_level: str = "warning") -> None:
    """Serve the tool catalog on stdin/stdout until the client disconnects."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stderr,
    )
    server = build_server()
    logger.info("Tool provider running on stdio with %d tools", len(TOOL_REGISTRY))
    server.run(transport="stdio")


if __name__ == "__main__":
    run_server()
