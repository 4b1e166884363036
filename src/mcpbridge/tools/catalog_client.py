"""
Client side of the tool-invocation protocol.

Spawns the tool provider as a subprocess, speaks MCP to it over stdio and exposes the two
operations the orchestrator needs: list the tool catalog and invoke a tool by name.
"""

import asyncio
import logging
import os
from contextlib import AsyncExitStack
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Sequence,
)

from mcp import (
    ClientSession,
    StdioServerParameters,
)
from mcp.client.stdio import stdio_client

from mcpbridge.config import settings
from mcpbridge.core.schema import ToolDescriptor

logger = logging.getLogger(__name__)


class ToolProviderError(RuntimeError):
    """Base class for every failure talking to the tool provider."""


class ToolProviderConnectionError(ToolProviderError, ConnectionError):
    """Raised when the tool provider cannot be started or does not finish its handshake."""


class NotConnectedError(ToolProviderError):
    """Raised when a catalog operation is attempted before :meth:`ToolCatalogClient.connect`."""


class UnknownToolError(ToolProviderError):
    """Raised when the requested tool is not in the last-known catalog."""


class ToolExecutionError(ToolProviderError):
    """Raised when the remote tool call fails; carries the underlying message."""


class ToolCatalogClient:
    """
    Owns exactly one live transport to the tool provider.

    ``connect`` is idempotent and single-flight: concurrent callers wait for the one pending
    handshake instead of spawning their own subprocess.  There is no automatic reconnect; callers
    decide when to call ``connect`` again after ``disconnect``.
    """

    def __init__(
        self,
        command: str | None = None,
        args: Sequence[str] | None = None,
        env: Mapping[str, str] | None = None,
        connect_timeout: float | None = None,
    ):
        self.command = command or settings.MCP_SERVER_COMMAND
        self.args = list(args if args is not None else settings.MCP_SERVER_ARGS)
        self.env = dict(env) if env is not None else {"SERVICE_BASE_URL": settings.SERVICE_BASE_URL}
        self.connect_timeout = (
            settings.MCP_CONNECT_TIMEOUT if connect_timeout is None else connect_timeout
        )

        self._session: Any = None
        self._catalog: Dict[str, ToolDescriptor] = {}
        self._connect_lock = asyncio.Lock()
        self._owner: asyncio.Task | None = None
        self._stop: asyncio.Event | None = None

    # ------------------------------------------------------------------ #
    # Connection lifecycle
    # ------------------------------------------------------------------ #
    @property
    def connected(self) -> bool:
        return self._session is not None

    async def connect(self) -> None:
        """Start the provider, run the MCP handshake and cache its catalog."""
        async with self._connect_lock:
            if self._session is not None:
                return

            # The stdio transport must be entered and exited by the same task, so one owner
            # task holds it open until disconnect() sets the stop event.
            ready: asyncio.Future = asyncio.get_running_loop().create_future()
            stop = asyncio.Event()
            owner = asyncio.create_task(self._hold_session(ready, stop))
            try:
                session, catalog = await asyncio.wait_for(ready, self.connect_timeout)
            except asyncio.TimeoutError as exc:
                await self._cancel_owner(owner)
                raise ToolProviderConnectionError(
                    f"Tool provider handshake timed out after {self.connect_timeout}s"
                ) from exc
            except Exception as exc:  # pylint: disable=broad-except
                await self._cancel_owner(owner)
                raise ToolProviderConnectionError(
                    f"Failed to connect to tool provider: {exc}"
                ) from exc

            self._owner = owner
            self._stop = stop
            self._session = session
            self._catalog = {tool.name: tool for tool in catalog}
            logger.info(
                "Connected to tool provider (%s) with %d tools", self.command, len(self._catalog)
            )

    async def disconnect(self) -> None:
        """Release the transport.  Safe to call when already disconnected."""
        if self._owner is None:
            return
        owner, self._owner = self._owner, None
        if self._stop is not None:
            self._stop.set()
        self._stop = None
        self._session = None
        self._catalog = {}
        try:
            await owner
        except Exception as exc:  # pylint: disable=broad-except
            # The subprocess may already be gone; nothing left to release.
            logger.warning("Error while closing tool provider transport: %s", exc)
        logger.info("Disconnected from tool provider")

    async def _hold_session(self, ready: asyncio.Future, stop: asyncio.Event) -> None:
        async with AsyncExitStack() as stack:
            try:
                session = await self._open_session(stack)
                catalog = await self._fetch_catalog(session)
            except Exception as exc:  # pylint: disable=broad-except
                if not ready.done():
                    ready.set_exception(exc)
                return
            if ready.done():  # connect() gave up waiting
                return
            ready.set_result((session, catalog))
            await stop.wait()

    @staticmethod
    async def _cancel_owner(owner: asyncio.Task) -> None:
        owner.cancel()
        try:
            await owner
        except asyncio.CancelledError:
            pass
        except Exception as exc:  # pylint: disable=broad-except
            logger.debug("Tool provider transport closed with: %s", exc)

    async def _open_session(self, stack: AsyncExitStack) -> Any:
        """Spawn the provider and return an initialised MCP session bound to *stack*."""
        params = StdioServerParameters(
            command=self.command,
            args=self.args,
            env={**os.environ, **self.env},
        )
        read_stream, write_stream = await stack.enter_async_context(stdio_client(params))
        session = await stack.enter_async_context(ClientSession(read_stream, write_stream))
        await session.initialize()
        return session

    @staticmethod
    async def _fetch_catalog(session: Any) -> List[ToolDescriptor]:
        result = await session.list_tools()
        return [
            ToolDescriptor(
                name=tool.name,
                description=tool.description or "",
                parameter_schema=tool.inputSchema or {},
            )
            for tool in result.tools
        ]

    # ------------------------------------------------------------------ #
    # Catalog operations
    # ------------------------------------------------------------------ #
    async def list_tools(self) -> List[ToolDescriptor]:
        """Return the catalog captured at connect time."""
        if self._session is None:
            raise NotConnectedError("Tool provider is not connected; call connect() first.")
        return list(self._catalog.values())

    async def invoke_tool(self, name: str, arguments: Dict[str, Any] | None = None) -> str:
        """
        Call *name* on the provider and return its text output.

        Raises
        ------
        NotConnectedError
            If ``connect`` has not completed.
        UnknownToolError
            If *name* is not in the last-known catalog.
        ToolExecutionError
            If the remote call fails or the provider flags its result as an error.
        """
        if self._session is None:
            raise NotConnectedError("Tool provider is not connected; call connect() first.")
        if name not in self._catalog:
            raise UnknownToolError(f"Tool '{name}' is not in the tool catalog.")

        logger.debug("Invoking tool '%s' with args=%s", name, arguments)
        try:
            result = await self._session.call_tool(name, arguments or {})
        except Exception as exc:  # noqa: BLE001
            logger.exception("Tool '%s' call failed", name)
            raise ToolExecutionError(f"Failed to execute tool {name}: {exc}") from exc

        text = "\n".join(
            block.text for block in result.content if getattr(block, "type", None) == "text"
        )
        if getattr(result, "isError", False):
            raise ToolExecutionError(f"Tool {name} reported an error: {text or 'unknown error'}")
        return text
