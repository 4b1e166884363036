"""Connection lifecycle and error mapping of the tool catalog client."""

import asyncio

import pytest

from mcpbridge.tools.catalog_client import (
    NotConnectedError,
    ToolExecutionError,
    ToolProviderConnectionError,
    ToolProviderError,
    UnknownToolError,
)

from conftest import FakeCatalogClient


@pytest.mark.asyncio
async def test_connect_caches_catalog(catalog: FakeCatalogClient) -> None:
    """After connect, list_tools returns the provider's catalog."""
    await catalog.connect()
    try:
        names = {tool.name for tool in await catalog.list_tools()}
        assert catalog.connected
        assert {"weather_info", "calculator", "get_datetime"} <= names
        weather = next(t for t in await catalog.list_tools() if t.name == "weather_info")
        assert weather.description == "weather_info tool"
        assert weather.parameter_schema["type"] == "object"
    finally:
        await catalog.disconnect()


@pytest.mark.asyncio
async def test_connect_is_idempotent(catalog: FakeCatalogClient) -> None:
    """A second connect on a live client does not open another transport."""
    await catalog.connect()
    await catalog.connect()
    assert catalog.open_count == 1
    await catalog.disconnect()


@pytest.mark.asyncio
async def test_concurrent_connects_share_one_handshake() -> None:
    """Callers racing a pending connect all wait for the same transport."""
    client = FakeCatalogClient(open_delay=0.05)
    await asyncio.gather(*(client.connect() for _ in range(5)))
    assert client.open_count == 1
    assert client.connected
    await client.disconnect()


@pytest.mark.asyncio
async def test_operations_require_connection(catalog: FakeCatalogClient) -> None:
    """Listing or invoking before connect fails with NotConnectedError."""
    with pytest.raises(NotConnectedError):
        await catalog.list_tools()
    with pytest.raises(NotConnectedError):
        await catalog.invoke_tool("calculator", {"expression": "1+1"})


@pytest.mark.asyncio
async def test_invoke_returns_text(catalog: FakeCatalogClient) -> None:
    await catalog.connect()
    output = await catalog.invoke_tool("weather_info", {"location": "Paris"})
    assert output == "Weather for Paris: 22°C, partly cloudy"
    assert catalog.session.calls == [("weather_info", {"location": "Paris"})]
    await catalog.disconnect()


@pytest.mark.asyncio
async def test_unknown_tool_is_rejected_locally(catalog: FakeCatalogClient) -> None:
    """Names outside the catalog never reach the provider."""
    await catalog.connect()
    with pytest.raises(UnknownToolError):
        await catalog.invoke_tool("launch_rockets", {})
    assert catalog.session.calls == []
    await catalog.disconnect()


@pytest.mark.asyncio
async def test_provider_error_result_raises(catalog: FakeCatalogClient) -> None:
    """A result flagged isError becomes ToolExecutionError carrying the message."""
    await catalog.connect()
    with pytest.raises(ToolExecutionError, match="backend exploded"):
        await catalog.invoke_tool("broken", {})
    await catalog.disconnect()


@pytest.mark.asyncio
async def test_transport_exception_raises(catalog: FakeCatalogClient) -> None:
    await catalog.connect()
    with pytest.raises(ToolExecutionError, match="Failed to execute tool raises: pipe closed"):
        await catalog.invoke_tool("raises", {})
    await catalog.disconnect()


@pytest.mark.asyncio
async def test_failed_handshake_raises_connection_error() -> None:
    client = FakeCatalogClient(open_error=OSError("No such file or directory"))
    with pytest.raises(ToolProviderConnectionError) as info:
        await client.connect()
    assert isinstance(info.value, ToolProviderError)
    assert not client.connected


@pytest.mark.asyncio
async def test_handshake_timeout() -> None:
    """A provider that never finishes the handshake is abandoned after the timeout."""
    client = FakeCatalogClient(open_delay=5.0, connect_timeout=0.05)
    with pytest.raises(ToolProviderConnectionError, match="timed out"):
        await client.connect()
    assert not client.connected


@pytest.mark.asyncio
async def test_disconnect_and_reconnect(catalog: FakeCatalogClient) -> None:
    """disconnect is a no-op when idle and a later connect opens a fresh transport."""
    await catalog.disconnect()
    await catalog.connect()
    await catalog.disconnect()
    assert not catalog.connected
    with pytest.raises(NotConnectedError):
        await catalog.list_tools()
    await catalog.connect()
    assert catalog.open_count == 2
    await catalog.disconnect()
