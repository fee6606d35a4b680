"""Test configuration and fixtures for toolbridge."""

import asyncio
import sys
import tempfile
from contextlib import AsyncExitStack
from pathlib import Path
from typing import Any

import anyio
import pytest
from mcp import types

from toolbridge.core.mcp.descriptor import MCPTransportKind
from toolbridge.core.mcp.status import ServerStatusRegistry
from toolbridge.core.mcp.transport import MCPTransport

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class FakeTransport(MCPTransport):
    """Transport backed by in-memory streams that records its lifecycle."""

    kind = MCPTransportKind.STDIO

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.opened = False
        self.closed = False
        self.server_send = None

    async def open(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        self.opened = True
        stack.callback(self._mark_closed)
        if self.error is not None:
            raise self.error

        self.server_send, read = anyio.create_memory_object_stream(0)
        write, server_read = anyio.create_memory_object_stream(0)
        for stream in (self.server_send, read, write, server_read):
            stack.push_async_callback(stream.aclose)
        return read, write

    async def hang_up(self) -> None:
        """End the server-to-client stream as an exiting server would."""
        await self.server_send.aclose()

    def _mark_closed(self) -> None:
        self.closed = True

    def describe(self) -> str:
        return "fake-server --stdio"


class FakeSession:
    """Stand-in for ``mcp.ClientSession`` driven by canned results."""

    def __init__(
        self,
        tools: list[dict[str, Any]] | None = None,
        call_result: types.CallToolResult | None = None,
        init_delay: float = 0.0,
        call_delay: float = 0.0,
        init_error: Exception | None = None,
        list_error: Exception | None = None,
        call_error: Exception | None = None,
    ) -> None:
        self.tools = [{"name": "echo", "description": "Echo text"}] if tools is None else tools
        self.call_result = call_result or types.CallToolResult(
            content=[types.TextContent(type="text", text="ok")],
            isError=False,
        )
        self.init_delay = init_delay
        self.call_delay = call_delay
        self.init_error = init_error
        self.list_error = list_error
        self.call_error = call_error

        self.message_handler = None
        self.client_info = None
        self.entered = False
        self.exited = False
        self.calls: list[tuple[str, dict[str, Any], Any]] = []

    def factory(self, read: Any, write: Any, message_handler=None, client_info=None) -> "FakeSession":
        self.message_handler = message_handler
        self.client_info = client_info
        return self

    async def __aenter__(self) -> "FakeSession":
        self.entered = True
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        self.exited = True
        return False

    async def initialize(self) -> None:
        if self.init_delay:
            await asyncio.sleep(self.init_delay)
        if self.init_error is not None:
            raise self.init_error

    async def list_tools(self) -> types.ListToolsResult:
        if self.list_error is not None:
            raise self.list_error
        return types.ListToolsResult(
            tools=[
                types.Tool(
                    name=tool["name"],
                    description=tool.get("description"),
                    inputSchema=tool.get("inputSchema", {"type": "object", "properties": {}}),
                )
                for tool in self.tools
            ]
        )

    async def call_tool(self, name: str, arguments=None, read_timeout_seconds=None):
        self.calls.append((name, arguments, read_timeout_seconds))
        if self.call_delay:
            await asyncio.sleep(self.call_delay)
        if self.call_error is not None:
            raise self.call_error
        return self.call_result


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clean_mcp_env(monkeypatch):
    """Remove MCP server variables inherited from the outer environment."""
    import os

    for key in list(os.environ):
        if key.startswith("MCP_SERVER_"):
            monkeypatch.delenv(key)


@pytest.fixture
def mock_config(temp_dir, clean_mcp_env):
    """Create a mock configuration for tests."""
    from toolbridge.core.config import ToolbridgeConfig, set_config

    config_dir = temp_dir / ".toolbridge"
    config = ToolbridgeConfig(
        data_dir=config_dir,
        working_dir=temp_dir,
    )
    config.ensure_directories()
    set_config(config)

    yield config

    set_config(None)


@pytest.fixture
def status_registry():
    """Fresh, isolated status registry."""
    return ServerStatusRegistry()


@pytest.fixture
def make_session():
    """Factory for fake MCP sessions."""
    return FakeSession


@pytest.fixture
def make_transport():
    """Factory for fake transports."""
    return FakeTransport


@pytest.fixture
def echo_server_command():
    """Command line for the stdio echo server fixture."""
    return [sys.executable, str(FIXTURES_DIR / "echo_server.py")]


@pytest.fixture
def exiting_server_command():
    """Command line for the stdio server fixture that exits on request."""
    return [sys.executable, str(FIXTURES_DIR / "exiting_server.py")]
