"""Transport factory for MCP server connections.

Three transports are supported, selected from the server descriptor in this
order of precedence:

  - ``httpUrl``  -> StreamableHTTPTransport (request/response HTTP)
  - ``url``      -> SSETransport (long-lived event stream)
  - ``command``  -> StdioTransport (subprocess over stdin/stdout)

Building a transport has no side effects. The process or socket is only
opened when the capability client calls ``open()`` during ``connect``.
"""

import logging
import os
from abc import ABC, abstractmethod
from contextlib import AsyncExitStack
from typing import Any

from mcp import StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from toolbridge.core.mcp.descriptor import MCPServerDescriptor, MCPTransportKind
from toolbridge.core.mcp.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class MCPTransport(ABC):
    """A bound, not yet connected transport to one MCP server."""

    kind: MCPTransportKind

    @abstractmethod
    async def open(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        """Open the underlying connection inside ``stack``.

        Args:
            stack: Exit stack that owns the connection until it is closed.

        Returns:
            Tuple of (read_stream, write_stream).
        """
        pass

    @abstractmethod
    def describe(self) -> str:
        """Short description used in log messages."""
        pass


class StdioTransport(MCPTransport):
    """Subprocess speaking MCP over standard input/output."""

    kind = MCPTransportKind.STDIO

    def __init__(
        self,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        cwd: str | None = None,
    ) -> None:
        self.command = command
        self.args = list(args or [])
        self.env = env
        self.cwd = cwd

    async def open(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        params = StdioServerParameters(
            command=self.command,
            args=self.args,
            env=self.env,
            cwd=self.cwd,
        )
        read, write = await stack.enter_async_context(stdio_client(params))
        return read, write

    def describe(self) -> str:
        return " ".join([self.command, *self.args])


class SSETransport(MCPTransport):
    """Long-lived HTTP connection using Server-Sent Events."""

    kind = MCPTransportKind.SSE

    def __init__(self, url: str, headers: dict[str, str] | None = None) -> None:
        self.url = url
        self.headers = dict(headers or {})

    async def open(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        read, write = await stack.enter_async_context(
            sse_client(self.url, headers=self.headers or None)
        )
        return read, write

    def describe(self) -> str:
        return self.url


class StreamableHTTPTransport(MCPTransport):
    """Request/response HTTP connection (MCP streamable HTTP)."""

    kind = MCPTransportKind.STREAMABLE_HTTP

    def __init__(self, url: str, headers: dict[str, str] | None = None) -> None:
        self.url = url
        self.headers = dict(headers or {})

    async def open(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        read, write, _get_session_id = await stack.enter_async_context(
            streamablehttp_client(self.url, headers=self.headers or None)
        )
        return read, write

    def describe(self) -> str:
        return self.url


def build_stdio_env(overrides: dict[str, str] | None = None) -> dict[str, str]:
    """Parent environment overlaid with descriptor-supplied variables.

    Args:
        overrides: Variables from the server descriptor.

    Returns:
        Complete environment for the server process.
    """
    env = os.environ.copy()
    if overrides:
        env.update(overrides)
    return env


def create_transport(server_name: str, descriptor: MCPServerDescriptor) -> MCPTransport:
    """Build the transport for a server descriptor.

    Args:
        server_name: Name of the server (used in errors).
        descriptor: Server descriptor.

    Returns:
        Unconnected transport.

    Raises:
        ConfigurationError: If the descriptor has no transport selector.
    """
    kind = descriptor.transport_kind

    if kind is MCPTransportKind.STREAMABLE_HTTP:
        transport: MCPTransport = StreamableHTTPTransport(descriptor.http_url, descriptor.headers)
    elif kind is MCPTransportKind.SSE:
        transport = SSETransport(descriptor.url, descriptor.headers)
    elif kind is MCPTransportKind.STDIO:
        transport = StdioTransport(
            descriptor.command,
            descriptor.args,
            env=build_stdio_env(descriptor.env),
            cwd=descriptor.cwd,
        )
    else:
        raise ConfigurationError(
            "Invalid configuration: missing httpUrl (for Streamable HTTP), "
            "url (for SSE), and command (for stdio).",
            server_name,
        )

    logger.debug(f"Built {kind.value} transport for '{server_name}': {transport.describe()}")
    return transport
