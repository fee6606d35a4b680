"""Connection orchestration for MCP servers.

For every configured server the orchestrator runs the pipeline

    connecting -> connect -> connected -> discover tools -> register tools

All pipelines run concurrently. A failure in one server only affects that
server: it is logged and reflected as ``disconnected`` in the status registry,
and never aborts the others.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol

from toolbridge.core.mcp.client import CapabilityClient
from toolbridge.core.mcp.config import apply_server_command
from toolbridge.core.mcp.descriptor import MCPServerDescriptor
from toolbridge.core.mcp.discovery import discover_tools
from toolbridge.core.mcp.exceptions import ServerConnectionError
from toolbridge.core.mcp.status import (
    MCPDiscoveryState,
    MCPServerStatus,
    ServerStatusRegistry,
    get_status_registry,
)
from toolbridge.core.mcp.transport import MCPTransport, create_transport

logger = logging.getLogger(__name__)


class ToolRegistryProtocol(Protocol):
    """What the orchestrator needs from a tool registry."""

    def register_tool(self, tool: Any) -> None: ...


class MCPOrchestrator:
    """Connects to MCP servers and registers their tools."""

    def __init__(
        self,
        status_registry: ServerStatusRegistry | None = None,
        client_factory: Callable[[str], CapabilityClient] = CapabilityClient,
        transport_factory: Callable[[str, MCPServerDescriptor], MCPTransport] = create_transport,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            status_registry: Status registry to publish to. Defaults to the
                global registry.
            client_factory: Builds a client for a server name.
            transport_factory: Builds a transport for a descriptor.
        """
        self.status_registry = status_registry or get_status_registry()
        self._client_factory = client_factory
        self._transport_factory = transport_factory
        self.clients: dict[str, CapabilityClient] = {}

    async def discover_all(
        self,
        servers: dict[str, MCPServerDescriptor],
        server_command: str | None,
        tool_registry: ToolRegistryProtocol,
    ) -> None:
        """Discover tools from every configured server.

        Args:
            servers: Server descriptors by name.
            server_command: Optional ad-hoc server command line, registered
                under the name ``"mcp"``.
            tool_registry: Registry receiving the discovered tools.

        Raises:
            ConfigParseError: If ``server_command`` cannot be tokenized.
                Failures of individual servers are never raised.
        """
        self.status_registry.set_discovery_state(MCPDiscoveryState.IN_PROGRESS)
        try:
            servers = apply_server_command(dict(servers), server_command)

            results = await asyncio.gather(
                *(
                    self.connect_and_discover(name, descriptor, tool_registry)
                    for name, descriptor in servers.items()
                ),
                return_exceptions=True,
            )
            for name, result in zip(servers, results):
                if isinstance(result, Exception):
                    logger.error(f"Unexpected error discovering MCP server '{name}': {result}")
        finally:
            self.status_registry.set_discovery_state(MCPDiscoveryState.COMPLETED)

    async def connect_and_discover(
        self,
        server_name: str,
        descriptor: MCPServerDescriptor,
        tool_registry: ToolRegistryProtocol,
    ) -> None:
        """Run the connect, discover and register pipeline for one server.

        Args:
            server_name: Server name.
            descriptor: Server descriptor.
            tool_registry: Registry receiving the discovered tools.
        """
        self.status_registry.set(server_name, MCPServerStatus.CONNECTING)

        try:
            client = await self._connect(server_name, descriptor)
        except Exception as e:
            logger.error(_connection_failure_message(server_name, e))
            self.status_registry.set(server_name, MCPServerStatus.DISCONNECTED)
            return

        self.status_registry.set(server_name, MCPServerStatus.CONNECTED)
        client.on_error(lambda error: self._handle_client_error(server_name, error))

        try:
            tools = await discover_tools(server_name, descriptor, client)
        except Exception as e:
            await client.close()
            logger.error(f"Error discovering tools from MCP server '{server_name}': {e}")
            self.status_registry.set(server_name, MCPServerStatus.DISCONNECTED)
            return

        for tool in tools:
            tool_registry.register_tool(tool)
        self.clients[server_name] = client
        logger.info(f"MCP server '{server_name}' contributed {len(tools)} tools")

    async def _connect(self, server_name: str, descriptor: MCPServerDescriptor) -> CapabilityClient:
        transport = self._transport_factory(server_name, descriptor)
        client = self._client_factory(server_name)
        await client.connect(transport, timeout=descriptor.connect_timeout_seconds)
        return client

    def _handle_client_error(self, server_name: str, error: Exception) -> None:
        logger.error(f"MCP ERROR ({server_name}): {error}")
        self.status_registry.set(server_name, MCPServerStatus.DISCONNECTED)

    async def close_all(self) -> None:
        """Close every client kept from successful discoveries."""
        clients = list(self.clients.items())
        self.clients.clear()
        for server_name, client in clients:
            await client.close()
            self.status_registry.set(server_name, MCPServerStatus.DISCONNECTED)


def _connection_failure_message(server_name: str, error: Exception) -> str:
    """Concise diagnostic for a failed connection attempt."""
    if isinstance(error, ServerConnectionError) and error.unreachable:
        return f"Cannot connect to '{server_name}' - server may be down or URL incorrect"
    return f"Connection failed for '{server_name}': {error}"


async def discover_mcp_tools(
    servers: dict[str, MCPServerDescriptor],
    server_command: str | None,
    tool_registry: ToolRegistryProtocol,
) -> MCPOrchestrator:
    """Discover MCP tools using the global status registry.

    Args:
        servers: Server descriptors by name.
        server_command: Optional ad-hoc server command line.
        tool_registry: Registry receiving the discovered tools.

    Returns:
        The orchestrator, holding the connected clients.
    """
    orchestrator = MCPOrchestrator()
    await orchestrator.discover_all(servers, server_command, tool_registry)
    return orchestrator
