"""Tool discovery for connected MCP servers."""

import logging
from typing import Any

from toolbridge.core.mcp.client import CapabilityClient
from toolbridge.core.mcp.descriptor import MCPServerDescriptor
from toolbridge.core.mcp.exceptions import DiscoveryError, MCPError
from toolbridge.tools.base import Tool

logger = logging.getLogger(__name__)

EMPTY_PARAMETERS_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


class MCPProxyTool(Tool):
    """A tool that forwards execution to an operation on an MCP server."""

    def __init__(
        self,
        client: CapabilityClient,
        server_name: str,
        name: str,
        description: str,
        parameters: dict[str, Any] | None,
        timeout: float,
    ) -> None:
        """Initialize the proxy tool.

        Args:
            client: Connected client of the owning server. Not owned.
            server_name: Name of the owning server.
            name: Operation name on the server.
            description: Human-readable description.
            parameters: JSON schema of the operation's arguments.
            timeout: Per-call timeout in seconds.
        """
        self.client = client
        self.server_name = server_name
        self.name = name
        self.description = description
        self.parameters = parameters or dict(EMPTY_PARAMETERS_SCHEMA)
        self.timeout = timeout

    async def execute(self, **kwargs: Any) -> dict[str, Any]:
        """Invoke the remote operation.

        Raises:
            CallTimeoutError, RemoteError, TransportError: From the client,
                carrying the owning server's name.
        """
        return await self.client.call(self.name, kwargs, self.timeout)

    def _get_parameters_schema(self) -> dict[str, Any]:
        return self.parameters

    def __repr__(self) -> str:
        return f"MCPProxyTool(server={self.server_name!r}, name={self.name!r})"


def is_enabled(
    operation: dict[str, Any],
    server_name: str,
    descriptor: MCPServerDescriptor,
) -> bool:
    """Apply the include/exclude filter to one discovered operation.

    ``exclude_tools`` takes precedence over ``include_tools``. An include
    entry matches on the exact name or as ``"name(...)"``.

    Args:
        operation: Operation dict with at least a ``name``.
        server_name: Name of the server (for logging).
        descriptor: Server descriptor holding the filters.

    Returns:
        True if the operation should be exposed.
    """
    name = operation.get("name")
    if not name:
        logger.warning(
            f"Discovered a function declaration without a name from MCP server "
            f"'{server_name}'. Skipping."
        )
        return False

    if descriptor.exclude_tools and name in descriptor.exclude_tools:
        return False

    if descriptor.include_tools is None:
        return True

    return any(
        tool == name or tool.startswith(f"{name}(") for tool in descriptor.include_tools
    )


async def discover_tools(
    server_name: str,
    descriptor: MCPServerDescriptor,
    client: CapabilityClient,
) -> list[MCPProxyTool]:
    """Discover and wrap the enabled tools of a connected server.

    Args:
        server_name: Name of the server.
        descriptor: Server descriptor (filters and timeout).
        client: Connected client.

    Returns:
        Proxy tools in the order the server reported them.

    Raises:
        DiscoveryError: If the tool list is invalid, cannot be fetched, or
            no tools remain after filtering.
    """
    timeout = descriptor.timeout_seconds

    try:
        operations = await client.list_operations(timeout)
    except MCPError as e:
        raise DiscoveryError(f"Error discovering tools: {e}", server_name) from e

    if not isinstance(operations, list):
        raise DiscoveryError("Server did not return valid function declarations.", server_name)

    tools = []
    for operation in operations:
        if not isinstance(operation, dict) or not is_enabled(operation, server_name, descriptor):
            continue

        tools.append(
            MCPProxyTool(
                client=client,
                server_name=server_name,
                name=operation["name"],
                description=operation.get("description") or "",
                parameters=operation.get("parameters"),
                timeout=timeout,
            )
        )

    if not tools:
        raise DiscoveryError("No enabled tools found", server_name)

    logger.debug(f"Discovered {len(tools)} tools from '{server_name}': {[t.name for t in tools]}")
    return tools
