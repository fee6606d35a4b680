"""Wire discovered MCP tools into a tool registry."""

import logging

from toolbridge.core.mcp.config import load_mcp_configurations
from toolbridge.core.mcp.discovery import MCPProxyTool
from toolbridge.core.mcp.orchestrator import MCPOrchestrator
from toolbridge.core.mcp.status import ServerStatusRegistry
from toolbridge.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


async def integrate_mcp_tools(
    tool_registry: ToolRegistry,
    server_command: str | None = None,
    status_registry: ServerStatusRegistry | None = None,
) -> MCPOrchestrator:
    """Load MCP configuration and register every discoverable tool.

    Args:
        tool_registry: Registry receiving the tools.
        server_command: Optional ad-hoc server command line.
        status_registry: Status registry to publish to. Defaults to the
            global registry.

    Returns:
        The orchestrator holding the open clients. Call ``close_all()`` on
        shutdown.

    Raises:
        ConfigParseError: If ``server_command`` cannot be tokenized.
    """
    orchestrator = MCPOrchestrator(status_registry=status_registry)
    servers = load_mcp_configurations()

    if not servers and not server_command:
        logger.info("No MCP servers configured, skipping MCP tool discovery")
        return orchestrator

    logger.info("Discovering MCP tools...")
    await orchestrator.discover_all(servers, server_command, tool_registry)

    mcp_tools = get_mcp_tool_names(tool_registry)
    if mcp_tools:
        logger.info(f"Discovered {len(mcp_tools)} MCP tools: {', '.join(mcp_tools)}")
    else:
        logger.info("No MCP tools discovered")

    return orchestrator


def get_mcp_tool_names(tool_registry: ToolRegistry) -> list[str]:
    """Names of the registered tools that proxy to MCP servers."""
    return [
        name
        for name in tool_registry.list_tools()
        if isinstance(tool_registry.get_tool(name), MCPProxyTool)
    ]
