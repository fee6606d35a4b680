"""MCP module - capability server discovery and bridging."""

from toolbridge.core.mcp.exceptions import (
    MCPError,
    ConfigurationError,
    ConfigParseError,
    ServerConnectionError,
    DiscoveryError,
    CallTimeoutError,
    RemoteError,
    TransportError,
)
from toolbridge.core.mcp.descriptor import (
    MCPServerDescriptor,
    MCPTransportKind,
    MCP_DEFAULT_TIMEOUT_MSEC,
)
from toolbridge.core.mcp.transport import (
    MCPTransport,
    StdioTransport,
    SSETransport,
    StreamableHTTPTransport,
    create_transport,
)
from toolbridge.core.mcp.client import CapabilityClient
from toolbridge.core.mcp.discovery import MCPProxyTool, discover_tools, is_enabled
from toolbridge.core.mcp.status import (
    MCPServerStatus,
    MCPDiscoveryState,
    ServerStatusRegistry,
    get_status_registry,
)
from toolbridge.core.mcp.config import (
    AD_HOC_SERVER_NAME,
    apply_server_command,
    load_mcp_configurations,
)
from toolbridge.core.mcp.orchestrator import MCPOrchestrator, discover_mcp_tools

__all__ = [
    # Errors
    "MCPError",
    "ConfigurationError",
    "ConfigParseError",
    "ServerConnectionError",
    "DiscoveryError",
    "CallTimeoutError",
    "RemoteError",
    "TransportError",
    # Descriptors and transports
    "MCPServerDescriptor",
    "MCPTransportKind",
    "MCP_DEFAULT_TIMEOUT_MSEC",
    "MCPTransport",
    "StdioTransport",
    "SSETransport",
    "StreamableHTTPTransport",
    "create_transport",
    # Client and discovery
    "CapabilityClient",
    "MCPProxyTool",
    "discover_tools",
    "is_enabled",
    # Status
    "MCPServerStatus",
    "MCPDiscoveryState",
    "ServerStatusRegistry",
    "get_status_registry",
    # Configuration
    "AD_HOC_SERVER_NAME",
    "apply_server_command",
    "load_mcp_configurations",
    # Orchestration
    "MCPOrchestrator",
    "discover_mcp_tools",
]
