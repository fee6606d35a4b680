"""MCP server descriptors."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Default per-call timeout (10 minutes), in milliseconds like the config files
MCP_DEFAULT_TIMEOUT_MSEC = 10 * 60 * 1000


class MCPTransportKind(Enum):
    """MCP transport method."""

    STDIO = "stdio"  # Subprocess over standard input/output
    SSE = "sse"  # Long-lived Server-Sent Events stream
    STREAMABLE_HTTP = "streamable_http"  # Request/response HTTP


class MCPServerDescriptor(BaseModel):
    """Connection descriptor for one configured MCP server.

    Field names follow the JSON config format (``httpUrl``, ``includeTools``,
    ...); the snake_case attribute names are accepted as well.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    # Stdio transport
    command: str | None = None
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    cwd: str | None = None

    # HTTP transports
    url: str | None = None  # SSE
    http_url: str | None = Field(default=None, alias="httpUrl")  # Streamable HTTP
    headers: dict[str, str] = Field(default_factory=dict)

    # Timeouts in milliseconds
    timeout: int | None = Field(default=None, gt=0)
    connect_timeout: int | None = Field(default=None, alias="connectTimeout", gt=0)

    # Tool filtering
    include_tools: list[str] | None = Field(default=None, alias="includeTools")
    exclude_tools: list[str] | None = Field(default=None, alias="excludeTools")

    @property
    def transport_kind(self) -> MCPTransportKind | None:
        """Transport selected by field precedence, or None if unconfigured."""
        if self.http_url:
            return MCPTransportKind.STREAMABLE_HTTP
        if self.url:
            return MCPTransportKind.SSE
        if self.command:
            return MCPTransportKind.STDIO
        return None

    @property
    def timeout_seconds(self) -> float:
        """Per-call timeout in seconds."""
        return (self.timeout or MCP_DEFAULT_TIMEOUT_MSEC) / 1000

    @property
    def connect_timeout_seconds(self) -> float:
        """Handshake timeout in seconds."""
        return (self.connect_timeout or self.timeout or MCP_DEFAULT_TIMEOUT_MSEC) / 1000

    def target(self) -> str:
        """Human-readable connection target (URL or command line)."""
        if self.http_url:
            return self.http_url
        if self.url:
            return self.url
        if self.command:
            return " ".join([self.command, *self.args])
        return "-"

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON config representation."""
        return self.model_dump(by_alias=True, exclude_none=True, exclude_defaults=True)
