"""MCP-related exceptions for toolbridge."""


class MCPError(Exception):
    """Base exception for capability-server errors.

    Carries the name of the server the failure belongs to so that errors
    surfacing from a tool call are attributable.
    """

    def __init__(self, message: str, server_name: str | None = None):
        if server_name:
            message = f"[{server_name}] {message}"
        super().__init__(message)
        self.server_name = server_name


class ConfigurationError(MCPError):
    """Raised when a server descriptor is malformed or incomplete."""

    pass


class ConfigParseError(MCPError):
    """Raised when a configuration source cannot be parsed."""

    def __init__(self, message: str, source: str | None = None):
        super().__init__(f"{message} ({source})" if source else message)
        self.source = source


class ServerConnectionError(MCPError):
    """Raised when the handshake with a server fails or times out."""

    def __init__(
        self,
        message: str,
        server_name: str | None = None,
        unreachable: bool = False,
    ):
        super().__init__(message, server_name)
        self.unreachable = unreachable


class DiscoveryError(MCPError):
    """Raised when a server returns an invalid or empty tool list."""

    pass


class CallTimeoutError(MCPError):
    """Raised when a tool call does not complete within its timeout."""

    def __init__(self, operation: str, timeout: float, server_name: str | None = None):
        super().__init__(
            f"Call to '{operation}' timed out after {timeout:g} seconds",
            server_name,
        )
        self.operation = operation
        self.timeout = timeout


class RemoteError(MCPError):
    """Raised when the server reports an application-level failure."""

    def __init__(self, message: str, server_name: str | None = None, code: int | None = None):
        super().__init__(message, server_name)
        self.code = code


class TransportError(MCPError):
    """Raised when the connection to a server is lost or closed."""

    pass
