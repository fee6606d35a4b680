"""MCP server connection status tracking."""

import logging
from collections.abc import Callable
from enum import Enum

logger = logging.getLogger(__name__)


class MCPServerStatus(str, Enum):
    """Connection status of an MCP server."""

    DISCONNECTED = "disconnected"  # Not connected, or failed
    CONNECTING = "connecting"
    CONNECTED = "connected"


class MCPDiscoveryState(str, Enum):
    """Overall state of MCP tool discovery."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"  # With or without errors


StatusListener = Callable[[str, MCPServerStatus], None]


class ServerStatusRegistry:
    """Registry of per-server connection statuses.

    Listeners are notified synchronously, in subscription order, on every
    ``set`` call.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._statuses: dict[str, MCPServerStatus] = {}
        self._listeners: list[StatusListener] = []
        self._discovery_state = MCPDiscoveryState.NOT_STARTED

    def get(self, server_name: str) -> MCPServerStatus:
        """Get the status of a server.

        Args:
            server_name: Server name.

        Returns:
            Current status, ``DISCONNECTED`` for unknown servers.
        """
        return self._statuses.get(server_name, MCPServerStatus.DISCONNECTED)

    def get_all(self) -> dict[str, MCPServerStatus]:
        """Get a snapshot of all known statuses."""
        return dict(self._statuses)

    def set(self, server_name: str, status: MCPServerStatus) -> None:
        """Update the status of a server and notify listeners.

        Args:
            server_name: Server name.
            status: New status.
        """
        self._statuses[server_name] = status
        for listener in list(self._listeners):
            try:
                listener(server_name, status)
            except Exception:
                logger.exception(f"MCP status listener failed for '{server_name}'")

    def subscribe(self, listener: StatusListener) -> None:
        """Add a status change listener."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: StatusListener) -> None:
        """Remove a status change listener. Unknown listeners are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def discovery_state(self) -> MCPDiscoveryState:
        """Current discovery state."""
        return self._discovery_state

    def set_discovery_state(self, state: MCPDiscoveryState) -> None:
        """Update the discovery state."""
        logger.debug(f"MCP discovery state: {self._discovery_state.value} -> {state.value}")
        self._discovery_state = state

    def reset(self) -> None:
        """Forget all statuses and return to ``NOT_STARTED``. Listeners are kept."""
        self._statuses.clear()
        self._discovery_state = MCPDiscoveryState.NOT_STARTED


# Global status registry instance
_status_registry: ServerStatusRegistry | None = None


def get_status_registry() -> ServerStatusRegistry:
    """Get the global MCP server status registry.

    Returns:
        ServerStatusRegistry instance.
    """
    global _status_registry
    if _status_registry is None:
        _status_registry = ServerStatusRegistry()
    return _status_registry
