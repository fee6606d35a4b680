"""toolbridge - conversational CLI agent with MCP tool bridging."""

__version__ = "0.1.0"
