"""CLI command submodules."""

from toolbridge.cli.commands.mcp_cmd import mcp_app

__all__ = ["mcp_app"]
