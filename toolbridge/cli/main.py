"""toolbridge CLI - Main entry point."""

import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from toolbridge import __version__
from toolbridge.cli.commands.mcp_cmd import mcp_app
from toolbridge.core.config import get_config
from toolbridge.core.mcp.exceptions import ConfigParseError
from toolbridge.core.mcp.integration import integrate_mcp_tools
from toolbridge.tools.files import get_local_tools
from toolbridge.tools.registry import ToolRegistry

app = typer.Typer(
    name="toolbridge",
    help="toolbridge - Bridge MCP server tools into a local tool registry",
    add_completion=False,
    rich_markup_mode="rich",
)
app.add_typer(mcp_app, name="mcp")
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]toolbridge[/bold blue] version {__version__}")
        raise typer.Exit()


def setup_logging(level: str) -> None:
    """Route log records through rich on stderr.

    Args:
        level: Logging level name, e.g. ``"DEBUG"`` or ``"WARNING"``.
    """
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # The HTTP client logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    """toolbridge - discover tools offered by MCP servers and call them.

    Servers are configured in ~/.toolbridge/mcp-config.json, ./mcp-config.json
    or MCP_SERVER_<NAME>_<FIELD> environment variables.
    """
    setup_logging("DEBUG" if verbose else get_config().log_level)


@app.command()
def tools(
    mcp_server: str = typer.Option(
        None,
        "--mcp-server",
        "-m",
        help="Ad-hoc MCP server command line, registered as server 'mcp'.",
    ),
) -> None:
    """List local tools together with every discovered MCP tool."""
    config = get_config()

    tool_registry = ToolRegistry()
    for tool in get_local_tools(config.working_dir, config.data_dir):
        tool_registry.register_tool(tool)

    async def _discover() -> None:
        orchestrator = await integrate_mcp_tools(tool_registry, server_command=mcp_server)
        await orchestrator.close_all()

    try:
        with console.status("Discovering MCP tools..."):
            asyncio.run(_discover())
    except ConfigParseError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title="Available Tools", show_header=True, header_style="bold")
    table.add_column("Tool", style="cyan")
    table.add_column("Source")
    table.add_column("Parameters")
    table.add_column("Description")

    for name in tool_registry.list_tools():
        tool = tool_registry.get_tool(name)
        server_name = getattr(tool, "server_name", None)
        source = f"mcp:{server_name}" if server_name else "[dim]local[/dim]"
        params = ", ".join(tool.get_schema()["parameters"].get("properties", {})) or "-"
        description = tool.description
        if len(description) > 50:
            description = description[:50] + "..."
        table.add_row(name, source, params, description)

    console.print(table)
    console.print(f"\n[bold]Total: {len(tool_registry.list_tools())} tools[/bold]")


if __name__ == "__main__":
    app()
