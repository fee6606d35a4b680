"""MCP (Model Context Protocol) CLI commands."""

import asyncio
import json
from typing import Any

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from toolbridge.core.mcp.config import load_mcp_configurations
from toolbridge.core.mcp.descriptor import MCPServerDescriptor
from toolbridge.core.mcp.exceptions import ConfigParseError
from toolbridge.core.mcp.integration import get_mcp_tool_names
from toolbridge.core.mcp.orchestrator import MCPOrchestrator
from toolbridge.core.mcp.status import MCPServerStatus, ServerStatusRegistry, get_status_registry
from toolbridge.tools.registry import ToolRegistry

mcp_app = typer.Typer(
    name="mcp",
    help="Inspect and call MCP (Model Context Protocol) servers",
)
console = Console()

STATUS_LABELS = {
    MCPServerStatus.CONNECTED: "[green]Connected[/green]",
    MCPServerStatus.CONNECTING: "[yellow]Connecting[/yellow]",
    MCPServerStatus.DISCONNECTED: "[red]Disconnected[/red]",
}

MCP_SERVER_OPTION_HELP = "Ad-hoc MCP server command line, registered as server 'mcp'."


def load_servers(server_command: str | None = None) -> dict[str, MCPServerDescriptor]:
    """Load configured servers, exiting with an error on a bad command line."""
    try:
        return load_mcp_configurations(server_command=server_command)
    except ConfigParseError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


async def discover_servers(
    servers: dict[str, MCPServerDescriptor],
    tool_registry: ToolRegistry,
    status_registry: ServerStatusRegistry | None = None,
) -> MCPOrchestrator:
    """Connect to ``servers`` and register their tools into ``tool_registry``."""
    orchestrator = MCPOrchestrator(status_registry=status_registry)
    await orchestrator.discover_all(servers, None, tool_registry)
    return orchestrator


def _run_discovery(
    servers: dict[str, MCPServerDescriptor],
    tool_registry: ToolRegistry,
    status_registry: ServerStatusRegistry,
) -> None:
    """Run one discovery pass and close every client afterwards."""

    async def _discover_and_close() -> None:
        orchestrator = await discover_servers(servers, tool_registry, status_registry)
        await orchestrator.close_all()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(f"Discovering tools from {len(servers)} MCP server(s)...", total=None)
        asyncio.run(_discover_and_close())


def _format_filters(descriptor: MCPServerDescriptor) -> str:
    parts = []
    if descriptor.include_tools is not None:
        parts.append("include: " + ", ".join(descriptor.include_tools))
    if descriptor.exclude_tools:
        parts.append("exclude: " + ", ".join(descriptor.exclude_tools))
    return "; ".join(parts) or "-"


@mcp_app.command("list")
def mcp_list() -> None:
    """List configured MCP servers."""
    servers = load_servers()

    if not servers:
        console.print("[dim]No MCP servers configured.[/dim]")
        console.print(
            "[dim]Add servers to ~/.toolbridge/mcp-config.json, ./mcp-config.json "
            "or MCP_SERVER_<NAME>_<FIELD> environment variables.[/dim]"
        )
        return

    table = Table(title="MCP Servers", show_header=True, header_style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Transport")
    table.add_column("Target")
    table.add_column("Timeout")
    table.add_column("Filters")

    for name, descriptor in servers.items():
        kind = descriptor.transport_kind
        table.add_row(
            name,
            kind.value if kind else "[red]invalid[/red]",
            descriptor.target() or "-",
            f"{descriptor.timeout_seconds:g}s",
            _format_filters(descriptor),
        )

    console.print(table)
    console.print()
    console.print("[dim]Use 'toolbridge mcp discover' to connect and list their tools.[/dim]")


@mcp_app.command("discover")
def mcp_discover(
    mcp_server: str = typer.Option(None, "--mcp-server", "-m", help=MCP_SERVER_OPTION_HELP),
) -> None:
    """Connect to every configured server and list the tools it offers."""
    servers = load_servers(mcp_server)
    if not servers:
        console.print("[dim]No MCP servers configured.[/dim]")
        return

    tool_registry = ToolRegistry()
    status_registry = get_status_registry()
    _run_discovery(servers, tool_registry, status_registry)

    status_table = Table(title="Server Status", show_header=True, header_style="bold")
    status_table.add_column("Server", style="cyan")
    status_table.add_column("Status")
    status_table.add_column("Tools", justify="right")

    tools_by_server: dict[str, list[str]] = {}
    for name in get_mcp_tool_names(tool_registry):
        tool = tool_registry.get_tool(name)
        tools_by_server.setdefault(tool.server_name, []).append(name)

    for name in servers:
        # The clients were closed above, so report whether discovery succeeded.
        succeeded = name in tools_by_server
        status = MCPServerStatus.CONNECTED if succeeded else status_registry.get(name)
        status_table.add_row(name, STATUS_LABELS[status], str(len(tools_by_server.get(name, []))))

    console.print(status_table)

    if not tools_by_server:
        console.print("\n[yellow]No MCP tools discovered.[/yellow]")
        return

    tools_table = Table(title="Discovered Tools", show_header=True, header_style="bold")
    tools_table.add_column("Tool", style="cyan")
    tools_table.add_column("Server")
    tools_table.add_column("Description")

    for server_name, names in tools_by_server.items():
        for name in names:
            description = tool_registry.get_tool(name).description
            if len(description) > 60:
                description = description[:60] + "..."
            tools_table.add_row(name, server_name, description or "[dim]-[/dim]")

    console.print()
    console.print(tools_table)


def _parse_args(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid --args JSON:[/red] {e}")
        raise typer.Exit(1)
    if not isinstance(args, dict):
        console.print("[red]--args must be a JSON object[/red]")
        raise typer.Exit(1)
    return args


@mcp_app.command("call")
def mcp_call(
    tool_name: str = typer.Argument(..., help="Name of the tool to call"),
    args: str = typer.Option(None, "--args", "-a", help="Tool arguments as a JSON object."),
    mcp_server: str = typer.Option(None, "--mcp-server", "-m", help=MCP_SERVER_OPTION_HELP),
) -> None:
    """Discover tools, then call one of them and print its result."""
    arguments = _parse_args(args)
    servers = load_servers(mcp_server)
    if not servers:
        console.print("[red]No MCP servers configured.[/red]")
        raise typer.Exit(1)

    async def _call() -> Any:
        tool_registry = ToolRegistry()
        orchestrator = await discover_servers(servers, tool_registry)
        try:
            if tool_registry.get_tool(tool_name) is None:
                return None
            return await tool_registry.execute(tool_name, **arguments)
        finally:
            await orchestrator.close_all()

    with console.status(f"Calling [cyan]{tool_name}[/cyan]..."):
        result = asyncio.run(_call())

    if result is None:
        console.print(f"[red]Unknown tool:[/red] {tool_name}")
        console.print("[dim]Use 'toolbridge mcp discover' to list available tools.[/dim]")
        raise typer.Exit(1)

    if not result.success:
        console.print(f"[red]Error:[/red] {result.error}")
        raise typer.Exit(1)

    console.print_json(json.dumps(result.output, default=str))
    console.print(f"[dim]Completed in {result.execution_time:.2f}s[/dim]")
