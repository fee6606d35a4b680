"""Tool registry shared by local tools and discovered MCP tools."""

import logging
import time
from typing import Any

from toolbridge.core.mcp.exceptions import MCPError
from toolbridge.tools.base import Tool, ToolResult

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry for registering, finding and executing tools."""

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self.tools: dict[str, Tool] = {}

    def register_tool(self, tool: Tool) -> None:
        """Register a tool. A tool with the same name is replaced.

        Args:
            tool: Tool to register.
        """
        if tool.name in self.tools:
            logger.debug(f"Replacing registered tool: {tool.name}")
        self.tools[tool.name] = tool

        server_name = getattr(tool, "server_name", None)
        if server_name:
            logger.info(f"Registered MCP tool: {tool.name} (from {server_name})")
        else:
            logger.info(f"Registered tool: {tool.name}")

    def get_tool(self, name: str) -> Tool | None:
        """Get a tool by name.

        Args:
            name: Tool name.

        Returns:
            Tool instance or None if not found.
        """
        return self.tools.get(name)

    def list_tools(self) -> list[str]:
        """List registered tool names."""
        return list(self.tools.keys())

    def get_function_declarations(self) -> list[dict[str, Any]]:
        """Get the schemas of all registered tools."""
        return [tool.get_schema() for tool in self.tools.values()]

    async def execute(self, tool_name: str, /, **kwargs: Any) -> ToolResult:
        """Execute a tool by name.

        Failures of the tool itself are reported as a failed ToolResult
        rather than raised, so they surface in the conversation turn.

        Args:
            tool_name: Name of the tool to execute.
            **kwargs: Arguments for the tool.

        Returns:
            ToolResult from execution.

        Raises:
            ValueError: If tool is not found.
        """
        tool = self.get_tool(tool_name)
        if tool is None:
            raise ValueError(f"Tool '{tool_name}' not found")

        start_time = time.time()
        try:
            output = await tool.execute(**kwargs)
        except MCPError as e:
            server_name = getattr(tool, "server_name", None) or e.server_name
            error = f"MCP tool '{tool_name}' from server '{server_name}' failed: {e}"
            logger.warning(error)
            return ToolResult(
                tool_name=tool_name,
                success=False,
                output={},
                error=error,
                execution_time=time.time() - start_time,
            )
        except OSError as e:
            return ToolResult(
                tool_name=tool_name,
                success=False,
                output={},
                error=str(e),
                execution_time=time.time() - start_time,
            )
        except Exception as e:
            logger.warning(f"Tool {tool_name} raised {type(e).__name__}: {e}")
            return ToolResult(
                tool_name=tool_name,
                success=False,
                output={},
                error=f"Tool execution failed: {e!r}",
                execution_time=time.time() - start_time,
            )

        return ToolResult(
            tool_name=tool_name,
            success=True,
            output=output,
            execution_time=time.time() - start_time,
        )
