"""Tools module - local tools and the shared tool registry."""

from toolbridge.tools.base import Tool, ToolResult
from toolbridge.tools.files import ReadFileTool, WriteFileTool, get_local_tools
from toolbridge.tools.memory import SaveMemoryTool
from toolbridge.tools.registry import ToolRegistry

__all__ = [
    # Base
    "Tool",
    "ToolResult",
    # Local tools
    "ReadFileTool",
    "WriteFileTool",
    "SaveMemoryTool",
    "get_local_tools",
    # Registry
    "ToolRegistry",
]
