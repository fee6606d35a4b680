"""Local filesystem tools."""

from pathlib import Path
from typing import Any

from toolbridge.core.config import get_config
from toolbridge.tools.base import Tool
from toolbridge.tools.memory import MEMORY_FILENAME, SaveMemoryTool


class _FileTool(Tool):
    """Shared path handling for file tools."""

    def __init__(self, working_dir: Path | None = None) -> None:
        """Initialize the tool.

        Args:
            working_dir: Directory relative paths are resolved against.
        """
        self.working_dir = working_dir or Path.cwd()

    def _resolve(self, path: str) -> Path:
        target = Path(path).expanduser()
        if not target.is_absolute():
            target = self.working_dir / target
        return target


class ReadFileTool(_FileTool):
    """Read the contents of a text file."""

    name = "read_file"
    description = "Read the contents of a file at the specified path"

    async def execute(self, **kwargs: Any) -> dict[str, Any]:
        path = self._resolve(kwargs["path"])
        content = path.read_text(encoding="utf-8")
        return {
            "content": content,
            "summary": f"Read {len(content)} characters from {path}",
        }

    def _get_parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file to read",
                },
            },
            "required": ["path"],
        }


class WriteFileTool(_FileTool):
    """Write text content to a file, creating parent directories."""

    name = "write_file"
    description = "Write content to a file at the specified path"

    async def execute(self, **kwargs: Any) -> dict[str, Any]:
        path = self._resolve(kwargs["path"])
        content = kwargs["content"]
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return {"summary": f"Successfully wrote {len(content)} characters to {path}"}

    def _get_parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path where to write the file",
                },
                "content": {
                    "type": "string",
                    "description": "Content to write to the file",
                },
            },
            "required": ["path", "content"],
        }


def get_local_tools(working_dir: Path | None = None, data_dir: Path | None = None) -> list[Tool]:
    """Build the built-in local tools.

    Args:
        working_dir: Directory relative paths are resolved against.
        data_dir: Directory holding the memory file. Defaults to the
            configured data directory.

    Returns:
        List of tool instances.
    """
    memory_path = (data_dir or get_config().data_dir) / MEMORY_FILENAME
    return [ReadFileTool(working_dir), WriteFileTool(working_dir), SaveMemoryTool(memory_path)]
