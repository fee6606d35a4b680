"""Persistent memory note tool."""

from pathlib import Path
from typing import Any

from toolbridge.tools.base import Tool

MEMORY_FILENAME = "memory.md"
MEMORY_SECTION = "## Added Memories"
_MEMORY_HEADER = f"# toolbridge Memory\n\n{MEMORY_SECTION}\n"


class SaveMemoryTool(Tool):
    """Append a fact to a markdown memory file.

    New facts are inserted directly under the memories heading, so the
    most recent fact comes first.
    """

    name = "save_memory"
    description = "Save a piece of information to long-term memory"

    def __init__(self, memory_path: Path) -> None:
        """Initialize the tool.

        Args:
            memory_path: Markdown file the facts are stored in.
        """
        self.memory_path = memory_path

    async def execute(self, **kwargs: Any) -> dict[str, Any]:
        fact = kwargs["fact"].strip()
        if not fact:
            raise ValueError("fact must not be empty")

        self.memory_path.parent.mkdir(parents=True, exist_ok=True)
        if self.memory_path.exists():
            content = self.memory_path.read_text(encoding="utf-8")
        else:
            content = _MEMORY_HEADER

        entry = f"- {fact}"
        index = content.find(MEMORY_SECTION)
        if index == -1:
            content = content.rstrip("\n") + f"\n\n{MEMORY_SECTION}\n{entry}\n"
        else:
            insert_at = index + len(MEMORY_SECTION)
            content = content[:insert_at] + f"\n{entry}" + content[insert_at:]

        self.memory_path.write_text(content, encoding="utf-8")
        return {"summary": f'Remembered: "{fact}"'}

    def get_memories(self) -> list[str]:
        """Return the stored facts, most recent first."""
        if not self.memory_path.exists():
            return []
        lines = self.memory_path.read_text(encoding="utf-8").splitlines()
        return [line[2:] for line in lines if line.startswith("- ")]

    def _get_parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "fact": {
                    "type": "string",
                    "description": "The fact or information to remember",
                },
            },
            "required": ["fact"],
        }
