"""Base tool class."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class ToolResult:
    """Result from a tool execution."""

    tool_name: str
    success: bool
    output: dict[str, Any]
    error: str | None = None
    execution_time: float = 0.0


class Tool(ABC):
    """Abstract base class for callable tools."""

    name: str
    description: str

    @abstractmethod
    async def execute(self, **kwargs: Any) -> dict[str, Any]:
        """Execute the tool with given arguments.

        Args:
            **kwargs: Tool-specific arguments.

        Returns:
            Tool output.
        """
        pass

    def get_schema(self) -> dict[str, Any]:
        """Get the tool's function declaration for LLM consumption.

        Returns:
            Dict with name, description and JSON schema parameters.
        """
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self._get_parameters_schema(),
        }

    @abstractmethod
    def _get_parameters_schema(self) -> dict[str, Any]:
        """Get the parameters JSON schema.

        Returns:
            JSON schema for parameters.
        """
        pass
