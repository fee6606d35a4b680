"""Configuration management for toolbridge."""

import json
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ToolbridgeConfig(BaseSettings):
    """Main configuration for toolbridge."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Data directories
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".toolbridge")
    working_dir: Path = Field(default_factory=Path.cwd)

    # MCP server config files (user scope, then project scope)
    mcp_config_path: Path | None = None
    project_mcp_config_path: Path | None = None

    # Logging
    log_level: str = "WARNING"

    def __init__(self, **data: Any) -> None:
        """Initialize config with computed paths."""
        super().__init__(**data)
        if self.mcp_config_path is None:
            self.mcp_config_path = self.data_dir / "mcp-config.json"
        if self.project_mcp_config_path is None:
            self.project_mcp_config_path = self.working_dir / "mcp-config.json"

    def ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load(cls, path: Path | None = None) -> "ToolbridgeConfig":
        """Load configuration from file.

        Args:
            path: Path to load from. Defaults to ~/.toolbridge/config.json.

        Returns:
            Loaded configuration or default config if file doesn't exist.
        """
        load_path = path or (Path.home() / ".toolbridge" / "config.json")
        if load_path.exists():
            with open(load_path) as f:
                data = json.load(f)
            return cls(**data)
        return cls()


# Global config instance
_config: ToolbridgeConfig | None = None


def get_config() -> ToolbridgeConfig:
    """Get the global configuration instance.

    Returns:
        ToolbridgeConfig instance.
    """
    global _config
    if _config is None:
        _config = ToolbridgeConfig.load()
    return _config


def set_config(config: ToolbridgeConfig) -> None:
    """Set the global configuration instance.

    Args:
        config: Configuration to set.
    """
    global _config
    _config = config
