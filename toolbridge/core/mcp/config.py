"""MCP server configuration loading.

Server descriptors are merged from these sources, later ones replacing
earlier entries with the same name as a whole:

  1. Environment variables ``MCP_SERVER_<NAME>_<FIELD>``
  2. The user config file (``~/.toolbridge/mcp-config.json``)
  3. The project config file (``./mcp-config.json``)
  4. An ad-hoc server command, stored under the reserved name ``"mcp"``

Config files are shaped ``{"servers": {"<name>": {...descriptor...}}}``.
"""

import json
import logging
import os
import re
import shlex
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from toolbridge.core.config import get_config
from toolbridge.core.mcp.descriptor import MCPServerDescriptor
from toolbridge.core.mcp.exceptions import ConfigParseError

logger = logging.getLogger(__name__)

ENV_PREFIX = "MCP_SERVER_"
AD_HOC_SERVER_NAME = "mcp"

_ENV_PATTERN = re.compile(rf"^{ENV_PREFIX}([^_]+)_(.+)$")
_ENV_STRING_FIELDS = {
    "COMMAND": "command",
    "URL": "url",
    "HTTP_URL": "httpUrl",
}
_ENV_LIST_FIELDS = {
    "ARGS": "args",
    "INCLUDE_TOOLS": "includeTools",
    "EXCLUDE_TOOLS": "excludeTools",
}
_VAR_PATTERN = re.compile(r"\$(?:\{(\w+)\}|(\w+))")
_SHELL_OPERATOR_CHARS = set("();<>|&")


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",")]


def _build_descriptor(name: str, data: Any, source: str) -> MCPServerDescriptor | None:
    """Validate one server entry, logging and skipping invalid ones."""
    try:
        return MCPServerDescriptor.model_validate(data)
    except ValidationError as e:
        error = ConfigParseError(f"Invalid MCP server '{name}': {e}", source=source)
        logger.warning(str(error))
        return None


def load_from_environment(environ: Mapping[str, str] | None = None) -> dict[str, MCPServerDescriptor]:
    """Load server descriptors from environment variables.

    Args:
        environ: Environment to read. Defaults to ``os.environ``.

    Returns:
        Descriptors keyed by the server name used in the variable names.
    """
    environ = os.environ if environ is None else environ
    raw: dict[str, dict[str, Any]] = {}

    for key, value in environ.items():
        match = _ENV_PATTERN.match(key)
        if not match:
            continue

        server_name, field = match.groups()
        entry = raw.setdefault(server_name, {})

        if field in _ENV_STRING_FIELDS:
            entry[_ENV_STRING_FIELDS[field]] = value
        elif field in _ENV_LIST_FIELDS:
            entry[_ENV_LIST_FIELDS[field]] = _split_list(value)
        elif field == "TIMEOUT":
            try:
                entry["timeout"] = int(value)
            except ValueError:
                logger.warning(f"Ignoring invalid {key}={value!r}: expected milliseconds")

    servers = {}
    for server_name, entry in raw.items():
        descriptor = _build_descriptor(server_name, entry, "environment")
        if descriptor is not None:
            servers[server_name] = descriptor
    return servers


def load_from_file(path: Path) -> dict[str, MCPServerDescriptor]:
    """Load server descriptors from a JSON config file.

    Args:
        path: Config file path. A missing file yields no servers.

    Returns:
        Descriptors keyed by server name.

    Raises:
        ConfigParseError: If the file is not valid JSON of the expected shape.
    """
    if not path.exists():
        return {}

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigParseError(f"Failed to load MCP config: {e}", source=str(path)) from e

    if not isinstance(data, dict):
        raise ConfigParseError("MCP config must be a JSON object", source=str(path))

    servers = data.get("servers") or {}
    if not isinstance(servers, dict):
        raise ConfigParseError("'servers' must be a JSON object", source=str(path))

    result = {}
    for server_name, entry in servers.items():
        descriptor = _build_descriptor(server_name, entry, str(path))
        if descriptor is not None:
            result[server_name] = descriptor
    return result


def load_mcp_configurations(
    environ: Mapping[str, str] | None = None,
    user_config_path: Path | None = None,
    project_config_path: Path | None = None,
    server_command: str | None = None,
) -> dict[str, MCPServerDescriptor]:
    """Load and merge MCP server descriptors from all config sources.

    Unparseable files are logged as warnings and skipped. An unparseable
    ``server_command`` is an error.

    Args:
        environ: Environment to read. Defaults to ``os.environ``.
        user_config_path: User config file. Defaults to the configured path.
        project_config_path: Project config file. Defaults to the configured path.
        server_command: Optional ad-hoc server command line.

    Returns:
        Merged descriptors keyed by server name.

    Raises:
        ConfigParseError: If ``server_command`` cannot be tokenized.
    """
    if user_config_path is None or project_config_path is None:
        config = get_config()
        user_config_path = user_config_path or config.mcp_config_path
        project_config_path = project_config_path or config.project_mcp_config_path

    servers = load_from_environment(environ)

    for path in (user_config_path, project_config_path):
        try:
            servers.update(load_from_file(path))
        except ConfigParseError as e:
            logger.warning(str(e))

    return apply_server_command(servers, server_command, environ)


def _quote_value(value: str, quote: str | None) -> str:
    if quote == '"':
        return value.replace("\\", "\\\\").replace('"', '\\"')
    return shlex.quote(value)


def _expand_vars(command: str, environ: Mapping[str, str]) -> str:
    """Expand ``$VAR`` and ``${VAR}`` outside single quotes.

    Values are quoted so the lexer keeps them as literal text. Unset
    variables expand to an empty string.
    """
    parts = []
    quote = None
    i = 0
    while i < len(command):
        char = command[i]
        if char == "\\" and quote != "'":
            parts.append(command[i : i + 2])
            i += 2
            continue
        if char in "'\"" and quote in (None, char):
            quote = None if quote else char
        elif char == "$" and quote != "'":
            match = _VAR_PATTERN.match(command, i)
            if match:
                value = environ.get(match.group(1) or match.group(2), "")
                parts.append(_quote_value(value, quote))
                i = match.end()
                continue
        parts.append(char)
        i += 1
    return "".join(parts)


def tokenize_command(command: str, environ: Mapping[str, str] | None = None) -> list[str]:
    """Split a server command line into arguments.

    POSIX shell quoting applies and ``$VAR`` references are expanded except
    inside single quotes. Shell operators (pipes, redirections, ...) are rejected.

    Args:
        command: Command line.
        environ: Variables for expansion. Defaults to ``os.environ``.

    Returns:
        Command and arguments.

    Raises:
        ConfigParseError: If the command cannot be tokenized.
    """
    environ = os.environ if environ is None else environ

    lexer = shlex.shlex(_expand_vars(command, environ), posix=True, punctuation_chars=True)
    lexer.whitespace_split = True
    try:
        tokens = list(lexer)
    except ValueError as e:
        raise ConfigParseError(f"failed to parse mcpServerCommand: {command} ({e})") from e

    if not tokens:
        raise ConfigParseError(f"failed to parse mcpServerCommand: {command!r} is empty")

    if any(token and set(token) <= _SHELL_OPERATOR_CHARS for token in tokens):
        raise ConfigParseError(f"failed to parse mcpServerCommand: {command}")

    return tokens


def apply_server_command(
    servers: dict[str, MCPServerDescriptor],
    command: str | None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, MCPServerDescriptor]:
    """Register an ad-hoc server command under the reserved name ``"mcp"``.

    An existing ``"mcp"`` entry is replaced, not merged.

    Args:
        servers: Descriptors to update in place.
        command: Command line, or None to leave ``servers`` unchanged.
        environ: Variables for expansion.

    Returns:
        The updated ``servers`` mapping.

    Raises:
        ConfigParseError: If the command cannot be tokenized.
    """
    if command:
        args = tokenize_command(command, environ)
        servers[AD_HOC_SERVER_NAME] = MCPServerDescriptor(command=args[0], args=args[1:])
    return servers


def get_mcp_server_config(server_name: str) -> MCPServerDescriptor | None:
    """Get a configured server descriptor by name."""
    return load_mcp_configurations().get(server_name)


def list_mcp_servers() -> list[str]:
    """List the names of all configured servers."""
    return list(load_mcp_configurations().keys())
