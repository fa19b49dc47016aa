"""
MCP server configuration (``mcp.json``).

Follows the layout of Visual Studio Code's ``.vscode/mcp.json``:

    {
      "inputs": [
        {"type": "promptString", "id": "token", "description": "API token", "password": true}
      ],
      "servers": {
        "git": {
          "type": "stdio",
          "command": "uvx",
          "args": ["mcp-server-git", "--repository", "${workspaceFolder}"],
          "env": {"LOG_LEVEL": "debug"}
        }
      }
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from agent_cli.errors import ConfigError

WORKSPACE_FOLDER_VAR = "${workspaceFolder}"

DEFAULT_PATHS = (Path(".vscode/mcp.json"), Path("mcp.json"))


@dataclass
class InputConfig:
    """An input prompt definition."""

    input_type: str
    id: str
    description: str
    password: bool = False


@dataclass
class ServerConfig:
    """Launch settings for one MCP server."""

    server_type: str
    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    env_file: str | None = None
    cwd: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServerConfig:
        try:
            return cls(
                server_type=data["type"],
                command=data["command"],
                args=[str(a) for a in data.get("args", [])],
                env={str(k): str(v) for k, v in data.get("env", {}).items()},
                env_file=data.get("envFile"),
                cwd=data.get("cwd"),
            )
        except KeyError as e:
            raise ConfigError(f"Server entry is missing required field {e}") from e

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.server_type, "command": self.command}
        if self.args:
            data["args"] = list(self.args)
        if self.env:
            data["env"] = dict(self.env)
        if self.env_file is not None:
            data["envFile"] = self.env_file
        if self.cwd is not None:
            data["cwd"] = self.cwd
        return data

    @staticmethod
    def resolve_value(value: str, workspace_folder: str | None = None) -> str:
        """Expand ``${workspaceFolder}`` in a single value."""
        if workspace_folder is None:
            return value
        return value.replace(WORKSPACE_FOLDER_VAR, workspace_folder)

    def resolve_command(self, workspace_folder: str | None = None) -> str:
        """Command with ``${workspaceFolder}`` expanded."""
        return self.resolve_value(self.command, workspace_folder)

    def resolve_args(self, workspace_folder: str | None = None) -> list[str]:
        """Arguments with ``${workspaceFolder}`` expanded."""
        return [self.resolve_value(arg, workspace_folder) for arg in self.args]


@dataclass
class McpConfig:
    """Root of an ``mcp.json`` file."""

    servers: dict[str, ServerConfig] = field(default_factory=dict)
    inputs: list[InputConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> McpConfig:
        if not isinstance(data, dict) or "servers" not in data:
            raise ConfigError("Failed to parse mcp.json: missing 'servers'")
        servers = {
            name: ServerConfig.from_dict(entry) for name, entry in data["servers"].items()
        }
        inputs = [
            InputConfig(
                input_type=i.get("type", ""),
                id=i.get("id", ""),
                description=i.get("description", ""),
                password=bool(i.get("password", False)),
            )
            for i in data.get("inputs", [])
        ]
        return cls(servers=servers, inputs=inputs)

    @classmethod
    def from_json_string(cls, content: str) -> McpConfig:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Failed to parse mcp.json: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def load_from_file(cls, path: str | Path) -> McpConfig:
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to read {path}: {e}") from e
        return cls.from_json_string(content)

    @staticmethod
    def default_path(base_dir: Path | None = None) -> Path | None:
        """First existing default location: ``.vscode/mcp.json``, then ``mcp.json``."""
        base = base_dir or Path.cwd()
        for candidate in DEFAULT_PATHS:
            path = base / candidate
            if path.exists():
                return path
        return None

    @classmethod
    def load_default(cls, base_dir: Path | None = None) -> McpConfig | None:
        """Load from the default location, or None when no file exists."""
        path = cls.default_path(base_dir)
        if path is None:
            return None
        return cls.load_from_file(path)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "servers": {name: s.to_dict() for name, s in self.servers.items()}
        }
        if self.inputs:
            data["inputs"] = [
                {
                    "type": i.input_type,
                    "id": i.id,
                    "description": i.description,
                    "password": i.password,
                }
                for i in self.inputs
            ]
        return data

    def server_names(self) -> list[str]:
        return list(self.servers)

    def get_server(self, name: str) -> ServerConfig | None:
        return self.servers.get(name)
