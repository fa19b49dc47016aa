"""
Configuration for the agent CLI.

Settings can come from a YAML file, the environment, or be constructed
programmatically. Command-line flags are applied on top by the CLI.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from agent_cli.errors import ConfigError

BACKENDS = ("bedrock", "anthropic", "openai")

SEARCH_PATHS = (
    Path("agent-cli.yaml"),
    Path(".agent-cli.yaml"),
    Path("~/.config/agent-cli/config.yaml"),
)


@dataclass
class AgentConfig:
    """
    Agent CLI settings.

    Example YAML:
        backend: bedrock
        aws_profile: dev
        region: eu-west-1
        max_tool_rounds: 10
        system_prompt: You are a careful assistant.
    """

    # Model backend
    backend: str = "bedrock"  # "bedrock", "anthropic" or "openai"
    model: str | None = None  # None = backend default
    aws_profile: str | None = None
    region: str | None = None  # None = profile default, then us-east-1
    base_url: str | None = None  # OpenAI-compatible endpoint
    api_key: str | None = None
    max_tokens: int = 4096
    system_prompt: str = ""

    # Turn engine
    max_tool_rounds: int | None = None  # None = unbounded

    # Presentation
    indicator_interval: float = 0.2
    indicator_symbol: str = "."
    user_label: str = "User"
    assistant_label: str = "Assistant"

    # Tool providers
    mcp_config: Path | None = None  # None = .vscode/mcp.json, then mcp.json

    def __post_init__(self) -> None:
        if self.backend not in BACKENDS:
            raise ConfigError(
                f"Unknown backend '{self.backend}', expected one of: {', '.join(BACKENDS)}"
            )
        if self.max_tool_rounds is not None and self.max_tool_rounds < 0:
            raise ConfigError("max_tool_rounds must be >= 0")
        if isinstance(self.mcp_config, str):
            self.mcp_config = Path(self.mcp_config)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentConfig:
        """Create config from a dictionary. Unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Path) -> AgentConfig:
        """Load config from a YAML file."""
        return cls.from_dict(_read_yaml(path))

    @classmethod
    def from_yaml_string(cls, content: str) -> AgentConfig:
        """Load config from a YAML string."""
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}") from e
        return cls.from_dict(data or {})

    @classmethod
    def from_env(cls, **overrides: Any) -> AgentConfig:
        """Create config from environment variables."""
        values = _env_values()
        values.update(overrides)
        return cls(**values)

    @classmethod
    def load(cls, path: Path | None = None) -> AgentConfig:
        """
        Load config from ``path``, or from the first file found on the
        search path. Keys set in the file override the environment; the
        environment supplies every key the file leaves out.
        Returns environment-only config when no file exists.
        """
        if path is None:
            path = find_config_file()
        if path is None:
            return cls.from_env()

        return cls.from_dict({**_env_values(), **_read_yaml(Path(path))})

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary."""
        return {
            "backend": self.backend,
            "model": self.model,
            "aws_profile": self.aws_profile,
            "region": self.region,
            "base_url": self.base_url,
            "api_key": self.api_key,
            "max_tokens": self.max_tokens,
            "system_prompt": self.system_prompt,
            "max_tool_rounds": self.max_tool_rounds,
            "indicator_interval": self.indicator_interval,
            "indicator_symbol": self.indicator_symbol,
            "user_label": self.user_label,
            "assistant_label": self.assistant_label,
            "mcp_config": str(self.mcp_config) if self.mcp_config else None,
        }


def _env_values() -> dict[str, Any]:
    return {
        "backend": os.environ.get("AGENT_CLI_BACKEND", "bedrock"),
        "model": os.environ.get("AGENT_CLI_MODEL"),
        "aws_profile": os.environ.get("AWS_PROFILE"),
        "region": os.environ.get("AWS_REGION"),
        "base_url": os.environ.get("OPENAI_BASE_URL"),
        "api_key": os.environ.get("OPENAI_API_KEY"),
    }


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}")
    return data


def find_config_file(base_dir: Path | None = None) -> Path | None:
    """First existing file on the config search path."""
    base = base_dir or Path.cwd()
    for candidate in SEARCH_PATHS:
        path = candidate.expanduser()
        if not path.is_absolute():
            path = base / path
        if path.is_file():
            return path
    return None
