"""
Error types raised by the turn engine and its collaborators.

Transport, decode and build errors abort the current turn and reach the
caller. Tool errors stay local to one invocation: the orchestrator turns
them into a ToolResult payload so the model can react to the failure.
"""

from __future__ import annotations


class AgentError(Exception):
    """Base class for all agent errors."""


class ConfigError(AgentError):
    """A configuration file could not be read or is invalid."""


class BuildError(AgentError):
    """A message or request violates a validity contract."""


class TransportError(AgentError):
    """The model backend failed to send a request or to deliver its stream."""


class DecodeError(AgentError):
    """The inbound event stream could not be assembled into content blocks."""


class StreamProtocolError(DecodeError):
    """The event sequence is out of order (e.g. nested tool calls)."""


class ToolInputDecodeError(DecodeError):
    """Accumulated tool input is not valid JSON."""

    def __init__(self, tool_use_id: str, name: str, buffer: str, reason: str = "") -> None:
        self.tool_use_id = tool_use_id
        self.name = name
        self.buffer = buffer
        message = f"Failed to parse input of tool call '{name}' ({tool_use_id}) as JSON"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ToolError(AgentError):
    """Base class for tool provider failures."""


class ProviderUnavailable(ToolError):
    """No tool provider is attached."""

    def __init__(self, message: str = "Tool provider is not connected") -> None:
        super().__init__(message)


class ToolNotFound(ToolError):
    """The requested tool is not in the provider's catalog."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool not found: {name}")


class ToolExecutionFailed(ToolError):
    """The provider reported a failure while executing a tool."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)
