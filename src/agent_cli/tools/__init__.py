"""
Tool providers.

A ToolInvoker lists named, schema-described tools and executes them with
JSON arguments. Two providers ship with the package: LocalToolInvoker for
in-process Python callables and McpToolInvoker for stdio MCP servers.
"""

from agent_cli.tools.base import ToolDescriptor, ToolInvoker
from agent_cli.tools.mcp_client import McpToolInvoker
from agent_cli.tools.mcp_config import McpConfig, ServerConfig
from agent_cli.tools.registry import LocalToolInvoker, ToolDefinition

__all__ = [
    "ToolDescriptor",
    "ToolInvoker",
    "LocalToolInvoker",
    "ToolDefinition",
    "McpToolInvoker",
    "McpConfig",
    "ServerConfig",
]
