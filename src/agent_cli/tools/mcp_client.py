"""
Tool provider backed by a local MCP server.

Process launch and JSON-RPC framing are delegated to the ``mcp`` SDK; this
module only maps its session onto the ToolInvoker interface.

Example:
    tools = McpToolInvoker()
    await tools.connect("uvx", ["mcp-server-git"])
    print(await tools.list_tools())
    result = await tools.invoke("git_status", {"repo_path": "."})
    await tools.disconnect()
"""

from __future__ import annotations

from contextlib import AsyncExitStack
from pathlib import Path
from typing import Any

import anyio
from dotenv import dotenv_values
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import get_default_environment, stdio_client
from mcp.shared.exceptions import McpError

from agent_cli.errors import ConfigError, ProviderUnavailable, ToolExecutionFailed, ToolNotFound
from agent_cli.logging import get_logger
from agent_cli.tools.base import ToolDescriptor, ToolInvoker
from agent_cli.tools.mcp_config import ServerConfig

logger = get_logger("tools.mcp")

# Raised by the SDK streams when the server process dies or closes its pipes
STREAM_ERRORS = (anyio.BrokenResourceError, anyio.ClosedResourceError, anyio.EndOfStream, OSError)


class McpToolInvoker(ToolInvoker):
    """ToolInvoker over one stdio MCP server connection."""

    def __init__(self) -> None:
        self._stack: AsyncExitStack | None = None
        self._session: ClientSession | None = None
        self._server_info: Any = None
        self._tools: dict[str, ToolDescriptor] | None = None
        self.command: str | None = None

    @property
    def is_attached(self) -> bool:
        return self._session is not None

    @property
    def server_info(self) -> Any:
        """Server implementation info from the initialize handshake, if connected."""
        return self._server_info

    async def connect(
        self,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        cwd: str | None = None,
    ) -> None:
        """
        Launch ``command`` and open an MCP session over its stdio.

        An existing connection is closed first. On failure the invoker is
        left disconnected and the error propagates.
        """
        if self._session is not None:
            await self.disconnect()

        params = StdioServerParameters(
            command=command,
            args=list(args or []),
            env={**get_default_environment(), **(env or {})},
            cwd=cwd,
        )

        stack = AsyncExitStack()
        try:
            read, write = await stack.enter_async_context(stdio_client(params))
            session = await stack.enter_async_context(ClientSession(read, write))
            init = await session.initialize()
        except BaseException:
            await stack.aclose()
            raise

        self._stack = stack
        self._session = session
        self._server_info = getattr(init, "serverInfo", None)
        self._tools = None
        self.command = command
        logger.info("Connected to MCP server: %s %s", command, " ".join(params.args))

    async def connect_server(
        self, server: ServerConfig, workspace_folder: str | None = None
    ) -> None:
        """Connect using an ``mcp.json`` server entry."""
        if server.server_type != "stdio":
            raise ConfigError(
                f"Server type '{server.server_type}' is not supported; only 'stdio' is"
            )
        env: dict[str, str] = {}
        if server.env_file:
            env_path = Path(server.resolve_value(server.env_file, workspace_folder))
            env.update({k: v for k, v in dotenv_values(env_path).items() if v is not None})
        env.update(server.env)
        cwd = server.resolve_value(server.cwd, workspace_folder) if server.cwd else None
        await self.connect(
            server.resolve_command(workspace_folder),
            server.resolve_args(workspace_folder),
            env=env,
            cwd=cwd,
        )

    async def disconnect(self) -> None:
        """Close the session and stop the server process."""
        if self._stack is None:
            raise ProviderUnavailable("MCP client is not connected")
        stack = self._stack
        self._stack = None
        self._session = None
        self._server_info = None
        self._tools = None
        self.command = None
        await stack.aclose()
        logger.info("Disconnected from MCP server")

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise ProviderUnavailable("MCP client is not connected")
        return self._session

    async def list_tools(self) -> list[ToolDescriptor]:
        session = self._require_session()
        try:
            response = await session.list_tools()
        except McpError as e:
            raise ToolExecutionFailed(f"Failed to list tools: {e}") from e
        except STREAM_ERRORS as e:
            raise ToolExecutionFailed(f"MCP server connection failed: {type(e).__name__}: {e}") from e

        tools = [
            ToolDescriptor(
                name=t.name,
                description=t.description or "",
                input_schema=t.inputSchema,
            )
            for t in response.tools
        ]
        self._tools = {t.name: t for t in tools}
        return tools

    async def invoke(self, name: str, args: dict[str, Any]) -> Any:
        session = self._require_session()
        if self._tools is None:
            await self.list_tools()
        if name not in (self._tools or {}):
            raise ToolNotFound(name)

        logger.debug("Calling MCP tool %s with args: %s", name, args)
        try:
            result = await session.call_tool(name, arguments=args)
        except McpError as e:
            raise ToolExecutionFailed(str(e)) from e
        except STREAM_ERRORS as e:
            raise ToolExecutionFailed(f"MCP server connection failed: {type(e).__name__}: {e}") from e

        if result.isError:
            detail = "\n".join(
                getattr(c, "text", "") for c in result.content if getattr(c, "text", "")
            )
            raise ToolExecutionFailed(detail or f"Tool '{name}' reported an error")

        return result.model_dump(mode="json", exclude_none=True)

    async def list_resources(self) -> list[dict[str, Any]]:
        session = self._require_session()
        response = await session.list_resources()
        return [r.model_dump(mode="json", exclude_none=True) for r in response.resources]

    async def list_prompts(self) -> list[dict[str, Any]]:
        session = self._require_session()
        response = await session.list_prompts()
        return [p.model_dump(mode="json", exclude_none=True) for p in response.prompts]
