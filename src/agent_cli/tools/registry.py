"""In-process tool provider backed by Python callables."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from agent_cli.errors import ProviderUnavailable, ToolExecutionFailed, ToolNotFound
from agent_cli.logging import get_logger
from agent_cli.tools.base import ToolDescriptor, ToolInvoker

logger = get_logger("tools.registry")


@dataclass
class ToolDefinition:
    """A registered tool and its handler."""

    name: str
    description: str
    parameters: dict[str, Any]
    handler: Callable[..., Any]  # (args: dict) -> JSON value, sync or async

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name, description=self.description, input_schema=self.parameters
        )


class LocalToolInvoker(ToolInvoker):
    """
    Registry of local tools exposed through the ToolInvoker interface.

    Example:
        tools = LocalToolInvoker()

        @tools.tool("add", "Add two numbers", {
            "type": "object",
            "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
            "required": ["a", "b"],
        })
        def add(args):
            return {"sum": args["a"] + args["b"]}
    """

    def __init__(self, attached: bool = True) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self.attached = attached

    @property
    def is_attached(self) -> bool:
        return self.attached

    def register(self, tool: ToolDefinition) -> None:
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def tool(
        self,
        name: str,
        description: str = "",
        parameters: dict[str, Any] | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a handler under ``name``."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.register(
                ToolDefinition(
                    name=name,
                    description=description or (fn.__doc__ or "").strip(),
                    parameters=parameters or {"type": "object", "properties": {}},
                    handler=fn,
                )
            )
            return fn

        return decorator

    async def list_tools(self) -> list[ToolDescriptor]:
        if not self.attached:
            raise ProviderUnavailable()
        return [t.descriptor() for t in self._tools.values()]

    async def invoke(self, name: str, args: dict[str, Any]) -> Any:
        if not self.attached:
            raise ProviderUnavailable()
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFound(name)

        logger.debug("Executing tool %s with args: %s", name, args)
        try:
            result = tool.handler(args)
            if asyncio.iscoroutine(result):
                result = await result
        except Exception as e:
            raise ToolExecutionFailed(f"{type(e).__name__}: {e}") from e
        return result
