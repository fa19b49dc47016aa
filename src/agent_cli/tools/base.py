"""Tool provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ToolDescriptor:
    """A tool advertised by a provider."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] | None = field(default=None)


class ToolInvoker(ABC):
    """
    Capability interface over an external tool provider.

    Implementations raise ``ProviderUnavailable`` when no provider is
    attached, ``ToolNotFound`` for names outside the catalog, and
    ``ToolExecutionFailed`` for provider-side failures.
    """

    @property
    @abstractmethod
    def is_attached(self) -> bool: ...

    @abstractmethod
    async def list_tools(self) -> list[ToolDescriptor]: ...

    @abstractmethod
    async def invoke(self, name: str, args: dict[str, Any]) -> Any: ...
