"""Tool registry - the named wallet operations a chat session may invoke."""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from agent_wallet_ai.errors import ToolExecutionError
from agent_wallet_ai.llm.base import ToolDefinition


class ToolCategory(str, Enum):
    """What kind of operation a tool performs, fixed at registration."""

    TRANSFER = "transfer"
    QUERY = "query"
    SWAP = "swap"
    WRAP_UNWRAP = "wrap_unwrap"


@dataclass
class Tool:
    name: str
    description: str
    parameters: dict[str, Any]
    func: Callable[..., Any] | Callable[..., Awaitable[Any]]
    category: ToolCategory = ToolCategory.QUERY
    is_async: bool = False

    def to_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
        )

    async def execute(self, **kwargs) -> Any:
        """Run the tool and return its raw result (dict or str).

        Synchronous tools do blocking RPC calls, so they run in a worker
        thread.
        """
        if self.is_async:
            return await self.func(**kwargs)
        return await asyncio.to_thread(self.func, **kwargs)


class ToolRegistry:
    """Registry of tools available to one chat session."""

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for t in tools or []:
            self.register(t)

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def get_tool(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def get_tools(self, names: list[str] | None = None) -> list[Tool]:
        if names is None:
            return list(self._tools.values())
        return [self._tools[n] for n in names if n in self._tools]

    def list_names(self) -> list[str]:
        return list(self._tools.keys())

    def category_of(self, name: str) -> ToolCategory | None:
        tool = self._tools.get(name)
        return tool.category if tool else None

    def definitions(self) -> list[ToolDefinition]:
        return [t.to_definition() for t in self._tools.values()]

    async def invoke(self, name: str, arguments: dict[str, Any] | None = None) -> Any:
        """Execute a tool by name.

        Raises
        ------
        ToolExecutionError
            If no tool with this name is registered.  Exceptions raised by
            the tool itself propagate unchanged.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolExecutionError(f"Unknown tool '{name}'")
        return await tool.execute(**(arguments or {}))

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def make_tool(
    name: str,
    description: str,
    func: Callable,
    category: ToolCategory = ToolCategory.QUERY,
    parameters: dict[str, Any] | None = None,
) -> Tool:
    """Build a :class:`Tool`, defaulting to an empty-object schema."""
    return Tool(
        name=name,
        description=description,
        parameters=parameters if parameters is not None else {"type": "object", "properties": {}},
        func=func,
        category=category,
        is_async=inspect.iscoroutinefunction(func),
    )
