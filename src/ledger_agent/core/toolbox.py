from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from pydantic import BaseModel, Field

from .exceptions import ToolExecutionError, ValidationError
from .tool import Tool
from ..types_.base import JSON
from ..types_.core import BookInfo, ToolResult

logger = logging.getLogger(__name__)


class ToolDescription(BaseModel):
    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)

    @property
    def required(self) -> list[str]:
        return list(self.parameters.get("required", []))

    @property
    def properties(self) -> dict[str, Any]:
        return dict(self.parameters.get("properties", {}))


class Toolbox:
    """Registry of local tools; satisfies the ``ToolExecutor`` protocol."""

    def __init__(self, tools: Iterable[Tool | Callable[..., Any]] = ()):
        self._tools: dict[str, Tool] = {}
        for t in tools:
            self.register(t)

    def register(self, t: Tool | Callable[..., Any]) -> Tool:
        if not isinstance(t, Tool):
            t = Tool(t)
        if t.name in self._tools:
            logger.warning(f"Replacing registered tool {t.name}")
        self._tools[t.name] = t
        return t

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def describe(self) -> list[ToolDescription]:
        """Name, description and argument schema of every tool, in registration order."""
        return [ToolDescription(name=t.name, description=t.description, parameters=t.parameters) for t in self._tools.values()]

    async def call_tool(self, name: str, arguments: JSON, book: BookInfo | None) -> ToolResult:
        try:
            t = self._tools[name]
        except KeyError:
            raise ToolExecutionError(f"未找到工具: {name}。可用工具: {', '.join(self.names) or '无'}") from None

        try:
            data = await t.invoke(arguments, book)
        except ValidationError:
            raise
        except Exception as e:
            logger.debug(f"Tool {name} raised {type(e).__name__}", exc_info=True)
            raise ToolExecutionError(f"工具 {name} 调用失败: {e}") from e
        return data if isinstance(data, ToolResult) else ToolResult(data=data)
