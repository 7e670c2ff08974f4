"""
Tool Registry

In-process tool executor. Resolves tools by name and normalizes every kind of
failure into ToolExecutionError, so callers see a single result-or-raise
contract:
- unknown tool name
- a tool raising any exception
- a tool returning a ``{"success": False, "error": ...}`` result dict
"""

import json
from typing import Any

import structlog

from taskloop.core.domain.errors import ToolExecutionError
from taskloop.core.interfaces.tools import ToolProtocol


class ToolRegistry:
    def __init__(self, tools: list[ToolProtocol] | None = None):
        self.tools: dict[str, ToolProtocol] = {}
        self.logger = structlog.get_logger().bind(component="tool_registry")
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolProtocol) -> None:
        if tool.name in self.tools:
            self.logger.warning("tool_replaced", tool=tool.name)
        self.tools[tool.name] = tool

    def get(self, tool_name: str) -> ToolProtocol | None:
        return self.tools.get(tool_name)

    async def execute(self, tool_name: str, args: dict[str, Any]) -> Any:
        """
        Execute a registered tool with keyword arguments.

        Raises:
            ToolExecutionError: Unknown tool, tool raised, or tool reported failure.
        """
        tool = self.tools.get(tool_name)
        if tool is None:
            available = ", ".join(sorted(self.tools)) or "none"
            raise ToolExecutionError(tool_name, f"Tool not found: {tool_name} (available: {available})")

        try:
            result = await tool.execute(**(args or {}))
        except ToolExecutionError:
            raise
        except Exception as e:
            self.logger.error("tool_execution_exception", tool=tool_name, error=str(e))
            raise ToolExecutionError(tool_name, str(e) or type(e).__name__) from e

        if isinstance(result, dict) and result.get("success") is False:
            raise ToolExecutionError(tool_name, str(result.get("error") or "Tool reported failure"))
        return result

    def describe(self) -> str:
        """Build formatted description of available tools."""
        descriptions = []
        for tool in self.tools.values():
            schema = getattr(tool, "parameters_schema", None)
            entry = f"Tool: {tool.name}\nDescription: {tool.description}"
            if schema:
                entry += f"\nParameters: {json.dumps(schema, indent=2)}"
            descriptions.append(entry)
        return "\n\n".join(descriptions)
