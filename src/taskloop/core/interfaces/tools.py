"""
Tool Protocols

A tool is a named capability the loop can invoke with keyword arguments.
The tool executor resolves a tool by name and runs it; the loop only sees the
name, the arguments and the result or error.
"""

from typing import Any, Protocol


class ToolProtocol(Protocol):
    """Protocol for an individual tool."""

    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    async def execute(self, **kwargs: Any) -> Any: ...


class ToolExecutorProtocol(Protocol):
    """Protocol for resolving and executing tools by name."""

    async def execute(self, tool_name: str, args: dict[str, Any]) -> Any:
        """
        Execute a tool.

        Raises:
            Exception: Any failure; the loop records it as the action's error.
        """
        ...

    def describe(self) -> str:
        """Human-readable description of the available tools for prompts."""
        ...
