"""
Tool routing and registration for the Oblique Strategies MCP Server.

This module provides:
- ToolDescriptor: the name, description and JSON Schema advertised by tools/list
- ToolRegistry: maps tool names to descriptors and handler functions
- Handler dispatch with error wrapping
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mcp_oblique.errors import InternalError, ToolError

if TYPE_CHECKING:
    from mcp_oblique.context import ToolContext

ToolHandler = Callable[["ToolContext", dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class ToolDescriptor:
    """
    Tool metadata advertised to clients.

    Attributes:
        name: Tool name as used in tools/call.
        description: Human-readable description.
        input_schema: JSON Schema object describing the arguments.
    """

    name: str
    description: str
    input_schema: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the MCP tools/list shape."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


class ToolRegistry:
    """
    Registry for mapping tool names to handler functions.

    Tools are listed in registration order.

    Example:
        >>> registry = ToolRegistry()
        >>> registry.register(descriptor, handler)
        >>> result = await registry.invoke("get_user_history", ctx, {"deviceId": "d1"})
    """

    def __init__(self) -> None:
        """Initialize an empty tool registry."""
        self._handlers: dict[str, ToolHandler] = {}
        self._descriptors: dict[str, ToolDescriptor] = {}

    def register(self, descriptor: ToolDescriptor, handler: ToolHandler) -> None:
        """
        Register a tool.

        Args:
            descriptor: Tool metadata; its name is the registry key.
            handler: Async function that handles the tool call.

        Raises:
            ValueError: If a handler is already registered for the name.
        """
        if descriptor.name in self._handlers:
            raise ValueError(f"Tool '{descriptor.name}' is already registered")
        self._handlers[descriptor.name] = handler
        self._descriptors[descriptor.name] = descriptor

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._handlers

    def get_handler(self, name: str) -> ToolHandler | None:
        """Get the handler for a tool by name, or None if not found."""
        return self._handlers.get(name)

    def list_tools(self) -> list[ToolDescriptor]:
        """Return the descriptors of all registered tools."""
        return list(self._descriptors.values())

    async def invoke(
        self,
        name: str,
        ctx: ToolContext,
        params: dict[str, Any],
    ) -> Any:
        """
        Invoke a tool handler by name.

        Args:
            name: Tool name to invoke.
            ctx: ToolContext for the request.
            params: Arguments to pass to the handler.

        Returns:
            The handler's return value.

        Raises:
            ToolError: If the tool is not found or the handler raises ToolError.
            InternalError: If the handler raises anything else.
        """
        handler = self.get_handler(name)
        if handler is None:
            raise ToolError(
                error_code="not_found",
                message=f"Unknown tool: {name}",
                details={"tool": name},
            )

        try:
            return await handler(ctx, params)
        except ToolError:
            raise
        except Exception as e:
            raise InternalError(
                message=f"Internal error in tool '{name}': {e!s}",
                details={"tool": name, "exception_type": type(e).__name__},
            ) from e

    def __contains__(self, name: str) -> bool:
        """Check if a tool is registered (for 'in' operator)."""
        return name in self._handlers

    def __len__(self) -> int:
        """Return the number of registered tools."""
        return len(self._handlers)
