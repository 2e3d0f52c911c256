"""
Tool registry for discovering and executing graph tools.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from patchway.errors import UnknownToolError
from patchway.models.tools import ToolCategory, ToolContext, ToolInfo, ToolResult
from patchway.utils.logger import get_logger, log_tool_execution

if TYPE_CHECKING:
    from patchway.core.graph import GraphStore
    from patchway.tools.base import BaseTool

logger = get_logger(__name__)


class ToolRegistry:
    """
    Registry for graph tools.

    The registry maintains the collection of available tools and
    executes them by name. Role restrictions are not applied here; they
    live in the role-scoped views built by ``RolePolicy``.

    Example:
        >>> registry = ToolRegistry()
        >>> registry.register(VerifyStateTool(store))
        >>> tool = registry.get("verify_state")
        >>> result = await registry.execute_tool("verify_state", {}, context)
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        """
        Register a tool in the registry.

        Args:
            tool: Tool instance to register
        """
        self._tools[tool.name] = tool

    def get(self, name: str) -> BaseTool | None:
        """
        Get a tool by name.

        Args:
            name: Tool name

        Returns:
            Tool instance or None if not found
        """
        return self._tools.get(name)

    def get_all(self) -> dict[str, BaseTool]:
        """Get all registered tools."""
        return self._tools.copy()

    def get_by_category(self, category: ToolCategory) -> list[BaseTool]:
        """
        Get all tools in a category.

        Args:
            category: Tool category

        Returns:
            List of tools in the category
        """
        return [t for t in self._tools.values() if t.category == category]

    def get_tool_info(self) -> list[ToolInfo]:
        """Get information about all registered tools."""
        return [t.get_info() for t in self._tools.values()]

    def list_names(self) -> list[str]:
        """Get list of all tool names."""
        return list(self._tools.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    async def execute_tool(
        self,
        name: str,
        args: dict[str, Any],
        context: ToolContext,
    ) -> ToolResult:
        """
        Execute a tool by name.

        Args:
            name: Tool name
            args: Sanitized arguments
            context: Caller information

        Returns:
            ToolResult (failures inside the tool are reported, not raised)

        Raises:
            UnknownToolError: If no tool has that name
        """
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)

        result = await tool.execute(args, context)
        log_tool_execution(
            logger,
            tool=name,
            role=context.role,
            success=result.success,
            duration=result.duration,
            error=result.error_message,
        )
        return result


def build_default_registry(store: GraphStore) -> ToolRegistry:
    """
    Create a registry holding every built-in tool bound to a store.

    Args:
        store: Graph store the tools read from

    Returns:
        Populated registry
    """
    from patchway.tools.builtin import (
        CreateEdgeTool,
        CreateNodeInstanceTool,
        CreateNodePrototypeTool,
        GetActiveGraphTool,
        GetGraphInstancesTool,
        IdentifyPatternsTool,
        ListAvailableGraphsTool,
        MoveNodeInstanceTool,
        SearchNodesTool,
        VerifyStateTool,
    )

    registry = ToolRegistry()

    # Inspection
    registry.register(VerifyStateTool(store))
    registry.register(ListAvailableGraphsTool(store))
    registry.register(GetActiveGraphTool(store))
    registry.register(SearchNodesTool(store))
    registry.register(GetGraphInstancesTool(store))
    registry.register(IdentifyPatternsTool(store))

    # Construction
    registry.register(CreateNodePrototypeTool(store))
    registry.register(CreateNodeInstanceTool(store))
    registry.register(MoveNodeInstanceTool(store))
    registry.register(CreateEdgeTool(store))

    return registry
