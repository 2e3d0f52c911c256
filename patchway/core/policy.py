"""
Role policy for Patchway.

Each role may only reach the tools its duty requires. The mapping is
static and enforced twice: when a role's tool view is built (a view that
would give an inspection-only role a mutating tool cannot be created)
and on every call (a disallowed tool never reaches the registry).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from patchway.errors import PolicyViolationError, ToolNotAllowedError
from patchway.models.tools import ToolContext, ToolInfo, ToolResult
from patchway.tools.registry import ToolRegistry
from patchway.utils.logger import get_logger

logger = get_logger(__name__)


class Role(str, Enum):
    """Pipeline roles."""

    PLANNER = "planner"
    EXECUTOR = "executor"
    AUDITOR = "auditor"
    COMMITTER = "committer"

    @property
    def read_only(self) -> bool:
        """Whether the role may only inspect the graph."""
        return self in (Role.PLANNER, Role.AUDITOR)


DEFAULT_ALLOWLISTS: dict[Role, frozenset[str]] = {
    Role.PLANNER: frozenset({
        "verify_state",
        "list_available_graphs",
        "get_active_graph",
        "search_nodes",
    }),
    Role.EXECUTOR: frozenset({
        "create_node_prototype",
        "create_node_instance",
        "create_edge",
        "move_node_instance",
        "identify_patterns",
        "get_graph_instances",
    }),
    Role.AUDITOR: frozenset({
        "verify_state",
        "get_active_graph",
        "get_graph_instances",
        "search_nodes",
    }),
    # The committer writes through the graph store, never through tools
    Role.COMMITTER: frozenset(),
}


class RolePolicy:
    """
    Static mapping from role to allowed tool names.

    Example:
        >>> policy = RolePolicy()
        >>> policy.is_allowed(Role.PLANNER, "verify_state")
        True
        >>> policy.is_allowed(Role.PLANNER, "create_edge")
        False
        >>> view = policy.view(Role.EXECUTOR, registry)
    """

    def __init__(self, allowlists: Mapping[Role, Any] | None = None):
        """
        Initialize the policy.

        Args:
            allowlists: Role to tool names mapping (defaults to DEFAULT_ALLOWLISTS)

        Raises:
            PolicyViolationError: If the committer is granted any tool
        """
        source = DEFAULT_ALLOWLISTS if allowlists is None else allowlists
        self._allowlists: dict[Role, frozenset[str]] = {
            Role(role): frozenset(tools) for role, tools in source.items()
        }
        for role in Role:
            self._allowlists.setdefault(role, frozenset())

        if self._allowlists[Role.COMMITTER]:
            raise PolicyViolationError(
                f"Committer may not be granted tools: {sorted(self._allowlists[Role.COMMITTER])}"
            )

    def allowed_tools(self, role: Role | str) -> frozenset[str]:
        """Get the tool names a role may use."""
        return self._allowlists[Role(role)]

    def is_allowed(self, role: Role | str, tool_name: str) -> bool:
        """Check whether a role may use a tool."""
        return tool_name in self.allowed_tools(role)

    def check(self, role: Role | str, tool_name: str) -> None:
        """
        Require that a role may use a tool.

        Raises:
            ToolNotAllowedError: If the tool is outside the role's allowlist
        """
        if not self.is_allowed(role, tool_name):
            raise ToolNotAllowedError(Role(role).value, tool_name)

    def view(self, role: Role | str, registry: ToolRegistry) -> RoleToolView:
        """
        Build the tool view a role's runner works through.

        Args:
            role: Role the view is for
            registry: Registry holding the tools

        Returns:
            RoleToolView limited to the role's allowlist
        """
        role = Role(role)
        return RoleToolView(role, self.allowed_tools(role), registry)


class RoleToolView:
    """
    A registry restricted to one role's allowlist.

    The capability set is fixed when the view is built. A runner holding
    a view has no way to reach tools outside it.
    """

    def __init__(self, role: Role, allowed: frozenset[str], registry: ToolRegistry):
        """
        Initialize the view.

        Args:
            role: Role the view is for
            allowed: Tool names the role may use
            registry: Registry holding the tools

        Raises:
            PolicyViolationError: If a read-only role would get a mutating
                tool, or the committer would get any tool
        """
        self.role = role
        self._allowed = frozenset(allowed)
        self._registry = registry

        if role == Role.COMMITTER and self._allowed:
            raise PolicyViolationError(f"Committer may not be granted tools: {sorted(self._allowed)}")

        if role.read_only:
            mutating = sorted(
                tool.name
                for tool in registry.get_all().values()
                if tool.name in self._allowed and tool.mutating
            )
            if mutating:
                raise PolicyViolationError(
                    f"{role.value} is inspection-only but was granted: {', '.join(mutating)}"
                )

        missing = sorted(name for name in self._allowed if name not in registry)
        if missing:
            logger.debug(f"{role.value} allowlist names unregistered tools: {missing}")

    @property
    def tools(self) -> frozenset[str]:
        """Tool names reachable through this view."""
        return self._allowed

    def allows(self, tool_name: str) -> bool:
        return tool_name in self._allowed

    def check(self, tool_name: str) -> None:
        """
        Require that the view allows a tool.

        Raises:
            ToolNotAllowedError: If it does not
        """
        if not self.allows(tool_name):
            raise ToolNotAllowedError(self.role.value, tool_name)

    async def execute_tool(
        self,
        name: str,
        args: dict[str, Any],
        context: ToolContext,
    ) -> ToolResult:
        """
        Execute an allowed tool.

        Raises:
            ToolNotAllowedError: Before the registry is touched, if not allowed
            UnknownToolError: If the tool is allowed but not registered
        """
        self.check(name)
        return await self._registry.execute_tool(name, args, context)

    def get_info(self) -> list[ToolInfo]:
        """Describe the tools reachable through this view."""
        return [
            tool.get_info()
            for name, tool in sorted(self._registry.get_all().items())
            if name in self._allowed
        ]
