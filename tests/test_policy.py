"""
Tests for role policy and role-scoped tool views.
"""

import asyncio

import pytest

from patchway.core.policy import DEFAULT_ALLOWLISTS, Role, RolePolicy, RoleToolView
from patchway.errors import PolicyViolationError, ToolNotAllowedError, UnknownToolError
from patchway.models.tools import ToolContext
from patchway.tools.registry import ToolRegistry, build_default_registry


class SpyRegistry(ToolRegistry):
    """Registry that records every execution request."""

    def __init__(self, tools):
        super().__init__()
        for tool in tools.values():
            self.register(tool)
        self.calls: list[str] = []

    async def execute_tool(self, name, args, context):
        self.calls.append(name)
        return await super().execute_tool(name, args, context)


@pytest.fixture
def spy(registry):
    return SpyRegistry(registry.get_all())


class TestRolePolicy:
    """Tests for RolePolicy class."""

    def test_default_allowlists(self, policy):
        assert policy.allowed_tools(Role.PLANNER) == {
            "verify_state", "list_available_graphs", "get_active_graph", "search_nodes",
        }
        assert policy.allowed_tools(Role.EXECUTOR) == {
            "create_node_prototype", "create_node_instance", "create_edge",
            "move_node_instance", "identify_patterns", "get_graph_instances",
        }
        assert policy.allowed_tools(Role.AUDITOR) == {
            "verify_state", "get_active_graph", "get_graph_instances", "search_nodes",
        }
        assert policy.allowed_tools(Role.COMMITTER) == frozenset()

    def test_allowlists_are_immutable(self):
        assert all(isinstance(tools, frozenset) for tools in DEFAULT_ALLOWLISTS.values())

    def test_is_allowed(self, policy):
        assert policy.is_allowed("executor", "create_edge")
        assert not policy.is_allowed("executor", "delete_everything")
        assert not policy.is_allowed(Role.AUDITOR, "create_edge")

    def test_check_raises(self, policy):
        with pytest.raises(ToolNotAllowedError) as exc_info:
            policy.check(Role.EXECUTOR, "delete_everything")
        assert exc_info.value.role == "executor"
        assert exc_info.value.tool_name == "delete_everything"

    def test_unknown_role(self, policy):
        with pytest.raises(ValueError):
            policy.allowed_tools("janitor")

    def test_committer_cannot_get_tools(self):
        with pytest.raises(PolicyViolationError):
            RolePolicy({"committer": ["verify_state"]})

    def test_missing_roles_get_nothing(self):
        policy = RolePolicy({"planner": ["verify_state"]})
        assert policy.allowed_tools(Role.EXECUTOR) == frozenset()

    def test_read_only_roles(self):
        assert Role.PLANNER.read_only
        assert Role.AUDITOR.read_only
        assert not Role.EXECUTOR.read_only
        assert not Role.COMMITTER.read_only


class TestRoleToolView:
    """Tests for RoleToolView class."""

    def test_view_for_every_role(self, policy, registry):
        for role in Role:
            view = policy.view(role, registry)
            assert view.tools == policy.allowed_tools(role)

    def test_inspection_role_cannot_get_mutating_tool(self, registry):
        policy = RolePolicy({"auditor": ["verify_state", "create_edge"]})
        with pytest.raises(PolicyViolationError, match="create_edge"):
            policy.view(Role.AUDITOR, registry)

    def test_planner_cannot_get_mutating_tool(self, registry):
        with pytest.raises(PolicyViolationError):
            RoleToolView(Role.PLANNER, frozenset({"create_node_instance"}), registry)

    def test_committer_view_must_be_empty(self, registry):
        with pytest.raises(PolicyViolationError):
            RoleToolView(Role.COMMITTER, frozenset({"verify_state"}), registry)

    def test_disallowed_tool_never_reaches_registry(self, policy, spy):
        view = policy.view(Role.EXECUTOR, spy)
        context = ToolContext(role="executor")

        with pytest.raises(ToolNotAllowedError):
            asyncio.run(view.execute_tool("delete_everything", {}, context))
        with pytest.raises(ToolNotAllowedError):
            asyncio.run(view.execute_tool("verify_state", {}, context))

        assert spy.calls == []

    def test_allowed_tool_executes(self, policy, spy):
        view = policy.view(Role.AUDITOR, spy)
        result = asyncio.run(
            view.execute_tool("verify_state", {"graph_id": "g1"}, ToolContext(role="auditor"))
        )
        assert result.success
        assert spy.calls == ["verify_state"]

    def test_allowed_but_unregistered(self, store):
        registry = build_default_registry(store)
        view = RoleToolView(Role.EXECUTOR, frozenset({"rename_graph"}), registry)
        with pytest.raises(UnknownToolError):
            asyncio.run(view.execute_tool("rename_graph", {}, ToolContext(role="executor")))

    def test_get_info_limited_to_view(self, policy, registry):
        view = policy.view(Role.PLANNER, registry)
        names = [info.name for info in view.get_info()]
        assert names == sorted(policy.allowed_tools(Role.PLANNER))

    def test_allows(self, policy, registry):
        view = policy.view(Role.EXECUTOR, registry)
        assert view.allows("create_edge")
        assert not view.allows("verify_state")
