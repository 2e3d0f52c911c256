"""
Constructive graph tools.

These tools never write to the store. They resolve identifiers and
describe the change they would make; the executor turns that description
into patch operations and only the committer applies them.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from patchway.models.tools import ToolCategory, ToolContext
from patchway.tools.base import ToolArgs
from patchway.tools.builtin.inspection import StoreTool
from patchway.utils.helpers import derived_id, generate_id


def _allocate_id(prefix: str, context: ToolContext) -> str:
    # Same task, same id, so a redelivered task proposes the same change
    if context.task_id:
        return derived_id(prefix, context.task_id)
    return generate_id(prefix)


class CreateNodePrototypeArgs(ToolArgs):
    name: str = Field(min_length=1)
    description: str = ""
    color: str | None = None
    prototype_id: str | None = None
    graph_id: str | None = Field(default=None, description="Graph the request came from")


class CreateNodePrototypeTool(StoreTool):
    """Propose a new node prototype."""

    name = "create_node_prototype"
    description = "Define a new node prototype"
    category = ToolCategory.MUTATION
    args_model = CreateNodePrototypeArgs

    async def run(self, args: CreateNodePrototypeArgs, context: ToolContext) -> dict[str, Any]:
        return {
            "prototype_id": args.prototype_id or _allocate_id("proto", context),
            "name": args.name,
            "description": args.description,
            "color": args.color,
            "graph_id": args.graph_id or self.store.active_graph_id,
        }


class CreateNodeInstanceArgs(ToolArgs):
    graph_id: str = Field(min_length=1)
    prototype_id: str = Field(min_length=1)
    x: float = 0.0
    y: float = 0.0
    instance_id: str | None = None


class CreateNodeInstanceTool(StoreTool):
    """Propose placing a prototype instance in a graph."""

    name = "create_node_instance"
    description = "Place an instance of a prototype in a graph"
    category = ToolCategory.MUTATION
    args_model = CreateNodeInstanceArgs

    async def run(self, args: CreateNodeInstanceArgs, context: ToolContext) -> dict[str, Any]:
        return {
            "graph_id": args.graph_id,
            "prototype_id": args.prototype_id,
            "instance_id": args.instance_id or _allocate_id("inst", context),
            "position": {"x": args.x, "y": args.y},
        }


class MoveNodeInstanceArgs(ToolArgs):
    graph_id: str = Field(min_length=1)
    instance_id: str = Field(min_length=1)
    x: float
    y: float


class MoveNodeInstanceTool(StoreTool):
    """Propose moving an instance."""

    name = "move_node_instance"
    description = "Move an instance to a new position"
    category = ToolCategory.MUTATION
    args_model = MoveNodeInstanceArgs

    async def run(self, args: MoveNodeInstanceArgs, context: ToolContext) -> dict[str, Any]:
        return {
            "graph_id": args.graph_id,
            "instance_id": args.instance_id,
            "position": {"x": args.x, "y": args.y},
        }


class CreateEdgeArgs(ToolArgs):
    graph_id: str = Field(min_length=1)
    source_id: str = Field(min_length=1)
    destination_id: str = Field(min_length=1)
    label: str = ""
    edge_id: str | None = None


class CreateEdgeTool(StoreTool):
    """Propose connecting two instances."""

    name = "create_edge"
    description = "Connect two instances of a graph"
    category = ToolCategory.MUTATION
    args_model = CreateEdgeArgs

    async def run(self, args: CreateEdgeArgs, context: ToolContext) -> dict[str, Any]:
        return {
            "graph_id": args.graph_id,
            "edge_id": args.edge_id or _allocate_id("edge", context),
            "source_id": args.source_id,
            "destination_id": args.destination_id,
            "label": args.label,
        }
