"""
Read-only graph tools.

These tools are the only way the planner and auditor look at the graph.
"""

from __future__ import annotations

from collections import Counter
from typing import Any

from pydantic import Field

from patchway.core.graph import GraphStore
from patchway.models.graph import Graph
from patchway.models.tools import ToolCategory, ToolContext
from patchway.tools.base import BaseTool, NoArgs, ToolArgs


class StoreTool(BaseTool):
    """A tool that reads from a graph store."""

    def __init__(self, store: GraphStore):
        self.store = store

    def _require_graph(self, graph_id: str) -> Graph:
        graph = self.store.get_graph(graph_id)
        if graph is None:
            raise LookupError(f"Unknown graph: {graph_id}")
        return graph


def _graph_summary(graph: Graph) -> dict[str, Any]:
    return {
        "graph_id": graph.graph_id,
        "name": graph.name,
        "instance_count": len(graph.instances),
        "edge_count": len(graph.edges),
    }


class VerifyStateArgs(ToolArgs):
    graph_id: str | None = Field(default=None, description="Graph to inspect (None = all)")


class VerifyStateTool(StoreTool):
    """Report the current shape and version of a graph, or of the whole store."""

    name = "verify_state"
    description = "Report graph existence, version and contents"
    category = ToolCategory.INSPECTION
    args_model = VerifyStateArgs

    async def run(self, args: VerifyStateArgs, context: ToolContext) -> dict[str, Any]:
        prototype_ids = sorted(p.prototype_id for p in self.store.list_prototypes())

        if args.graph_id is None:
            return {
                "graphs": [_graph_summary(g) for g in self.store.list_graphs()],
                "prototype_ids": prototype_ids,
                "active_graph_id": self.store.active_graph_id,
            }

        graph = self.store.get_graph(args.graph_id)
        if graph is None:
            return {
                "graph_id": args.graph_id,
                "exists": False,
                "version": self.store.version_hash(args.graph_id),
                "instance_ids": [],
                "edge_ids": [],
                "prototype_ids": prototype_ids,
            }
        return {
            "graph_id": graph.graph_id,
            "exists": True,
            "version": self.store.version_hash(graph.graph_id),
            "instance_ids": sorted(graph.instances),
            "edge_ids": sorted(graph.edges),
            "prototype_ids": prototype_ids,
        }


class ListAvailableGraphsTool(StoreTool):
    """List graphs in the store."""

    name = "list_available_graphs"
    description = "List all graphs with instance and edge counts"
    category = ToolCategory.INSPECTION
    args_model = NoArgs

    async def run(self, args: NoArgs, context: ToolContext) -> dict[str, Any]:
        return {"graphs": [_graph_summary(g) for g in self.store.list_graphs()]}


class GetActiveGraphTool(StoreTool):
    """Describe the graph currently in focus."""

    name = "get_active_graph"
    description = "Get the active graph"
    category = ToolCategory.INSPECTION
    args_model = NoArgs

    async def run(self, args: NoArgs, context: ToolContext) -> dict[str, Any]:
        graph_id = self.store.active_graph_id
        if graph_id is None:
            return {"graph_id": None}
        return _graph_summary(self._require_graph(graph_id))


class SearchNodesArgs(ToolArgs):
    query: str = Field(min_length=1, description="Case-insensitive text to look for")
    limit: int = Field(default=10, ge=1, le=100)


class SearchNodesTool(StoreTool):
    """Find prototypes by name or description."""

    name = "search_nodes"
    description = "Search node prototypes by name or description"
    category = ToolCategory.INSPECTION
    args_model = SearchNodesArgs

    async def run(self, args: SearchNodesArgs, context: ToolContext) -> dict[str, Any]:
        query = args.query.lower()
        matches = [
            p.model_dump()
            for p in self.store.list_prototypes()
            if query in p.name.lower() or query in p.description.lower()
        ]
        return {"query": args.query, "matches": matches[: args.limit]}


class GraphArgs(ToolArgs):
    graph_id: str = Field(min_length=1)


class GetGraphInstancesTool(StoreTool):
    """List the instances of a graph."""

    name = "get_graph_instances"
    description = "List node instances in a graph"
    category = ToolCategory.INSPECTION
    args_model = GraphArgs

    async def run(self, args: GraphArgs, context: ToolContext) -> dict[str, Any]:
        graph = self._require_graph(args.graph_id)
        return {
            "graph_id": graph.graph_id,
            "instances": [i.model_dump(mode="json") for i in graph.instances.values()],
        }


class IdentifyPatternsTool(StoreTool):
    """Summarize recurring structure in a graph."""

    name = "identify_patterns"
    description = "Count prototype usage and find the most connected instances"
    category = ToolCategory.INSPECTION
    args_model = GraphArgs

    async def run(self, args: GraphArgs, context: ToolContext) -> dict[str, Any]:
        graph = self._require_graph(args.graph_id)
        prototype_counts = Counter(i.prototype_id for i in graph.instances.values())
        degree: Counter[str] = Counter()
        for edge in graph.edges.values():
            degree[edge.source_id] += 1
            degree[edge.destination_id] += 1
        return {
            "graph_id": graph.graph_id,
            "prototype_counts": dict(prototype_counts),
            "hubs": [instance_id for instance_id, _ in degree.most_common(5)],
        }
