"""
Translation of tool results into graph operations.

Constructive tools only describe the change they would make. This module
turns those descriptions into the operations a patch carries. Tools
without a translation yield no operations.
"""

from __future__ import annotations

from typing import Any, Callable

from patchway.models.work import (
    PROTOTYPE_SCOPE,
    AddEdge,
    AddNodeInstance,
    AddNodePrototype,
    MoveNodeInstance,
    Position,
)

Translator = Callable[[dict[str, Any], dict[str, Any]], list[Any]]


def _node_instance(args: dict[str, Any], data: dict[str, Any]) -> list[Any]:
    return [
        AddNodeInstance(
            graph_id=data["graph_id"],
            prototype_id=data["prototype_id"],
            instance_id=data["instance_id"],
            position=Position(**data.get("position", {})),
        )
    ]


def _node_prototype(args: dict[str, Any], data: dict[str, Any]) -> list[Any]:
    return [
        AddNodePrototype(
            prototype_id=data["prototype_id"],
            name=data["name"],
            description=data.get("description", ""),
            color=data.get("color"),
        )
    ]


def _edge(args: dict[str, Any], data: dict[str, Any]) -> list[Any]:
    return [
        AddEdge(
            graph_id=data["graph_id"],
            edge_id=data["edge_id"],
            source_id=data["source_id"],
            destination_id=data["destination_id"],
            label=data.get("label", ""),
        )
    ]


def _move(args: dict[str, Any], data: dict[str, Any]) -> list[Any]:
    return [
        MoveNodeInstance(
            graph_id=data["graph_id"],
            instance_id=data["instance_id"],
            position=Position(**data["position"]),
        )
    ]


TRANSLATORS: dict[str, Translator] = {
    "create_node_instance": _node_instance,
    "create_node_prototype": _node_prototype,
    "create_edge": _edge,
    "move_node_instance": _move,
}


def translate_result(tool_name: str, args: dict[str, Any], data: dict[str, Any]) -> list[Any]:
    """
    Turn a tool result into graph operations.

    Args:
        tool_name: Tool that produced the result
        args: Sanitized arguments the tool ran with
        data: Result data returned by the tool

    Returns:
        Ordered graph operations (empty when the tool has no translation)

    Example:
        >>> translate_result("create_edge", args, {"graph_id": "g1", "edge_id": "e1", ...})
        [AddEdge(graph_id='g1', edge_id='e1', ...)]
    """
    translator = TRANSLATORS.get(tool_name)
    if translator is None:
        return []
    return translator(args, data)


def target_graph(args: dict[str, Any], data: dict[str, Any], ops: list[Any]) -> str | None:
    """
    Find the graph a set of operations belongs to.

    Looks at the tool arguments first, then the result, then the operations.
    Operations that name no graph at all, such as a prototype created on a
    store without graphs, target the store-wide prototype scope.
    """
    for source in (args, data):
        graph_id = source.get("graph_id")
        if graph_id:
            return graph_id
    for op in ops:
        graph_id = getattr(op, "graph_id", None)
        if graph_id:
            return graph_id
    if ops:
        return PROTOTYPE_SCOPE
    return None
