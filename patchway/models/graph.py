"""
Knowledge graph models used by the reference graph store.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from patchway.models.work import Position


class NodePrototype(BaseModel):
    """A reusable node definition shared by all graphs."""

    prototype_id: str
    name: str
    description: str = ""
    color: str | None = None


class NodeInstance(BaseModel):
    """A placed occurrence of a prototype inside one graph."""

    instance_id: str
    prototype_id: str
    position: Position = Field(default_factory=Position)


class Edge(BaseModel):
    """A directed connection between two instances of a graph."""

    edge_id: str
    source_id: str
    destination_id: str
    label: str = ""


class Graph(BaseModel):
    """One graph: instances and the edges between them."""

    graph_id: str
    name: str = ""
    instances: dict[str, NodeInstance] = Field(default_factory=dict)
    edges: dict[str, Edge] = Field(default_factory=dict)


class CommitOutcome(BaseModel):
    """Result of applying a patch to the store."""

    graph_id: str
    patch_id: str
    applied: bool = Field(description="Whether the store changed")
    duplicate: bool = Field(default=False, description="Patch id was already applied")
    version: str | None = Field(default=None, description="Graph version after the call")
