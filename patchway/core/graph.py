"""
Canonical graph store.

The store is the only shared mutable resource of the pipeline and only the
Committer writes to it. Writes are compare-and-apply: a patch computed
against an older version is refused instead of overwriting newer state.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any, Iterable

from patchway.errors import CommitConflictError, MutationError
from patchway.models.graph import CommitOutcome, Edge, Graph, NodeInstance, NodePrototype
from patchway.models.work import (
    PROTOTYPE_SCOPE,
    AddEdge,
    AddNodeInstance,
    AddNodePrototype,
    CreateGraph,
    MoveNodeInstance,
    UpdateNodePrototype,
)
from patchway.utils.helpers import stable_hash
from patchway.utils.logger import get_logger

logger = get_logger(__name__)


class GraphStore(ABC):
    """Interface the pipeline needs from a graph store."""

    @abstractmethod
    def version_hash(self, graph_id: str) -> str | None:
        """Current version of a graph, or None if it does not exist."""

    @abstractmethod
    def apply_mutations(
        self,
        graph_id: str,
        ops: Iterable[Any],
        *,
        patch_id: str,
        expected_hash: str | None = None,
    ) -> CommitOutcome:
        """
        Apply a patch's operations atomically.

        Args:
            graph_id: Graph the patch targets
            ops: Ordered graph operations
            patch_id: Patch identity, used to make re-application a no-op
            expected_hash: Required current version (None = no precondition)

        Returns:
            CommitOutcome describing what happened

        Raises:
            CommitConflictError: If ``expected_hash`` does not match
            MutationError: If an operation cannot be applied (nothing is changed)
        """

    @abstractmethod
    def has_applied(self, patch_id: str) -> bool:
        """Whether a patch id has already been applied."""

    @abstractmethod
    def get_graph(self, graph_id: str) -> Graph | None:
        """Snapshot of a graph."""

    @abstractmethod
    def list_graphs(self) -> list[Graph]:
        """Snapshots of all graphs."""

    @abstractmethod
    def get_prototype(self, prototype_id: str) -> NodePrototype | None:
        """Look up a prototype."""

    @abstractmethod
    def list_prototypes(self) -> list[NodePrototype]:
        """All prototypes."""

    @property
    @abstractmethod
    def active_graph_id(self) -> str | None:
        """Graph currently in focus."""


class InMemoryGraphStore(GraphStore):
    """
    Thread-safe in-memory graph store.

    Example:
        >>> store = InMemoryGraphStore()
        >>> store.apply_mutations("g1", [CreateGraph(graph_id="g1")], patch_id="seed")
        >>> store.version_hash("g1")
        '5f1c...'
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._graphs: dict[str, Graph] = {}
        self._prototypes: dict[str, NodePrototype] = {}
        self._applied: dict[str, str] = {}
        self._active_graph_id: str | None = None

    @property
    def active_graph_id(self) -> str | None:
        with self._lock:
            if self._active_graph_id in self._graphs:
                return self._active_graph_id
            return next(iter(self._graphs), None)

    def set_active_graph(self, graph_id: str) -> None:
        with self._lock:
            if graph_id not in self._graphs:
                raise MutationError(f"Unknown graph: {graph_id}")
            self._active_graph_id = graph_id

    def version_hash(self, graph_id: str) -> str | None:
        with self._lock:
            if graph_id == PROTOTYPE_SCOPE:
                prototypes = sorted(self._prototypes.values(), key=lambda p: p.prototype_id)
                return stable_hash([p.model_dump(mode="json") for p in prototypes])
            graph = self._graphs.get(graph_id)
            if graph is None:
                return None
            return stable_hash(graph.model_dump(mode="json"))

    def has_applied(self, patch_id: str) -> bool:
        with self._lock:
            return patch_id in self._applied

    def get_graph(self, graph_id: str) -> Graph | None:
        with self._lock:
            graph = self._graphs.get(graph_id)
            return graph.model_copy(deep=True) if graph else None

    def list_graphs(self) -> list[Graph]:
        with self._lock:
            return [graph.model_copy(deep=True) for graph in self._graphs.values()]

    def get_prototype(self, prototype_id: str) -> NodePrototype | None:
        with self._lock:
            prototype = self._prototypes.get(prototype_id)
            return prototype.model_copy() if prototype else None

    def list_prototypes(self) -> list[NodePrototype]:
        with self._lock:
            return [p.model_copy() for p in self._prototypes.values()]

    def apply_mutations(
        self,
        graph_id: str,
        ops: Iterable[Any],
        *,
        patch_id: str,
        expected_hash: str | None = None,
    ) -> CommitOutcome:
        with self._lock:
            if patch_id in self._applied:
                logger.info(f"Patch {patch_id} already applied, skipping")
                return CommitOutcome(
                    graph_id=graph_id,
                    patch_id=patch_id,
                    applied=False,
                    duplicate=True,
                    version=self.version_hash(graph_id),
                )

            current = self.version_hash(graph_id)
            if expected_hash is not None and expected_hash != current:
                raise CommitConflictError(graph_id, expected_hash, current)

            graphs = {gid: g.model_copy(deep=True) for gid, g in self._graphs.items()}
            prototypes = dict(self._prototypes)
            for op in ops:
                self._apply_op(graphs, prototypes, op)

            self._graphs = graphs
            self._prototypes = prototypes
            self._applied[patch_id] = graph_id
            version = self.version_hash(graph_id)
            logger.debug(f"Applied {patch_id} to {graph_id}, version {current} -> {version}")
            return CommitOutcome(
                graph_id=graph_id,
                patch_id=patch_id,
                applied=True,
                version=version,
            )

    def _apply_op(
        self,
        graphs: dict[str, Graph],
        prototypes: dict[str, NodePrototype],
        op: Any,
    ) -> None:
        if isinstance(op, CreateGraph):
            if op.graph_id == PROTOTYPE_SCOPE:
                raise MutationError(f"Reserved graph id: {op.graph_id}")
            graphs.setdefault(op.graph_id, Graph(graph_id=op.graph_id, name=op.name))

        elif isinstance(op, AddNodePrototype):
            prototypes[op.prototype_id] = NodePrototype(
                prototype_id=op.prototype_id,
                name=op.name,
                description=op.description,
                color=op.color,
            )

        elif isinstance(op, UpdateNodePrototype):
            prototype = prototypes.get(op.prototype_id)
            if prototype is None:
                raise MutationError(f"Unknown prototype: {op.prototype_id}")
            updates = op.model_dump(include={"name", "description", "color"}, exclude_none=True)
            prototypes[op.prototype_id] = prototype.model_copy(update=updates)

        elif isinstance(op, AddNodeInstance):
            graph = self._require_graph(graphs, op.graph_id)
            if op.prototype_id not in prototypes:
                raise MutationError(f"Unknown prototype: {op.prototype_id}")
            instance = NodeInstance(
                instance_id=op.instance_id,
                prototype_id=op.prototype_id,
                position=op.position,
            )
            existing = graph.instances.get(op.instance_id)
            if existing is not None and existing != instance:
                raise MutationError(f"Instance id already in use: {op.instance_id}")
            graph.instances[op.instance_id] = instance

        elif isinstance(op, MoveNodeInstance):
            graph = self._require_graph(graphs, op.graph_id)
            instance = graph.instances.get(op.instance_id)
            if instance is None:
                raise MutationError(f"Unknown instance: {op.instance_id}")
            instance.position = op.position

        elif isinstance(op, AddEdge):
            graph = self._require_graph(graphs, op.graph_id)
            for endpoint in (op.source_id, op.destination_id):
                if endpoint not in graph.instances:
                    raise MutationError(f"Unknown edge endpoint: {endpoint}")
            edge = Edge(
                edge_id=op.edge_id,
                source_id=op.source_id,
                destination_id=op.destination_id,
                label=op.label,
            )
            existing = graph.edges.get(op.edge_id)
            if existing is not None and existing != edge:
                raise MutationError(f"Edge id already in use: {op.edge_id}")
            graph.edges[op.edge_id] = edge

        else:
            raise MutationError(f"Unsupported operation: {getattr(op, 'type', op)!r}")

    @staticmethod
    def _require_graph(graphs: dict[str, Graph], graph_id: str) -> Graph:
        graph = graphs.get(graph_id)
        if graph is None:
            raise MutationError(f"Unknown graph: {graph_id}")
        return graph
