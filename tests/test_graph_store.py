"""
Tests for the in-memory graph store.
"""

import pytest

from patchway.core.graph import InMemoryGraphStore
from patchway.errors import CommitConflictError, MutationError
from patchway.models.work import (
    PROTOTYPE_SCOPE,
    AddEdge,
    AddNodeInstance,
    AddNodePrototype,
    CreateGraph,
    MoveNodeInstance,
    Position,
    UpdateNodePrototype,
)


def new_instance(instance_id: str, prototype_id: str = "p1") -> AddNodeInstance:
    return AddNodeInstance(graph_id="g1", prototype_id=prototype_id, instance_id=instance_id)


class TestVersionHash:
    """Tests for graph versions."""

    def test_unknown_graph(self, store):
        assert store.version_hash("missing") is None

    def test_stable_for_same_content(self, seed_ops):
        first = InMemoryGraphStore()
        second = InMemoryGraphStore()
        first.apply_mutations("g1", seed_ops, patch_id="one")
        second.apply_mutations("g1", seed_ops, patch_id="two")
        assert first.version_hash("g1") == second.version_hash("g1")

    def test_changes_after_mutation(self, store):
        before = store.version_hash("g1")
        store.apply_mutations("g1", [new_instance("c")], patch_id="p-c")
        assert store.version_hash("g1") != before

    def test_prototype_scope(self):
        store = InMemoryGraphStore()
        empty = store.version_hash(PROTOTYPE_SCOPE)
        assert empty is not None

        store.apply_mutations(
            PROTOTYPE_SCOPE, [AddNodePrototype(prototype_id="p9", name="Service")], patch_id="p-p9"
        )

        assert store.version_hash(PROTOTYPE_SCOPE) != empty
        assert store.get_prototype("p9").name == "Service"
        assert store.list_graphs() == []


class TestApplyMutations:
    """Tests for compare-and-apply."""

    def test_seed_contents(self, store):
        graph = store.get_graph("g1")
        assert graph.name == "Architecture"
        assert set(graph.instances) == {"a", "b"}
        assert set(graph.edges) == {"e1"}
        assert store.get_prototype("p1").name == "Service"

    def test_applied_outcome(self, store):
        outcome = store.apply_mutations("g1", [new_instance("c")], patch_id="p-c")
        assert outcome.applied is True
        assert outcome.duplicate is False
        assert outcome.version == store.version_hash("g1")
        assert store.has_applied("p-c")

    def test_duplicate_patch_is_noop(self, store):
        store.apply_mutations("g1", [new_instance("c")], patch_id="p-c")
        version = store.version_hash("g1")

        outcome = store.apply_mutations("g1", [new_instance("d")], patch_id="p-c")
        assert outcome.applied is False
        assert outcome.duplicate is True
        assert store.version_hash("g1") == version
        assert "d" not in store.get_graph("g1").instances

    def test_matching_expected_hash(self, store):
        version = store.version_hash("g1")
        outcome = store.apply_mutations(
            "g1", [new_instance("c")], patch_id="p-c", expected_hash=version
        )
        assert outcome.applied is True

    def test_conflicting_expected_hash(self, store):
        stale = store.version_hash("g1")
        store.apply_mutations("g1", [new_instance("c")], patch_id="p-c")
        current = store.version_hash("g1")

        with pytest.raises(CommitConflictError) as exc_info:
            store.apply_mutations("g1", [new_instance("d")], patch_id="p-d", expected_hash=stale)

        assert exc_info.value.expected == stale
        assert exc_info.value.actual == current
        assert store.version_hash("g1") == current
        assert not store.has_applied("p-d")

    def test_failed_op_changes_nothing(self, store):
        version = store.version_hash("g1")
        ops = [
            new_instance("c"),
            AddEdge(graph_id="g1", edge_id="e2", source_id="c", destination_id="ghost"),
        ]

        with pytest.raises(MutationError):
            store.apply_mutations("g1", ops, patch_id="p-bad")

        assert store.version_hash("g1") == version
        assert "c" not in store.get_graph("g1").instances
        assert not store.has_applied("p-bad")

    def test_create_graph_in_patch(self):
        store = InMemoryGraphStore()
        store.apply_mutations(
            "g2",
            [
                CreateGraph(graph_id="g2"),
                AddNodePrototype(prototype_id="p9", name="Queue"),
                AddNodeInstance(graph_id="g2", prototype_id="p9", instance_id="q"),
            ],
            patch_id="p-g2",
        )
        assert set(store.get_graph("g2").instances) == {"q"}

    def test_prototype_scope_is_not_a_graph(self):
        store = InMemoryGraphStore()
        with pytest.raises(MutationError, match="Reserved graph id"):
            store.apply_mutations(
                PROTOTYPE_SCOPE, [CreateGraph(graph_id=PROTOTYPE_SCOPE)], patch_id="p-scope"
            )
        assert store.list_graphs() == []


class TestOperations:
    """Tests for individual graph operations."""

    def test_instance_requires_graph(self, store):
        op = AddNodeInstance(graph_id="nope", prototype_id="p1", instance_id="x")
        with pytest.raises(MutationError, match="Unknown graph"):
            store.apply_mutations("nope", [op], patch_id="p-x")

    def test_instance_requires_prototype(self, store):
        with pytest.raises(MutationError, match="Unknown prototype"):
            store.apply_mutations("g1", [new_instance("x", "p404")], patch_id="p-x")

    def test_identical_instance_is_noop(self, store):
        op = AddNodeInstance(graph_id="g1", prototype_id="p1", instance_id="a", position=Position())
        store.apply_mutations("g1", [op], patch_id="p-same")
        assert len(store.get_graph("g1").instances) == 2

    def test_reused_instance_id_rejected(self, store):
        with pytest.raises(MutationError, match="already in use"):
            store.apply_mutations("g1", [new_instance("a", "p2")], patch_id="p-reuse")

    def test_move_instance(self, store):
        op = MoveNodeInstance(graph_id="g1", instance_id="a", position=Position(x=5, y=7))
        store.apply_mutations("g1", [op], patch_id="p-move")
        assert store.get_graph("g1").instances["a"].position == Position(x=5, y=7)

    def test_move_unknown_instance(self, store):
        op = MoveNodeInstance(graph_id="g1", instance_id="zz", position=Position())
        with pytest.raises(MutationError, match="Unknown instance"):
            store.apply_mutations("g1", [op], patch_id="p-move")

    def test_update_prototype(self, store):
        op = UpdateNodePrototype(prototype_id="p1", color="#ff0000")
        store.apply_mutations("g1", [op], patch_id="p-color")

        prototype = store.get_prototype("p1")
        assert prototype.color == "#ff0000"
        assert prototype.name == "Service"

    def test_update_unknown_prototype(self, store):
        with pytest.raises(MutationError):
            store.apply_mutations(
                "g1", [UpdateNodePrototype(prototype_id="nope", name="x")], patch_id="p-u"
            )


class TestReads:
    """Tests for read helpers."""

    def test_get_graph_returns_copy(self, store):
        graph = store.get_graph("g1")
        graph.instances.clear()
        assert len(store.get_graph("g1").instances) == 2

    def test_list_graphs(self, store):
        assert [g.graph_id for g in store.list_graphs()] == ["g1"]

    def test_active_graph_defaults_to_first(self, store):
        assert store.active_graph_id == "g1"
        assert InMemoryGraphStore().active_graph_id is None

    def test_set_active_graph(self, store):
        store.apply_mutations("g2", [CreateGraph(graph_id="g2")], patch_id="p-g2")
        store.set_active_graph("g2")
        assert store.active_graph_id == "g2"

        with pytest.raises(MutationError):
            store.set_active_graph("missing")
