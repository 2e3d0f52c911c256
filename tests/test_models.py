"""
Tests for data models.
"""

import pytest
from pydantic import ValidationError

from patchway.models.tools import ToolResult
from patchway.models.work import (
    AddEdge,
    AddNodeInstance,
    CreateGraph,
    Goal,
    Patch,
    Review,
    ReviewStatus,
    Task,
    graph_op_adapter,
    partition_for,
    work_item_adapter,
)


class TestWorkItems:
    """Tests for the work item union."""

    def test_discriminated_by_kind(self):
        item = work_item_adapter.validate_python({"kind": "task", "tool_name": "verify_state"})
        assert isinstance(item, Task)
        assert item.thread_id == "default"
        assert item.task_id.startswith("task-")

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            work_item_adapter.validate_python({"kind": "memo"})

    def test_review_nests_patch(self):
        patch = Patch(graph_id="g1", ops=[CreateGraph(graph_id="g1")])
        review = Review(status=ReviewStatus.APPROVED, graph_id="g1", patch=patch)

        data = work_item_adapter.dump_python(review, mode="json")
        restored = work_item_adapter.validate_python(data)

        assert restored == review
        assert isinstance(restored.patch.ops[0], CreateGraph)

    def test_frozen(self):
        task = Task(tool_name="verify_state")
        with pytest.raises(ValidationError):
            task.tool_name = "create_edge"

    def test_review_approved(self):
        patch = Patch(graph_id="g1")
        assert Review(status=ReviewStatus.APPROVED, graph_id="g1", patch=patch).approved
        assert not Review(status=ReviewStatus.REJECTED, graph_id="g1", patch=patch).approved

    def test_patch_ids_unique(self):
        assert Patch(graph_id="g1").patch_id != Patch(graph_id="g1").patch_id


class TestGraphOps:
    """Tests for the graph operation union."""

    def test_discriminated_by_type(self):
        op = graph_op_adapter.validate_python({
            "type": "add_edge",
            "graph_id": "g1",
            "edge_id": "e1",
            "source_id": "a",
            "destination_id": "b",
        })
        assert isinstance(op, AddEdge)

    def test_instance_default_position(self):
        op = AddNodeInstance(graph_id="g1", prototype_id="p1", instance_id="n1")
        assert (op.position.x, op.position.y) == (0.0, 0.0)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            graph_op_adapter.validate_python({"type": "drop_graph", "graph_id": "g1"})


class TestPartitionFor:
    """Tests for default partition keys."""

    def test_task_prefers_explicit_key(self):
        assert partition_for(Task(tool_name="x", thread_id="t1", partition_key="p")) == "p"
        assert partition_for(Task(tool_name="x", thread_id="t1")) == "t1"

    def test_goal_and_patch_use_thread(self):
        assert partition_for(Goal(thread_id="t2")) == "t2"
        assert partition_for(Patch(graph_id="g1", thread_id="t3")) == "t3"

    def test_review_uses_patch_thread(self):
        review = Review(
            status=ReviewStatus.APPROVED,
            graph_id="g1",
            patch=Patch(graph_id="g1", thread_id="t4"),
        )
        assert partition_for(review) == "t4"

    def test_fallback(self):
        assert partition_for({"anything": True}) == "default"


class TestToolResult:
    """Tests for ToolResult model."""

    def test_summary(self):
        result = ToolResult(success=False, tool="create_edge", duration=0.5)
        assert result.get_summary() == "[FAILED] create_edge (0.500s)"
