"""
Auditor runner.

Checks each patch against the current shape of its graph and issues
exactly one review carrying the patch. The auditor reads the graph only
through its inspection-only tool view.
"""

from __future__ import annotations

from typing import Any

from patchway.core.events import EventLog
from patchway.core.policy import Role, RoleToolView
from patchway.core.queue import BaseQueueManager
from patchway.errors import PatchwayError, ToolExecutionError
from patchway.models.config import QueueNames
from patchway.models.events import EventType
from patchway.models.tools import ToolContext
from patchway.models.work import (
    AddEdge,
    AddNodeInstance,
    AddNodePrototype,
    CreateGraph,
    MoveNodeInstance,
    Patch,
    Review,
    ReviewStatus,
    UpdateNodePrototype,
)
from patchway.runners.base import BaseRunner


def check_patch(patch: Patch, state: dict[str, Any]) -> list[str]:
    """
    Structurally validate a patch against a graph state.

    Operations are checked in order, so an instance may use a prototype
    and an edge may use instances that earlier operations of the same
    patch create.

    Args:
        patch: Patch to check
        state: ``verify_state`` result for the patch's graph

    Returns:
        Rejection reasons (empty if the patch is acceptable)
    """
    if not patch.ops:
        return ["patch has no operations"]

    reasons: list[str] = []
    graph_exists = bool(state.get("exists"))
    prototypes = set(state.get("prototype_ids", []))
    instances = set(state.get("instance_ids", []))

    for index, op in enumerate(patch.ops):
        graph_id = getattr(op, "graph_id", None)
        if graph_id is not None and graph_id != patch.graph_id:
            reasons.append(f"op {index}: targets graph {graph_id}, patch targets {patch.graph_id}")
            continue

        if isinstance(op, CreateGraph):
            graph_exists = True

        elif isinstance(op, AddNodePrototype):
            prototypes.add(op.prototype_id)

        elif isinstance(op, UpdateNodePrototype):
            if op.prototype_id not in prototypes:
                reasons.append(f"op {index}: unknown prototype {op.prototype_id}")

        elif isinstance(op, AddNodeInstance):
            if not graph_exists:
                reasons.append(f"op {index}: graph {patch.graph_id} does not exist")
            if op.prototype_id not in prototypes:
                reasons.append(f"op {index}: unknown prototype {op.prototype_id}")
            instances.add(op.instance_id)

        elif isinstance(op, MoveNodeInstance):
            if op.instance_id not in instances:
                reasons.append(f"op {index}: unknown instance {op.instance_id}")

        elif isinstance(op, AddEdge):
            if not graph_exists:
                reasons.append(f"op {index}: graph {patch.graph_id} does not exist")
            for endpoint in (op.source_id, op.destination_id):
                if endpoint not in instances:
                    reasons.append(f"op {index}: edge endpoint {endpoint} does not exist")

    return reasons


class AuditorRunner(BaseRunner):
    """
    Reviews patches.

    The patch is always acked once a review is issued; a rejection is
    final and recorded. Only a failure to read the graph (a transient
    problem) returns the patch to the queue.

    Example:
        >>> auditor = AuditorRunner(queue, events, tools=policy.view("auditor", registry))
        >>> await auditor.run_once()
        True
    """

    name = "auditor"
    role = Role.AUDITOR

    def __init__(
        self,
        queue: BaseQueueManager,
        events: EventLog,
        tools: RoleToolView,
        names: QueueNames | None = None,
    ):
        super().__init__(queue, events, names)
        self.tools = tools

    @property
    def source_queue(self) -> str:
        return self.names.patches

    async def read_state(self, patch: Patch) -> dict[str, Any]:
        """
        Read the current shape of the patch's graph.

        Raises:
            ToolExecutionError: If the graph cannot be read
        """
        context = ToolContext(role=self.role.value, thread_id=patch.thread_id)
        result = await self.tools.execute_tool("verify_state", {"graph_id": patch.graph_id}, context)
        if not result.success:
            raise ToolExecutionError("verify_state", result.error_message or "unknown error")
        return result.data

    async def review(self, patch: Patch) -> Review:
        """
        Review a patch.

        Args:
            patch: Patch to review

        Returns:
            Review carrying the patch
        """
        state = await self.read_state(patch)
        reasons = check_patch(patch, state)
        return Review(
            status=ReviewStatus.REJECTED if reasons else ReviewStatus.APPROVED,
            graph_id=patch.graph_id,
            patch=patch,
            reasons=reasons,
        )

    async def run_once(self) -> bool:
        item = self._pull_one()
        if item is None:
            return False

        patch = item.payload
        if not isinstance(patch, Patch):
            self._discard(item, f"expected a patch, got {type(patch).__name__}")
            return True

        try:
            review = await self.review(patch)
        except PatchwayError as e:
            self.logger.warning(f"Could not review {patch.patch_id}: {e.message}")
            self._nack(item, e.message)
            return True

        self.queue.enqueue(self.names.reviews, review, partition_key=item.partition_key)
        if review.approved:
            self.events.append(
                EventType.PATCH_APPROVED,
                patch_id=patch.patch_id,
                graph_id=patch.graph_id,
                thread_id=patch.thread_id,
            )
        else:
            self.logger.warning(f"Rejected {patch.patch_id}: {'; '.join(review.reasons)}")
            self.events.append(
                EventType.PATCH_REJECTED,
                patch_id=patch.patch_id,
                graph_id=patch.graph_id,
                thread_id=patch.thread_id,
                reasons=review.reasons,
            )

        self._ack(item)
        return True
