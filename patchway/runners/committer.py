"""
Committer runner.

The only writer of the canonical graph. Approved patches are applied
with compare-and-apply semantics; a patch computed against an outdated
version goes to the rebase queue instead of overwriting newer state.

Nothing inside the pipeline consumes the rebase queue. It is the hand-off
point where an external planner picks up conflicting patches and
recomputes them against the current version.
"""

from __future__ import annotations

from patchway.core.events import EventLog
from patchway.core.graph import GraphStore
from patchway.core.policy import Role
from patchway.core.queue import BaseQueueManager
from patchway.errors import CommitConflictError, MutationError
from patchway.models.config import QueueNames
from patchway.models.events import EventType
from patchway.models.work import Review
from patchway.runners.base import BaseRunner


class CommitterRunner(BaseRunner):
    """
    Applies approved reviews to the graph store.

    Outcomes per review:

    - rejected: acked, nothing else (the rejection is already recorded)
    - applied: ``MUTATIONS_APPLIED`` is published with the new version
    - already applied (same patch id): no-op, ``PATCH_DUPLICATE``
    - version conflict: patch sent to the rebase queue, ``PATCH_CONFLICT``
    - inapplicable operation: nothing changes, ``PATCH_FAILED``

    A store failure of any other kind nacks the review for retry.

    Example:
        >>> committer = CommitterRunner(queue, events, store=store)
        >>> await committer.run_once()
        True
    """

    name = "committer"
    role = Role.COMMITTER

    def __init__(
        self,
        queue: BaseQueueManager,
        events: EventLog,
        store: GraphStore,
        names: QueueNames | None = None,
    ):
        super().__init__(queue, events, names)
        self.store = store

    @property
    def source_queue(self) -> str:
        return self.names.reviews

    async def run_once(self) -> bool:
        item = self._pull_one()
        if item is None:
            return False

        review = item.payload
        if not isinstance(review, Review):
            self._discard(item, f"expected a review, got {type(review).__name__}")
            return True

        if not review.approved:
            self.logger.debug(f"Dropping rejected patch {review.patch.patch_id}")
            self._ack(item)
            return True

        patch = review.patch
        if not patch.ops:
            self.events.append(
                EventType.PATCH_FAILED,
                patch_id=patch.patch_id,
                graph_id=review.graph_id,
                error="patch has no operations",
            )
            self._ack(item)
            return True

        try:
            outcome = self.store.apply_mutations(
                review.graph_id,
                patch.ops,
                patch_id=patch.patch_id,
                expected_hash=patch.base_hash,
            )
        except CommitConflictError as e:
            self.logger.warning(f"{e.message}; sending {patch.patch_id} to rebase")
            self.queue.enqueue(self.names.rebase, patch, partition_key=item.partition_key)
            self.events.append(
                EventType.PATCH_CONFLICT,
                patch_id=patch.patch_id,
                graph_id=review.graph_id,
                expected=e.expected,
                actual=e.actual,
            )
            self._ack(item)
            return True
        except MutationError as e:
            self.logger.warning(f"Patch {patch.patch_id} could not be applied: {e.message}")
            self.events.append(
                EventType.PATCH_FAILED,
                patch_id=patch.patch_id,
                graph_id=review.graph_id,
                error=e.message,
            )
            self._ack(item)
            return True
        except Exception as e:
            self.logger.error(f"Store failure applying {patch.patch_id}: {e}")
            self._nack(item, str(e))
            return True

        if outcome.duplicate:
            self.events.append(
                EventType.PATCH_DUPLICATE,
                patch_id=patch.patch_id,
                graph_id=review.graph_id,
            )
        else:
            self.logger.info(f"Applied {patch.patch_id} to {review.graph_id} ({len(patch.ops)} ops)")
            self.events.append(
                EventType.MUTATIONS_APPLIED,
                patch_id=patch.patch_id,
                graph_id=review.graph_id,
                thread_id=patch.thread_id,
                ops=[op.model_dump(mode="json") for op in patch.ops],
                version=outcome.version,
            )

        self._ack(item)
        return True
