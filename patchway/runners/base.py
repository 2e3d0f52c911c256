"""
Base runner class.

Every role runner is a "do one unit of work" coroutine. An external
driver calls ``run_once()`` repeatedly; any number of instances of any
runner may run at the same time, because all coordination goes through
the queue manager's leases.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from patchway.core.events import EventLog
from patchway.core.policy import Role
from patchway.core.queue import BaseQueueManager
from patchway.models.config import QueueNames
from patchway.models.events import EventType
from patchway.models.queue import ItemStatus, QueueItem
from patchway.utils.logger import get_logger


class BaseRunner(ABC):
    """
    Base class for the four role runners.

    Runners recover locally: every outcome becomes an ack or a nack of
    the pulled item, and no exception escapes ``run_once()`` for an item
    that was pulled.

    Example:
        >>> class EchoRunner(BaseRunner):
        ...     name = "echo"
        ...     role = Role.PLANNER
        ...
        ...     async def run_once(self) -> bool:
        ...         items = self.queue.pull(self.source_queue)
        ...         ...
    """

    # Runner metadata (set by subclasses)
    name: str = "base"
    role: Role

    def __init__(
        self,
        queue: BaseQueueManager,
        events: EventLog,
        names: QueueNames | None = None,
    ):
        """
        Initialize the runner.

        Args:
            queue: Queue manager shared by all runners
            events: Event log receiving pipeline events
            names: Queue names (defaults to the standard names)
        """
        self.queue = queue
        self.events = events
        self.names = names or QueueNames()
        self.logger = get_logger(f"runners.{self.name}")

        # Tracking
        self.processed = 0
        self.acked = 0
        self.nacked = 0

    @property
    @abstractmethod
    def source_queue(self) -> str:
        """Queue this runner consumes."""

    @abstractmethod
    async def run_once(self) -> bool:
        """
        Process at most one item.

        Returns:
            True if an item was processed, False if the queue was idle
        """

    @property
    def stats(self) -> dict[str, Any]:
        """Get runner statistics."""
        return {
            "name": self.name,
            "role": self.role.value,
            "processed": self.processed,
            "acked": self.acked,
            "nacked": self.nacked,
        }

    def _pull_one(self) -> QueueItem[Any] | None:
        items = self.queue.pull(self.source_queue, max_items=1)
        if not items:
            return None
        self.processed += 1
        return items[0]

    def _ack(self, item: QueueItem[Any]) -> bool:
        acked = self.queue.ack(self.source_queue, item.lease_id)
        if acked:
            self.acked += 1
        else:
            self.logger.warning(f"Lost lease on {item.item_id} before ack")
        return acked

    def _nack(self, item: QueueItem[Any], error: str) -> None:
        """Release an item for retry, recording it if it was dead-lettered."""
        self.nacked += 1
        released = self.queue.nack(self.source_queue, item.lease_id, error)
        if released is None:
            self.logger.warning(f"Lost lease on {item.item_id} before nack")
            return
        if released.status == ItemStatus.DEAD:
            self.logger.warning(
                f"{item.item_id} dead-lettered in {self.source_queue} "
                f"after {released.attempts} attempts: {error}"
            )
            self.events.append(
                EventType.DEAD_LETTERED,
                queue=self.source_queue,
                item_id=item.item_id,
                partition_key=item.partition_key,
                attempts=released.attempts,
                error=error,
            )

    def _discard(self, item: QueueItem[Any], reason: str) -> None:
        """Drop a malformed item without retrying it."""
        self.logger.warning(f"Discarding {item.item_id} from {self.source_queue}: {reason}")
        self.events.append(
            EventType.ITEM_DISCARDED,
            queue=self.source_queue,
            item_id=item.item_id,
            reason=reason,
        )
        self._ack(item)
