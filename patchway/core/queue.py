"""
Lease-based multi-queue broker.

The queue manager owns every handoff between roles. Delivery is
at-least-once: a pulled item is leased to one consumer until it is acked,
nacked or its lease expires, after which it becomes claimable again.
Consumers therefore dedupe by identity (patch id) or are idempotent.

Ordering is per partition. While one item of a partition is leased, no
other item of that partition is handed out, so a thread's work is
processed in enqueue order; different partitions never block each other.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timedelta
from itertools import count
from typing import Any, Callable, Iterable

from patchway.models.config import QueueConfig
from patchway.models.queue import ItemStatus, QueueItem, QueueMetrics
from patchway.models.work import partition_for
from patchway.utils.helpers import generate_id, utc_now
from patchway.utils.logger import get_logger, log_queue_transition

Clock = Callable[[], datetime]

logger = get_logger(__name__)


def select_claimable(
    queued: Iterable[QueueItem[Any]],
    busy_partitions: set[str],
    max_items: int,
    partition_key: str | None = None,
) -> list[QueueItem[Any]]:
    """
    Pick the items a pull may claim.

    Takes at most one item per partition, skipping partitions that already
    have an outstanding lease.

    Args:
        queued: Queued items in enqueue order
        busy_partitions: Partitions with a leased item
        max_items: Maximum number of items to claim
        partition_key: Restrict the pull to a single partition

    Returns:
        Items to claim, in enqueue order
    """
    if max_items <= 0:
        return []

    blocked = set(busy_partitions)
    selected: list[QueueItem[Any]] = []
    for item in queued:
        if partition_key is not None and item.partition_key != partition_key:
            continue
        if item.partition_key in blocked:
            continue
        selected.append(item)
        blocked.add(item.partition_key)
        if len(selected) >= max_items:
            break
    return selected


class BaseQueueManager(ABC):
    """
    Interface shared by all queue backends.

    Example:
        >>> queue = InMemoryQueueManager(lease_seconds=30, max_attempts=3)
        >>> queue.enqueue("taskQueue", task, partition_key="t1")
        >>> [item] = queue.pull("taskQueue", max_items=1)
        >>> queue.ack("taskQueue", item.lease_id)
        True
    """

    def __init__(
        self,
        lease_seconds: float = 30.0,
        max_attempts: int = 3,
        clock: Clock | None = None,
    ):
        """
        Initialize the queue manager.

        Args:
            lease_seconds: How long a pulled item stays claimed
            max_attempts: Failed deliveries before dead-lettering
            clock: Time source returning aware datetimes (defaults to UTC now)
        """
        self.lease_seconds = lease_seconds
        self.max_attempts = max_attempts
        self.clock = clock or utc_now

    @property
    def lease_duration(self) -> timedelta:
        return timedelta(seconds=self.lease_seconds)

    @abstractmethod
    def enqueue(self, queue: str, payload: Any, partition_key: str | None = None) -> str:
        """
        Append a payload to a queue.

        Args:
            queue: Queue name
            payload: Work item
            partition_key: Ordering scope (defaults to the payload's thread)

        Returns:
            Item id
        """

    @abstractmethod
    def pull(
        self,
        queue: str,
        max_items: int = 1,
        partition_key: str | None = None,
    ) -> list[QueueItem[Any]]:
        """
        Atomically claim up to ``max_items`` unleased items.

        Args:
            queue: Queue name
            max_items: Maximum number of items to claim
            partition_key: Only claim from this partition

        Returns:
            Claimed items, each stamped with a fresh lease id
        """

    @abstractmethod
    def ack(self, queue: str, lease_id: str) -> bool:
        """
        Permanently remove a leased item.

        Returns:
            False if the lease is unknown or already expired
        """

    @abstractmethod
    def nack(self, queue: str, lease_id: str, error: str | None = None) -> QueueItem[Any] | None:
        """
        Release a lease and count a failed attempt.

        Returns:
            The item after the transition (queued again or dead), or None
            if the lease is unknown
        """

    @abstractmethod
    def peek(self, queue: str, head: int = 10) -> list[QueueItem[Any]]:
        """List queued items without leasing them."""

    @abstractmethod
    def dead_letters(self, queue: str) -> list[QueueItem[Any]]:
        """List dead-lettered items."""

    @abstractmethod
    def requeue_dead_letter(self, queue: str, item_id: str) -> bool:
        """Return a dead-lettered item to the queue with a fresh attempt budget."""

    @abstractmethod
    def metrics(self, queue: str) -> QueueMetrics:
        """Get depth and counters for a queue."""

    @abstractmethod
    def queue_names(self) -> list[str]:
        """Names of all queues seen so far."""

    def close(self) -> None:
        """Release backend resources."""

    def _resolve_partition(self, payload: Any, partition_key: str | None) -> str:
        return partition_key or partition_for(payload)

    def _new_lease(self, now: datetime) -> tuple[str, datetime]:
        return generate_id("lease"), now + self.lease_duration


class InMemoryQueueManager(BaseQueueManager):
    """
    Thread-safe in-memory queue manager.

    Suitable for a single process running any number of runner instances,
    and for isolated unit tests.
    """

    def __init__(
        self,
        lease_seconds: float = 30.0,
        max_attempts: int = 3,
        clock: Clock | None = None,
    ):
        super().__init__(lease_seconds=lease_seconds, max_attempts=max_attempts, clock=clock)
        self._lock = threading.RLock()
        self._items: dict[str, dict[str, QueueItem[Any]]] = defaultdict(dict)
        self._leases: dict[str, dict[str, str]] = defaultdict(dict)
        self._counters: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._seq = count(1)

    def enqueue(self, queue: str, payload: Any, partition_key: str | None = None) -> str:
        with self._lock:
            item = QueueItem[Any](
                item_id=generate_id("item"),
                queue=queue,
                payload=payload,
                partition_key=self._resolve_partition(payload, partition_key),
                seq=next(self._seq),
                enqueued_at=self.clock(),
            )
            self._items[queue][item.item_id] = item
            self._counters[queue]["enqueued"] += 1
            log_queue_transition(logger, queue, "enqueue", item.item_id, item.partition_key)
            return item.item_id

    def pull(
        self,
        queue: str,
        max_items: int = 1,
        partition_key: str | None = None,
    ) -> list[QueueItem[Any]]:
        with self._lock:
            now = self.clock()
            self._reclaim_expired(queue, now)

            items = self._items[queue]
            busy = {
                item.partition_key
                for item in items.values()
                if item.status == ItemStatus.LEASED
            }
            queued = sorted(
                (item for item in items.values() if item.status == ItemStatus.QUEUED),
                key=lambda item: item.seq,
            )

            claimed: list[QueueItem[Any]] = []
            for item in select_claimable(queued, busy, max_items, partition_key):
                lease_id, expires_at = self._new_lease(now)
                item.status = ItemStatus.LEASED
                item.lease_id = lease_id
                item.lease_expires_at = expires_at
                self._leases[queue][lease_id] = item.item_id
                log_queue_transition(
                    logger, queue, "lease", item.item_id, item.partition_key, item.attempts
                )
                claimed.append(item.model_copy())
            return claimed

    def ack(self, queue: str, lease_id: str) -> bool:
        with self._lock:
            self._reclaim_expired(queue, self.clock())
            item = self._leased_item(queue, lease_id)
            if item is None:
                logger.warning(f"ack on unknown or expired lease {lease_id} in {queue}")
                return False
            del self._leases[queue][lease_id]
            del self._items[queue][item.item_id]
            self._counters[queue]["acked"] += 1
            log_queue_transition(
                logger, queue, "ack", item.item_id, item.partition_key, item.attempts
            )
            return True

    def nack(self, queue: str, lease_id: str, error: str | None = None) -> QueueItem[Any] | None:
        with self._lock:
            self._reclaim_expired(queue, self.clock())
            item = self._leased_item(queue, lease_id)
            if item is None:
                logger.warning(f"nack on unknown or expired lease {lease_id} in {queue}")
                return None
            del self._leases[queue][lease_id]
            self._counters[queue]["nacked"] += 1
            self._fail_attempt(queue, item, error)
            log_queue_transition(
                logger, queue, "nack", item.item_id, item.partition_key, item.attempts
            )
            return item.model_copy()

    def peek(self, queue: str, head: int = 10) -> list[QueueItem[Any]]:
        with self._lock:
            queued = sorted(
                (i for i in self._items[queue].values() if i.status == ItemStatus.QUEUED),
                key=lambda item: item.seq,
            )
            return [item.model_copy() for item in queued[:head]]

    def dead_letters(self, queue: str) -> list[QueueItem[Any]]:
        with self._lock:
            dead = sorted(
                (i for i in self._items[queue].values() if i.status == ItemStatus.DEAD),
                key=lambda item: item.seq,
            )
            return [item.model_copy() for item in dead]

    def requeue_dead_letter(self, queue: str, item_id: str) -> bool:
        with self._lock:
            item = self._items[queue].get(item_id)
            if item is None or item.status != ItemStatus.DEAD:
                return False
            item.status = ItemStatus.QUEUED
            item.attempts = 0
            log_queue_transition(logger, queue, "requeue", item.item_id, item.partition_key)
            return True

    def metrics(self, queue: str) -> QueueMetrics:
        with self._lock:
            self._reclaim_expired(queue, self.clock())
            statuses = [item.status for item in self._items[queue].values()]
            counters = self._counters[queue]
            return QueueMetrics(
                name=queue,
                depth=statuses.count(ItemStatus.QUEUED),
                leased=statuses.count(ItemStatus.LEASED),
                dead=statuses.count(ItemStatus.DEAD),
                enqueued=counters["enqueued"],
                acked=counters["acked"],
                nacked=counters["nacked"],
                dead_lettered=counters["dead_lettered"],
                expired=counters["expired"],
            )

    def queue_names(self) -> list[str]:
        with self._lock:
            return sorted(set(self._items) | set(self._counters))

    def _leased_item(self, queue: str, lease_id: str) -> QueueItem[Any] | None:
        item_id = self._leases[queue].get(lease_id)
        if item_id is None:
            return None
        return self._items[queue].get(item_id)

    def _reclaim_expired(self, queue: str, now: datetime) -> None:
        for lease_id, item_id in list(self._leases[queue].items()):
            item = self._items[queue][item_id]
            if item.lease_expires_at is not None and item.lease_expires_at <= now:
                del self._leases[queue][lease_id]
                self._counters[queue]["expired"] += 1
                self._fail_attempt(queue, item, "lease expired")
                log_queue_transition(
                    logger, queue, "expire", item.item_id, item.partition_key, item.attempts
                )

    def _fail_attempt(self, queue: str, item: QueueItem[Any], error: str | None) -> None:
        item.attempts += 1
        item.last_error = error
        item.lease_id = None
        item.lease_expires_at = None
        if item.attempts >= self.max_attempts:
            item.status = ItemStatus.DEAD
            self._counters[queue]["dead_lettered"] += 1
            log_queue_transition(
                logger, queue, "dead", item.item_id, item.partition_key, item.attempts
            )
        else:
            item.status = ItemStatus.QUEUED


def create_queue_manager(config: QueueConfig, clock: Clock | None = None) -> BaseQueueManager:
    """
    Build the queue backend selected by configuration.

    Args:
        config: Queue configuration
        clock: Optional time source

    Returns:
        Queue manager instance
    """
    if config.backend == "sqlite":
        from patchway.core.storage import SqliteQueueManager

        return SqliteQueueManager(
            config.database,
            lease_seconds=config.lease_seconds,
            max_attempts=config.max_attempts,
            clock=clock,
        )
    return InMemoryQueueManager(
        lease_seconds=config.lease_seconds,
        max_attempts=config.max_attempts,
        clock=clock,
    )
