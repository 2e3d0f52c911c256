"""
Tests for the in-memory queue manager.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from patchway.core.queue import InMemoryQueueManager, create_queue_manager, select_claimable
from patchway.core.storage import SqliteQueueManager
from patchway.models.config import QueueConfig
from patchway.models.queue import ItemStatus, QueueItem
from patchway.models.work import Goal, Task


def make_task(thread_id: str, tool_name: str = "verify_state") -> Task:
    return Task(tool_name=tool_name, thread_id=thread_id)


class TestEnqueuePull:
    """Tests for enqueue and pull."""

    def test_enqueue_returns_id(self, queue):
        item_id = queue.enqueue("taskQueue", make_task("t1"))
        assert item_id.startswith("item-")
        assert queue.metrics("taskQueue").depth == 1

    def test_pull_leases_item(self, queue, clock):
        item_id = queue.enqueue("taskQueue", make_task("t1"))
        [item] = queue.pull("taskQueue")

        assert item.item_id == item_id
        assert item.status == ItemStatus.LEASED
        assert item.lease_id is not None
        assert item.lease_expires_at == clock.now + queue.lease_duration

    def test_pull_empty_queue(self, queue):
        assert queue.pull("taskQueue") == []

    def test_leased_item_not_redelivered(self, queue):
        queue.enqueue("taskQueue", make_task("t1"))
        assert len(queue.pull("taskQueue")) == 1
        assert queue.pull("taskQueue") == []

    def test_pull_respects_max_items(self, queue):
        for thread in ("a", "b", "c"):
            queue.enqueue("taskQueue", make_task(thread))
        assert len(queue.pull("taskQueue", max_items=2)) == 2

    def test_queues_are_independent(self, queue):
        queue.enqueue("taskQueue", make_task("t1"))
        assert queue.pull("goalQueue") == []

    def test_default_partition_is_thread(self, queue):
        queue.enqueue("taskQueue", make_task("t9"))
        queue.enqueue("goalQueue", Goal())
        assert queue.peek("taskQueue")[0].partition_key == "t9"
        assert queue.peek("goalQueue")[0].partition_key == "default"

    def test_explicit_partition_key(self, queue):
        queue.enqueue("taskQueue", make_task("t1"), partition_key="custom")
        assert queue.peek("taskQueue")[0].partition_key == "custom"


class TestAckNack:
    """Tests for ack and nack."""

    def test_ack_removes_item(self, queue):
        queue.enqueue("taskQueue", make_task("t1"))
        [item] = queue.pull("taskQueue")

        assert queue.ack("taskQueue", item.lease_id) is True
        assert queue.metrics("taskQueue").depth == 0
        assert queue.pull("taskQueue") == []

    def test_ack_twice(self, queue):
        queue.enqueue("taskQueue", make_task("t1"))
        [item] = queue.pull("taskQueue")
        queue.ack("taskQueue", item.lease_id)
        assert queue.ack("taskQueue", item.lease_id) is False

    def test_ack_unknown_lease(self, queue):
        assert queue.ack("taskQueue", "lease-missing") is False

    def test_nack_requeues_with_attempt(self, queue):
        queue.enqueue("taskQueue", make_task("t1"))
        [item] = queue.pull("taskQueue")

        released = queue.nack("taskQueue", item.lease_id, "boom")
        assert released.status == ItemStatus.QUEUED
        assert released.attempts == 1
        assert released.last_error == "boom"

        [again] = queue.pull("taskQueue")
        assert again.item_id == item.item_id
        assert again.lease_id != item.lease_id

    def test_nack_unknown_lease(self, queue):
        assert queue.nack("taskQueue", "lease-missing") is None

    def test_dead_letter_after_max_attempts(self, queue):
        queue.enqueue("taskQueue", make_task("t1"))
        for _ in range(3):
            [item] = queue.pull("taskQueue")
            released = queue.nack("taskQueue", item.lease_id, "still failing")

        assert released.status == ItemStatus.DEAD
        assert queue.pull("taskQueue") == []

        [dead] = queue.dead_letters("taskQueue")
        assert dead.attempts == 3
        assert dead.last_error == "still failing"

        metrics = queue.metrics("taskQueue")
        assert metrics.dead == 1
        assert metrics.dead_lettered == 1
        assert metrics.nacked == 3

    def test_requeue_dead_letter(self, queue):
        item_id = queue.enqueue("taskQueue", make_task("t1"))
        for _ in range(3):
            [item] = queue.pull("taskQueue")
            queue.nack("taskQueue", item.lease_id)

        assert queue.requeue_dead_letter("taskQueue", item_id) is True
        [item] = queue.pull("taskQueue")
        assert item.attempts == 0
        assert queue.requeue_dead_letter("taskQueue", item_id) is False


class TestLeaseExpiry:
    """Tests for lease expiry."""

    def test_expired_lease_is_reclaimable(self, queue, clock):
        queue.enqueue("taskQueue", make_task("t1"))
        [first] = queue.pull("taskQueue")

        clock.advance(31)
        [second] = queue.pull("taskQueue")

        assert second.item_id == first.item_id
        assert second.attempts == 1
        assert queue.metrics("taskQueue").expired == 1

    def test_lease_valid_until_expiry(self, queue, clock):
        queue.enqueue("taskQueue", make_task("t1"))
        queue.pull("taskQueue")

        clock.advance(29)
        assert queue.pull("taskQueue") == []

    def test_ack_after_expiry_fails(self, queue, clock):
        queue.enqueue("taskQueue", make_task("t1"))
        [item] = queue.pull("taskQueue")

        clock.advance(31)
        assert queue.ack("taskQueue", item.lease_id) is False
        assert queue.metrics("taskQueue").depth == 1

    def test_expiry_counts_toward_dead_letter(self, queue, clock):
        queue.enqueue("taskQueue", make_task("t1"))
        for _ in range(3):
            assert len(queue.pull("taskQueue")) == 1
            clock.advance(31)

        assert queue.pull("taskQueue") == []
        [dead] = queue.dead_letters("taskQueue")
        assert dead.last_error == "lease expired"


class TestPartitionOrdering:
    """Tests for per-partition ordering."""

    def test_one_lease_per_partition(self, queue):
        queue.enqueue("taskQueue", make_task("a"))
        queue.enqueue("taskQueue", make_task("a"))
        queue.enqueue("taskQueue", make_task("b"))

        items = queue.pull("taskQueue", max_items=3)
        assert [item.partition_key for item in items] == ["a", "b"]

    def test_partition_blocked_until_ack(self, queue):
        first_id = queue.enqueue("taskQueue", make_task("a"))
        second_id = queue.enqueue("taskQueue", make_task("a"))

        [first] = queue.pull("taskQueue")
        assert first.item_id == first_id
        assert queue.pull("taskQueue") == []

        queue.ack("taskQueue", first.lease_id)
        [second] = queue.pull("taskQueue")
        assert second.item_id == second_id

    def test_nacked_item_keeps_position(self, queue):
        first_id = queue.enqueue("taskQueue", make_task("a"))
        queue.enqueue("taskQueue", make_task("a"))

        [first] = queue.pull("taskQueue")
        queue.nack("taskQueue", first.lease_id, "retry")

        [again] = queue.pull("taskQueue")
        assert again.item_id == first_id

    def test_no_head_of_line_blocking(self, queue):
        queue.enqueue("taskQueue", make_task("a"))
        queue.enqueue("taskQueue", make_task("a"))
        b_id = queue.enqueue("taskQueue", make_task("b"))

        queue.pull("taskQueue")
        [item] = queue.pull("taskQueue")
        assert item.item_id == b_id

    def test_pull_filtered_by_partition(self, queue):
        queue.enqueue("taskQueue", make_task("a"))
        b_id = queue.enqueue("taskQueue", make_task("b"))

        [item] = queue.pull("taskQueue", partition_key="b")
        assert item.item_id == b_id

    def test_partition_order_preserved(self, queue):
        ids = [queue.enqueue("taskQueue", make_task("a")) for _ in range(5)]

        delivered = []
        while True:
            items = queue.pull("taskQueue")
            if not items:
                break
            delivered.append(items[0].item_id)
            queue.ack("taskQueue", items[0].lease_id)

        assert delivered == ids


class TestExclusivity:
    """Tests for lease exclusivity and exactly-once consumption."""

    def test_concurrent_pulls_never_share_items(self, queue):
        for index in range(50):
            queue.enqueue("taskQueue", make_task(f"t{index}"))

        seen: list[str] = []
        lock = threading.Lock()

        def worker():
            while True:
                items = queue.pull("taskQueue", max_items=1)
                if not items:
                    return
                with lock:
                    seen.append(items[0].item_id)

        with ThreadPoolExecutor(max_workers=8) as pool:
            for _ in range(8):
                pool.submit(worker)

        assert len(seen) == 50
        assert len(set(seen)) == 50

    def test_acked_item_never_returned(self, queue, clock):
        queue.enqueue("taskQueue", make_task("t1"))
        [item] = queue.pull("taskQueue")
        queue.ack("taskQueue", item.lease_id)

        clock.advance(3600)
        assert queue.pull("taskQueue") == []
        assert queue.dead_letters("taskQueue") == []


class TestInspection:
    """Tests for peek, metrics and queue names."""

    def test_peek_does_not_lease(self, queue):
        queue.enqueue("taskQueue", make_task("t1"))
        assert len(queue.peek("taskQueue")) == 1
        assert len(queue.pull("taskQueue")) == 1

    def test_peek_head(self, queue):
        for thread in ("a", "b", "c"):
            queue.enqueue("taskQueue", make_task(thread))
        assert [i.partition_key for i in queue.peek("taskQueue", head=2)] == ["a", "b"]

    def test_metrics_counts(self, queue):
        queue.enqueue("taskQueue", make_task("a"))
        queue.enqueue("taskQueue", make_task("b"))
        [item] = queue.pull("taskQueue")
        queue.ack("taskQueue", item.lease_id)
        queue.pull("taskQueue")

        metrics = queue.metrics("taskQueue")
        assert metrics.name == "taskQueue"
        assert metrics.enqueued == 2
        assert metrics.acked == 1
        assert metrics.leased == 1
        assert metrics.depth == 0

    def test_queue_names(self, queue):
        queue.enqueue("taskQueue", make_task("a"))
        queue.enqueue("goalQueue", Goal())
        assert queue.queue_names() == ["goalQueue", "taskQueue"]


class TestSelectClaimable:
    """Tests for the claim selection helper."""

    def _items(self, partitions):
        return [
            QueueItem(item_id=f"i{n}", queue="q", payload=None, partition_key=p, seq=n)
            for n, p in enumerate(partitions)
        ]

    def test_skips_busy_partitions(self):
        items = self._items(["a", "b", "a"])
        selected = select_claimable(items, {"a"}, max_items=5)
        assert [i.item_id for i in selected] == ["i1"]

    def test_zero_max_items(self):
        assert select_claimable(self._items(["a"]), set(), max_items=0) == []


class TestCreateQueueManager:
    """Tests for backend selection."""

    def test_memory_backend(self):
        manager = create_queue_manager(QueueConfig(lease_seconds=5, max_attempts=2))
        assert isinstance(manager, InMemoryQueueManager)
        assert manager.lease_seconds == 5
        assert manager.max_attempts == 2

    def test_sqlite_backend(self, tmp_path):
        config = QueueConfig(backend="sqlite", database=str(tmp_path / "q.db"))
        manager = create_queue_manager(config)
        assert isinstance(manager, SqliteQueueManager)
        assert (tmp_path / "q.db").exists()

    def test_invalid_backend(self):
        with pytest.raises(ValueError):
            QueueConfig(backend="redis")
