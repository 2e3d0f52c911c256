"""
SQLite queue storage for Patchway.

Persists queue items so leases, attempts and dead letters survive a
process restart. Several processes may share one database file: every
state change runs inside a ``BEGIN IMMEDIATE`` transaction, so two pulls
can never lease the same item.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from patchway.core.queue import BaseQueueManager, Clock, select_claimable
from patchway.models.queue import ItemStatus, QueueItem, QueueMetrics
from patchway.models.work import work_item_adapter
from patchway.utils.helpers import generate_id
from patchway.utils.logger import get_logger, log_queue_transition

logger = get_logger(__name__)

COUNTER_NAMES = ("enqueued", "acked", "nacked", "dead_lettered", "expired")


def _is_lock_error(error: BaseException) -> bool:
    return isinstance(error, sqlite3.OperationalError) and (
        "locked" in str(error) or "busy" in str(error)
    )


# Another process held the write lock longer than the connection timeout
retry_on_lock = retry(
    retry=retry_if_exception(_is_lock_error),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
    reraise=True,
)


class SqliteQueueManager(BaseQueueManager):
    """
    SQLite-backed queue manager.

    Payloads must be pipeline work items (Goal, Task, Patch, Review); they
    are stored as JSON and validated back into their models on read.

    Example:
        >>> queue = SqliteQueueManager("./.patchway/queue.db")
        >>> queue.enqueue("goalQueue", Goal(thread_id="t1"))
        >>> queue.metrics("goalQueue").depth
        1
    """

    def __init__(
        self,
        db_path: str | Path,
        lease_seconds: float = 30.0,
        max_attempts: int = 3,
        clock: Clock | None = None,
    ):
        """
        Initialize the queue storage.

        Args:
            db_path: Database file (parent directories are created)
            lease_seconds: How long a pulled item stays claimed
            max_attempts: Failed deliveries before dead-lettering
            clock: Time source returning aware datetimes
        """
        super().__init__(lease_seconds=lease_seconds, max_attempts=max_attempts, clock=clock)
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS queue_items (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    item_id TEXT NOT NULL UNIQUE,
                    queue TEXT NOT NULL,
                    partition_key TEXT NOT NULL,
                    payload_json TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'queued',
                    lease_id TEXT,
                    lease_expires_at TEXT,
                    attempts INTEGER NOT NULL DEFAULT 0,
                    last_error TEXT,
                    enqueued_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS queue_counters (
                    queue TEXT NOT NULL,
                    name TEXT NOT NULL,
                    value INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (queue, name)
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_items_queue_status
                ON queue_items(queue, status, seq)
            """)
            conn.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_items_lease
                ON queue_items(lease_id)
            """)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, timeout=5.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    @retry_on_lock
    def enqueue(self, queue: str, payload: Any, partition_key: str | None = None) -> str:
        item_id = generate_id("item")
        partition = self._resolve_partition(payload, partition_key)
        payload_json = work_item_adapter.dump_json(payload).decode("utf-8")

        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO queue_items
                (item_id, queue, partition_key, payload_json, status, attempts, enqueued_at)
                VALUES (?, ?, ?, ?, ?, 0, ?)
            """,
                (
                    item_id,
                    queue,
                    partition,
                    payload_json,
                    ItemStatus.QUEUED.value,
                    self.clock().isoformat(),
                ),
            )
            self._bump(conn, queue, "enqueued")

        log_queue_transition(logger, queue, "enqueue", item_id, partition)
        return item_id

    @retry_on_lock
    def pull(
        self,
        queue: str,
        max_items: int = 1,
        partition_key: str | None = None,
    ) -> list[QueueItem[Any]]:
        claimed: list[QueueItem[Any]] = []
        with self._transaction() as conn:
            now = self.clock()
            self._reclaim_expired(conn, queue, now)

            busy = {
                row["partition_key"]
                for row in conn.execute(
                    "SELECT DISTINCT partition_key FROM queue_items WHERE queue = ? AND status = ?",
                    (queue, ItemStatus.LEASED.value),
                )
            }
            queued = [
                self._row_to_item(row)
                for row in conn.execute(
                    "SELECT * FROM queue_items WHERE queue = ? AND status = ? ORDER BY seq",
                    (queue, ItemStatus.QUEUED.value),
                )
            ]

            for item in select_claimable(queued, busy, max_items, partition_key):
                lease_id, expires_at = self._new_lease(now)
                conn.execute(
                    """
                    UPDATE queue_items
                    SET status = ?, lease_id = ?, lease_expires_at = ?
                    WHERE item_id = ?
                """,
                    (ItemStatus.LEASED.value, lease_id, expires_at.isoformat(), item.item_id),
                )
                item.status = ItemStatus.LEASED
                item.lease_id = lease_id
                item.lease_expires_at = expires_at
                claimed.append(item)

        for item in claimed:
            log_queue_transition(
                logger, queue, "lease", item.item_id, item.partition_key, item.attempts
            )
        return claimed

    @retry_on_lock
    def ack(self, queue: str, lease_id: str) -> bool:
        with self._transaction() as conn:
            row = self._leased_row(conn, queue, lease_id)
            if row is None:
                logger.warning(f"ack on unknown or expired lease {lease_id} in {queue}")
                return False
            conn.execute("DELETE FROM queue_items WHERE item_id = ?", (row["item_id"],))
            self._bump(conn, queue, "acked")

        log_queue_transition(
            logger, queue, "ack", row["item_id"], row["partition_key"], row["attempts"]
        )
        return True

    @retry_on_lock
    def nack(self, queue: str, lease_id: str, error: str | None = None) -> QueueItem[Any] | None:
        with self._transaction() as conn:
            row = self._leased_row(conn, queue, lease_id)
            if row is None:
                logger.warning(f"nack on unknown or expired lease {lease_id} in {queue}")
                return None
            self._bump(conn, queue, "nacked")
            item = self._fail_attempt(conn, self._row_to_item(row), error)

        log_queue_transition(
            logger, queue, "nack", item.item_id, item.partition_key, item.attempts
        )
        return item

    def peek(self, queue: str, head: int = 10) -> list[QueueItem[Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM queue_items WHERE queue = ? AND status = ? ORDER BY seq LIMIT ?",
                (queue, ItemStatus.QUEUED.value, head),
            ).fetchall()
        return [self._row_to_item(row) for row in rows]

    def dead_letters(self, queue: str) -> list[QueueItem[Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM queue_items WHERE queue = ? AND status = ? ORDER BY seq",
                (queue, ItemStatus.DEAD.value),
            ).fetchall()
        return [self._row_to_item(row) for row in rows]

    @retry_on_lock
    def requeue_dead_letter(self, queue: str, item_id: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE queue_items SET status = ?, attempts = 0
                WHERE queue = ? AND item_id = ? AND status = ?
            """,
                (ItemStatus.QUEUED.value, queue, item_id, ItemStatus.DEAD.value),
            )
            return cursor.rowcount > 0

    @retry_on_lock
    def metrics(self, queue: str) -> QueueMetrics:
        with self._transaction() as conn:
            self._reclaim_expired(conn, queue, self.clock())
            statuses = {
                row["status"]: row["n"]
                for row in conn.execute(
                    "SELECT status, COUNT(*) AS n FROM queue_items WHERE queue = ? GROUP BY status",
                    (queue,),
                )
            }
            counters = {
                row["name"]: row["value"]
                for row in conn.execute(
                    "SELECT name, value FROM queue_counters WHERE queue = ?", (queue,)
                )
            }

        return QueueMetrics(
            name=queue,
            depth=statuses.get(ItemStatus.QUEUED.value, 0),
            leased=statuses.get(ItemStatus.LEASED.value, 0),
            dead=statuses.get(ItemStatus.DEAD.value, 0),
            **{name: counters.get(name, 0) for name in COUNTER_NAMES},
        )

    def queue_names(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT queue FROM queue_items UNION SELECT queue FROM queue_counters"
            ).fetchall()
        return sorted(row[0] for row in rows)

    def _leased_row(
        self,
        conn: sqlite3.Connection,
        queue: str,
        lease_id: str,
    ) -> sqlite3.Row | None:
        row = conn.execute(
            "SELECT * FROM queue_items WHERE queue = ? AND lease_id = ? AND status = ?",
            (queue, lease_id, ItemStatus.LEASED.value),
        ).fetchone()
        if row is None:
            return None
        expires_at = row["lease_expires_at"]
        if expires_at and datetime.fromisoformat(expires_at) <= self.clock():
            return None
        return row

    def _reclaim_expired(self, conn: sqlite3.Connection, queue: str, now: datetime) -> None:
        rows = conn.execute(
            "SELECT * FROM queue_items WHERE queue = ? AND status = ?",
            (queue, ItemStatus.LEASED.value),
        ).fetchall()
        for row in rows:
            expires_at = row["lease_expires_at"]
            if expires_at and datetime.fromisoformat(expires_at) <= now:
                self._bump(conn, queue, "expired")
                item = self._fail_attempt(conn, self._row_to_item(row), "lease expired")
                log_queue_transition(
                    logger, queue, "expire", item.item_id, item.partition_key, item.attempts
                )

    def _fail_attempt(
        self,
        conn: sqlite3.Connection,
        item: QueueItem[Any],
        error: str | None,
    ) -> QueueItem[Any]:
        item.attempts += 1
        item.last_error = error
        item.lease_id = None
        item.lease_expires_at = None
        if item.attempts >= self.max_attempts:
            item.status = ItemStatus.DEAD
            self._bump(conn, item.queue, "dead_lettered")
            log_queue_transition(
                logger, item.queue, "dead", item.item_id, item.partition_key, item.attempts
            )
        else:
            item.status = ItemStatus.QUEUED

        conn.execute(
            """
            UPDATE queue_items
            SET status = ?, attempts = ?, last_error = ?, lease_id = NULL, lease_expires_at = NULL
            WHERE item_id = ?
        """,
            (item.status.value, item.attempts, error, item.item_id),
        )
        return item

    @staticmethod
    def _bump(conn: sqlite3.Connection, queue: str, name: str) -> None:
        conn.execute(
            """
            INSERT INTO queue_counters (queue, name, value) VALUES (?, ?, 1)
            ON CONFLICT(queue, name) DO UPDATE SET value = value + 1
        """,
            (queue, name),
        )

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> QueueItem[Any]:
        expires_at = row["lease_expires_at"]
        return QueueItem[Any](
            item_id=row["item_id"],
            queue=row["queue"],
            payload=work_item_adapter.validate_json(row["payload_json"]),
            partition_key=row["partition_key"],
            seq=row["seq"],
            enqueued_at=datetime.fromisoformat(row["enqueued_at"]),
            status=ItemStatus(row["status"]),
            lease_id=row["lease_id"],
            lease_expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
            attempts=row["attempts"],
            last_error=row["last_error"],
        )
