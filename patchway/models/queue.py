"""
Queue item and metrics models.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from patchway.utils.helpers import utc_now

T = TypeVar("T")


class ItemStatus(str, Enum):
    """Delivery state of a queue item."""

    QUEUED = "queued"
    LEASED = "leased"
    DEAD = "dead"


class QueueItem(BaseModel, Generic[T]):
    """A payload plus its delivery bookkeeping."""

    item_id: str = Field(description="Stable identity of the item")
    queue: str = Field(description="Queue the item belongs to")
    payload: T
    partition_key: str = Field(description="Ordering scope")
    seq: int = Field(default=0, description="Enqueue sequence number")
    enqueued_at: datetime = Field(default_factory=utc_now)
    status: ItemStatus = Field(default=ItemStatus.QUEUED)
    lease_id: str | None = Field(default=None)
    lease_expires_at: datetime | None = Field(default=None)
    attempts: int = Field(default=0, description="Failed deliveries so far")
    last_error: str | None = Field(default=None)


class QueueMetrics(BaseModel):
    """Depth and lifetime counters of one queue."""

    name: str
    depth: int = Field(default=0, description="Items waiting to be pulled")
    leased: int = Field(default=0, description="Items currently claimed")
    dead: int = Field(default=0, description="Items in dead-letter state")
    enqueued: int = 0
    acked: int = 0
    nacked: int = 0
    dead_lettered: int = 0
    expired: int = 0
