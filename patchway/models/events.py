"""
Pipeline event models.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from patchway.utils.helpers import utc_now


class EventType(str, Enum):
    """Kinds of events recorded by the pipeline."""

    GOAL_ENQUEUED = "goal_enqueued"
    GOAL_PLANNED = "goal_planned"
    GOAL_REJECTED = "goal_rejected"
    TASK_ENQUEUED = "task_enqueued"
    TASK_EXECUTED = "task_executed"
    TASK_FAILED = "task_failed"
    PATCH_SUBMITTED = "patch_submitted"
    PATCH_APPROVED = "patch_approved"
    PATCH_REJECTED = "patch_rejected"
    MUTATIONS_APPLIED = "mutations_applied"
    PATCH_DUPLICATE = "patch_duplicate"
    PATCH_CONFLICT = "patch_conflict"
    PATCH_FAILED = "patch_failed"
    ITEM_DISCARDED = "item_discarded"
    DEAD_LETTERED = "dead_lettered"


class PipelineEvent(BaseModel):
    """One recorded pipeline event."""

    type: EventType
    timestamp: datetime = Field(default_factory=utc_now)
    data: dict[str, Any] = Field(default_factory=dict)

    def to_summary(self) -> str:
        """Get a brief summary."""
        details = ", ".join(f"{k}={v}" for k, v in self.data.items() if k != "ops")
        return f"[{self.type.value}] {details}"
