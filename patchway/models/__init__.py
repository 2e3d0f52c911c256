"""Patchway models package."""

from patchway.models.config import (
    PatchwayConfig,
    QueueConfig,
    QueueNames,
    PipelineConfig,
    LoggingConfig,
)
from patchway.models.events import EventType, PipelineEvent
from patchway.models.queue import ItemStatus, QueueItem, QueueMetrics
from patchway.models.tools import ArgsValidation, ToolCategory, ToolContext, ToolInfo, ToolResult
from patchway.models.work import (
    AddEdge,
    AddNodeInstance,
    AddNodePrototype,
    CreateGraph,
    Goal,
    MoveNodeInstance,
    Patch,
    Position,
    Review,
    ReviewStatus,
    Task,
    TaskDag,
    TaskSpec,
    UpdateNodePrototype,
)

__all__ = [
    # Config
    "PatchwayConfig",
    "QueueConfig",
    "QueueNames",
    "PipelineConfig",
    "LoggingConfig",
    # Events
    "EventType",
    "PipelineEvent",
    # Queue
    "ItemStatus",
    "QueueItem",
    "QueueMetrics",
    # Tools
    "ArgsValidation",
    "ToolCategory",
    "ToolContext",
    "ToolInfo",
    "ToolResult",
    # Work items
    "Goal",
    "Task",
    "TaskDag",
    "TaskSpec",
    "Patch",
    "Review",
    "ReviewStatus",
    # Graph operations
    "Position",
    "CreateGraph",
    "AddNodePrototype",
    "UpdateNodePrototype",
    "AddNodeInstance",
    "MoveNodeInstance",
    "AddEdge",
]
