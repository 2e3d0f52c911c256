"""
Work item models.

Every payload that travels between roles is one variant of a tagged union
discriminated by ``kind``: Goal, Task, Patch or Review. Graph operations
carried by patches are a second tagged union discriminated by ``type``.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from patchway.utils.helpers import generate_id

DEFAULT_PARTITION = "default"

# Target of patches whose operations touch only the global prototypes
PROTOTYPE_SCOPE = "@prototypes"


class Position(BaseModel):
    """Canvas position of a node instance."""

    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0


# Graph operations


class CreateGraph(BaseModel):
    """Create an empty graph."""

    model_config = ConfigDict(frozen=True)

    type: Literal["create_graph"] = "create_graph"
    graph_id: str
    name: str = ""


class AddNodePrototype(BaseModel):
    """Add a node prototype (shared across graphs)."""

    model_config = ConfigDict(frozen=True)

    type: Literal["add_node_prototype"] = "add_node_prototype"
    prototype_id: str
    name: str
    description: str = ""
    color: str | None = None


class UpdateNodePrototype(BaseModel):
    """Update name, description or color of a prototype."""

    model_config = ConfigDict(frozen=True)

    type: Literal["update_node_prototype"] = "update_node_prototype"
    prototype_id: str
    name: str | None = None
    description: str | None = None
    color: str | None = None


class AddNodeInstance(BaseModel):
    """Place an instance of a prototype in a graph."""

    model_config = ConfigDict(frozen=True)

    type: Literal["add_node_instance"] = "add_node_instance"
    graph_id: str
    prototype_id: str
    instance_id: str
    position: Position = Field(default_factory=Position)


class MoveNodeInstance(BaseModel):
    """Move an existing instance."""

    model_config = ConfigDict(frozen=True)

    type: Literal["move_node_instance"] = "move_node_instance"
    graph_id: str
    instance_id: str
    position: Position


class AddEdge(BaseModel):
    """Connect two instances of a graph."""

    model_config = ConfigDict(frozen=True)

    type: Literal["add_edge"] = "add_edge"
    graph_id: str
    edge_id: str
    source_id: str
    destination_id: str
    label: str = ""


GraphOp = Annotated[
    Union[
        CreateGraph,
        AddNodePrototype,
        UpdateNodePrototype,
        AddNodeInstance,
        MoveNodeInstance,
        AddEdge,
    ],
    Field(discriminator="type"),
]


# Pipeline payloads


class TaskSpec(BaseModel):
    """A task as described inside a goal's DAG."""

    model_config = ConfigDict(frozen=True)

    tool_name: str = Field(description="Tool to invoke")
    args: dict[str, Any] = Field(default_factory=dict)
    thread_id: str | None = Field(default=None, description="Overrides the goal's thread")
    dependencies: list[str] = Field(default_factory=list)


class TaskDag(BaseModel):
    """Pre-decomposed plan for a goal."""

    model_config = ConfigDict(frozen=True)

    tasks: list[TaskSpec] = Field(default_factory=list)


class Goal(BaseModel):
    """High-level intent, optionally carrying a task DAG."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["goal"] = "goal"
    thread_id: str = Field(default=DEFAULT_PARTITION)
    goal: str = Field(default="", description="Free-text intent")
    dag: TaskDag | None = None


class Task(BaseModel):
    """One unit of proposed work."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["task"] = "task"
    task_id: str = Field(default_factory=lambda: generate_id("task"))
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    thread_id: str = Field(default=DEFAULT_PARTITION)
    partition_key: str | None = None
    dependencies: list[str] = Field(default_factory=list)

    @property
    def partition(self) -> str:
        """Partition key, defaulting to the thread id."""
        return self.partition_key or self.thread_id or DEFAULT_PARTITION


class Patch(BaseModel):
    """An identified, idempotent set of graph operations."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["patch"] = "patch"
    patch_id: str = Field(default_factory=lambda: generate_id("patch"))
    thread_id: str = Field(default=DEFAULT_PARTITION)
    graph_id: str
    base_hash: str | None = Field(
        default=None,
        description="Store version the patch was computed against (None = no precondition)",
    )
    ops: list[GraphOp] = Field(default_factory=list)


class ReviewStatus(str, Enum):
    """Auditor verdict."""

    APPROVED = "approved"
    REJECTED = "rejected"


class Review(BaseModel):
    """Auditor verdict carrying the reviewed patch by value."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["review"] = "review"
    status: ReviewStatus
    graph_id: str
    patch: Patch
    reasons: list[str] = Field(default_factory=list)

    @property
    def approved(self) -> bool:
        return self.status == ReviewStatus.APPROVED


WorkItem = Annotated[
    Union[Goal, Task, Patch, Review],
    Field(discriminator="kind"),
]

work_item_adapter: TypeAdapter[Any] = TypeAdapter(WorkItem)
graph_op_adapter: TypeAdapter[Any] = TypeAdapter(GraphOp)


def partition_for(payload: Any) -> str:
    """
    Derive the default partition key of a payload.

    Args:
        payload: Work item

    Returns:
        Explicit partition key, else thread id, else ``"default"``
    """
    if isinstance(payload, Task):
        return payload.partition
    if isinstance(payload, Review):
        return payload.patch.thread_id or DEFAULT_PARTITION
    thread_id = getattr(payload, "thread_id", None)
    return thread_id or DEFAULT_PARTITION
