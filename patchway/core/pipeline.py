"""
Pipeline wiring for Patchway.

The Pipeline builds every component from configuration and drives the
four role runners. It is the external driver the runners expect: it
decides when ``run_once()`` is called and does nothing else.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Iterable

import yaml
from pydantic import BaseModel, Field

from patchway.core.events import EventLog
from patchway.core.graph import GraphStore, InMemoryGraphStore
from patchway.core.policy import Role, RolePolicy, RoleToolView
from patchway.core.queue import BaseQueueManager, Clock, create_queue_manager
from patchway.errors import ConfigError
from patchway.models.config import PatchwayConfig
from patchway.models.events import EventType, PipelineEvent
from patchway.models.graph import CommitOutcome
from patchway.models.queue import QueueMetrics
from patchway.models.work import Goal, GraphOp, TaskDag, TaskSpec, graph_op_adapter
from patchway.runners import AuditorRunner, BaseRunner, CommitterRunner, ExecutorRunner, PlannerRunner
from patchway.tools.registry import ToolRegistry, build_default_registry
from patchway.tools.validator import ToolValidator
from patchway.utils.helpers import generate_id
from patchway.utils.logger import get_logger

logger = get_logger(__name__)


class GoalsFile(BaseModel):
    """
    A batch of goals, with optional graph seed operations.

    Example YAML:
        seed:
          - {type: create_graph, graph_id: g1}
          - {type: add_node_prototype, prototype_id: p1, name: Service}
        goals:
          - thread_id: t1
            dag:
              tasks:
                - tool_name: create_node_instance
                  args: {graph_id: g1, prototype_id: p1}
    """

    seed: list[GraphOp] = Field(default_factory=list, description="Operations applied before any goal")
    active_graph: str | None = Field(default=None, description="Graph to focus after seeding")
    goals: list[Goal] = Field(default_factory=list)

    @classmethod
    def load(cls, path: str | Path) -> "GoalsFile":
        """
        Load a goals file.

        Raises:
            ConfigError: If the file is missing or not valid YAML
        """
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Goals file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        return cls.model_validate(data)


class Pipeline:
    """
    Builds and drives the four-role pipeline.

    Components are constructed explicitly and passed to each other; no
    component is reached through a module-level singleton.

    Example:
        >>> pipeline = Pipeline(PatchwayConfig())
        >>> pipeline.seed([CreateGraph(graph_id="g1"), AddNodePrototype(prototype_id="p1", name="A")])
        >>> pipeline.submit_goal("t1", dag=[TaskSpec(tool_name="create_node_instance",
        ...                                          args={"graph_id": "g1", "prototype_id": "p1"})])
        >>> await pipeline.drain()
        >>> pipeline.events.history(EventType.MUTATIONS_APPLIED)
    """

    def __init__(
        self,
        config: PatchwayConfig | None = None,
        queue: BaseQueueManager | None = None,
        store: GraphStore | None = None,
        policy: RolePolicy | None = None,
        clock: Clock | None = None,
        on_event: Callable[[PipelineEvent], None] | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Patchway configuration
            queue: Queue manager (built from config if omitted)
            store: Graph store (in-memory if omitted)
            policy: Role policy (default allowlists if omitted)
            clock: Time source for the queue manager
            on_event: Callback for every pipeline event
        """
        self.config = config or PatchwayConfig()
        self.names = self.config.queue.names

        self.queue = queue or create_queue_manager(self.config.queue, clock=clock)
        self.store = store or InMemoryGraphStore()
        self.registry: ToolRegistry = build_default_registry(self.store)
        self.policy = policy or RolePolicy()
        self.views: dict[Role, RoleToolView] = {
            role: self.policy.view(role, self.registry) for role in Role
        }
        self.validator = ToolValidator(
            self.registry,
            max_string_length=self.config.pipeline.max_string_length,
        )

        self.events = EventLog(max_history=self.config.pipeline.event_history)
        if on_event:
            self.events.subscribe(on_event)

        # Initialize runners
        self.planner = PlannerRunner(
            self.queue, self.events, names=self.names, config=self.config.pipeline
        )
        self.executor = ExecutorRunner(
            self.queue,
            self.events,
            tools=self.views[Role.EXECUTOR],
            validator=self.validator,
            names=self.names,
        )
        self.auditor = AuditorRunner(
            self.queue, self.events, tools=self.views[Role.AUDITOR], names=self.names
        )
        self.committer = CommitterRunner(
            self.queue, self.events, store=self.store, names=self.names
        )

    @property
    def runners(self) -> list[BaseRunner]:
        """Runners in pipeline order."""
        return [self.planner, self.executor, self.auditor, self.committer]

    def seed(self, ops: Iterable[Any], graph_id: str | None = None) -> CommitOutcome:
        """
        Apply setup operations directly to the store, bypassing review.

        Args:
            ops: Graph operations (models or dicts with a ``type`` key)
            graph_id: Graph the operations belong to (taken from the first
                operation that names one if omitted)

        Returns:
            CommitOutcome of the seed
        """
        parsed = [graph_op_adapter.validate_python(op) if isinstance(op, dict) else op for op in ops]
        if graph_id is None:
            graph_id = next(
                (op.graph_id for op in parsed if getattr(op, "graph_id", None)),
                "default",
            )
        return self.store.apply_mutations(graph_id, parsed, patch_id=generate_id("seed"))

    def submit(self, goal: Goal) -> str:
        """
        Enqueue a goal.

        Returns:
            Queue item id
        """
        item_id = self.queue.enqueue(self.names.goals, goal, partition_key=goal.thread_id)
        self.events.append(EventType.GOAL_ENQUEUED, item_id=item_id, thread_id=goal.thread_id)
        return item_id

    def submit_goal(
        self,
        thread_id: str = "default",
        dag: TaskDag | Iterable[TaskSpec | dict[str, Any]] | None = None,
        goal: str = "",
    ) -> str:
        """
        Build and enqueue a goal.

        Args:
            thread_id: Conversation thread (the goal's partition)
            dag: Pre-decomposed tasks
            goal: Free-text intent

        Returns:
            Queue item id
        """
        if dag is not None and not isinstance(dag, TaskDag):
            dag = TaskDag(tasks=[TaskSpec.model_validate(t) if isinstance(t, dict) else t for t in dag])
        return self.submit(Goal(thread_id=thread_id, goal=goal, dag=dag))

    def load(self, goals: GoalsFile) -> list[str]:
        """
        Seed the store and submit every goal of a goals file.

        Returns:
            Queue item ids of the submitted goals
        """
        if goals.seed:
            self.seed(goals.seed)
        if goals.active_graph and isinstance(self.store, InMemoryGraphStore):
            self.store.set_active_graph(goals.active_graph)
        return [self.submit(goal) for goal in goals.goals]

    async def run_cycle(self) -> int:
        """
        Give every runner the chance to work its queue empty, in pipeline order.

        Returns:
            Number of items processed
        """
        processed = 0
        for runner in self.runners:
            while await runner.run_once():
                processed += 1
        return processed

    async def run_concurrently(self, workers: int = 2) -> int:
        """
        Run several instances of every runner at once until all queues are idle.

        Args:
            workers: Concurrent ``run_once()`` calls per runner and round

        Returns:
            Number of items processed
        """
        processed = 0
        while True:
            calls = [runner.run_once() for runner in self.runners for _ in range(workers)]
            results = await asyncio.gather(*calls)
            if not any(results):
                return processed
            processed += sum(1 for r in results if r)

    async def drain(self, max_cycles: int | None = None) -> int:
        """
        Run cycles until a full cycle processes nothing.

        Args:
            max_cycles: Upper bound on cycles (defaults to config)

        Returns:
            Number of items processed
        """
        max_cycles = max_cycles or self.config.pipeline.max_cycles
        total = 0
        for cycle in range(1, max_cycles + 1):
            processed = await self.run_cycle()
            total += processed
            if processed == 0:
                logger.debug(f"Pipeline idle after {cycle} cycles")
                return total
        logger.warning(f"Pipeline still busy after {max_cycles} cycles")
        return total

    def metrics(self) -> list[QueueMetrics]:
        """Metrics for every configured queue."""
        names = self.names
        return [
            self.queue.metrics(name)
            for name in (names.goals, names.tasks, names.patches, names.reviews, names.rebase)
        ]

    def close(self) -> None:
        """Release the queue backend."""
        self.queue.close()
