"""
Planner runner.

Turns goals into tasks. Planning proper (deciding what to build) happens
outside the pipeline; a goal arrives with its task DAG already attached
and the planner only fans it out onto the task queue.
"""

from __future__ import annotations

from patchway.core.events import EventLog
from patchway.core.policy import Role
from patchway.core.queue import BaseQueueManager
from patchway.errors import EmptyPlanError
from patchway.models.config import PipelineConfig, QueueNames
from patchway.models.events import EventType
from patchway.models.work import Goal, Task
from patchway.runners.base import BaseRunner


class PlannerRunner(BaseRunner):
    """
    Fans goals out into tasks.

    Each task keeps its own thread when it names one, otherwise it
    inherits the goal's; the thread is the task's partition, so tasks of
    one thread are executed in DAG order.

    Example:
        >>> planner = PlannerRunner(queue, events)
        >>> queue.enqueue("goalQueue", Goal(thread_id="t1", dag=dag))
        >>> await planner.run_once()
        True
    """

    name = "planner"
    role = Role.PLANNER

    def __init__(
        self,
        queue: BaseQueueManager,
        events: EventLog,
        names: QueueNames | None = None,
        config: PipelineConfig | None = None,
    ):
        super().__init__(queue, events, names)
        self.config = config or PipelineConfig()

    @property
    def source_queue(self) -> str:
        return self.names.goals

    def plan(self, goal: Goal) -> list[Task]:
        """
        Build the tasks for a goal.

        Args:
            goal: Goal to plan

        Returns:
            Tasks in DAG order

        Raises:
            EmptyPlanError: If the goal has no tasks and empty plans are rejected
        """
        specs = goal.dag.tasks if goal.dag else []
        if specs:
            tasks = []
            for spec in specs:
                thread_id = spec.thread_id or goal.thread_id
                tasks.append(Task(
                    tool_name=spec.tool_name,
                    args=spec.args,
                    thread_id=thread_id,
                    partition_key=thread_id,
                    dependencies=spec.dependencies,
                ))
            return tasks

        if self.config.empty_dag_policy == "reject":
            raise EmptyPlanError(f"Goal for thread {goal.thread_id} has no tasks")

        self.logger.warning(
            f"Goal for thread {goal.thread_id} has no tasks, "
            f"falling back to {self.config.fallback_tool}"
        )
        return [Task(
            tool_name=self.config.fallback_tool,
            thread_id=goal.thread_id,
            partition_key=goal.thread_id,
        )]

    async def run_once(self) -> bool:
        item = self._pull_one()
        if item is None:
            return False

        goal = item.payload
        if not isinstance(goal, Goal):
            self._discard(item, f"expected a goal, got {type(goal).__name__}")
            return True

        try:
            tasks = self.plan(goal)
        except EmptyPlanError as e:
            self.logger.warning(e.message)
            self.events.append(EventType.GOAL_REJECTED, thread_id=goal.thread_id, reason=e.message)
            self._ack(item)
            return True

        try:
            for task in tasks:
                self.queue.enqueue(self.names.tasks, task, partition_key=task.partition)
                self.events.append(
                    EventType.TASK_ENQUEUED,
                    task_id=task.task_id,
                    tool=task.tool_name,
                    thread_id=task.thread_id,
                )
        except Exception as e:
            self.logger.error(f"Failed to enqueue tasks for {item.item_id}: {e}")
            self._nack(item, str(e))
            return True

        self.events.append(
            EventType.GOAL_PLANNED,
            thread_id=goal.thread_id,
            task_ids=[task.task_id for task in tasks],
        )
        self._ack(item)
        return True
