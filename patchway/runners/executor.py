"""
Executor runner.

Runs one task's tool through the executor's role-scoped tool view and
turns the result into a patch for the auditor. The executor never writes
to the graph: constructive tools only describe changes, and the patch is
the only thing that leaves this runner.
"""

from __future__ import annotations

from patchway.core.events import EventLog
from patchway.core.policy import Role, RoleToolView
from patchway.core.queue import BaseQueueManager
from patchway.errors import PatchwayError, ToolExecutionError, ToolValidationError
from patchway.models.config import QueueNames
from patchway.models.events import EventType
from patchway.models.tools import ToolContext
from patchway.models.work import Patch, Task
from patchway.runners.base import BaseRunner
from patchway.tools.translate import target_graph, translate_result
from patchway.tools.validator import ToolValidator
from patchway.utils.helpers import derived_id


class ExecutorRunner(BaseRunner):
    """
    Executes tasks and submits patches.

    Steps for each task: policy check, argument validation, tool
    execution, translation into graph operations. A failure at any step
    nacks the task, so it is retried until it is dead-lettered. A
    disallowed tool is refused before the registry is touched.

    The patch keeps the task's partition, and its id and any ids the tool
    allocates are derived from the task id. A redelivered task therefore
    yields the same patch, which the store applies only once.

    Example:
        >>> executor = ExecutorRunner(queue, events, tools=policy.view("executor", registry),
        ...                           validator=ToolValidator(registry))
        >>> await executor.run_once()
        True
    """

    name = "executor"
    role = Role.EXECUTOR

    def __init__(
        self,
        queue: BaseQueueManager,
        events: EventLog,
        tools: RoleToolView,
        validator: ToolValidator,
        names: QueueNames | None = None,
    ):
        super().__init__(queue, events, names)
        self.tools = tools
        self.validator = validator

    @property
    def source_queue(self) -> str:
        return self.names.tasks

    async def execute(self, task: Task) -> Patch | None:
        """
        Run a task and build its patch.

        Args:
            task: Task to run

        Returns:
            Patch, or None if the tool produced no graph operations

        Raises:
            ToolNotAllowedError: If the tool is outside the executor's allowlist
            ToolValidationError: If the arguments are rejected
            ToolExecutionError: If the tool fails or its result has no target graph
        """
        self.tools.check(task.tool_name)

        validation = self.validator.validate_tool_args(task.tool_name, task.args)
        if not validation.valid:
            raise ToolValidationError(task.tool_name, validation.error or "invalid arguments")

        context = ToolContext(role=self.role.value, thread_id=task.thread_id, task_id=task.task_id)
        result = await self.tools.execute_tool(task.tool_name, validation.sanitized, context)
        if not result.success:
            raise ToolExecutionError(task.tool_name, result.error_message or "unknown error")

        try:
            ops = translate_result(task.tool_name, validation.sanitized, result.data)
        except (KeyError, TypeError, ValueError) as e:
            raise ToolExecutionError(task.tool_name, f"untranslatable result: {e}") from e

        if not ops:
            return None

        graph_id = target_graph(validation.sanitized, result.data, ops)
        if graph_id is None:
            raise ToolExecutionError(task.tool_name, "result does not name a target graph")

        return Patch(
            patch_id=derived_id("patch", task.task_id),
            thread_id=task.thread_id,
            graph_id=graph_id,
            base_hash=None,
            ops=ops,
        )

    async def run_once(self) -> bool:
        item = self._pull_one()
        if item is None:
            return False

        task = item.payload
        if not isinstance(task, Task):
            self._discard(item, f"expected a task, got {type(task).__name__}")
            return True

        try:
            patch = await self.execute(task)
        except PatchwayError as e:
            self.logger.warning(f"Task {task.task_id} ({task.tool_name}) failed: {e.message}")
            self.events.append(
                EventType.TASK_FAILED,
                task_id=task.task_id,
                tool=task.tool_name,
                thread_id=task.thread_id,
                error=e.message,
            )
            self._nack(item, e.message)
            return True

        self.events.append(
            EventType.TASK_EXECUTED,
            task_id=task.task_id,
            tool=task.tool_name,
            thread_id=task.thread_id,
            op_count=len(patch.ops) if patch else 0,
        )

        if patch is not None:
            self.queue.enqueue(self.names.patches, patch, partition_key=item.partition_key)
            self.events.append(
                EventType.PATCH_SUBMITTED,
                patch_id=patch.patch_id,
                task_id=task.task_id,
                graph_id=patch.graph_id,
                thread_id=patch.thread_id,
                op_count=len(patch.ops),
            )

        self._ack(item)
        return True
