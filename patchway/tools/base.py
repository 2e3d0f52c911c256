"""
Base tool class for graph tools.

All tools inherit from BaseTool, declare their arguments as a pydantic
model and implement the run method.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict

from patchway.models.tools import ToolCategory, ToolContext, ToolInfo, ToolResult


class ToolArgs(BaseModel):
    """Base for tool argument models: unknown keys are dropped, strings stripped."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class NoArgs(ToolArgs):
    """Arguments of a tool that takes none."""


class BaseTool(ABC):
    """
    Base class for all tools.

    Subclasses must set the metadata attributes and implement run().

    Example:
        >>> class ListGraphsTool(BaseTool):
        ...     name = "list_available_graphs"
        ...     description = "List graphs in the store"
        ...     category = ToolCategory.INSPECTION
        ...
        ...     async def run(self, args, context):
        ...         return {"graphs": [...]}
    """

    # Tool metadata (must be set by subclasses)
    name: str
    description: str
    category: ToolCategory
    args_model: type[ToolArgs] = NoArgs

    @property
    def mutating(self) -> bool:
        """Whether the tool proposes changes to the graph."""
        return self.category == ToolCategory.MUTATION

    def get_info(self) -> ToolInfo:
        """Get tool information."""
        return ToolInfo(
            name=self.name,
            description=self.description,
            category=self.category,
            parameters=self.args_model.model_json_schema(),
        )

    @abstractmethod
    async def run(self, args: Any, context: ToolContext) -> dict[str, Any]:
        """
        Perform the tool's work.

        Args:
            args: Instance of ``args_model``
            context: Caller information

        Returns:
            Structured result data
        """

    async def execute(self, args: dict[str, Any], context: ToolContext) -> ToolResult:
        """
        Execute the tool and capture the outcome.

        Exceptions raised by run() are reported as a failed result rather
        than propagated.

        Args:
            args: Sanitized arguments
            context: Caller information

        Returns:
            ToolResult with data or error message
        """
        start_time = time.monotonic()
        try:
            parsed = self.args_model.model_validate(args)
            data = await self.run(parsed, context)
        except Exception as e:
            return ToolResult(
                success=False,
                tool=self.name,
                error_message=str(e) or e.__class__.__name__,
                duration=time.monotonic() - start_time,
            )

        return ToolResult(
            success=True,
            tool=self.name,
            data=data,
            duration=time.monotonic() - start_time,
        )
