"""
Tool execution models.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from patchway.utils.helpers import utc_now


class ToolCategory(str, Enum):
    """What a tool may do to the graph."""

    INSPECTION = "inspection"
    MUTATION = "mutation"


class ToolInfo(BaseModel):
    """Information about a registered tool."""

    name: str = Field(description="Tool name")
    description: str = Field(description="Brief description")
    category: ToolCategory = Field(description="Tool category")
    parameters: dict[str, Any] = Field(default_factory=dict, description="JSON schema of arguments")


class ToolContext(BaseModel):
    """Caller information passed to every tool execution."""

    role: str = Field(description="Role invoking the tool")
    thread_id: str | None = Field(default=None)
    task_id: str | None = Field(default=None)


class ToolResult(BaseModel):
    """Result from a tool execution."""

    success: bool = Field(description="Whether execution succeeded")
    tool: str = Field(description="Tool name")
    data: dict[str, Any] = Field(default_factory=dict, description="Structured output")
    error_message: str | None = Field(default=None, description="Error message if failed")
    duration: float = Field(default=0.0, description="Execution duration in seconds")
    timestamp: datetime = Field(default_factory=utc_now)

    def get_summary(self) -> str:
        """Get a brief summary of the result."""
        status = "SUCCESS" if self.success else "FAILED"
        return f"[{status}] {self.tool} ({self.duration:.3f}s)"


class ArgsValidation(BaseModel):
    """Outcome of argument validation."""

    valid: bool
    sanitized: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
