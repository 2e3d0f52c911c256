"""
Exception hierarchy for Patchway.

Runners catch these locally and translate them into ack/nack decisions;
none of them is meant to cross a queue boundary.
"""

from __future__ import annotations


class PatchwayError(Exception):
    """Base class for all Patchway errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(PatchwayError):
    """Raised when configuration is invalid."""


class UnknownToolError(PatchwayError):
    """Raised when a tool name is not registered."""

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class ToolNotAllowedError(PatchwayError):
    """Raised when a role requests a tool outside its allowlist."""

    def __init__(self, role: str, tool_name: str):
        super().__init__(f"Tool not allowed for {role}: {tool_name}")
        self.role = role
        self.tool_name = tool_name


class PolicyViolationError(PatchwayError):
    """Raised when a role policy would grant a role more than its duty allows."""


class ToolValidationError(PatchwayError):
    """Raised when tool arguments fail validation."""

    def __init__(self, tool_name: str, error: str):
        super().__init__(f"Validation failed for {tool_name}: {error}")
        self.tool_name = tool_name
        self.error = error


class ToolExecutionError(PatchwayError):
    """Raised when a tool execution fails."""

    def __init__(self, tool_name: str, error: str):
        super().__init__(f"Tool {tool_name} failed: {error}")
        self.tool_name = tool_name
        self.error = error


class MutationError(PatchwayError):
    """Raised when a graph operation cannot be applied."""


class CommitConflictError(PatchwayError):
    """Raised when a patch's base hash does not match the store's version."""

    def __init__(self, graph_id: str, expected: str | None, actual: str | None):
        super().__init__(
            f"Version conflict on graph {graph_id}: expected {expected}, found {actual}"
        )
        self.graph_id = graph_id
        self.expected = expected
        self.actual = actual


class EmptyPlanError(PatchwayError):
    """Raised when a goal carries no tasks and empty plans are rejected."""
