"""
Tool argument validation.

Arguments coming from a plan are untrusted. They are checked against the
tool's schema and sanitized before any tool sees them.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import ValidationError

from patchway.models.tools import ArgsValidation
from patchway.tools.registry import ToolRegistry

# Control characters other than tab, newline and carriage return
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


class ToolValidator:
    """
    Schema-checks and sanitizes tool arguments.

    Example:
        >>> validator = ToolValidator(registry)
        >>> result = validator.validate_tool_args("create_node_instance", raw_args)
        >>> if result.valid:
        ...     await registry.execute_tool("create_node_instance", result.sanitized, ctx)
    """

    def __init__(self, registry: ToolRegistry, max_string_length: int = 4096):
        """
        Initialize the validator.

        Args:
            registry: Registry providing tool schemas
            max_string_length: Longest accepted string value
        """
        self.registry = registry
        self.max_string_length = max_string_length

    def validate_tool_args(self, name: str, raw_args: dict[str, Any] | None) -> ArgsValidation:
        """
        Validate and sanitize arguments for a tool.

        Args:
            name: Tool name
            raw_args: Arguments as received

        Returns:
            ArgsValidation with sanitized arguments or an error message
        """
        tool = self.registry.get(name)
        if tool is None:
            return ArgsValidation(valid=False, error=f"Unknown tool: {name}")

        raw_args = raw_args or {}
        if not isinstance(raw_args, dict):
            return ArgsValidation(valid=False, error="Arguments must be an object")

        problem = self._check_values(raw_args, path="args")
        if problem:
            return ArgsValidation(valid=False, error=problem)

        try:
            parsed = tool.args_model.model_validate(raw_args)
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"]) or "args"
            return ArgsValidation(valid=False, error=f"{location}: {first['msg']}")

        return ArgsValidation(valid=True, sanitized=parsed.model_dump(exclude_none=True))

    def _check_values(self, value: Any, path: str) -> str | None:
        """Find the first string that is too long or carries control characters."""
        if isinstance(value, str):
            if len(value) > self.max_string_length:
                return f"{path}: longer than {self.max_string_length} characters"
            if CONTROL_CHARS.search(value):
                return f"{path}: contains control characters"
            return None
        if isinstance(value, dict):
            for key, item in value.items():
                problem = self._check_values(item, f"{path}.{key}")
                if problem:
                    return problem
            return None
        if isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                problem = self._check_values(item, f"{path}[{index}]")
                if problem:
                    return problem
        return None
