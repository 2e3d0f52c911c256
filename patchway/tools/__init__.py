"""Patchway tools package - Graph tools, registry and argument validation."""

from patchway.tools.base import BaseTool, ToolArgs
from patchway.tools.registry import ToolRegistry, build_default_registry
from patchway.tools.translate import translate_result
from patchway.tools.validator import ToolValidator

__all__ = [
    "BaseTool",
    "ToolArgs",
    "ToolRegistry",
    "ToolValidator",
    "build_default_registry",
    "translate_result",
]
