"""CLI commands package."""

from patchway.cli.commands import config, queue, tools

__all__ = ["config", "queue", "tools"]
