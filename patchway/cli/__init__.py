"""
CLI package for Patchway.

Provides a rich command-line interface using Typer.
"""

from patchway.cli.app import app, main

__all__ = ["app", "main"]
