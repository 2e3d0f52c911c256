"""
Main CLI application.

This module defines the main Typer application and entry point.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from patchway import __version__
from patchway.cli.commands import config, queue, tools

# Create the main app
app = typer.Typer(
    name="patchway",
    help="Safe mutation pipeline for shared knowledge graphs",
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=True,
)

# Add sub-commands
app.add_typer(queue.app, name="queue", help="Inspect queues")
app.add_typer(tools.app, name="tools", help="Inspect graph tools")
app.add_typer(config.app, name="config", help="Configuration management")

console = Console()


def version_callback(value: bool):
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]Patchway[/] v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
):
    """
    Patchway - Safe mutation pipeline for shared knowledge graphs

    Proposed graph changes move through four separated duties: planning,
    execution, auditing and committing.
    """


@app.command()
def run(
    goals_file: str = typer.Argument(..., help="YAML file with seed operations and goals"),
    config_file: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file path",
    ),
    max_cycles: Optional[int] = typer.Option(
        None,
        "--max-cycles",
        "-n",
        help="Maximum driver cycles (defaults to pipeline.max_cycles)",
    ),
    workers: int = typer.Option(
        0,
        "--workers",
        "-w",
        help="Run this many instances of every runner concurrently (0 = sequential cycles)",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug logging",
    ),
):
    """
    Run goals through the pipeline until every queue is idle.

    Example:
        patchway run goals.yaml
        patchway run goals.yaml --workers 4 --debug
    """
    from patchway.core.pipeline import GoalsFile, Pipeline
    from patchway.errors import PatchwayError
    from patchway.models.config import PatchwayConfig
    from patchway.utils.helpers import truncate_string
    from patchway.utils.logger import setup_logging

    try:
        config = PatchwayConfig.load(config_file)
        goals = GoalsFile.load(goals_file)
    except PatchwayError as e:
        console.print(f"[red]{escape(e.message)}[/]")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Invalid input: {escape(str(e))}[/]")
        raise typer.Exit(1)

    setup_logging(
        level="DEBUG" if debug else config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
    )

    pipeline = Pipeline(config)
    try:
        pipeline.load(goals)
        if workers > 0:
            processed = asyncio.run(pipeline.run_concurrently(workers))
        else:
            processed = asyncio.run(pipeline.drain(max_cycles))
    except PatchwayError as e:
        console.print(f"[red]Pipeline error: {escape(e.message)}[/]")
        raise typer.Exit(1)
    finally:
        pipeline.close()

    events = Table(title="Pipeline Events", show_header=True)
    events.add_column("Time", style="dim")
    events.add_column("Event", style="bold")
    events.add_column("Details")
    for event in pipeline.events.history():
        details = ", ".join(f"{k}={v}" for k, v in event.data.items() if k != "ops")
        events.add_row(
            event.timestamp.strftime("%H:%M:%S"),
            event.type.value,
            escape(truncate_string(details, 100)),
        )
    console.print(events)

    console.print(queue.metrics_table(pipeline.metrics()))
    console.print(f"\n[dim]Processed {processed} items[/]")


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
