"""
Configuration commands for Patchway CLI.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

app = typer.Typer(help="Configuration management")
console = Console()


@app.command("show")
def config_show(
    config_file: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file to show",
    ),
):
    """Show current configuration."""
    from patchway.models.config import PatchwayConfig

    try:
        config = PatchwayConfig.load(config_file)
    except ValueError as e:
        console.print(f"[red]Error loading config: {e}[/]")
        raise typer.Exit(1)

    names = config.queue.names
    console.print(
        Panel.fit(
            f"[bold]Queue Configuration:[/]\n"
            f"  Backend: {config.queue.backend}\n"
            f"  Database: {config.queue.database}\n"
            f"  Lease: {config.queue.lease_seconds}s\n"
            f"  Max Attempts: {config.queue.max_attempts}\n"
            f"  Queues: {names.goals}, {names.tasks}, {names.patches}, "
            f"{names.reviews}, {names.rebase}\n"
            f"\n[bold]Pipeline Configuration:[/]\n"
            f"  Empty DAG Policy: {config.pipeline.empty_dag_policy}\n"
            f"  Fallback Tool: {config.pipeline.fallback_tool}\n"
            f"  Max String Length: {config.pipeline.max_string_length}\n"
            f"  Event History: {config.pipeline.event_history}\n"
            f"  Max Cycles: {config.pipeline.max_cycles}\n"
            f"\n[bold]Logging Configuration:[/]\n"
            f"  Level: {config.logging.level}\n"
            f"  File: {config.logging.file or '-'}\n"
            f"  JSON: {config.logging.json_format}",
            title="[bold blue]Patchway Configuration[/]",
        )
    )


@app.command("init")
def config_init(
    config_file: str = typer.Option(
        "patchway.yaml",
        "--config",
        "-c",
        help="Configuration file path",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite an existing file without asking",
    ),
):
    """Create a configuration file with default values."""
    from patchway.models.config import PatchwayConfig

    config_path = Path(config_file)

    if config_path.exists() and not force:
        overwrite = typer.confirm(f"{config_file} already exists. Overwrite?")
        if not overwrite:
            console.print("[yellow]Cancelled[/]")
            return

    PatchwayConfig().save(config_path)

    console.print(f"[green]Configuration saved to {config_file}[/]")
    console.print("\n[bold]Next steps:[/]")
    console.print("1. Persist queues across runs:")
    console.print("   [dim]set queue.backend to sqlite[/]")
    console.print("\n2. Run goals:")
    console.print("   [dim]patchway run goals.yaml[/]")
