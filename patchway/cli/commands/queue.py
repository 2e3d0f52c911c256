"""
Queue inspection commands for Patchway CLI.

These commands read the SQLite queue database, so they see the state a
pipeline left behind (or the state of one that is still running).
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from patchway.models.queue import QueueItem, QueueMetrics
from patchway.utils.helpers import truncate_string

app = typer.Typer(help="Inspect queues")
console = Console()


def metrics_table(metrics: list[QueueMetrics]) -> Table:
    """Render queue metrics as a table."""
    table = Table(title="Queue Metrics", show_header=True)
    table.add_column("Queue", style="bold")
    for column in ("Depth", "Leased", "Dead", "Enqueued", "Acked", "Nacked", "Expired"):
        table.add_column(column, justify="right")

    for m in metrics:
        table.add_row(
            m.name,
            str(m.depth),
            str(m.leased),
            f"[red]{m.dead}[/]" if m.dead else "0",
            str(m.enqueued),
            str(m.acked),
            str(m.nacked),
            str(m.expired),
        )
    return table


def items_table(title: str, items: list[QueueItem]) -> Table:
    """Render queue items as a table."""
    table = Table(title=title, show_header=True)
    table.add_column("Item", style="bold")
    table.add_column("Kind")
    table.add_column("Partition")
    table.add_column("Attempts", justify="right")
    table.add_column("Last Error")

    for item in items:
        table.add_row(
            item.item_id,
            getattr(item.payload, "kind", type(item.payload).__name__),
            item.partition_key,
            str(item.attempts),
            truncate_string(item.last_error or "", 60),
        )
    return table


def _open_queue(database: Optional[str], config_file: Optional[str]):
    from patchway.core.storage import SqliteQueueManager
    from patchway.models.config import PatchwayConfig

    config = PatchwayConfig.load(config_file)
    path = Path(database or config.queue.database)
    if not path.exists():
        console.print(f"[red]Queue database not found: {path}[/]")
        console.print("Run a pipeline with [bold]queue.backend: sqlite[/] first.")
        raise typer.Exit(1)

    return config, SqliteQueueManager(
        path,
        lease_seconds=config.queue.lease_seconds,
        max_attempts=config.queue.max_attempts,
    )


DatabaseOption = typer.Option(None, "--database", "-d", help="Queue database path")
ConfigOption = typer.Option(None, "--config", "-c", help="Configuration file path")


@app.command("stats")
def queue_stats(
    database: Optional[str] = DatabaseOption,
    config_file: Optional[str] = ConfigOption,
):
    """Show depth and counters of every queue."""
    config, manager = _open_queue(database, config_file)
    names = config.queue.names
    configured = [names.goals, names.tasks, names.patches, names.reviews, names.rebase]
    extra = [name for name in manager.queue_names() if name not in configured]

    console.print(metrics_table([manager.metrics(name) for name in configured + extra]))


@app.command("peek")
def queue_peek(
    queue: str = typer.Argument(..., help="Queue name"),
    head: int = typer.Option(10, "--head", "-n", help="Number of items to show"),
    database: Optional[str] = DatabaseOption,
    config_file: Optional[str] = ConfigOption,
):
    """Show the next queued items without leasing them."""
    _, manager = _open_queue(database, config_file)
    items = manager.peek(queue, head=head)
    if not items:
        console.print(f"[dim]{queue} is empty[/]")
        return
    console.print(items_table(f"{queue} (next {len(items)})", items))


@app.command("dead")
def queue_dead(
    queue: str = typer.Argument(..., help="Queue name"),
    requeue: Optional[str] = typer.Option(
        None,
        "--requeue",
        "-r",
        help="Return this dead-lettered item to the queue",
    ),
    database: Optional[str] = DatabaseOption,
    config_file: Optional[str] = ConfigOption,
):
    """List dead-lettered items, or requeue one of them."""
    _, manager = _open_queue(database, config_file)

    if requeue:
        if manager.requeue_dead_letter(queue, requeue):
            console.print(f"[green]Requeued {requeue}[/]")
        else:
            console.print(f"[red]No dead-lettered item {requeue} in {queue}[/]")
            raise typer.Exit(1)
        return

    items = manager.dead_letters(queue)
    if not items:
        console.print(f"[green]No dead letters in {queue}[/]")
        return
    console.print(items_table(f"{queue} dead letters", items))
