"""
Tools commands for Patchway CLI.
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(help="Inspect graph tools")
console = Console()


@app.command("list")
def tools_list(
    category: str = typer.Option(
        None,
        "--category",
        "-c",
        help="Filter by category (inspection, mutation)",
    ),
    role: str = typer.Option(
        None,
        "--role",
        "-r",
        help="Show only tools this role may use",
    ),
):
    """List graph tools and the roles allowed to use them."""
    from patchway.core.graph import InMemoryGraphStore
    from patchway.core.policy import Role, RolePolicy
    from patchway.tools.registry import build_default_registry

    registry = build_default_registry(InMemoryGraphStore())
    policy = RolePolicy()

    tools = {name: tool.get_info() for name, tool in registry.get_all().items()}

    # Filter by category
    if category:
        tools = {
            name: info for name, info in tools.items() if info.category.value == category.lower()
        }

    # Filter by role
    if role:
        try:
            allowed = policy.allowed_tools(role.lower())
        except ValueError:
            console.print(f"[red]Unknown role: {role}[/]")
            raise typer.Exit(1)
        tools = {name: info for name, info in tools.items() if name in allowed}

    # Create table
    table = Table(title="Graph Tools", show_header=True)
    table.add_column("Name", style="bold")
    table.add_column("Category")
    table.add_column("Roles")
    table.add_column("Description")

    for name, info in sorted(tools.items()):
        roles = [r.value for r in Role if policy.is_allowed(r, name)]
        table.add_row(
            name,
            info.category.value,
            ", ".join(roles) or "[dim]none[/]",
            info.description,
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(tools)}[/]")
