"""
CLI: ``cool-kit providers`` lists the available backends.
"""

from __future__ import annotations

import typer
from rich.table import Table

from coolkit.cli.utils import console, fail, open_store, settings_from
from coolkit.core.errors import CoolKitError


def providers(
    ctx: typer.Context,
    steps: bool = typer.Option(False, "--steps", "-s", help="Also list each backend's deployment steps."),
) -> None:
    """List deployment backends."""
    from coolkit.providers import get_provider, list_providers

    table = Table(title="Providers")
    table.add_column("Name", style="cyan")
    table.add_column("Backend")
    table.add_column("Description", style="dim")
    specs = list_providers()
    for spec in specs:
        table.add_row(spec.name, spec.display_name, spec.description)
    console.print(table)

    if not steps:
        return

    store = open_store(settings_from(ctx))
    for spec in specs:
        try:
            declared = get_provider(spec.name, store).declare_steps()
        except CoolKitError as exc:
            fail(exc.message)
        console.print(f"\n[bold]{spec.display_name}[/bold] ({len(declared)} steps)")
        for i, step in enumerate(declared, 1):
            console.print(f"  {i:>2}. {step.name} [dim]- {step.description}[/dim]")
