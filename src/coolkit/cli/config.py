"""
CLI: ``cool-kit config`` - inspect and edit the persisted configuration.
"""

from __future__ import annotations

import json

import typer

from coolkit.cli.utils import console, fail, open_store, settings_from
from coolkit.core.errors import CoolKitError

app = typer.Typer(no_args_is_help=True)

SECRET_MARKERS = ("token", "password", "secret")


def _mask(key: str, value: object) -> object:
    if value and any(marker in key for marker in SECRET_MARKERS):
        return "****"
    return value


@app.command("show")
def show_config(
    ctx: typer.Context,
    defaults: bool = typer.Option(False, "--defaults", "-d", help="Include default values."),
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
    reveal: bool = typer.Option(False, "--reveal", help="Show tokens unmasked."),
) -> None:
    """Show the configuration file contents."""
    store = open_store(settings_from(ctx))
    try:
        data = store.as_dict(with_defaults=defaults)
    except CoolKitError as exc:
        fail(exc.message)
    if not reveal:
        data = {name: {k: _mask(k, v) for k, v in section.items()} for name, section in data.items()}

    if json_out:
        console.print_json(json.dumps(data, default=str))
        return
    if not data:
        console.print(f"[dim]No configuration yet ({store.path}).[/dim]")
        return
    for name, section in data.items():
        console.print(f"[bold]{name}[/bold]")
        for key, value in section.items():
            console.print(f"  [cyan]{key}[/cyan]: {value}")


@app.command("get")
def get_value(ctx: typer.Context, key: str = typer.Argument(..., help="Dotted key, e.g. hetzner.location")) -> None:
    """Print one value (defaults included)."""
    store = open_store(settings_from(ctx))
    try:
        value = store.get(key)
    except CoolKitError as exc:
        fail(exc.message)
    if value is None:
        fail(f"{key} is not set")
    typer.echo(value)


@app.command("set")
def set_value(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Dotted key, e.g. aws.region"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Validate and store one value."""
    store = open_store(settings_from(ctx))
    try:
        store.set(key, value)
    except CoolKitError as exc:
        fail(exc.message)
    console.print(f"[green]✓[/green] {key} = {_mask(key, value)}")


@app.command("path")
def show_path(ctx: typer.Context) -> None:
    """Print the configuration file location."""
    typer.echo(str(settings_from(ctx).config_path))
