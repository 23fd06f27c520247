"""
Root Typer application for cool-kit.

The root callback loads settings once, configures structured logging and
hands the settings to sub-commands through ``ctx.obj``.
"""

from __future__ import annotations

from pathlib import Path

import typer
from typer import Typer

from coolkit.cli.config import app as config_app
from coolkit.cli.deploy import deploy, destroy
from coolkit.cli.providers import providers
from coolkit.cli.reset import reset

app = Typer(
    name="cool-kit",
    help="cool-kit: deploy a self-hosted platform to cloud, bare-metal or local Docker.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from coolkit import __version__

        typer.echo(f"cool-kit {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
    log_file: Path | None = typer.Option(
        None, "--log-file", help="Write logs to this file (keeps the live view clean)."
    ),
) -> None:
    """cool-kit: provision, deploy and tear down platform installations."""
    from coolkit.core.settings import get_settings
    from coolkit.framework.logging import configure_logging

    settings = get_settings(reload=True)
    configure_logging(
        level="DEBUG" if verbose else settings.log_level,
        format=settings.log_format,
        log_file=log_file or settings.log_file,
        force=True,
    )
    ctx.obj = settings


# ── Sub-command registration ─────────────────────────────────────────────

app.command("deploy")(deploy)
app.command("destroy")(destroy)
app.command("reset")(reset)
app.command("providers")(providers)
app.add_typer(config_app, name="config", help="Configuration management.")
