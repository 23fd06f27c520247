"""
CLI: ``cool-kit deploy`` and ``cool-kit destroy``.

Usage::

    cool-kit deploy hetzner            # live progress view
    cool-kit deploy docker --plain     # line-oriented output (CI, pipes)
    cool-kit deploy aws --json         # progress on stderr, RunResult on stdout

    cool-kit destroy hetzner           # asks before deleting
    cool-kit destroy azure --force     # no questions
"""

from __future__ import annotations

import typer

from coolkit.cli.utils import (
    EXIT_FAILURE,
    EXIT_INTERRUPTED,
    console,
    err_console,
    fail,
    open_store,
    plan_table,
    print_notice,
    print_report,
    settings_from,
)
from coolkit.core.errors import CoolKitError


def deploy(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Backend to deploy to (see `cool-kit providers`)."),
    plain: bool = typer.Option(False, "--plain", help="Plain line output instead of the live view."),
    json_out: bool = typer.Option(False, "--json", help="Print the run result as JSON."),
) -> None:
    """Provision a backend and install the platform on it."""
    from coolkit.deploy.orchestrator import Orchestrator
    from coolkit.providers import get_provider

    settings = settings_from(ctx)
    store = open_store(settings)
    try:
        backend = get_provider(provider, store)
    except CoolKitError as exc:
        fail(exc.message)

    orchestrator = Orchestrator(
        settings,
        console=err_console if json_out else console,
        interactive=False if (plain or json_out) else None,
    )
    try:
        result = orchestrator.deploy(backend)
    except CoolKitError as exc:
        fail(exc.message)

    if result.resources:
        try:
            store.update_section(backend.name, result.resources)
        except CoolKitError as exc:
            err_console.print(f"[yellow]Warning:[/yellow] could not save resource ids: {exc.message}")
            for key, value in result.resources.items():
                err_console.print(f"  {key} = {value}")

    if json_out:
        typer.echo(result.model_dump_json(indent=2))

    if result.interrupted:
        raise typer.Exit(code=EXIT_INTERRUPTED)
    if not result.success:
        raise typer.Exit(code=EXIT_FAILURE)


def destroy(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Backend whose recorded resources should be deleted."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompts."),
) -> None:
    """Delete the resources a previous deploy created."""
    from coolkit.deploy.teardown import ConfirmationGate, TeardownCoordinator
    from coolkit.framework.logging import clear_context, set_context
    from coolkit.providers import get_provider

    settings = settings_from(ctx)
    store = open_store(settings)
    try:
        backend = get_provider(provider, store)
        actions = backend.teardown_plan()
    except CoolKitError as exc:
        fail(exc.message)

    if not actions:
        console.print(f"[dim]No recorded {backend.display_name} resources. Nothing to destroy.[/dim]")
        return

    console.print(plan_table(f"{backend.display_name}: resources to delete", actions))
    gate = ConfirmationGate(lambda text: typer.confirm(text, default=False), force=force)
    if not gate.approve(actions):
        console.print("Cancelled. Nothing was deleted.")
        return

    set_context(provider=backend.name, operation="destroy")
    try:
        coordinator = TeardownCoordinator.from_settings(settings, provider=backend.name, notify=print_notice)
        report = coordinator.run(actions)
    finally:
        clear_context()

    print_report(report)
    if report.success:
        gone = backend.recorded_keys
    else:
        # keep ids only for what is still out there
        gone = tuple(
            key for action, outcome in zip(actions, report.outcomes) if outcome.ok for key in action.config_keys
        )
    if gone:
        store.clear(backend.name, *gone)
    if not report.success:
        raise typer.Exit(code=EXIT_FAILURE)
