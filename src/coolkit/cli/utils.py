"""
CLI utility helpers: consoles, settings/store access and report printing.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import NoReturn

import typer
from rich.console import Console
from rich.table import Table

from coolkit.config.store import ConfigStore
from coolkit.core.errors import CoolKitError
from coolkit.core.settings import CoolKitSettings, get_settings
from coolkit.deploy.teardown import NoticeKind, TeardownAction, TeardownNotice, TeardownReport

console = Console()
err_console = Console(stderr=True)

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


# ── Context helpers ──────────────────────────────────────────────────────


def settings_from(ctx: typer.Context | None) -> CoolKitSettings:
    """Settings loaded by the root callback, or the process default."""
    if ctx is not None:
        root = ctx.find_root()
        if isinstance(root.obj, CoolKitSettings):
            return root.obj
    return get_settings()


def open_store(settings: CoolKitSettings) -> ConfigStore:
    try:
        return ConfigStore.from_settings(settings)
    except CoolKitError as exc:
        fail(exc.message)


def fail(message: str, code: int = EXIT_FAILURE) -> NoReturn:
    err_console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(code=code)


# ── Teardown output ──────────────────────────────────────────────────────


def plan_table(title: str, actions: Sequence[TeardownAction]) -> Table:
    """Resources a teardown will delete, in order."""
    table = Table(title=title, show_lines=False, pad_edge=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Kind", style="cyan")
    table.add_column("Resource")
    table.add_column("Note", style="yellow")
    for i, action in enumerate(actions, 1):
        note = "deletes everything it contains" if action.cascading else ""
        table.add_row(str(i), action.handle.kind, action.handle.resource_id, note)
    return table


def print_notice(notice: TeardownNotice) -> None:
    """Narrate one teardown event as it happens."""
    handle = notice.handle
    if notice.kind is NoticeKind.SETTLING:
        console.print(f"  [dim]Waiting {notice.delay:.0f}s before deleting {handle}...[/dim]")
    elif notice.kind is NoticeKind.DELETING:
        console.print(f"  Deleting {handle}...")
    elif notice.kind is NoticeKind.RETRYING:
        console.print(
            f"  [yellow]⚠[/yellow] {handle}: attempt {notice.attempt}/{notice.max_attempts} failed, "
            f"retrying in {notice.delay:.0f}s"
        )
    elif notice.kind is NoticeKind.DELETED:
        console.print(f"  [green]✓[/green] Deleted {handle}")
    elif notice.kind is NoticeKind.ALREADY_GONE:
        console.print(f"  [dim]✓ {handle} was already gone[/dim]")
    elif notice.kind is NoticeKind.FAILED:
        console.print(f"  [red]✗[/red] {handle}: {notice.message}")


def print_report(report: TeardownReport) -> None:
    if report.success:
        console.print(f"\n[bold green]✓ Teardown complete[/bold green] ({len(report.outcomes)} resource(s))")
        return
    console.print(
        f"\n[bold yellow]⚠ Teardown finished with {len(report.failed)} failure(s)[/bold yellow]"
    )
    for warning in report.warnings:
        console.print(f"  [yellow]•[/yellow] {warning}")
