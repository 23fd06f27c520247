"""Terminal rendering of a deployment run.

Two renderers share one event loop (:meth:`Renderer.run`):

- :class:`LiveRenderer` - full-screen rich ``Live`` view: header with
  elapsed time, one row per step (spinner, sub-progress bar, duration or
  inline Diagnostic), a scrollable log pane and a key hint footer.
- :class:`PlainRenderer` - line-oriented output for pipes, CI and
  ``--plain``: ``[Step n] NN% - message`` plus the log lines.

The loop runs on the main thread. It blocks on the inbox for at most
``tick_interval`` seconds, so elapsed times keep moving when nothing
happens. It returns ``COMPLETED`` once ``RunCompleted`` has been applied
and ``CANCELLED`` on Ctrl+C / Esc / ``q``, a ``CancelRequested`` message or
``KeyboardInterrupt``. Returning without having seen ``RunCompleted`` is
how the orchestrator recognises an interruption.

After the loop, :meth:`Renderer.show_result` prints the completion
screen for whatever the orchestrator decided.
"""

from __future__ import annotations

import queue
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.spinner import Spinner
from rich.table import Table
from rich.text import Text

from coolkit.deploy.diagnostics import Diagnostic
from coolkit.deploy.events import (
    LogEvent,
    LogLevel,
    RunCompleted,
    RunOutcome,
    RunResult,
    StepFinished,
    StepProgress,
    StepStarted,
    StepStatus,
)
from coolkit.deploy.keys import KeyAction, KeyPressed, KeyReader, action_for
from coolkit.deploy.view import ProgressView, StepView, format_duration


class RendererExit(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CancelRequested:
    """Posted to the inbox to stop the renderer from outside the UI thread."""

    reason: str = "Cancelled"


LOG_STYLES = {
    LogLevel.INFO: ("•", "white"),
    LogLevel.SUCCESS: ("✓", "green"),
    LogLevel.WARNING: ("!", "yellow"),
    LogLevel.ERROR: ("✗", "red"),
    LogLevel.DEBUG: ("·", "dim"),
}

STEP_ICONS = {
    StepStatus.PENDING: ("○", "dim"),
    StepStatus.COMPLETE: ("✓", "green"),
    StepStatus.FAILED: ("✗", "red"),
    StepStatus.SKIPPED: ("-", "dim"),
}


class Renderer(ABC):
    """Event loop shared by the live and plain renderers."""

    def __init__(
        self,
        view: ProgressView,
        inbox: queue.Queue,
        *,
        console: Console | None = None,
        tick_interval: float = 1.0,
        provider_name: str = "",
    ) -> None:
        self.view = view
        self.inbox = inbox
        self.console = console or Console()
        self.tick_interval = tick_interval
        self.provider_name = provider_name

    def run(self) -> RendererExit:
        self.on_start()
        try:
            while True:
                try:
                    item = self.inbox.get(timeout=self.tick_interval)
                except queue.Empty:
                    self.refresh()
                    continue
                outcome = self.handle(item)
                if outcome is not None:
                    return outcome
                if self.inbox.empty():
                    self.refresh()
        except KeyboardInterrupt:
            return RendererExit.CANCELLED
        finally:
            self.on_stop()

    def handle(self, item: object) -> RendererExit | None:
        if isinstance(item, CancelRequested):
            return RendererExit.CANCELLED
        if isinstance(item, KeyPressed):
            return self.handle_key(item)
        self.view.apply(item)  # type: ignore[arg-type]
        self.on_event(item)
        if isinstance(item, RunCompleted):
            self.refresh()
            return RendererExit.COMPLETED
        return None

    def handle_key(self, key: KeyPressed) -> RendererExit | None:
        action = action_for(key.key)
        if action is KeyAction.CANCEL:
            return RendererExit.CANCELLED
        logs = self.view.logs
        if action is KeyAction.SCROLL_UP:
            logs.scroll_up()
        elif action is KeyAction.SCROLL_DOWN:
            logs.scroll_down()
        elif action is KeyAction.PAGE_UP:
            logs.page_up()
        elif action is KeyAction.PAGE_DOWN:
            logs.page_down()
        elif action is KeyAction.TOP:
            logs.top()
        elif action is KeyAction.BOTTOM:
            logs.bottom()
        return None

    # ── Hooks ────────────────────────────────────────────────────

    def on_start(self) -> None:
        pass

    def on_stop(self) -> None:
        pass

    def on_event(self, event: object) -> None:
        pass

    def refresh(self) -> None:
        pass

    @abstractmethod
    def show_result(self, result: RunResult) -> None:
        ...


# ---------------------------------------------------------------------------
# Live
# ---------------------------------------------------------------------------


class LiveRenderer(Renderer):
    """Full-screen view driven by ``rich.live.Live``."""

    def __init__(self, *args, read_keys: bool = True, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.read_keys = read_keys
        self._live: Live | None = None
        self._keys: KeyReader | None = None

    def on_start(self) -> None:
        self._live = Live(
            self.render(),
            console=self.console,
            auto_refresh=False,
            transient=False,
            redirect_stdout=False,
            redirect_stderr=False,
        )
        self._live.start()
        if self.read_keys:
            self._keys = KeyReader(self.inbox.put)
            if not self._keys.start():
                self._keys = None

    def on_stop(self) -> None:
        if self._keys is not None:
            self._keys.stop()
            self._keys = None
        if self._live is not None:
            self._live.update(self.render(), refresh=True)
            self._live.stop()
            self._live = None

    def refresh(self) -> None:
        if self._live is not None:
            self._live.update(self.render(), refresh=True)

    # ── Layout ───────────────────────────────────────────────────

    def render(self) -> RenderableType:
        return Group(self._header(), self._steps(), self._log_pane(), self._footer())

    def _header(self) -> RenderableType:
        view = self.view
        title = Text.assemble(
            ("Deploying", "bold"),
            (f" {self.provider_name}" if self.provider_name else "", "bold cyan"),
            ("   ", ""),
            (f"{view.completed}/{view.total} steps", "dim"),
            ("   ", ""),
            (format_duration(view.elapsed()), "dim"),
        )
        return title

    def _steps(self) -> RenderableType:
        now = self.view.clock()
        table = Table.grid(padding=(0, 1))
        table.add_column(width=2)
        table.add_column(ratio=2)
        table.add_column(ratio=3)
        for step in self.view.steps:
            table.add_row(self._step_icon(step), Text(step.name, style=self._step_style(step)), self._step_detail(step, now))
            if step.status is StepStatus.FAILED and step.diagnostic is not None:
                table.add_row("", Text(format_inline(step.diagnostic), style="red"), "")
        return Panel(table, title="Steps", border_style="cyan")

    def _step_icon(self, step: StepView) -> RenderableType:
        if step.status is StepStatus.RUNNING:
            return Spinner("dots", style="cyan")
        icon, style = STEP_ICONS[step.status]
        return Text(icon, style=style)

    @staticmethod
    def _step_style(step: StepView) -> str:
        return {
            StepStatus.RUNNING: "bold",
            StepStatus.COMPLETE: "green",
            StepStatus.FAILED: "bold red",
        }.get(step.status, "dim")

    def _step_detail(self, step: StepView, now) -> RenderableType:
        if step.status is StepStatus.RUNNING:
            parts: list[RenderableType] = []
            if step.fraction > 0:
                parts.append(ProgressBar(total=1.0, completed=step.fraction, width=20))
            label = format_duration(step.elapsed(now))
            if step.message:
                label = f"{label}  {step.message}"
            parts.append(Text(label, style="cyan"))
            grid = Table.grid(padding=(0, 1))
            for _ in parts:
                grid.add_column()
            grid.add_row(*parts)
            return grid
        if step.status in (StepStatus.COMPLETE, StepStatus.FAILED):
            return Text(format_duration(step.elapsed(now)), style="dim")
        if step.status is StepStatus.SKIPPED:
            return Text("skipped", style="dim")
        return Text(step.description, style="dim")

    def _log_pane(self) -> RenderableType:
        logs = self.view.logs
        lines = Text()
        for entry in logs.visible():
            icon, style = LOG_STYLES[entry.level]
            lines.append(f"{entry.timestamp:%H:%M:%S} ", style="dim")
            lines.append(f"{icon} {entry.message}\n", style=style)
        lines.rstrip()
        title = "Logs" if logs.following else f"Logs (scrolled, {logs.offset} newer)"
        return Panel(lines, title=title, border_style="blue", height=logs.height + 2)

    def _footer(self) -> RenderableType:
        return Text("↑/↓ PgUp/PgDn Home/End scroll   q / Esc / Ctrl+C cancel", style="dim")

    def show_result(self, result: RunResult) -> None:
        render_result(self.console, result, self.view)


# ---------------------------------------------------------------------------
# Plain
# ---------------------------------------------------------------------------


class PlainRenderer(Renderer):
    """Line-per-event output for non-interactive terminals."""

    def on_event(self, event: object) -> None:
        out = self.console
        if isinstance(event, StepStarted):
            out.print(f"[Step {event.index + 1}/{self.view.total}] {event.name}", highlight=False)
        elif isinstance(event, StepProgress):
            line = f"[Step {event.index + 1}] {int(event.fraction * 100)}%"
            if event.message:
                line = f"{line} - {event.message}"
            out.print(line, highlight=False)
        elif isinstance(event, StepFinished):
            step = self.view.steps[event.index] if event.index < self.view.total else None
            if event.status is StepStatus.COMPLETE and step is not None:
                detail = f"done ({format_duration(step.elapsed(self.view.clock()))})"
            else:
                detail = event.status.value
            out.print(f"[Step {event.index + 1}] {detail}", highlight=False)
        elif isinstance(event, LogEvent):
            icon, style = LOG_STYLES[event.level]
            out.print(Text(f"  {icon} {event.message}", style=style))

    def show_result(self, result: RunResult) -> None:
        render_result(self.console, result, self.view)


# ---------------------------------------------------------------------------
# Completion screen
# ---------------------------------------------------------------------------


def format_inline(diagnostic: Diagnostic) -> str:
    text = f"[{diagnostic.code}] {diagnostic.message}" if diagnostic.code else diagnostic.message
    if diagnostic.suggestion:
        text = f"{text}  Fix: {diagnostic.suggestion}"
    return text


def render_result(console: Console, result: RunResult, view: ProgressView) -> None:
    """Print the banner, summary and outcome-specific details."""
    banner, style = {
        RunOutcome.SUCCEEDED: ("✓ DEPLOYMENT SUCCESSFUL", "green"),
        RunOutcome.FAILED: ("✗ DEPLOYMENT FAILED", "red"),
        RunOutcome.INTERRUPTED: ("■ DEPLOYMENT INTERRUPTED", "yellow"),
    }[result.outcome]

    lines = [
        f"Provider: {result.provider}",
        f"Duration: {format_duration(result.duration_seconds)}",
        f"Steps:    {result.steps_completed}/{len(result.steps)} completed",
    ]

    if result.outcome is RunOutcome.SUCCEEDED:
        if result.dashboard_url:
            lines += ["", f"Access URL: [bold cyan]{result.dashboard_url}[/bold cyan]"]
        lines += [
            "",
            "Next steps:",
            "  • Open the dashboard and create the admin account",
            "  • Point a domain at the server and configure it in the settings",
        ]
    elif result.outcome is RunOutcome.FAILED:
        failed = view.failed_step
        if failed is not None:
            lines += ["", f"Failed at: {failed.name}"]
    else:
        lines += [
            "",
            "The run was stopped before it finished.",
            "Resources created so far may still exist; use `cool-kit destroy` to remove them.",
        ]

    console.print(Panel("\n".join(lines), title=banner, border_style=style))

    if result.outcome is RunOutcome.FAILED:
        diagnostic = result.diagnostic or Diagnostic(message=result.message or "Deployment failed")
        render_diagnostic(console, diagnostic)


def render_diagnostic(console: Console, diagnostic: Diagnostic) -> None:
    body = Text()
    body.append("✗ ", style="bold red")
    if diagnostic.code:
        body.append(f"[{diagnostic.code}] ", style="bold red")
    body.append(diagnostic.message)
    if diagnostic.suggestion:
        body.append("\n\n💡 Fix: ", style="bold yellow")
        body.append(diagnostic.suggestion)
    console.print(Panel(body, title="Error", border_style="red"))
