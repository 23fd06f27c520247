"""Tests for coolkit.deploy.renderer and coolkit.deploy.keys."""

import io
import queue

import pytest
from rich.console import Console

from coolkit.deploy.diagnostics import Diagnostic
from coolkit.deploy.events import (
    LogEvent,
    LogLevel,
    RunCompleted,
    RunOutcome,
    RunResult,
    StepFinished,
    StepInfo,
    StepProgress,
    StepStarted,
    StepStatus,
    StepSummary,
)
from coolkit.deploy.keys import KeyAction, KeyPressed, KeyReader, action_for
from coolkit.deploy.renderer import (
    CancelRequested,
    LiveRenderer,
    PlainRenderer,
    RendererExit,
    format_inline,
    render_result,
)
from coolkit.deploy.view import ProgressView


def console_text(console) -> str:
    return console.file.getvalue()


def _renderer(cls, quiet_console, *events, **kwargs):
    view = ProgressView([StepInfo("Check Docker"), StepInfo("Start services")], log_height=4)
    inbox: queue.Queue = queue.Queue()
    for event in events:
        inbox.put(event)
    return cls(view, inbox, console=quiet_console, tick_interval=0.01, provider_name="docker", **kwargs)


class TestRendererLoop:
    def test_completes_on_run_completed(self, quiet_console):
        r = _renderer(
            PlainRenderer,
            quiet_console,
            StepStarted(index=0, name="Check Docker"),
            RunCompleted(success=True, message="ok"),
        )
        assert r.run() is RendererExit.COMPLETED
        assert r.view.completion is not None

    @pytest.mark.parametrize("key", ["q", "escape", "c-c", "Q"])
    def test_cancel_keys(self, quiet_console, key):
        r = _renderer(PlainRenderer, quiet_console, KeyPressed(key), RunCompleted(success=True, message="ok"))
        assert r.run() is RendererExit.CANCELLED
        assert r.view.completion is None

    def test_cancel_request_from_outside(self, quiet_console):
        r = _renderer(PlainRenderer, quiet_console, CancelRequested("stop"))
        assert r.run() is RendererExit.CANCELLED

    def test_keyboard_interrupt_cancels(self, quiet_console):
        r = _renderer(PlainRenderer, quiet_console)

        def interrupted(timeout=None):
            raise KeyboardInterrupt

        r.inbox.get = interrupted
        assert r.run() is RendererExit.CANCELLED

    def test_scroll_keys_move_log_pane(self, quiet_console):
        logs = [LogEvent(level=LogLevel.INFO, message=str(i)) for i in range(10)]
        r = _renderer(PlainRenderer, quiet_console, *logs, KeyPressed("up"), KeyPressed("pageup"))
        r.inbox.put(RunCompleted(success=True, message="ok"))
        r.run()
        assert r.view.logs.offset == 5

    def test_ticks_while_idle(self, quiet_console):
        r = _renderer(PlainRenderer, quiet_console)
        ticks = []

        def refresh():
            ticks.append(1)
            if len(ticks) == 3:
                r.inbox.put(RunCompleted(success=False, message="x"))

        r.refresh = refresh
        assert r.run() is RendererExit.COMPLETED
        assert len(ticks) >= 3


class TestPlainRenderer:
    def test_prints_step_lines(self, quiet_console):
        r = _renderer(
            PlainRenderer,
            quiet_console,
            StepStarted(index=0, name="Check Docker"),
            StepProgress(index=0, fraction=0.5, message="docker version"),
            LogEvent(level=LogLevel.SUCCESS, message="Docker available"),
            StepFinished(index=0, name="Check Docker", status=StepStatus.COMPLETE),
            RunCompleted(success=True, message="ok"),
        )
        r.run()
        out = console_text(quiet_console)
        assert "[Step 1/2] Check Docker" in out
        assert "[Step 1] 50% - docker version" in out
        assert "✓ Docker available" in out
        assert "[Step 1] done (" in out


class TestLiveRenderer:
    def test_renders_steps_logs_and_inline_diagnostic(self):
        quiet_console = Console(file=io.StringIO(), width=200, color_system=None)
        d = Diagnostic(code="ToolNotInstalled", message="docker: command not found", suggestion="Install Docker")
        r = _renderer(
            LiveRenderer,
            quiet_console,
            StepStarted(index=0, name="Check Docker"),
            LogEvent(level=LogLevel.ERROR, message="Failed: Check Docker"),
            StepFinished(index=0, name="Check Docker", status=StepStatus.FAILED, diagnostic=d),
            RunCompleted(success=False, message="docker: command not found", diagnostic=d),
            read_keys=False,
        )
        assert r.run() is RendererExit.COMPLETED
        quiet_console.print(r.render())
        out = console_text(quiet_console)
        assert "Deploying docker" in out
        assert "Check Docker" in out
        assert "[ToolNotInstalled] docker: command not found" in out
        assert "Failed: Check Docker" in out


class TestCompletionScreen:
    def _result(self, outcome, **kwargs):
        result = RunResult(
            run_id="r1",
            provider="hetzner",
            steps=[StepSummary(name="A", status=StepStatus.COMPLETE), StepSummary(name="B")],
            **kwargs,
        )
        result.mark_complete(outcome)
        return result

    def test_success_shows_url(self, quiet_console):
        view = ProgressView([StepInfo("A"), StepInfo("B")])
        render_result(quiet_console, self._result(RunOutcome.SUCCEEDED, dashboard_url="http://1.2.3.4:8000"), view)
        out = console_text(quiet_console)
        assert "DEPLOYMENT SUCCESSFUL" in out
        assert "http://1.2.3.4:8000" in out
        assert "1/2 completed" in out

    def test_failure_shows_diagnostic_box(self, quiet_console):
        view = ProgressView([StepInfo("A"), StepInfo("B")])
        view.apply(StepStarted(index=1, name="B"))
        view.apply(StepFinished(index=1, name="B", status=StepStatus.FAILED))
        d = Diagnostic(code="QuotaExceeded", message="No quota left", suggestion="Ask for more")
        render_result(quiet_console, self._result(RunOutcome.FAILED, diagnostic=d), view)
        out = console_text(quiet_console)
        assert "DEPLOYMENT FAILED" in out
        assert "Failed at: B" in out
        assert "[QuotaExceeded] No quota left" in out
        assert "💡 Fix: Ask for more" in out

    def test_interrupted_suggests_destroy(self, quiet_console):
        render_result(quiet_console, self._result(RunOutcome.INTERRUPTED), ProgressView([]))
        out = console_text(quiet_console)
        assert "DEPLOYMENT INTERRUPTED" in out
        assert "cool-kit destroy" in out

    def test_format_inline(self):
        assert format_inline(Diagnostic(code="X", message="m", suggestion="s")) == "[X] m  Fix: s"


class TestKeys:
    @pytest.mark.parametrize(
        ("key", "action"),
        [
            ("q", KeyAction.CANCEL),
            ("escape", KeyAction.CANCEL),
            ("c-c", KeyAction.CANCEL),
            ("up", KeyAction.SCROLL_UP),
            ("j", KeyAction.SCROLL_DOWN),
            ("pagedown", KeyAction.PAGE_DOWN),
            ("home", KeyAction.TOP),
            ("end", KeyAction.BOTTOM),
            ("x", None),
        ],
    )
    def test_bindings(self, key, action):
        assert action_for(key) is action

    def test_reader_does_not_start_without_tty(self, monkeypatch):
        monkeypatch.setattr(KeyReader, "available", staticmethod(lambda: False))
        reader = KeyReader(lambda key: None)
        assert reader.start() is False
        reader.stop()
