"""Tests for coolkit.deploy.view - renderer state folded from events."""

from datetime import datetime, timedelta

import pytest

from coolkit.deploy.diagnostics import Diagnostic
from coolkit.deploy.events import (
    LogEvent,
    LogLevel,
    RunCompleted,
    StepFinished,
    StepInfo,
    StepProgress,
    StepStarted,
    StepStatus,
)
from coolkit.deploy.view import LogPane, ProgressView, extract_access_url, format_duration


def _log(message: str) -> LogEvent:
    return LogEvent(level=LogLevel.INFO, message=message)


@pytest.fixture
def view() -> ProgressView:
    return ProgressView([StepInfo("A", "first"), StepInfo("B", "second"), StepInfo("C", "third")])


class TestStepTransitions:
    def test_started_progress_finished(self, view):
        view.apply(StepStarted(index=0, name="A"))
        assert view.current is view.steps[0]
        view.apply(StepProgress(index=0, fraction=0.3, message="pulling"))
        assert view.steps[0].fraction == 0.3
        assert view.steps[0].message == "pulling"
        view.apply(StepFinished(index=0, name="A", status=StepStatus.COMPLETE))
        assert view.steps[0].status is StepStatus.COMPLETE
        assert view.steps[0].fraction == 1.0
        assert view.completed == 1

    def test_full_fraction_completes_without_finished_event(self, view):
        view.apply(StepStarted(index=1, name="B"))
        view.apply(StepProgress(index=1, fraction=1.0))
        assert view.steps[1].status is StepStatus.COMPLETE

    def test_failure_overrides_completion_from_full_fraction(self, view):
        d = Diagnostic(code="PermissionDenied", message="denied")
        view.apply(StepStarted(index=0, name="A"))
        view.apply(StepProgress(index=0, fraction=1.0))
        view.apply(StepFinished(index=0, name="A", status=StepStatus.FAILED, diagnostic=d))
        assert view.steps[0].status is StepStatus.FAILED
        assert view.failed_step is view.steps[0]
        assert view.steps[0].diagnostic == d
        view.apply(StepFinished(index=0, name="A", status=StepStatus.COMPLETE))
        assert view.steps[0].status is StepStatus.FAILED

    def test_finished_after_full_fraction_keeps_completion(self, view):
        view.apply(StepStarted(index=0, name="A"))
        view.apply(StepProgress(index=0, fraction=1.0))
        view.apply(StepFinished(index=0, name="A", status=StepStatus.COMPLETE))
        view.apply(StepFinished(index=0, name="A", status=StepStatus.FAILED))
        assert view.steps[0].status is StepStatus.COMPLETE
        assert view.completed == 1

    def test_progress_on_pending_step_starts_it(self, view):
        view.apply(StepProgress(index=2, fraction=0.5))
        assert view.steps[2].status is StepStatus.RUNNING
        assert view.steps[2].started_at is not None

    @pytest.mark.parametrize("terminal", [StepStatus.COMPLETE, StepStatus.FAILED, StepStatus.SKIPPED])
    def test_terminal_state_is_monotonic(self, view, terminal):
        view.apply(StepStarted(index=0, name="A"))
        view.apply(StepFinished(index=0, name="A", status=terminal))
        view.apply(StepProgress(index=0, fraction=0.2, message="late"))
        view.apply(StepStarted(index=0, name="A"))
        view.apply(StepFinished(index=0, name="A", status=StepStatus.COMPLETE if terminal is StepStatus.FAILED else StepStatus.FAILED))
        assert view.steps[0].status is terminal
        assert view.steps[0].message != "late"

    def test_failed_step_keeps_diagnostic(self, view):
        d = Diagnostic(code="QuotaExceeded", message="quota")
        view.apply(StepStarted(index=1, name="B"))
        view.apply(StepFinished(index=1, name="B", status=StepStatus.FAILED, diagnostic=d))
        assert view.failed_step is view.steps[1]
        assert view.steps[1].diagnostic == d

    def test_out_of_range_index_is_ignored(self, view):
        view.apply(StepStarted(index=7, name="X"))
        view.apply(StepProgress(index=-1, fraction=0.5))
        assert all(s.status is StepStatus.PENDING for s in view.steps)

    def test_summaries_and_completion(self, view):
        start = datetime(2026, 1, 1, 12, 0, 0)
        view.apply(StepStarted(index=0, name="A", timestamp=start))
        view.apply(StepFinished(index=0, name="A", status=StepStatus.COMPLETE, timestamp=start + timedelta(seconds=4)))
        view.apply(RunCompleted(success=True, message="ok"))
        summaries = view.summaries()
        assert [s.status for s in summaries] == [StepStatus.COMPLETE, StepStatus.PENDING, StepStatus.PENDING]
        assert summaries[0].duration_seconds == 4.0
        assert view.completion.success
        assert view.finished_at is not None


class TestLogPane:
    def test_keeps_order_and_bounds_history(self):
        pane = LogPane(height=3, history=5)
        for i in range(8):
            pane.append(_log(f"line {i}"))
        assert pane.messages() == [f"line {i}" for i in range(3, 8)]
        assert [e.message for e in pane.visible()] == ["line 5", "line 6", "line 7"]

    def test_scrolling(self):
        pane = LogPane(height=3, history=100)
        for i in range(10):
            pane.append(_log(str(i)))
        pane.scroll_up()
        assert [e.message for e in pane.visible()] == ["6", "7", "8"]
        pane.page_up()
        assert [e.message for e in pane.visible()] == ["3", "4", "5"]
        pane.top()
        assert [e.message for e in pane.visible()] == ["0", "1", "2"]
        pane.scroll_up(50)
        assert pane.offset == pane.max_offset == 7
        pane.page_down()
        pane.bottom()
        assert pane.following
        pane.scroll_down()
        assert pane.offset == 0

    def test_scrolled_window_stays_put_while_new_lines_arrive(self):
        pane = LogPane(height=2, history=100)
        for i in range(5):
            pane.append(_log(str(i)))
        pane.scroll_up(2)
        before = [e.message for e in pane.visible()]
        pane.append(_log("5"))
        assert [e.message for e in pane.visible()] == before
        assert not pane.following

    def test_following_pane_shows_newest(self):
        pane = LogPane(height=2)
        for i in range(3):
            pane.append(_log(str(i)))
        assert [e.message for e in pane.visible()] == ["1", "2"]


class TestExtractAccessUrl:
    def test_newest_url_wins(self):
        messages = ["Dashboard: http://old.example", "noise", "Open https://10.0.0.5:8000 now"]
        assert extract_access_url(messages) == "https://10.0.0.5:8000"

    def test_trailing_punctuation_is_stripped(self):
        assert extract_access_url(["Ready at https://10.0.0.5."]) == "https://10.0.0.5"
        assert extract_access_url(["(see http://host/path),"]) == "http://host/path"

    def test_only_last_five_messages_are_scanned(self):
        messages = ["https://too.old", "a", "b", "c", "d", "e"]
        assert extract_access_url(messages) is None

    def test_no_url(self):
        assert extract_access_url([]) is None

    def test_view_access_url_uses_log_pane(self, view):
        view.apply(_log("Dashboard available at http://localhost:8000"))
        assert view.access_url() == "http://localhost:8000"


class TestFormatDuration:
    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [(4.25, "4.2s"), (75.3, "1m 15s"), (3725, "1h 02m")],
    )
    def test_format(self, seconds, expected):
        assert format_duration(seconds) == expected
