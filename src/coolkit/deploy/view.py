"""Renderer-private picture of a run, rebuilt purely from events.

The worker owns the real ``Step`` objects; the UI thread never sees them.
Instead it folds every received event into a :class:`ProgressView`:

- ``StepStarted``       Pending → Running
- ``StepProgress``      sub-progress; ``fraction >= 1.0`` completes the step
- ``StepFinished``      Running → Complete | Failed | Skipped
- ``LogEvent``          appended to the :class:`LogPane`
- ``RunCompleted``      remembered as the terminal outcome

Terminal states are sticky: anything arriving for a step that is already
Complete, Failed or Skipped is ignored, so a late progress event can never
revert it.
"""

from __future__ import annotations

import re
from collections import deque
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from coolkit.deploy.diagnostics import Diagnostic
from coolkit.deploy.events import (
    LogEvent,
    RenderEvent,
    RunCompleted,
    StepFinished,
    StepInfo,
    StepProgress,
    StepStarted,
    StepStatus,
    StepSummary,
)

_URL = re.compile(r"https?://\S+")
URL_SCAN_DEPTH = 5


def extract_access_url(messages: Iterable[str], depth: int = URL_SCAN_DEPTH) -> str | None:
    """Find the most recent http(s) URL among the last ``depth`` messages.

    >>> extract_access_url(["booting", "Dashboard: https://10.0.0.5.", "✓ done"])
    'https://10.0.0.5'
    """
    tail = list(messages)[-depth:]
    for message in reversed(tail):
        match = _URL.search(message)
        if match:
            url = match.group(0).rstrip(".,;)")
            if url:
                return url
    return None


@dataclass
class StepView:
    name: str
    description: str = ""
    status: StepStatus = StepStatus.PENDING
    fraction: float = 0.0
    message: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    diagnostic: Diagnostic | None = None
    # completed by a 1.0 fraction, not yet confirmed by StepFinished
    implicit: bool = False

    def elapsed(self, now: datetime) -> float:
        if self.started_at is None:
            return 0.0
        end = self.ended_at or now
        return max(0.0, (end - self.started_at).total_seconds())

    def summary(self) -> StepSummary:
        duration = None
        if self.started_at is not None and self.ended_at is not None:
            duration = round((self.ended_at - self.started_at).total_seconds(), 3)
        return StepSummary(name=self.name, status=self.status, duration_seconds=duration)


class LogPane:
    """Bounded, scrollable log buffer.

    ``offset`` counts lines scrolled up from the bottom. At offset 0 the pane
    follows the tail; when scrolled up, new lines bump the offset so the
    visible window stays put until the user returns to the bottom.
    """

    def __init__(self, height: int = 10, history: int = 500) -> None:
        self.height = height
        self.entries: deque[LogEvent] = deque(maxlen=history)
        self.offset = 0

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def following(self) -> bool:
        return self.offset == 0

    @property
    def max_offset(self) -> int:
        return max(0, len(self.entries) - self.height)

    def append(self, entry: LogEvent) -> None:
        self.entries.append(entry)
        if self.offset:
            self.offset = min(self.offset + 1, self.max_offset)

    def scroll_up(self, lines: int = 1) -> None:
        self.offset = min(self.offset + lines, self.max_offset)

    def scroll_down(self, lines: int = 1) -> None:
        self.offset = max(self.offset - lines, 0)

    def page_up(self) -> None:
        self.scroll_up(self.height)

    def page_down(self) -> None:
        self.scroll_down(self.height)

    def top(self) -> None:
        self.offset = self.max_offset

    def bottom(self) -> None:
        self.offset = 0

    def visible(self) -> list[LogEvent]:
        end = len(self.entries) - self.offset
        start = max(0, end - self.height)
        return list(self.entries)[start:end]

    def messages(self) -> list[str]:
        return [entry.message for entry in self.entries]


class ProgressView:
    """Step rows, log pane and outcome as seen by the renderer.

    Example::

        view = ProgressView(provider.declare_steps())
        view.apply(StepStarted(index=0, name="Check Docker"))
        view.steps[0].status        # StepStatus.RUNNING
    """

    def __init__(
        self,
        steps: Sequence[StepInfo],
        *,
        log_height: int = 10,
        log_history: int = 500,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.steps = [StepView(name=s.name, description=s.description) for s in steps]
        self.logs = LogPane(height=log_height, history=log_history)
        self.clock = clock
        self.started_at = clock()
        self.finished_at: datetime | None = None
        self.completion: RunCompleted | None = None

    # ── Event folding ────────────────────────────────────────────

    def apply(self, event: RenderEvent) -> None:
        if isinstance(event, LogEvent):
            self.logs.append(event)
        elif isinstance(event, StepStarted):
            self._started(event)
        elif isinstance(event, StepProgress):
            self._progress(event)
        elif isinstance(event, StepFinished):
            self._finished(event)
        elif isinstance(event, RunCompleted):
            self.completion = event
            self.finished_at = self.clock()

    def _step(self, index: int) -> StepView | None:
        if 0 <= index < len(self.steps):
            return self.steps[index]
        return None

    def _started(self, event: StepStarted) -> None:
        step = self._step(event.index)
        if step is None or step.status is not StepStatus.PENDING:
            return
        step.status = StepStatus.RUNNING
        step.started_at = event.timestamp

    def _progress(self, event: StepProgress) -> None:
        step = self._step(event.index)
        if step is None or step.status.is_terminal:
            return
        if step.status is StepStatus.PENDING:
            step.status = StepStatus.RUNNING
            step.started_at = event.timestamp
        step.fraction = max(0.0, min(1.0, event.fraction))
        if event.message:
            step.message = event.message
        if event.fraction >= 1.0:
            step.status = StepStatus.COMPLETE
            step.ended_at = event.timestamp
            step.implicit = True

    def _finished(self, event: StepFinished) -> None:
        step = self._step(event.index)
        if step is None:
            return
        if step.implicit:
            step.implicit = False
            if event.status is not StepStatus.FAILED:
                return
        elif step.status.is_terminal:
            return
        step.status = event.status
        if event.status is StepStatus.COMPLETE:
            step.fraction = 1.0
        if event.status is not StepStatus.SKIPPED:
            step.ended_at = event.timestamp
        step.diagnostic = event.diagnostic

    # ── Queries ──────────────────────────────────────────────────

    @property
    def total(self) -> int:
        return len(self.steps)

    @property
    def completed(self) -> int:
        return sum(1 for s in self.steps if s.status is StepStatus.COMPLETE)

    @property
    def current(self) -> StepView | None:
        for step in self.steps:
            if step.status is StepStatus.RUNNING:
                return step
        return None

    @property
    def failed_step(self) -> StepView | None:
        for step in self.steps:
            if step.status is StepStatus.FAILED:
                return step
        return None

    def elapsed(self) -> float:
        end = self.finished_at or self.clock()
        return max(0.0, (end - self.started_at).total_seconds())

    def access_url(self) -> str | None:
        return extract_access_url(self.logs.messages())

    def summaries(self) -> list[StepSummary]:
        return [step.summary() for step in self.steps]


def format_duration(seconds: float) -> str:
    """``75.3`` → ``"1m 15s"``; under a minute → ``"4.2s"``."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m"
