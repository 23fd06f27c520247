"""Event vocabulary shared by the step executor, orchestrator and renderer.

The worker thread describes a run entirely through these values; the
renderer never looks at executor state and rebuilds its own picture of
each step from the events it receives.

Why This Matters:
    Progress and log events cross a thread boundary. Keeping them as small
    immutable values (frozen dataclasses) means nothing is ever shared
    mutably between the worker and the UI: a ``Step`` lives on the worker,
    the renderer holds its own ``StepView`` copies.

Key Concepts:
    Step: The executor's mutable record of one unit of work. Transitions
        are checked: Pending → Running → Complete | Failed, and
        Pending → Skipped.
    Progress channel events: ``StepStarted``, ``StepProgress`` (the
        ProgressEvent), ``StepFinished``.
    Log channel events: ``LogEvent``.
    RunCompleted: Synthesised by the orchestrator after both channels are
        drained; the renderer's signal to stop.
    RunResult: What the orchestrator hands back to its caller.

Related Modules:
    - :mod:`coolkit.deploy.executor` - Produces these events
    - :mod:`coolkit.deploy.view` - Consumes them to build renderer state
    - :mod:`coolkit.deploy.orchestrator` - Produces RunCompleted / RunResult

Tags:
    events, step, progress, log, result, state-machine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union

from pydantic import BaseModel, Field, computed_field

from coolkit.core.errors import OrchestrationError
from coolkit.deploy.diagnostics import Diagnostic

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class StepStatus(str, Enum):
    """Lifecycle state of a step."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.COMPLETE, StepStatus.FAILED, StepStatus.SKIPPED)


class LogLevel(str, Enum):
    """Severity of a log line shown in the log pane."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    DEBUG = "debug"


class RunOutcome(str, Enum):
    """How an orchestration ended."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    INTERRUPTED = "interrupted"


# ---------------------------------------------------------------------------
# Step
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StepInfo:
    """A declared step: what a provider says it will do, before it runs."""

    name: str
    description: str = ""


@dataclass
class Step:
    """One unit of provisioning work, owned by the executor.

    Transition methods refuse illegal moves by raising
    :class:`~coolkit.core.errors.OrchestrationError`, except
    :meth:`complete` which is idempotent so a step that already reported
    ``fraction >= 1.0`` is not completed twice.
    """

    name: str
    description: str = ""
    status: StepStatus = StepStatus.PENDING
    started_at: datetime | None = None
    ended_at: datetime | None = None
    fraction: float = 0.0

    @classmethod
    def from_info(cls, info: StepInfo) -> Step:
        return cls(name=info.name, description=info.description)

    def start(self, now: datetime | None = None) -> None:
        self._require(StepStatus.PENDING, "start")
        self.status = StepStatus.RUNNING
        self.started_at = now or datetime.now()

    def complete(self, now: datetime | None = None) -> bool:
        """Mark complete. Returns False if the step was already complete."""
        if self.status is StepStatus.COMPLETE:
            return False
        self._require(StepStatus.RUNNING, "complete")
        self.status = StepStatus.COMPLETE
        self.fraction = 1.0
        self.ended_at = now or datetime.now()
        return True

    def fail(self, now: datetime | None = None) -> None:
        self._require(StepStatus.RUNNING, "fail")
        self.status = StepStatus.FAILED
        self.ended_at = now or datetime.now()

    def skip(self) -> None:
        self._require(StepStatus.PENDING, "skip")
        self.status = StepStatus.SKIPPED

    def report(self, fraction: float) -> None:
        """Record sub-progress on a running step; ignored once terminal."""
        if self.status is StepStatus.RUNNING:
            self.fraction = max(0.0, min(1.0, fraction))

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at is None or self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds()

    def _require(self, expected: StepStatus, action: str) -> None:
        if self.status is not expected:
            raise OrchestrationError(
                f"Cannot {action} step {self.name!r} in state {self.status.value}"
            )


# ---------------------------------------------------------------------------
# Progress channel events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StepStarted:
    index: int
    name: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class StepProgress:
    """Fine-grained progress for the running step.

    A ``fraction`` of 1.0 counts as completion for the consumer if no
    ``StepFinished`` follows.
    """

    index: int
    fraction: float
    message: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)


ProgressEvent = StepProgress


@dataclass(frozen=True)
class StepFinished:
    index: int
    name: str
    status: StepStatus
    timestamp: datetime = field(default_factory=datetime.now)
    diagnostic: Diagnostic | None = None


# ---------------------------------------------------------------------------
# Log channel events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LogEvent:
    """One line for the log pane, tagged with the step active when emitted."""

    level: LogLevel
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    step: str | None = None


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RunCompleted:
    """Sent once, after every progress/log event of the run was forwarded."""

    success: bool
    message: str
    diagnostic: Diagnostic | None = None
    dashboard_url: str | None = None


ProgressChannelEvent = Union[StepStarted, StepProgress, StepFinished]
RenderEvent = Union[StepStarted, StepProgress, StepFinished, LogEvent, RunCompleted]


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


class StepSummary(BaseModel):
    """Per-step line in a RunResult."""

    name: str
    status: StepStatus = StepStatus.PENDING
    duration_seconds: float | None = None


class RunResult(BaseModel):
    """Terminal outcome of one orchestration, produced exactly once."""

    run_id: str
    provider: str
    outcome: RunOutcome = RunOutcome.FAILED
    message: str = ""
    dashboard_url: str | None = None
    diagnostic: Diagnostic | None = None
    steps: list[StepSummary] = Field(default_factory=list)
    resources: dict[str, str] = Field(default_factory=dict)
    started_at: str = Field(default_factory=lambda: datetime.now().astimezone().isoformat())
    completed_at: str | None = None
    duration_seconds: float = 0.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success(self) -> bool:
        return self.outcome is RunOutcome.SUCCEEDED

    @property
    def interrupted(self) -> bool:
        return self.outcome is RunOutcome.INTERRUPTED

    @property
    def steps_completed(self) -> int:
        return sum(1 for s in self.steps if s.status is StepStatus.COMPLETE)

    def mark_complete(self, outcome: RunOutcome, message: str | None = None) -> None:
        """Stamp the end time, duration and outcome."""
        self.completed_at = datetime.now().astimezone().isoformat()
        start = datetime.fromisoformat(self.started_at)
        end = datetime.fromisoformat(self.completed_at)
        self.duration_seconds = (end - start).total_seconds()
        self.outcome = outcome
        if message is not None:
            self.message = message
