"""Fail-fast step execution.

Runs a provider's ordered ``StepDefinition`` list, owning every ``Step``
state change and reporting each one through the ``EventSink``.

Key Concepts:
    StepDefinition: name, description and the callable doing the work. The
        callable receives the sink (for progress and log lines) and the
        cancel token (for long waits).
    Fail-fast: the first step that raises is marked Failed, its error is
        classified into a Diagnostic, and the run stops. Later steps stay
        Pending. Steps are never retried here; polling/retry belongs inside
        the step.
    Completion: a step completes when its callable returns, even if it
        already reported ``fraction >= 1.0``. The renderer treats a full
        fraction as an implicit completion and ignores the later
        ``StepFinished``, so the step is never completed twice on screen. A
        step that reports 1.0 and then raises still ends Failed.
    Cancellation: checked before each step; a step that raises
        ``DeploymentCancelled`` ends the run without a Diagnostic.

Event sequence for one successful step::

    StepStarted(i)  LogEvent("Starting: <name>")  [StepProgress(i, ...)]*
    StepFinished(i, COMPLETE)  LogEvent("✓ <name> completed")

Related Modules:
    - :mod:`coolkit.deploy.provider` - StepProvider drives this executor
    - :mod:`coolkit.deploy.diagnostics` - Classifies step failures

Tags:
    executor, steps, fail-fast, state-machine
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from coolkit.core.errors import DeploymentCancelled, categorize_error
from coolkit.deploy.channel import CancelToken, EventSink
from coolkit.deploy.diagnostics import DeploymentError, Diagnostic, MatcherRegistry, default_registry
from coolkit.deploy.events import (
    ProgressChannelEvent,
    Step,
    StepFinished,
    StepInfo,
    StepProgress,
    StepStarted,
    StepStatus,
)
from coolkit.framework.logging import get_logger, pop_context, push_context, timed_block

log = get_logger(__name__)

StepAction = Callable[[EventSink, CancelToken], None]


@dataclass(frozen=True)
class StepDefinition:
    """A named unit of work.

    ``when`` is evaluated just before the step would start; returning False
    skips it (Pending → Skipped).
    """

    name: str
    description: str
    action: StepAction
    when: Callable[[], bool] | None = None

    @property
    def info(self) -> StepInfo:
        return StepInfo(name=self.name, description=self.description)


class StepExecutor:
    """Runs step definitions in order against one sink.

    Parameters
    ----------
    provider
        Provider name, recorded in Diagnostics.
    operation
        Operation name, recorded in Diagnostics.
    registry
        Matcher registry used to classify failures.
    """

    def __init__(
        self,
        provider: str,
        operation: str = "deploy",
        registry: MatcherRegistry | None = None,
    ) -> None:
        self.provider = provider
        self.operation = operation
        self.registry = registry or default_registry
        self.steps: list[Step] = []

    def run(
        self,
        definitions: Sequence[StepDefinition],
        sink: EventSink,
        cancel: CancelToken | None = None,
    ) -> None:
        """Execute every step, stopping at the first failure.

        Raises
        ------
        DeploymentError
            A step failed; ``.diagnostic`` describes why.
        DeploymentCancelled
            The cancel token was set.
        """
        cancel = cancel or CancelToken()
        self.steps = [Step(name=d.name, description=d.description) for d in definitions]
        sink.progress_listener = self._record_progress

        try:
            for index, definition in enumerate(definitions):
                cancel.raise_if_cancelled()
                self._run_one(index, definition, sink, cancel)
        finally:
            sink.progress_listener = None
            sink.bind_step(None, None)

    # ------------------------------------------------------------------

    def _run_one(self, index: int, definition: StepDefinition, sink: EventSink, cancel: CancelToken) -> None:
        step = self.steps[index]

        if definition.when is not None and not definition.when():
            step.skip()
            sink.emit_progress(StepFinished(index=index, name=step.name, status=StepStatus.SKIPPED))
            sink.info(f"Skipping: {step.name}")
            log.info("step.skipped", step=step.name, index=index)
            return

        step.start()
        sink.bind_step(index, step.name)
        sink.emit_progress(StepStarted(index=index, name=step.name, timestamp=step.started_at))
        sink.info(f"Starting: {step.name}")
        token = push_context(step=step.name)
        log.info("step.started", index=index)

        try:
            with timed_block(step.name) as timer:
                definition.action(sink, cancel)
        except DeploymentCancelled:
            self._finish_failed(index, step, sink, None)
            sink.warning(f"Cancelled: {step.name}")
            log.warning("step.cancelled", index=index)
            raise
        except Exception as exc:
            diagnostic = self.registry.classify(self.provider, self.operation, exc)
            self._finish_failed(index, step, sink, diagnostic)
            sink.error(f"Failed: {step.name} - {diagnostic.message}")
            log.error(
                "step.failed",
                index=index,
                code=diagnostic.code or None,
                category=categorize_error(exc).value,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise DeploymentError(diagnostic, step=step.name, step_index=index) from exc
        finally:
            sink.bind_step(None, None)
            pop_context(token)

        if step.complete():
            sink.emit_progress(
                StepFinished(index=index, name=step.name, status=StepStatus.COMPLETE, timestamp=step.ended_at)
            )
        sink.success(f"✓ {step.name} completed")
        log.info("step.completed", index=index, duration_s=round(timer.duration_seconds, 2))

    def _finish_failed(self, index: int, step: Step, sink: EventSink, diagnostic: Diagnostic | None) -> None:
        if step.status is StepStatus.RUNNING:
            step.fail()
            sink.emit_progress(
                StepFinished(
                    index=index,
                    name=step.name,
                    status=StepStatus.FAILED,
                    timestamp=step.ended_at,
                    diagnostic=diagnostic,
                )
            )

    def _record_progress(self, event: ProgressChannelEvent) -> None:
        if not isinstance(event, StepProgress):
            return
        if 0 <= event.index < len(self.steps):
            self.steps[event.index].report(event.fraction)
