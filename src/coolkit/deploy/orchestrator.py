"""Runs a provider on a worker thread while the renderer owns the terminal.

Why This Matters:
    Provisioning takes minutes and is mostly waiting on network calls. The
    user needs a live view that keeps ticking, can scroll the log and can
    stop the run, while the provider blocks on ``aws ec2 wait`` or an SSH
    install script. Neither side may block the other, and the final screen
    must agree with the result returned to the caller.

Architecture::

    worker thread            forwarders (2)              main thread
    ─────────────            ──────────────              ───────────
    provider.execute(sink) ─► progress channel ─┐
                           ─► log channel ──────┼──► inbox ──► Renderer.run()
    (closes sink on exit)                       │      ▲
                                bridge thread ──┘      │
                                joins worker + forwarders,
                                then posts RunCompleted ┘

    - Channels are unbounded and closable; closing the sink means "nothing
      more is coming".
    - The bridge posts ``RunCompleted`` only after both forwarders drained
      their channel, so the renderer has seen every event of the run
      before it sees the outcome.
    - Per-channel order is preserved; progress and log are not ordered
      against each other.

Cancellation:
    The renderer returns ``CANCELLED`` without having applied
    ``RunCompleted``. The orchestrator then sets the provider's
    :class:`CancelToken`, waits ``cancel_grace_seconds`` for the worker and
    reports ``INTERRUPTED`` with no Diagnostic. The worker is a daemon
    thread, so a provider call that ignores the token never keeps the
    process alive.

Step contract:
    Every ``StepStarted`` (and skip) is compared with ``declare_steps()`` by
    index and name, and a provider that returns cleanly must have entered
    every declared step. A mismatch is logged at error level, cancels the
    run and turns the result into a ``StepContractViolation`` failure.

Related Modules:
    - :mod:`coolkit.deploy.renderer` - Live / plain renderers
    - :mod:`coolkit.deploy.provider` - Provider contract
    - :mod:`coolkit.cli.deploy` - Caller

Tags:
    orchestrator, threads, channels, cancellation, renderer
"""

from __future__ import annotations

import queue
import threading
import uuid
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field

from rich.console import Console

from coolkit.core.errors import DeploymentCancelled, OrchestrationError, StepContractError
from coolkit.core.settings import CoolKitSettings
from coolkit.deploy.channel import CancelToken, EventChannel, EventSink
from coolkit.deploy.diagnostics import DeploymentError, Diagnostic, classify
from coolkit.deploy.events import (
    LogEvent,
    ProgressChannelEvent,
    RunCompleted,
    RunOutcome,
    RunResult,
    StepFinished,
    StepInfo,
    StepStarted,
    StepStatus,
)
from coolkit.deploy.provider import DeploymentOutput, Provider
from coolkit.deploy.renderer import CancelRequested, LiveRenderer, PlainRenderer, Renderer, RendererExit
from coolkit.deploy.view import URL_SCAN_DEPTH, ProgressView, extract_access_url
from coolkit.framework.logging import clear_context, get_logger, set_context

log = get_logger(__name__)

RendererFactory = Callable[..., Renderer]

CONTRACT_VIOLATION = "StepContractViolation"


@dataclass
class _RunState:
    """Written by the worker/forwarder threads, read after they are joined."""

    output: DeploymentOutput | None = None
    error: BaseException | None = None
    violation: StepContractError | None = None
    log_tail: deque[str] = field(default_factory=lambda: deque(maxlen=URL_SCAN_DEPTH))
    entered: set[int] = field(default_factory=set)
    completion: RunCompleted | None = None


class Orchestrator:
    """Deploys one provider at a time with a concurrent terminal view.

    Parameters
    ----------
    settings
        Renderer timing, log pane size and cancel grace period.
    console
        rich console the renderer draws on.
    renderer_factory
        ``factory(view, inbox, console=..., tick_interval=..., provider_name=...)``;
        defaults to :class:`LiveRenderer` when interactive, else :class:`PlainRenderer`.
    interactive
        Overrides ``settings.interactive`` and terminal detection.
    """

    def __init__(
        self,
        settings: CoolKitSettings | None = None,
        *,
        console: Console | None = None,
        renderer_factory: RendererFactory | None = None,
        interactive: bool | None = None,
    ) -> None:
        self.settings = settings or CoolKitSettings()
        self.console = console or Console()
        if interactive is None:
            interactive = self.settings.interactive
        if interactive is None:
            interactive = self.console.is_terminal
        self.interactive = interactive
        self.renderer_factory = renderer_factory or (LiveRenderer if interactive else PlainRenderer)
        self._inbox: queue.Queue | None = None

    def request_cancel(self, reason: str = "Cancelled") -> None:
        """Stop the current run from another thread (same as pressing ``q``)."""
        if self._inbox is not None:
            self._inbox.put(CancelRequested(reason))

    def deploy(self, provider: Provider) -> RunResult:
        """Run ``provider`` to completion, failure or interruption.

        Raises:
            OrchestrationError: the provider's step list could not be read
                or the renderer crashed (internal faults, not run outcomes)
        """
        run_id = uuid.uuid4().hex[:12]
        set_context(run_id=run_id, provider=provider.name, operation="deploy")
        try:
            return self._deploy(provider, run_id)
        finally:
            clear_context()

    # ------------------------------------------------------------------

    def _deploy(self, provider: Provider, run_id: str) -> RunResult:
        try:
            declared = list(provider.declare_steps())
        except Exception as exc:
            raise OrchestrationError(f"Provider {provider.name!r} could not declare its steps", cause=exc) from exc

        result = RunResult(run_id=run_id, provider=provider.name)
        view = ProgressView(
            declared,
            log_height=self.settings.log_pane_height,
            log_history=self.settings.log_history,
        )
        progress: EventChannel[ProgressChannelEvent] = EventChannel("progress")
        logs: EventChannel[LogEvent] = EventChannel("log")
        sink = EventSink(progress, logs)
        cancel = CancelToken()
        inbox: queue.Queue = queue.Queue()
        state = _RunState()
        self._inbox = inbox

        worker = threading.Thread(
            target=self._work,
            args=(provider, sink, cancel, state, run_id),
            name=f"coolkit-{provider.name}",
            daemon=True,
        )
        forwarders = [
            threading.Thread(
                target=self._forward_progress,
                args=(progress, inbox, declared, state, cancel),
                name="coolkit-progress",
                daemon=True,
            ),
            threading.Thread(
                target=self._forward_logs,
                args=(logs, inbox, state),
                name="coolkit-log",
                daemon=True,
            ),
        ]
        bridge = threading.Thread(
            target=self._bridge,
            args=(provider, declared, worker, forwarders, inbox, state),
            name="coolkit-bridge",
            daemon=True,
        )

        log.info("run.started", steps=len(declared))
        worker.start()
        for thread in forwarders:
            thread.start()
        bridge.start()

        renderer = self.renderer_factory(
            view,
            inbox,
            console=self.console,
            tick_interval=self.settings.tick_interval,
            provider_name=provider.name,
        )
        try:
            exit_reason = renderer.run()
        except Exception as exc:
            cancel.cancel("Renderer failed")
            self._inbox = None
            raise OrchestrationError("Progress renderer failed", cause=exc) from exc

        self._inbox = None
        if exit_reason is RendererExit.CANCELLED and state.completion is not None:
            # the run ended before the cancel was handled; report what happened
            log.info("run.cancel_after_completion")
            self._catch_up(inbox, view, state.completion)
            exit_reason = RendererExit.COMPLETED

        if exit_reason is RendererExit.CANCELLED:
            cancel.cancel("Cancelled by user")
            log.warning("run.cancel_requested", grace_s=self.settings.cancel_grace_seconds)
            worker.join(timeout=self.settings.cancel_grace_seconds)
            if worker.is_alive():
                log.warning("run.worker_detached")
            result.diagnostic = None
            output = state.output or provider.recorded_output()
            if output is not None:
                result.resources = dict(output.resources)
            result.mark_complete(RunOutcome.INTERRUPTED, "Deployment interrupted by user")
        else:
            bridge.join()
            completion = state.completion
            if completion is None:
                raise OrchestrationError("Run ended without a completion event")
            outcome = RunOutcome.SUCCEEDED if completion.success else RunOutcome.FAILED
            if isinstance(state.error, DeploymentCancelled) and state.violation is None:
                outcome = RunOutcome.INTERRUPTED
            result.diagnostic = completion.diagnostic
            result.dashboard_url = completion.dashboard_url
            if state.output is not None:
                result.resources = dict(state.output.resources)
            result.mark_complete(outcome, completion.message)

        result.steps = view.summaries()
        log.info(
            "run.finished",
            outcome=result.outcome.value,
            duration_s=round(result.duration_seconds, 2),
            code=result.diagnostic.code if result.diagnostic else None,
        )
        renderer.show_result(result)
        return result

    @staticmethod
    def _catch_up(inbox: queue.Queue, view: ProgressView, completion: RunCompleted) -> None:
        """Fold events the renderer never got to into the view."""
        while True:
            try:
                view.apply(inbox.get_nowait())
            except queue.Empty:
                break
        if view.completion is None:
            view.apply(completion)

    # ── Threads ──────────────────────────────────────────────────

    @staticmethod
    def _work(provider: Provider, sink: EventSink, cancel: CancelToken, state: _RunState, run_id: str) -> None:
        set_context(run_id=run_id, provider=provider.name, operation="deploy")
        try:
            state.output = provider.execute(sink, cancel)
        except BaseException as exc:
            state.error = exc
            state.output = provider.recorded_output()
        finally:
            sink.close()
            clear_context()

    @staticmethod
    def _forward_progress(
        channel: EventChannel[ProgressChannelEvent],
        inbox: queue.Queue,
        declared: list[StepInfo],
        state: _RunState,
        cancel: CancelToken,
    ) -> None:
        for event in channel:
            entered = isinstance(event, StepStarted) or (
                isinstance(event, StepFinished) and event.status is StepStatus.SKIPPED
            )
            if entered and state.violation is None:
                expected = declared[event.index].name if 0 <= event.index < len(declared) else None
                if expected != event.name:
                    Orchestrator._violate(state, StepContractError(event.index, expected, event.name))
                    cancel.cancel("Step contract violation")
                else:
                    state.entered.add(event.index)
            inbox.put(event)

    @staticmethod
    def _check_step_count(declared: list[StepInfo], state: _RunState) -> None:
        """After a clean return every declared step must have started or been skipped."""
        if state.violation is not None or state.error is not None:
            return
        for index, info in enumerate(declared):
            if index not in state.entered:
                Orchestrator._violate(state, StepContractError(index, info.name, None))
                return

    @staticmethod
    def _violate(state: _RunState, violation: StepContractError) -> None:
        state.violation = violation
        log.error(
            "run.step_contract_violation",
            index=violation.index,
            expected=violation.expected,
            actual=violation.actual,
        )

    @staticmethod
    def _forward_logs(channel: EventChannel[LogEvent], inbox: queue.Queue, state: _RunState) -> None:
        for event in channel:
            state.log_tail.append(event.message)
            inbox.put(event)

    def _bridge(
        self,
        provider: Provider,
        declared: list[StepInfo],
        worker: threading.Thread,
        forwarders: list[threading.Thread],
        inbox: queue.Queue,
        state: _RunState,
    ) -> None:
        worker.join()
        for thread in forwarders:
            thread.join()
        self._check_step_count(declared, state)
        state.completion = self._completion(provider, state)
        inbox.put(state.completion)

    # ── Outcome ──────────────────────────────────────────────────

    @staticmethod
    def _completion(provider: Provider, state: _RunState) -> RunCompleted:
        if state.violation is not None:
            diagnostic = Diagnostic(
                provider=provider.name,
                operation="deploy",
                code=CONTRACT_VIOLATION,
                message=str(state.violation),
                suggestion=f"The {provider.name} provider executed steps other than the ones it declared",
                cause=state.violation,
            )
            return RunCompleted(success=False, message=diagnostic.message, diagnostic=diagnostic)

        error = state.error
        if error is None:
            output = state.output or DeploymentOutput()
            url = output.dashboard_url or extract_access_url(state.log_tail)
            return RunCompleted(success=True, message="Deployment completed", dashboard_url=url)

        if isinstance(error, DeploymentCancelled):
            return RunCompleted(success=False, message="Deployment interrupted")

        if isinstance(error, DeploymentError):
            diagnostic = error.diagnostic
        else:
            diagnostic = classify(provider.name, "deploy", error)
        return RunCompleted(success=False, message=diagnostic.message, diagnostic=diagnostic)
