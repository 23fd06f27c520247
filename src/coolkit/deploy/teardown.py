"""Best-effort, retrying deletion of deployed resources.

Used by ``cool-kit destroy`` (cloud servers, firewalls, resource groups) and
``cool-kit reset`` (platform application, its parent project, the GitHub
repository, local files).

Why This Matters:
    Remote deletion is eventually consistent. Deleting a project right
    after its application, or a security group right after the instance
    using it, fails until the backend has reclaimed the children. Giving
    up on the first error would leave half the resources behind, so every
    resource gets a bounded number of attempts with linearly growing waits,
    and one stubborn resource never stops the others from being attempted.

Key Concepts:
    ResourceHandle: ``kind`` tag plus provider-specific id.
    TeardownAction: a handle and the callable that deletes it, in the
        order the caller lists them (dependents first, parents last).
    TeardownCoordinator: runs actions in order; up to ``max_attempts`` tries
        each, waiting ``attempt × backoff`` seconds between tries; failures
        become warnings in the TeardownReport.
    ConfirmationGate: the yes/no questions asked before any of that starts.
        A second question is asked when any action is cascading. The gate
        takes a ``confirm`` callable, so the coordinator never touches the
        terminal and can be tested without one.

Related Modules:
    - :mod:`coolkit.execution.retry` - LinearBackoff / RetryContext
    - :mod:`coolkit.cli.deploy` (destroy), :mod:`coolkit.cli.reset` - Callers

Tags:
    teardown, destroy, retry, backoff, confirmation, best-effort
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from coolkit.core.errors import ApiError, categorize_error
from coolkit.deploy.diagnostics import Diagnostic, MatcherRegistry, default_registry
from coolkit.execution.retry import LinearBackoff, RetryContext
from coolkit.framework.logging import get_logger, log_step, scoped_context

log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResourceHandle:
    """Opaque reference to something that can be deleted."""

    kind: str
    resource_id: str

    def __str__(self) -> str:
        return f"{self.kind} {self.resource_id}"


@dataclass(frozen=True)
class TeardownAction:
    """One deletion, as supplied by the caller.

    Attributes:
        handle: What is being deleted
        delete: Callable that deletes it, raising on failure
        cascading: Deleting this also deletes things it contains
        settle_seconds: Wait before the first attempt (children still going away)
        max_attempts: Per-action override of the coordinator's bound
        config_keys: Recorded config keys that name this resource
    """

    handle: ResourceHandle
    delete: Callable[[], object]
    cascading: bool = False
    settle_seconds: float = 0.0
    max_attempts: int | None = None
    config_keys: tuple[str, ...] = ()


class TeardownStatus(str, Enum):
    DELETED = "deleted"
    ALREADY_GONE = "already_gone"
    FAILED = "failed"


@dataclass
class TeardownOutcome:
    handle: ResourceHandle
    status: TeardownStatus
    attempts: int = 0
    delays: list[float] = field(default_factory=list)
    diagnostic: Diagnostic | None = None

    @property
    def ok(self) -> bool:
        return self.status is not TeardownStatus.FAILED


@dataclass
class TeardownReport:
    """Aggregated result; failures are warnings, never exceptions."""

    outcomes: list[TeardownOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(o.ok for o in self.outcomes)

    @property
    def deleted(self) -> list[TeardownOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[TeardownOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def outcome_for(self, kind: str) -> TeardownOutcome | None:
        for outcome in self.outcomes:
            if outcome.handle.kind == kind:
                return outcome
        return None

    @property
    def warnings(self) -> list[str]:
        lines = []
        for outcome in self.failed:
            reason = outcome.diagnostic.message if outcome.diagnostic else "unknown error"
            lines.append(
                f"{outcome.handle} was not deleted after {outcome.attempts} attempt(s): {reason}"
                " - manual cleanup required"
            )
        return lines


class NoticeKind(str, Enum):
    SETTLING = "settling"
    DELETING = "deleting"
    RETRYING = "retrying"
    DELETED = "deleted"
    ALREADY_GONE = "already_gone"
    FAILED = "failed"


@dataclass(frozen=True)
class TeardownNotice:
    """Progress callback payload so callers can narrate the teardown."""

    kind: NoticeKind
    handle: ResourceHandle
    attempt: int = 0
    max_attempts: int = 0
    delay: float = 0.0
    message: str = ""


def is_already_gone(error: BaseException) -> bool:
    """A delete that fails because the resource no longer exists."""
    return isinstance(error, ApiError) and error.is_not_found


class _TeardownBackoff(LinearBackoff):
    """Linear backoff that does not retry deletes of missing resources."""

    def should_retry(self, attempt: int, error: BaseException | None = None) -> bool:
        if error is not None and is_already_gone(error):
            return False
        return super().should_retry(attempt, error)


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------


class TeardownCoordinator:
    """Runs teardown actions in order, retrying each, never aborting early.

    Parameters
    ----------
    max_attempts
        Attempts per resource (default 5).
    backoff_seconds
        Linear backoff unit: the wait after attempt ``n`` is ``n * backoff_seconds``.
    sleep
        Injectable sleep, for tests.
    notify
        Optional callback receiving :class:`TeardownNotice` values.
    """

    def __init__(
        self,
        *,
        provider: str = "",
        max_attempts: int = 5,
        backoff_seconds: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        notify: Callable[[TeardownNotice], None] | None = None,
        registry: MatcherRegistry | None = None,
    ) -> None:
        self.provider = provider
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep
        self.notify = notify
        self.registry = registry or default_registry

    @classmethod
    def from_settings(cls, settings, **kwargs) -> TeardownCoordinator:
        """Build with the retry policy from :class:`CoolKitSettings`."""
        kwargs.setdefault("max_attempts", settings.teardown_max_attempts)
        kwargs.setdefault("backoff_seconds", settings.teardown_backoff_seconds)
        return cls(**kwargs)

    def strategy_for(self, action: TeardownAction) -> LinearBackoff:
        return _TeardownBackoff(
            max_attempts=action.max_attempts or self.max_attempts,
            base_delay=self.backoff_seconds,
            increment=self.backoff_seconds,
            max_delay=float("inf"),
        )

    def run(self, actions: Sequence[TeardownAction]) -> TeardownReport:
        report = TeardownReport()
        with log_step("teardown.run", provider=self.provider, actions=len(actions)) as timer:
            for action in actions:
                report.outcomes.append(self._delete(action))
            timer.add_metric("deleted", len(report.deleted))
            timer.add_metric("failed", len(report.failed))
        return report

    # ------------------------------------------------------------------

    def _delete(self, action: TeardownAction) -> TeardownOutcome:
        handle = action.handle
        strategy = self.strategy_for(action)

        with scoped_context(resource=str(handle)):
            if action.settle_seconds > 0:
                self._emit(NoticeKind.SETTLING, handle, delay=action.settle_seconds)
                self.sleep(action.settle_seconds)

            self._emit(NoticeKind.DELETING, handle, attempt=1, max_attempts=strategy.max_attempts)

            def on_retry(attempt: int, error: BaseException, delay: float) -> None:
                log.warning("teardown.retry", attempt=attempt, delay_s=delay, error=str(error))
                self._emit(
                    NoticeKind.RETRYING,
                    handle,
                    attempt=attempt,
                    max_attempts=strategy.max_attempts,
                    delay=delay,
                    message=str(error),
                )

            ctx = RetryContext(strategy, on_retry=on_retry, sleep=self.sleep)

            def attempt_delete() -> object:
                with scoped_context(attempt=ctx.attempts):
                    return action.delete()

            try:
                ctx.run(attempt_delete)
            except Exception as exc:
                if is_already_gone(exc):
                    self._emit(NoticeKind.ALREADY_GONE, handle, attempt=ctx.attempts)
                    log.info("teardown.already_gone")
                    return TeardownOutcome(handle, TeardownStatus.ALREADY_GONE, ctx.attempts, list(ctx.delays))
                diagnostic = self.registry.classify(self.provider, "teardown", exc)
                self._emit(NoticeKind.FAILED, handle, attempt=ctx.attempts, message=diagnostic.message)
                log.warning(
                    "teardown.failed",
                    attempts=ctx.attempts,
                    code=diagnostic.code or None,
                    category=categorize_error(exc).value,
                    error=str(exc),
                )
                return TeardownOutcome(
                    handle, TeardownStatus.FAILED, ctx.attempts, list(ctx.delays), diagnostic=diagnostic
                )

            self._emit(NoticeKind.DELETED, handle, attempt=ctx.attempts)
            log.info("teardown.deleted", attempts=ctx.attempts)
            return TeardownOutcome(handle, TeardownStatus.DELETED, ctx.attempts, list(ctx.delays))

    def _emit(self, kind: NoticeKind, handle: ResourceHandle, **kwargs) -> None:
        if self.notify is not None:
            self.notify(TeardownNotice(kind=kind, handle=handle, **kwargs))


# ---------------------------------------------------------------------------
# Confirmation
# ---------------------------------------------------------------------------


class ConfirmationGate:
    """Yes/no questions asked before destructive work begins.

    ``confirm`` is any ``str -> bool`` callable (``typer.confirm`` in the
    CLI, a lambda in tests). ``force`` skips both questions.
    """

    def __init__(
        self,
        confirm: Callable[[str], bool],
        *,
        force: bool = False,
        prompt: str = "Are you sure? This cannot be undone!",
        cascade_prompt: str = "Really delete everything?",
    ) -> None:
        self.confirm = confirm
        self.force = force
        self.prompt = prompt
        self.cascade_prompt = cascade_prompt

    def approve(self, actions: Sequence[TeardownAction]) -> bool:
        if self.force or not actions:
            return True
        if not self.confirm(self.prompt):
            return False
        cascading = [a for a in actions if a.cascading]
        if cascading:
            names = ", ".join(str(a.handle) for a in cascading)
            return bool(self.confirm(f"{self.cascade_prompt} ({names} and everything it contains)"))
        return True
