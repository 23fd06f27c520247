"""Retry strategies and polling helpers.

Two kinds of waiting happen in cool-kit:

- **Retrying** an operation that failed, e.g. deleting a cloud project that
  still has children being reclaimed (``RetryContext`` + a strategy).
- **Polling** for eventually consistent state, e.g. "wait until the VM is
  running" (``poll_until``), always bounded by a timeout and responsive to
  cancellation.

Both take an injectable ``sleep`` so callers and tests control time.

Example:
    >>> strategy = LinearBackoff(max_attempts=5, base_delay=2.0, increment=2.0)
    >>> [strategy.next_delay(i) for i in range(4)]
    [2.0, 4.0, 6.0, 8.0]
"""

from __future__ import annotations

import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from coolkit.core.errors import DeploymentCancelled, ProviderError

if TYPE_CHECKING:
    from coolkit.deploy.channel import CancelToken

T = TypeVar("T")


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Delay before the next attempt.

        Args:
            attempt: Zero-based retry number (0 = wait before the 2nd attempt)
        """
        ...

    @abstractmethod
    def should_retry(self, attempt: int, error: BaseException | None = None) -> bool:
        """Whether another attempt is allowed after ``attempt`` attempts."""
        ...


@dataclass
class LinearBackoff(RetryStrategy):
    """Linear backoff.

    Delay = min(base_delay + increment * attempt, max_delay)
    """

    max_attempts: int = 5
    base_delay: float = 2.0
    increment: float = 2.0
    max_delay: float = 60.0

    def next_delay(self, attempt: int) -> float:
        return min(self.base_delay + (self.increment * attempt), self.max_delay)

    def should_retry(self, attempt: int, error: BaseException | None = None) -> bool:
        return attempt < self.max_attempts


@dataclass
class ExponentialBackoff(RetryStrategy):
    """Exponential backoff with optional jitter.

    Delay = min(base_delay * multiplier ** attempt, max_delay) +/- jitter
    """

    max_attempts: int = 4
    base_delay: float = 1.0
    max_delay: float = 10.0
    multiplier: float = 2.0
    jitter: bool = False
    jitter_range: float = 0.25

    def next_delay(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.multiplier ** attempt), self.max_delay)
        if self.jitter:
            jitter_amount = delay * self.jitter_range
            delay = max(0.0, delay + random.uniform(-jitter_amount, jitter_amount))
        return delay

    def should_retry(self, attempt: int, error: BaseException | None = None) -> bool:
        return attempt < self.max_attempts


@dataclass
class RetryContext:
    """Tracks retry state and runs a callable under a strategy.

    ``on_retry(attempt, error, delay)`` is called before each wait;
    ``retry_if`` decides which exceptions are retried (others propagate at
    once), e.g. :func:`~coolkit.core.errors.is_retryable`.

    Example:
        >>> ctx = RetryContext(LinearBackoff(max_attempts=5), sleep=lambda s: None)
        >>> ctx.run(lambda: "deleted")
        'deleted'
    """

    strategy: RetryStrategy
    on_retry: Callable[[int, BaseException, float], None] | None = None
    sleep: Callable[[float], None] = time.sleep
    retry_if: Callable[[BaseException], bool] | None = None
    attempt: int = field(default=0, init=False)
    last_error: BaseException | None = field(default=None, init=False)
    started_at: datetime = field(default_factory=utcnow, init=False)
    errors: list[tuple[int, BaseException, datetime]] = field(default_factory=list, init=False)
    delays: list[float] = field(default_factory=list, init=False)

    @property
    def attempts(self) -> int:
        """Number of attempts made."""
        return self.attempt

    @property
    def elapsed_seconds(self) -> float:
        return (utcnow() - self.started_at).total_seconds()

    def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Call ``func`` until it succeeds or the strategy gives up.

        Raises:
            The last exception once attempts are exhausted
        """
        while True:
            self.attempt += 1
            try:
                return func(*args, **kwargs)
            except Exception as e:
                self.last_error = e
                self.errors.append((self.attempt, e, utcnow()))

                if self.retry_if is not None and not self.retry_if(e):
                    raise
                if not self.strategy.should_retry(self.attempt, e):
                    raise

                delay = self.strategy.next_delay(self.attempt - 1)
                self.delays.append(delay)
                if self.on_retry:
                    self.on_retry(self.attempt, e, delay)
                self.sleep(delay)


def poll_until(
    check: Callable[[], T | None],
    *,
    timeout: float,
    interval: float = 5.0,
    description: str = "operation",
    cancel: CancelToken | None = None,
    sleep: Callable[[float], None] | None = None,
    clock: Callable[[], float] = time.monotonic,
    on_wait: Callable[[float], None] | None = None,
) -> T:
    """Call ``check`` until it returns a truthy value or ``timeout`` elapses.

    ``on_wait(elapsed_fraction)`` is called between polls so long waits can
    report progress. When a cancel token is given, waiting happens on the
    token so a cancel interrupts the sleep.

    Raises:
        ProviderError: ``description`` did not complete within ``timeout``
        DeploymentCancelled: the cancel token was set while waiting
    """
    deadline = clock() + timeout
    start = clock()
    while True:
        if cancel is not None and cancel.is_set():
            raise DeploymentCancelled(f"Cancelled while waiting for {description}")
        result = check()
        if result:
            return result
        now = clock()
        if now >= deadline:
            raise ProviderError(f"{description} did not complete within {timeout:.0f}s")
        if on_wait is not None and timeout > 0:
            on_wait(min(1.0, (now - start) / timeout))
        wait = min(interval, max(0.0, deadline - now))
        if sleep is not None:
            sleep(wait)
        elif cancel is not None:
            if cancel.wait(wait):
                raise DeploymentCancelled(f"Cancelled while waiting for {description}")
        else:
            time.sleep(wait)
