"""Tests for coolkit.execution.retry."""

import pytest

from coolkit.core.errors import ConfigError, DeploymentCancelled, NetworkError, ProviderError, is_retryable
from coolkit.deploy.channel import CancelToken
from coolkit.execution.retry import (
    ExponentialBackoff,
    LinearBackoff,
    RetryContext,
    poll_until,
)


class TestStrategies:
    def test_linear_delays(self):
        strategy = LinearBackoff(max_attempts=5, base_delay=2.0, increment=2.0)
        assert [strategy.next_delay(i) for i in range(4)] == [2.0, 4.0, 6.0, 8.0]
        assert strategy.should_retry(4) is True
        assert strategy.should_retry(5) is False

    def test_linear_is_capped(self):
        strategy = LinearBackoff(base_delay=10, increment=30, max_delay=45)
        assert strategy.next_delay(3) == 45

    def test_exponential_delays(self):
        strategy = ExponentialBackoff(base_delay=1.0, multiplier=2.0, max_delay=5.0)
        assert [strategy.next_delay(i) for i in range(4)] == [1.0, 2.0, 4.0, 5.0]

    def test_exponential_jitter_stays_in_range(self):
        strategy = ExponentialBackoff(base_delay=4.0, jitter=True, jitter_range=0.25)
        for _ in range(20):
            assert 3.0 <= strategy.next_delay(0) <= 5.0


class TestRetryContext:
    def test_returns_first_success(self, sleeps):
        ctx = RetryContext(LinearBackoff(), sleep=sleeps)
        assert ctx.run(lambda: "ok") == "ok"
        assert ctx.attempts == 1
        assert sleeps.calls == []

    def test_retries_until_success(self, sleeps):
        outcomes = iter([NetworkError("reset"), NetworkError("reset"), "done"])

        def flaky():
            value = next(outcomes)
            if isinstance(value, Exception):
                raise value
            return value

        retries = []
        ctx = RetryContext(
            LinearBackoff(max_attempts=5, base_delay=2, increment=2),
            sleep=sleeps,
            on_retry=lambda attempt, error, delay: retries.append((attempt, delay)),
        )
        assert ctx.run(flaky) == "done"
        assert ctx.attempts == 3
        assert sleeps.calls == [2, 4]
        assert retries == [(1, 2), (2, 4)]

    def test_gives_up_after_max_attempts(self, sleeps):
        calls = []

        def always_fails():
            calls.append(1)
            raise NetworkError("down")

        ctx = RetryContext(LinearBackoff(max_attempts=3, base_delay=1, increment=1), sleep=sleeps)
        with pytest.raises(NetworkError):
            ctx.run(always_fails)
        assert len(calls) == 3
        assert ctx.delays == [1, 2]
        assert len(ctx.errors) == 3

    def test_non_retryable_errors_propagate_immediately(self, sleeps):
        ctx = RetryContext(LinearBackoff(), sleep=sleeps, retry_if=is_retryable)

        def bad_config():
            raise ConfigError("bad")

        with pytest.raises(ConfigError):
            ctx.run(bad_config)
        assert ctx.attempts == 1
        assert sleeps.calls == []


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


class TestPollUntil:
    def test_returns_truthy_value(self):
        clock = FakeClock()
        answers = iter([None, "", "10.0.0.5"])
        result = poll_until(lambda: next(answers), timeout=60, interval=5, sleep=clock.sleep, clock=clock)
        assert result == "10.0.0.5"
        assert clock.now == 10

    def test_times_out(self):
        clock = FakeClock()
        with pytest.raises(ProviderError, match="VM ready did not complete within 30s"):
            poll_until(lambda: False, timeout=30, interval=10, description="VM ready", sleep=clock.sleep, clock=clock)
        assert clock.now == 30

    def test_reports_progress(self):
        clock = FakeClock()
        fractions = []
        answers = iter([False, False, True])
        poll_until(
            lambda: next(answers),
            timeout=20,
            interval=5,
            sleep=clock.sleep,
            clock=clock,
            on_wait=fractions.append,
        )
        assert fractions == [0.0, 0.25]

    def test_cancel_before_check(self):
        cancel = CancelToken()
        cancel.cancel()
        with pytest.raises(DeploymentCancelled):
            poll_until(lambda: True, timeout=10, cancel=cancel)

    def test_cancel_interrupts_wait(self):
        cancel = CancelToken()

        def check():
            cancel.cancel()
            return False

        with pytest.raises(DeploymentCancelled):
            poll_until(check, timeout=60, interval=30, cancel=cancel)
