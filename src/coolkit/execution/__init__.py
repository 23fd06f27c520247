"""Execution helpers: retry strategies and bounded polling."""

from coolkit.execution.retry import (
    ExponentialBackoff,
    LinearBackoff,
    RetryContext,
    RetryStrategy,
    poll_until,
)

__all__ = [
    "ExponentialBackoff",
    "LinearBackoff",
    "RetryContext",
    "RetryStrategy",
    "poll_until",
]
