"""
Durations for steps and teardown runs.

``timed_block`` only measures; ``log_step`` also opens a span in the log
context and writes ``<event>.start`` (DEBUG) and ``<event>.end`` (INFO) or
``<event>.error`` lines carrying the duration and any metrics added on the
way.
"""

import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from coolkit.framework.logging.context import get_context, get_logger, scoped_context


@dataclass
class TimingResult:
    """Clock readings plus metrics for one timed block."""

    step: str
    span_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    parent_span_id: str | None = None
    started_at: float = field(default_factory=time.perf_counter)
    ended_at: float | None = None
    metrics: dict[str, Any] = field(default_factory=dict)
    status: str = "ok"

    def stop(self) -> None:
        if self.ended_at is None:
            self.ended_at = time.perf_counter()

    @property
    def duration_seconds(self) -> float:
        end = time.perf_counter() if self.ended_at is None else self.ended_at
        return end - self.started_at

    def add_metric(self, key: str, value: Any) -> "TimingResult":
        self.metrics[key] = value
        return self

    def to_log_dict(self) -> dict[str, Any]:
        fields: dict[str, Any] = {"duration_ms": round(self.duration_seconds * 1000, 2), "span_id": self.span_id}
        if self.parent_span_id:
            fields["parent_span_id"] = self.parent_span_id
        fields.update(self.metrics)
        return fields


@contextmanager
def timed_block(step: str = "unnamed") -> Iterator[TimingResult]:
    """Measure a block without logging; the executor reports the duration itself."""
    timer = TimingResult(step=step, parent_span_id=get_context().span_id)
    try:
        yield timer
    finally:
        timer.stop()


@contextmanager
def log_step(event: str, **metrics: Any) -> Iterator[TimingResult]:
    """
    Time a block as a span and log its outcome.

    Example::

        with log_step("teardown.run", provider="gcp", actions=3) as timer:
            ...
            timer.add_metric("deleted", 3)
    """
    log = get_logger("coolkit.timing")
    timer = TimingResult(step=event, parent_span_id=get_context().span_id, metrics=dict(metrics))

    with scoped_context(span_id=timer.span_id, parent_span_id=timer.parent_span_id):
        log.debug(f"{event}.start", **metrics)
        try:
            yield timer
        except Exception as exc:
            timer.stop()
            timer.status = "error"
            log.error(f"{event}.error", error=str(exc), error_type=type(exc).__name__, **timer.to_log_dict())
            raise
        timer.stop()
        log.info(f"{event}.end", **timer.to_log_dict())
