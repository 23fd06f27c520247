"""Producer/consumer plumbing between the worker thread and the UI.

- ``EventChannel``: an unbounded FIFO with explicit close. Producers never
  block and never drop; once the producer closes, consumers drain what is
  left and then see :class:`ChannelClosed`.
- ``EventSink``: what a provider's steps write to. It stamps progress and
  log events with the active step so step code only says "50%, pulling
  images".
- ``CancelToken``: one-way cancellation flag handed to ``Provider.execute``.

Ordering: a single channel delivers in put order. Nothing orders events
across two channels.
"""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable, Iterator
from typing import Generic, TypeVar

from coolkit.core.errors import DeploymentCancelled, OrchestrationError
from coolkit.deploy.events import LogEvent, LogLevel, ProgressChannelEvent, StepProgress

T = TypeVar("T")

_CLOSED = object()


class ChannelClosed(OrchestrationError):
    """Raised by ``get`` once a closed channel is drained, and by ``put`` after close."""


class EventChannel(Generic[T]):
    """Unbounded, ordered, closable queue.

    Example::

        channel = EventChannel("log")
        channel.put(event)
        channel.close()
        for event in channel:      # drains, then stops
            render(event)
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._queue: queue.Queue[object] = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, item: T) -> None:
        with self._lock:
            if self._closed:
                raise ChannelClosed(f"Channel {self.name!r} is closed")
            self._queue.put(item)

    def close(self) -> None:
        """Signal "no more events". Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_CLOSED)

    def get(self, timeout: float | None = None) -> T:
        """Next item in order.

        Raises:
            queue.Empty: nothing arrived within ``timeout``
            ChannelClosed: the channel is closed and fully drained
        """
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            # leave the marker for any other consumer
            self._queue.put(_CLOSED)
            raise ChannelClosed(f"Channel {self.name!r} is closed")
        return item  # type: ignore[return-value]

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                yield self.get()
            except ChannelClosed:
                return


class CancelToken:
    """Cooperative cancellation flag.

    Steps poll :meth:`is_set` or wait on :meth:`wait` inside long loops;
    :func:`coolkit.execution.retry.poll_until` does this for them.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "Cancelled by user") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Sleep up to ``timeout``; True if cancelled meanwhile."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise DeploymentCancelled(self.reason or "Cancelled")


class EventSink:
    """Emission interface handed to running steps.

    The executor binds the active step; ``progress()`` and the log helpers
    attach it automatically. ``emit_progress`` / ``emit_log`` take
    ready-made events.
    """

    def __init__(
        self,
        progress: EventChannel[ProgressChannelEvent],
        log: EventChannel[LogEvent],
    ) -> None:
        self._progress = progress
        self._log = log
        self._step_index: int | None = None
        self._step_name: str | None = None
        # worker-side observer, set by the executor while it runs
        self.progress_listener: Callable[[ProgressChannelEvent], None] | None = None

    # ── Raw emission ─────────────────────────────────────────────

    def emit_progress(self, event: ProgressChannelEvent) -> None:
        if self.progress_listener is not None:
            self.progress_listener(event)
        self._progress.put(event)

    def emit_log(self, event: LogEvent) -> None:
        self._log.put(event)

    # ── Step binding (executor only) ─────────────────────────────

    def bind_step(self, index: int | None, name: str | None) -> None:
        self._step_index = index
        self._step_name = name

    @property
    def step_index(self) -> int | None:
        return self._step_index

    @property
    def step_name(self) -> str | None:
        return self._step_name

    # ── Step-facing helpers ──────────────────────────────────────

    def progress(self, fraction: float, message: str | None = None) -> None:
        """Report sub-progress of the active step (0.0 - 1.0)."""
        if self._step_index is None:
            raise OrchestrationError("progress() called outside of a running step")
        self.emit_progress(StepProgress(index=self._step_index, fraction=fraction, message=message))

    def log(self, message: str, level: LogLevel = LogLevel.INFO) -> None:
        self.emit_log(LogEvent(level=level, message=message, step=self._step_name))

    def info(self, message: str) -> None:
        self.log(message, LogLevel.INFO)

    def success(self, message: str) -> None:
        self.log(message, LogLevel.SUCCESS)

    def warning(self, message: str) -> None:
        self.log(message, LogLevel.WARNING)

    def error(self, message: str) -> None:
        self.log(message, LogLevel.ERROR)

    def debug(self, message: str) -> None:
        self.log(message, LogLevel.DEBUG)

    def close(self) -> None:
        """Close both channels. Called by the orchestrator when execute returns."""
        self._progress.close()
        self._log.close()
