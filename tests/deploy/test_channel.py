"""Tests for coolkit.deploy.channel - EventChannel, EventSink, CancelToken."""

import queue
import threading

import pytest

from coolkit.core.errors import DeploymentCancelled, OrchestrationError
from coolkit.deploy.channel import CancelToken, ChannelClosed, EventChannel
from coolkit.deploy.events import LogEvent, LogLevel, StepProgress


class TestEventChannel:
    def test_preserves_order_and_drains_after_close(self):
        channel = EventChannel("log")
        for i in range(5):
            channel.put(i)
        channel.close()
        assert list(channel) == [0, 1, 2, 3, 4]

    def test_get_after_drain_raises_closed(self):
        channel = EventChannel("progress")
        channel.close()
        with pytest.raises(ChannelClosed):
            channel.get(timeout=0.1)
        # the close marker stays for later consumers
        with pytest.raises(ChannelClosed):
            channel.get(timeout=0.1)

    def test_put_after_close_raises(self):
        channel = EventChannel("log")
        channel.close()
        channel.close()
        assert channel.closed
        with pytest.raises(ChannelClosed):
            channel.put("late")

    def test_get_times_out_when_empty(self):
        with pytest.raises(queue.Empty):
            EventChannel("log").get(timeout=0.01)

    def test_producer_never_blocks_and_nothing_is_dropped(self):
        channel = EventChannel("log")

        def produce():
            for i in range(1000):
                channel.put(i)
            channel.close()

        thread = threading.Thread(target=produce)
        thread.start()
        received = list(channel)
        thread.join()
        assert received == list(range(1000))


class TestEventSink:
    def test_progress_requires_bound_step(self, wiring):
        with pytest.raises(OrchestrationError):
            wiring.sink.progress(0.5, "halfway")

    def test_progress_and_logs_carry_active_step(self, wiring):
        wiring.sink.bind_step(2, "Install Docker")
        wiring.sink.progress(0.5, "apt-get install")
        wiring.sink.warning("slow mirror")
        progress, logs = wiring.drain()
        assert progress[0] == StepProgress(index=2, fraction=0.5, message="apt-get install", timestamp=progress[0].timestamp)
        assert logs[0].level is LogLevel.WARNING
        assert logs[0].step == "Install Docker"

    def test_log_helpers_levels(self, wiring):
        sink = wiring.sink
        sink.info("i")
        sink.success("s")
        sink.error("e")
        sink.debug("d")
        _, logs = wiring.drain()
        assert [entry.level for entry in logs] == [LogLevel.INFO, LogLevel.SUCCESS, LogLevel.ERROR, LogLevel.DEBUG]
        assert all(isinstance(entry, LogEvent) for entry in logs)

    def test_progress_listener_sees_events_first(self, wiring):
        seen = []
        wiring.sink.progress_listener = seen.append
        wiring.sink.bind_step(0, "A")
        wiring.sink.progress(1.0)
        progress, _ = wiring.drain()
        assert seen == progress


class TestCancelToken:
    def test_cancel_is_one_way_and_keeps_first_reason(self):
        token = CancelToken()
        assert not token.is_set()
        token.cancel("user pressed q")
        token.cancel("second")
        assert token.is_set()
        assert token.reason == "user pressed q"

    def test_raise_if_cancelled(self):
        token = CancelToken()
        token.raise_if_cancelled()
        token.cancel()
        with pytest.raises(DeploymentCancelled):
            token.raise_if_cancelled()

    def test_wait_returns_when_cancelled_from_other_thread(self):
        token = CancelToken()
        threading.Timer(0.05, token.cancel).start()
        assert token.wait(5.0) is True
