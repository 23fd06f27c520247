"""Fixtures for the deployment core: scripted providers and channel plumbing."""

from __future__ import annotations

import io
from collections.abc import Callable

import pytest
from rich.console import Console

from coolkit.deploy.channel import CancelToken, EventChannel, EventSink
from coolkit.deploy.executor import StepDefinition
from coolkit.deploy.provider import StepProvider


class ScriptedProvider(StepProvider):
    """StepProvider whose steps are plain ``(name, action)`` pairs."""

    name = "scripted"
    display_name = "Scripted"

    def __init__(self, script: list[tuple[str, Callable[[EventSink, CancelToken], None]]]) -> None:
        super().__init__()
        self.script = script

    def steps(self) -> list[StepDefinition]:
        return [StepDefinition(name, f"{name} description", action) for name, action in self.script]


def noop(sink: EventSink, cancel: CancelToken) -> None:
    pass


class Wiring:
    """A sink plus the two channels behind it, with helpers to drain them."""

    def __init__(self) -> None:
        self.progress: EventChannel = EventChannel("progress")
        self.log: EventChannel = EventChannel("log")
        self.sink = EventSink(self.progress, self.log)

    def drain(self) -> tuple[list, list]:
        self.sink.close()
        return list(self.progress), list(self.log)


@pytest.fixture
def wiring() -> Wiring:
    return Wiring()


@pytest.fixture
def scripted():
    return ScriptedProvider


@pytest.fixture
def quiet_console() -> Console:
    return Console(file=io.StringIO(), width=100, force_terminal=False, color_system=None)
