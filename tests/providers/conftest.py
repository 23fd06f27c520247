"""Fixtures for backend tests: a mocked CommandRunner and a throwaway sink."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock

import pytest

from coolkit.deploy.channel import CancelToken, EventChannel, EventSink
from coolkit.providers.shell import CommandRunner


def _completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess([], returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def runner() -> MagicMock:
    mock = MagicMock(spec=CommandRunner)
    mock.run.return_value = _completed()
    mock.output.return_value = "1.0.0"
    mock.run_json.return_value = {}
    return mock


@pytest.fixture
def sink() -> EventSink:
    sink = EventSink(EventChannel("progress"), EventChannel("log"))
    sink.bind_step(0, "Test step")
    return sink


@pytest.fixture
def cancel() -> CancelToken:
    return CancelToken()
