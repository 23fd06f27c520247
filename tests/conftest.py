"""
Shared pytest fixtures for cool-kit tests.

This module provides:
- Environment isolation (no COOLKIT_* variables leak in from the shell)
- Fast settings (short renderer tick, no teardown backoff)
- A config store rooted in a temporary directory
- A recording ``sleep`` replacement for retry/poll tests
"""

from __future__ import annotations

import os

import pytest

from coolkit.config.store import ConfigStore
from coolkit.core.settings import CoolKitSettings
from coolkit.framework.logging import clear_context


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    """Strip COOLKIT_* variables and point the config dir at a temp path."""
    for key in list(os.environ):
        if key.startswith("COOLKIT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("COOLKIT_CONFIG_DIR", str(tmp_path / "config"))
    yield
    clear_context()


@pytest.fixture
def settings(tmp_path) -> CoolKitSettings:
    return CoolKitSettings(
        config_dir=tmp_path / "config",
        tick_interval=0.01,
        cancel_grace_seconds=2.0,
        teardown_backoff_seconds=0.0,
        teardown_settle_seconds=0.0,
        interactive=False,
    )


@pytest.fixture
def store(settings) -> ConfigStore:
    return ConfigStore.from_settings(settings)


class SleepRecorder:
    """Stands in for ``time.sleep``; remembers every requested delay."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()
