"""Process-wide settings for cool-kit.

``CoolKitSettings`` holds the knobs that are not provider specific: where
the config file lives, how logging is set up, renderer timing and the
teardown retry policy. Values come from ``COOLKIT_*`` environment variables
and an optional ``.env`` file.

The settings object is created once by the CLI entry point and passed down
explicitly; nothing in :mod:`coolkit.deploy` reaches for a global.

Examples:
    >>> settings = CoolKitSettings(tick_interval=0.5)
    >>> settings.config_path.name
    'config.json'
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_config_dir() -> Path:
    return Path.home() / ".config" / "cool-kit"


class CoolKitSettings(BaseSettings):
    """Environment-driven settings.

    Fields
    ──────
    config_dir              : Directory holding ``config.json``
    config_file             : File name of the persisted provider config
    log_level / log_format  : structlog configuration
    log_file                : Write logs here instead of stderr
    tick_interval           : Renderer refresh period in seconds
    log_pane_height         : Visible log lines in the live view
    log_history             : Log lines retained for scrolling
    cancel_grace_seconds    : How long to wait for the worker after a cancel
    teardown_*              : Retry policy for resource deletion
    interactive             : Force live/plain rendering (auto when unset)
    """

    model_config = SettingsConfigDict(
        env_prefix="COOLKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Files ────────────────────────────────────────────────────
    config_dir: Path = Field(default_factory=_default_config_dir)
    config_file: str = "config.json"

    # ── Logging ──────────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    log_format: Literal["console", "json"] = "console"
    log_file: Path | None = None

    # ── Renderer ─────────────────────────────────────────────────
    tick_interval: float = Field(default=1.0, gt=0)
    log_pane_height: int = Field(default=10, ge=1)
    log_history: int = Field(default=500, ge=1)
    interactive: bool | None = None

    # ── Orchestration ────────────────────────────────────────────
    cancel_grace_seconds: float = Field(default=10.0, ge=0)

    # ── Teardown ─────────────────────────────────────────────────
    teardown_max_attempts: int = Field(default=5, ge=1)
    teardown_backoff_seconds: float = Field(default=2.0, ge=0)
    teardown_settle_seconds: float = Field(default=5.0, ge=0)

    @property
    def config_path(self) -> Path:
        return self.config_dir / self.config_file


_settings: CoolKitSettings | None = None


def get_settings(*, reload: bool = False) -> CoolKitSettings:
    """Return settings for the CLI process, loading them on first use."""
    global _settings
    if _settings is None or reload:
        _settings = CoolKitSettings()
    return _settings
