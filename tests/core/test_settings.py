"""Tests for coolkit.core.settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from coolkit.core.settings import CoolKitSettings, get_settings


class TestCoolKitSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("COOLKIT_CONFIG_DIR")
        s = CoolKitSettings(_env_file=None)
        assert s.config_dir == Path.home() / ".config" / "cool-kit"
        assert s.tick_interval == 1.0
        assert s.teardown_max_attempts == 5
        assert s.teardown_backoff_seconds == 2.0
        assert s.teardown_settle_seconds == 5.0
        assert s.interactive is None

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("COOLKIT_CONFIG_DIR", str(tmp_path))
        monkeypatch.setenv("COOLKIT_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("COOLKIT_TEARDOWN_MAX_ATTEMPTS", "3")
        s = CoolKitSettings(_env_file=None)
        assert s.config_path == tmp_path / "config.json"
        assert s.log_level == "DEBUG"
        assert s.teardown_max_attempts == 3

    def test_rejects_invalid_values(self):
        with pytest.raises(ValidationError):
            CoolKitSettings(tick_interval=0)
        with pytest.raises(ValidationError):
            CoolKitSettings(log_level="LOUD")

    def test_get_settings_caches_until_reload(self, monkeypatch, tmp_path):
        first = get_settings(reload=True)
        assert get_settings() is first
        monkeypatch.setenv("COOLKIT_CONFIG_DIR", str(tmp_path / "other"))
        assert get_settings(reload=True).config_dir == tmp_path / "other"
