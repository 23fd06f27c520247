"""Persistent provider configuration (``config.json``).

``ConfigStore`` is the key-value boundary the providers read from. Keys are
dotted ``section.field`` paths; every known section is validated against
its model in :mod:`coolkit.config.models`, so ``set("aws.ready_timeout",
"600")`` stores the integer 600 and ``set("aws.ready_timeout", "soon")`` is
rejected.

Writes happen before a run (``config set``) or after it (recorded
resource ids), never while the orchestrator is running.

Example:
    >>> store = ConfigStore(tmp_path / "config.json")
    >>> store.get_str("azure.location")
    'swedencentral'
    >>> store.set("azure.location", "westeurope")
    >>> store.provider_config("azure").location
    'westeurope'
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, TypeVar

from pydantic import ValidationError

from coolkit.config.models import CONFIG_MODELS, SectionModel
from coolkit.core.errors import ConfigError, InvalidConfigError, MissingConfigError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=SectionModel)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _split(key: str) -> tuple[str, str | None]:
    section, _, field = key.partition(".")
    return section, field or None


class ConfigStore:
    """JSON file of config sections with typed, dotted access."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()
        self._data: dict[str, dict[str, Any]] = {}
        self.load()

    @classmethod
    def from_settings(cls, settings) -> ConfigStore:
        return cls(settings.config_path)

    # ── Persistence ──────────────────────────────────────────────

    def load(self) -> None:
        if not self.path.exists():
            self._data = {}
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Config file {self.path} is not valid JSON: {exc}", cause=exc) from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {self.path} must contain a JSON object")
        self._data = {k: dict(v) for k, v in raw.items() if isinstance(v, dict)}

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(self._data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
        os.chmod(tmp, 0o600)
        tmp.replace(self.path)
        logger.debug("config.saved", extra={"path": str(self.path)})

    # ── Sections ─────────────────────────────────────────────────

    def section(self, name: str) -> SectionModel:
        """Validated model for ``name`` (defaults filled in)."""
        model = CONFIG_MODELS.get(name)
        if model is None:
            raise ConfigError(f"Unknown config section: {name!r}. Known: {', '.join(CONFIG_MODELS)}")
        try:
            return model.model_validate(self._data.get(name, {}))
        except ValidationError as exc:
            raise ConfigError(f"Invalid {name} configuration in {self.path}: {exc}", cause=exc) from exc

    def provider_config(self, name: str) -> SectionModel:
        return self.section(name)

    def typed(self, name: str, model: type[M]) -> M:
        section = self.section(name)
        if not isinstance(section, model):
            raise ConfigError(f"Section {name!r} is not a {model.__name__}")
        return section

    def update_section(self, name: str, values: dict[str, Any], *, save: bool = True) -> None:
        """Merge ``values`` into a section after validating the result."""
        merged = {**self._data.get(name, {}), **values}
        model = CONFIG_MODELS.get(name)
        if model is not None:
            try:
                validated = model.model_validate(merged)
            except ValidationError as exc:
                raise ConfigError(f"Invalid {name} configuration: {exc}", cause=exc) from exc
            merged = {k: getattr(validated, k) for k in merged}
        self._data[name] = {k: v for k, v in merged.items() if v is not None}
        if save:
            self.save()

    def clear(self, name: str, *keys: str, save: bool = True) -> None:
        section = self._data.get(name, {})
        for key in keys:
            section.pop(key, None)
        if save:
            self.save()

    def as_dict(self, *, with_defaults: bool = False) -> dict[str, dict[str, Any]]:
        if not with_defaults:
            return json.loads(json.dumps(self._data))
        return {name: self.section(name).model_dump(mode="json") for name in CONFIG_MODELS}

    # ── Dotted keys ──────────────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        """Stored value, else the model default. ``None`` and ``""`` count as unset."""
        section, field = _split(key)
        if field is None:
            raise InvalidConfigError(key, None, f"Config keys look like 'section.field', got {key!r}")
        value = None
        if field in self._data.get(section, {}):
            value = self._data[section][field]
        else:
            model = CONFIG_MODELS.get(section)
            if model is not None and field in model.model_fields:
                value = getattr(self.section(section), field)
        return default if value is None or value == "" else value

    def require(self, key: str) -> Any:
        value = self.get(key)
        if value is None:
            raise MissingConfigError(key, f"Missing required configuration: {key} (set it with `cool-kit config set {key} <value>`)")
        return value

    def get_str(self, key: str, default: str = "") -> str:
        value = self.get(key, default)
        return default if value is None else str(value)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise InvalidConfigError(key, value) from exc

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise InvalidConfigError(key, value)

    def set(self, key: str, value: Any, *, save: bool = True) -> None:
        section, field = _split(key)
        model = CONFIG_MODELS.get(section)
        if field is None or model is None:
            raise InvalidConfigError(key, value, f"Unknown config key: {key!r}")
        if field not in model.model_fields:
            known = ", ".join(sorted(model.model_fields))
            raise InvalidConfigError(key, value, f"Unknown config key: {key!r}. {section} accepts: {known}")
        try:
            self.update_section(section, {field: value}, save=save)
        except ConfigError as exc:
            raise InvalidConfigError(key, value) from exc
