"""Per-project deployment file (``cdp.json``) read by ``cool-kit reset``."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError

from coolkit.core.errors import ConfigError

PROJECT_FILE = "cdp.json"


class ProjectConfig(BaseModel):
    """Links a local directory to the platform project/app and a GitHub repo."""

    model_config = ConfigDict(extra="allow")

    name: str = ""
    project_uuid: str = ""
    app_uuid: str = ""
    environment_uuid: str = ""
    server_uuid: str = ""
    github_repo: str = ""
    branch: str = ""

    @classmethod
    def path_in(cls, directory: Path | None = None) -> Path:
        return (directory or Path.cwd()) / PROJECT_FILE

    @classmethod
    def load(cls, directory: Path | None = None) -> ProjectConfig | None:
        """Read ``cdp.json``; ``None`` when the directory has none."""
        path = cls.path_in(directory)
        if not path.exists():
            return None
        try:
            return cls.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ConfigError(f"Failed to parse {path}: {exc}", cause=exc) from exc

    def save(self, directory: Path | None = None) -> Path:
        path = self.path_in(directory)
        path.write_text(self.model_dump_json(indent=2, exclude_defaults=True) + "\n", encoding="utf-8")
        return path

    @classmethod
    def delete(cls, directory: Path | None = None) -> bool:
        """Remove ``cdp.json``. Returns False if it was not there."""
        path = cls.path_in(directory)
        if not path.exists():
            return False
        path.unlink()
        return True
