"""Tests for coolkit.config.project.ProjectConfig (cdp.json)."""

import json

import pytest

from coolkit.config.project import PROJECT_FILE, ProjectConfig
from coolkit.core.errors import ConfigError


def test_load_missing_returns_none(tmp_path):
    assert ProjectConfig.load(tmp_path) is None


def test_save_and_load(tmp_path):
    ProjectConfig(name="blog", project_uuid="p1", app_uuid="a1", github_repo="me/blog").save(tmp_path)

    written = json.loads((tmp_path / PROJECT_FILE).read_text())
    assert written == {"name": "blog", "project_uuid": "p1", "app_uuid": "a1", "github_repo": "me/blog"}

    project = ProjectConfig.load(tmp_path)
    assert project.app_uuid == "a1"
    assert project.environment_uuid == ""


def test_unknown_fields_are_kept(tmp_path):
    (tmp_path / PROJECT_FILE).write_text(json.dumps({"name": "x", "domain": "x.example.com"}))
    project = ProjectConfig.load(tmp_path)
    assert project.model_extra == {"domain": "x.example.com"}


def test_broken_file_raises(tmp_path):
    (tmp_path / PROJECT_FILE).write_text("{")
    with pytest.raises(ConfigError):
        ProjectConfig.load(tmp_path)


def test_delete(tmp_path):
    ProjectConfig(name="x").save(tmp_path)
    assert ProjectConfig.delete(tmp_path) is True
    assert ProjectConfig.delete(tmp_path) is False
