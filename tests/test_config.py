"""Tests for the configuration manager."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from taskboard_cli.config import Config, ConfigManager, get_config_manager


def test_defaults(tmp_dirs):
    """A fresh profile uses the default configuration and creates its directories."""
    config_dir, data_dir = tmp_dirs
    manager = ConfigManager()
    assert manager.config == Config()
    assert config_dir.is_dir()
    assert data_dir.is_dir()


def test_set_persists(tmp_dirs):
    """Values set on one manager are loaded by the next."""
    ConfigManager("work").set("output.sort", "priority-desc")
    assert ConfigManager("work").get("output.sort") == "priority-desc"
    assert ConfigManager("default").get("output.sort") == "created-desc"


def test_set_rejects_unknown_and_invalid(tmp_dirs):
    """Unknown keys raise KeyError and bad values raise ValidationError."""
    manager = ConfigManager()
    with pytest.raises(KeyError):
        manager.set("output.colour", True)
    with pytest.raises(KeyError):
        manager.set("output.color.deep", True)
    with pytest.raises(ValidationError):
        manager.set("rules.max_tasks", 0)


def test_corrupt_file_falls_back_to_defaults(tmp_dirs):
    """An unreadable profile file yields defaults instead of failing."""
    config_dir, _ = tmp_dirs
    config_dir.mkdir(parents=True)
    (config_dir / "default.json").write_text("{not json")
    assert ConfigManager().config == Config()


def test_reset(tmp_dirs):
    """reset restores one key or the whole configuration."""
    manager = ConfigManager()
    manager.set("rules.max_tasks", 10)
    manager.set("logging.level", "DEBUG")

    manager.reset("rules.max_tasks")
    assert manager.get("rules.max_tasks") == 1000
    assert manager.get("logging.level") == "DEBUG"

    manager.reset()
    assert manager.config == Config()


def test_storage_path(tmp_dirs, tmp_path):
    """The storage file follows the backend and profile unless a path is set."""
    _, data_dir = tmp_dirs
    manager = ConfigManager("work")
    assert manager.storage_path() == data_dir / "work.db"

    manager.set("storage.backend", "json")
    assert manager.storage_path() == data_dir / "work.json"

    manager.set("storage.path", str(tmp_path / "custom.json"))
    assert manager.storage_path() == tmp_path / "custom.json"


def test_list_profiles(tmp_dirs):
    """Profiles are the saved config files."""
    ConfigManager("alpha").save_config()
    ConfigManager("beta").save_config()
    assert sorted(ConfigManager().list_profiles()) == ["alpha", "beta"]


def test_get_config_manager_is_cached(tmp_dirs):
    """One manager instance per profile."""
    assert get_config_manager("x") is get_config_manager("x")
    assert get_config_manager("x") is not get_config_manager("y")
