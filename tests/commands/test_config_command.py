"""Tests for configuration commands."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from taskboard_cli.commands.config import parse_config_value
from taskboard_cli.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated(tmp_dirs):
    return tmp_dirs


# ---------------------------------------------------------------------------
# parse_config_value
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected",
    [("true", True), ("False", False), ("null", None), ("42", 42), ("json", "json")],
)
def test_parse_config_value(raw, expected):
    """Strings that look like bools, null or integers are converted."""
    assert parse_config_value(raw) == expected


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def test_show_defaults():
    """show prints the whole configuration."""
    result = runner.invoke(app, ["config", "show", "-o", "json"])
    assert result.exit_code == 0
    config = json.loads(result.stdout)
    assert config["storage"]["backend"] == "sqlite"
    assert config["rules"]["max_tasks"] == 1000


def test_set_and_get(tmp_dirs):
    """set persists the value to the profile file and get reads it back."""
    config_dir, _ = tmp_dirs
    result = runner.invoke(app, ["config", "set", "output.page_size", "50"])
    assert result.exit_code == 0
    assert "output.page_size" in result.output

    assert runner.invoke(app, ["config", "get", "output.page_size"]).stdout.strip() == "50"
    saved = json.loads((config_dir / "default.json").read_text())
    assert saved["output"]["page_size"] == 50


def test_set_unknown_key():
    """Unknown keys are rejected."""
    result = runner.invoke(app, ["config", "set", "storage.colour", "blue"])
    assert result.exit_code == 2
    assert "Unknown configuration key" in result.output


def test_set_invalid_value():
    """Values failing the config schema are rejected."""
    result = runner.invoke(app, ["config", "set", "storage.backend", "postgres"])
    assert result.exit_code == 2
    assert "Invalid value" in result.output


def test_get_missing_key():
    """Missing keys exit with the invalid-arguments code."""
    result = runner.invoke(app, ["config", "get", "storage.colour"])
    assert result.exit_code == 2


def test_reset_key():
    """reset restores a single key to its default."""
    runner.invoke(app, ["config", "set", "rules.max_tasks", "5"])
    result = runner.invoke(app, ["config", "reset", "rules.max_tasks", "--yes"])
    assert result.exit_code == 0
    assert runner.invoke(app, ["config", "get", "rules.max_tasks"]).stdout.strip() == "1000"


def test_reset_declined():
    """Declining the confirmation leaves the configuration alone."""
    runner.invoke(app, ["config", "set", "rules.max_tasks", "5"])
    result = runner.invoke(app, ["config", "reset"], input="n\n")
    assert "Cancelled" in result.output
    assert runner.invoke(app, ["config", "get", "rules.max_tasks"]).stdout.strip() == "5"


def test_profiles():
    """Profiles are listed with the active one marked."""
    runner.invoke(app, ["config", "set", "output.color", "false"])
    runner.invoke(app, ["config", "set", "output.color", "false", "--profile", "work"])
    result = runner.invoke(app, ["config", "profiles", "--profile", "work"])
    assert result.exit_code == 0
    lines = result.stdout.split("\n")
    assert "default" in lines
    assert "work *" in lines
