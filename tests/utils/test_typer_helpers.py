"""Tests for typer helpers."""

from __future__ import annotations

import pytest
import typer

from taskboard_cli.utils.typer_helpers import parse_key_values


def test_parse_key_values():
    """Pairs split on the first '=' and keys are stripped."""
    assert parse_key_values(["a=1", " b =x=y", "c="]) == {"a": "1", "b": "x=y", "c": ""}
    assert parse_key_values(None) == {}


@pytest.mark.parametrize("pair", ["novalue", "=1"])
def test_parse_key_values_rejects_malformed(pair):
    """Items without a key or '=' are bad parameters."""
    with pytest.raises(typer.BadParameter):
        parse_key_values([pair])
