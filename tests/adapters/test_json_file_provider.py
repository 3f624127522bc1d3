"""Tests for the JSON file persistence provider."""

from __future__ import annotations

import json

import pytest

from taskboard_cli.adapters.json_file import JsonFilePersistenceProvider
from taskboard_cli.models.exceptions import StorageUnavailable


@pytest.mark.asyncio
async def test_missing_file_loads_empty(tmp_path):
    """A store that was never written is empty."""
    provider = JsonFilePersistenceProvider(tmp_path / "tasks.json")
    assert await provider.load_all() == []


@pytest.mark.asyncio
async def test_save_creates_parent_and_replaces_atomically(tmp_path):
    """Saving writes the whole array and leaves no temporary file."""
    path = tmp_path / "nested" / "tasks.json"
    provider = JsonFilePersistenceProvider(path)

    await provider.save_all([{"id": "a", "title": "Über"}])
    await provider.save_all([{"id": "b"}])

    assert json.loads(path.read_text(encoding="utf-8")) == [{"id": "b"}]
    assert not path.with_suffix(".json.tmp").exists()
    assert await provider.load_all() == [{"id": "b"}]


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["{broken", '{"id": "a"}'])
async def test_corrupt_file(tmp_path, content):
    """Invalid JSON or a non-array document makes the store unavailable."""
    path = tmp_path / "tasks.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(StorageUnavailable):
        await JsonFilePersistenceProvider(path).load_all()


def test_default_path(tmp_path, monkeypatch):
    """Without a path the file lives in the user data directory."""
    monkeypatch.setattr(
        "taskboard_cli.adapters.json_file.user_data_dir", lambda app: str(tmp_path)
    )
    assert JsonFilePersistenceProvider().path == tmp_path / "tasks.json"
