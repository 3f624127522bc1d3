"""Tests for the SQLite persistence provider."""

from __future__ import annotations

import sqlite3

import pytest

from taskboard_cli.adapters.sqlite import SqlitePersistenceProvider
from taskboard_cli.models.exceptions import StorageUnavailable


@pytest.mark.asyncio
async def test_round_trip_preserves_order(tmp_path):
    """Records load back in the order they were saved."""
    provider = SqlitePersistenceProvider(tmp_path / "vault.db")
    records = [{"id": "b", "title": "Second"}, {"id": "a", "title": "First"}]

    await provider.save_all(records)
    assert await provider.load_all() == records

    await provider.save_all(records[1:])
    assert await provider.load_all() == records[1:]
    await provider.close()


@pytest.mark.asyncio
async def test_data_survives_reopen(tmp_path):
    """A new provider on the same file sees the saved records."""
    path = tmp_path / "vault.db"
    first = SqlitePersistenceProvider(path)
    await first.save_all([{"id": "a"}])
    await first.close()

    second = SqlitePersistenceProvider(path)
    assert await second.load_all() == [{"id": "a"}]
    assert (path.stat().st_mode & 0o777) == 0o600
    await second.close()


@pytest.mark.asyncio
async def test_corrupt_row_is_surfaced(tmp_path):
    """Rows that are not JSON come back as a marker record."""
    path = tmp_path / "vault.db"
    provider = SqlitePersistenceProvider(path)
    await provider.save_all([{"id": "a"}])
    await provider.close()

    with sqlite3.connect(path) as connection:
        connection.execute("UPDATE task_records SET data = 'not json' WHERE id = 'a'")
    connection.close()

    reopened = SqlitePersistenceProvider(path)
    assert await reopened.load_all() == [{"id": "a", "corrupt": True}]
    await reopened.close()


@pytest.mark.asyncio
async def test_unopenable_path(tmp_path):
    """A path that cannot hold a database raises StorageUnavailable."""
    blocker = tmp_path / "file"
    blocker.write_text("x")
    provider = SqlitePersistenceProvider(blocker / "vault.db")
    with pytest.raises(StorageUnavailable):
        await provider.load_all()
