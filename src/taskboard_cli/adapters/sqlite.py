"""SQLite persistence provider for the local task vault.

Each plain record is stored as a JSON document keyed by task id, with its
position in the collection so load order matches save order. ``save_all``
replaces the whole table inside one transaction.
"""

from __future__ import annotations

import asyncio
import json
import os
import sqlite3
from pathlib import Path

from platformdirs import user_data_dir

from taskboard_cli.models.exceptions import QuotaExceeded, StorageUnavailable
from taskboard_cli.repositories.repository import PersistenceProvider, PlainRecord

SCHEMA = """
CREATE TABLE IF NOT EXISTS task_records (
    id TEXT PRIMARY KEY,
    position INTEGER NOT NULL,
    data TEXT NOT NULL
)
"""


def default_db_path() -> Path:
    return Path(user_data_dir("taskboard-cli")) / "vault.db"


class SqlitePersistenceProvider(PersistenceProvider):
    """Persist plain records to a SQLite database.

    Args:
        db_path: Database file; defaults to ``vault.db`` in the user data dir
    """

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = Path(db_path) if db_path else default_db_path()
        self._connection: sqlite3.Connection | None = None

    def _connect(self) -> sqlite3.Connection:
        if self._connection is not None:
            return self._connection
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            is_new_database = not self.db_path.exists()
            connection = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,  # used from worker threads
                timeout=30.0,
            )
            connection.execute("PRAGMA journal_mode = WAL")
            connection.execute(SCHEMA)
            connection.commit()
            if is_new_database:
                os.chmod(self.db_path, 0o600)
        except (OSError, sqlite3.Error) as e:
            raise StorageUnavailable(f"Cannot open task vault {self.db_path}: {e}") from e
        self._connection = connection
        return connection

    async def load_all(self) -> list[PlainRecord]:
        return await asyncio.to_thread(self._read)

    async def save_all(self, records: list[PlainRecord]) -> None:
        await asyncio.to_thread(self._write, records)

    async def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def _read(self) -> list[PlainRecord]:
        connection = self._connect()
        try:
            rows = connection.execute(
                "SELECT id, data FROM task_records ORDER BY position"
            ).fetchall()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot read task vault: {e}") from e

        records: list[PlainRecord] = []
        for task_id, data in rows:
            try:
                records.append(json.loads(data))
            except json.JSONDecodeError:
                # Keep the row visible to the repository so it is reported as skipped
                records.append({"id": task_id, "corrupt": True})
        return records

    def _write(self, records: list[PlainRecord]) -> None:
        connection = self._connect()
        rows = [
            (str(record.get("id")), position, json.dumps(record, ensure_ascii=False))
            for position, record in enumerate(records)
        ]
        try:
            with connection:
                connection.execute("DELETE FROM task_records")
                connection.executemany(
                    "INSERT INTO task_records (id, position, data) VALUES (?, ?, ?)",
                    rows,
                )
        except sqlite3.OperationalError as e:
            if "full" in str(e).lower():
                raise QuotaExceeded(f"Task vault is full: {e}") from e
            raise StorageUnavailable(f"Cannot write task vault: {e}") from e
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot write task vault: {e}") from e
