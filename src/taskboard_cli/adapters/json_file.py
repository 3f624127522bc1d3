"""JSON file persistence provider.

Stores the collection as a JSON array in a single file. Writes go to a
temporary sibling first and are then renamed over the target, so a crash
mid-write leaves the previous file intact.
"""

from __future__ import annotations

import asyncio
import errno
import json
import os
from pathlib import Path

from platformdirs import user_data_dir

from taskboard_cli.models.exceptions import QuotaExceeded, StorageUnavailable
from taskboard_cli.repositories.repository import PersistenceProvider, PlainRecord


def default_json_path() -> Path:
    return Path(user_data_dir("taskboard-cli")) / "tasks.json"


class JsonFilePersistenceProvider(PersistenceProvider):
    """Persist plain records to a JSON file.

    Args:
        path: File location; defaults to ``tasks.json`` in the user data dir
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else default_json_path()

    async def load_all(self) -> list[PlainRecord]:
        return await asyncio.to_thread(self._read)

    async def save_all(self, records: list[PlainRecord]) -> None:
        await asyncio.to_thread(self._write, records)

    def _read(self) -> list[PlainRecord]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StorageUnavailable(f"Task file {self.path} is not valid JSON: {e}") from e
        except OSError as e:
            raise StorageUnavailable(f"Cannot read task file {self.path}: {e}") from e
        if not isinstance(data, list):
            raise StorageUnavailable(f"Task file {self.path} does not contain a list")
        return data

    def _write(self, records: list[PlainRecord]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if e.errno in (errno.ENOSPC, errno.EDQUOT):
                raise QuotaExceeded(f"No space left to write {self.path}") from e
            raise StorageUnavailable(f"Cannot write task file {self.path}: {e}") from e
