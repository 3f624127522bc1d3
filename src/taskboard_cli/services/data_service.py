"""Import and export of the task collection as a JSON array of plain records."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from taskboard_cli.models.exceptions import StorageUnavailable, ValidationFailed
from taskboard_cli.models.results import ImportResult
from taskboard_cli.repositories.task_repository import TaskRepository


class DataService:
    """Serialize the repository to JSON and load JSON back into it."""

    def __init__(self, task_repository: TaskRepository):
        self.repository = task_repository

    def export_records(self) -> list[dict[str, Any]]:
        return self.repository.export_records()

    def export_json(self, indent: int | None = 2) -> str:
        """Export every task as a JSON array."""
        return json.dumps(self.export_records(), indent=indent, ensure_ascii=False)

    async def export_to_file(self, path: str | Path) -> int:
        """Write the export to ``path``.

        Returns:
            Number of exported tasks
        """
        records = self.export_records()
        text = json.dumps(records, indent=2, ensure_ascii=False)
        try:
            await asyncio.to_thread(Path(path).write_text, text, encoding="utf-8")
        except OSError as e:
            raise StorageUnavailable(f"Cannot write export file {path}: {e}") from e
        return len(records)

    async def import_records(self, records: list[Any]) -> ImportResult:
        """Import plain records; every record receives a fresh id."""
        return await self.repository.import_records(records)

    async def import_json(self, text: str) -> ImportResult:
        """Import a JSON array of plain records.

        Raises:
            ValidationFailed: If the text is not a JSON array
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationFailed([f"Import data is not valid JSON: {e.msg}"]) from e
        if not isinstance(data, list):
            raise ValidationFailed(["Import data must be a JSON array of tasks"])
        return await self.import_records(data)

    async def import_from_file(self, path: str | Path) -> ImportResult:
        """Read ``path`` and import its contents."""
        try:
            text = await asyncio.to_thread(Path(path).read_text, encoding="utf-8")
        except OSError as e:
            raise StorageUnavailable(f"Cannot read import file {path}: {e}") from e
        return await self.import_json(text)
