"""In-memory persistence provider, used for tests and ``--storage memory``."""

from __future__ import annotations

import copy
import json

from taskboard_cli.models.exceptions import QuotaExceeded, StorageUnavailable
from taskboard_cli.repositories.repository import PersistenceProvider, PlainRecord


class InMemoryPersistenceProvider(PersistenceProvider):
    """Keeps a deep copy of the last saved collection.

    Args:
        records: Initial stored records
        quota_bytes: Optional size limit on the JSON-encoded collection
    """

    def __init__(
        self,
        records: list[PlainRecord] | None = None,
        quota_bytes: int | None = None,
    ):
        self._records: list[PlainRecord] = copy.deepcopy(records or [])
        self.quota_bytes = quota_bytes
        self.available = True
        self.save_count = 0

    @property
    def records(self) -> list[PlainRecord]:
        """A copy of what is currently stored."""
        return copy.deepcopy(self._records)

    async def load_all(self) -> list[PlainRecord]:
        if not self.available:
            raise StorageUnavailable("In-memory store is unavailable")
        return copy.deepcopy(self._records)

    async def save_all(self, records: list[PlainRecord]) -> None:
        if not self.available:
            raise StorageUnavailable("In-memory store is unavailable")
        if self.quota_bytes is not None:
            size = len(json.dumps(records, default=str).encode("utf-8"))
            if size > self.quota_bytes:
                raise QuotaExceeded(
                    f"Collection needs {size} bytes, quota is {self.quota_bytes}",
                    {"size": size, "quota": self.quota_bytes},
                )
        self._records = copy.deepcopy(records)
        self.save_count += 1
