"""Persistence port for Taskboard CLI.

The task repository keeps the canonical collection in memory and mirrors it
to a persistence provider after every mutation. This module defines the
provider contract, following the hexagonal architecture (Ports & Adapters)
pattern: the repository only knows this interface, and concrete storage
backends live in :mod:`taskboard_cli.adapters`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

PlainRecord = dict[str, Any]


class PersistenceProvider(ABC):
    """Abstract base class for storing the serialized task collection.

    Providers store and return plain records (camelCase keys, ISO-8601
    timestamps). They never see typed task objects.
    """

    @abstractmethod
    async def load_all(self) -> list[PlainRecord]:
        """Load every stored record.

        Returns:
            List of plain records; empty when nothing has been stored yet

        Raises:
            NotImplementedError: Must be implemented by concrete adapter
            StorageUnavailable: If the store cannot be read
        """
        raise NotImplementedError(
            "PersistenceProvider.load_all() must be implemented by adapter"
        )

    @abstractmethod
    async def save_all(self, records: list[PlainRecord]) -> None:
        """Replace the stored collection with ``records``.

        Args:
            records: The full collection as plain records

        Raises:
            NotImplementedError: Must be implemented by concrete adapter
            StorageUnavailable: If the store cannot be written
            QuotaExceeded: If the store is out of space
        """
        raise NotImplementedError(
            "PersistenceProvider.save_all() must be implemented by adapter"
        )

    async def close(self) -> None:
        """Release any resources held by the provider."""
