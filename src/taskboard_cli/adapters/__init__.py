"""Adapters module - persistence provider implementations.

This package contains concrete implementations (adapters) of the
PersistenceProvider port:
- memory: In-process storage (tests, throwaway sessions)
- json_file: A single JSON array file
- sqlite: Local SQLite vault (default)
"""

from .json_file import JsonFilePersistenceProvider
from .memory import InMemoryPersistenceProvider
from .sqlite import SqlitePersistenceProvider

__all__ = [
    "InMemoryPersistenceProvider",
    "JsonFilePersistenceProvider",
    "SqlitePersistenceProvider",
]
