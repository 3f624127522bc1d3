"""Application context for Taskboard CLI.

This module is the composition root: it reads the profile configuration,
picks the persistence provider for the configured backend and wires the
registry, validator, factory, repository and services together.

Usage Pattern:
    from taskboard_cli.services.context_manager import open_app_context

    async with open_app_context(profile) as ctx:
        result = await ctx.task_service.complete_task(task_id)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from taskboard_cli.adapters import (
    InMemoryPersistenceProvider,
    JsonFilePersistenceProvider,
    SqlitePersistenceProvider,
)
from taskboard_cli.config import Config, ConfigManager, get_config_manager
from taskboard_cli.models.factory import TaskFactory
from taskboard_cli.models.variants import VariantRegistry
from taskboard_cli.repositories.repository import PersistenceProvider
from taskboard_cli.repositories.task_repository import TaskRepository
from taskboard_cli.services.data_service import DataService
from taskboard_cli.services.task_service import TaskService
from taskboard_cli.services.validation_service import ValidationService
from taskboard_cli.utils.logger import get_logger

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a command needs, built once per invocation."""

    config: Config
    registry: VariantRegistry
    validator: ValidationService
    factory: TaskFactory
    provider: PersistenceProvider
    repository: TaskRepository
    task_service: TaskService
    data_service: DataService


def create_provider(config_manager: ConfigManager) -> PersistenceProvider:
    """Instantiate the persistence provider for the configured backend."""
    backend = config_manager.config.storage.backend
    if backend == "memory":
        return InMemoryPersistenceProvider()
    if backend == "json":
        return JsonFilePersistenceProvider(config_manager.storage_path())
    return SqlitePersistenceProvider(config_manager.storage_path())


def build_app_context(config: Config, provider: PersistenceProvider) -> AppContext:
    """Wire the object graph around ``provider`` (not yet initialized)."""
    registry = VariantRegistry()
    validator = ValidationService(registry)
    factory = TaskFactory(registry, validator)
    repository = TaskRepository(factory, provider, registry)
    return AppContext(
        config=config,
        registry=registry,
        validator=validator,
        factory=factory,
        provider=provider,
        repository=repository,
        task_service=TaskService(repository, validator, max_tasks=config.rules.max_tasks),
        data_service=DataService(repository),
    )


@asynccontextmanager
async def open_app_context(
    profile: str = "default", provider: PersistenceProvider | None = None
) -> AsyncIterator[AppContext]:
    """Build and initialize the context for ``profile``, closing the provider on exit.

    Args:
        profile: Configuration profile name
        provider: Override the configured backend (tests, scripting)

    Raises:
        StorageUnavailable: If the stored collection cannot be loaded
    """
    config_manager = get_config_manager(profile)
    config = config_manager.config
    get_logger(config.logging.level.upper())

    ctx = build_app_context(config, provider or create_provider(config_manager))
    try:
        count = await ctx.repository.initialize()
        logger.debug("profile %s: %d tasks from %s", profile, count, type(ctx.provider).__name__)
        yield ctx
    finally:
        await ctx.provider.close()
