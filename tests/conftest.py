"""Shared test fixtures and configuration.

Provides infrastructure to isolate tests from real filesystem state: the
logger and the config manager are redirected into ``tmp_path``, and the
domain fixtures wire the registry, factory, repository and services around
an in-memory persistence provider with a fixed clock.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from taskboard_cli.adapters.memory import InMemoryPersistenceProvider
from taskboard_cli.models.factory import TaskFactory
from taskboard_cli.models.variants import VariantRegistry
from taskboard_cli.repositories.task_repository import TaskRepository
from taskboard_cli.services.data_service import DataService
from taskboard_cli.services.task_service import TaskService
from taskboard_cli.services.validation_service import ValidationService

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def isolated_logger(tmp_path):
    """Send the application log into tmp_path and reset the singleton."""
    import taskboard_cli.utils.logger as logger_mod

    logger_mod._logger = None
    logging.getLogger("taskboard_cli").handlers.clear()
    with patch("taskboard_cli.utils.logger.user_log_dir", return_value=str(tmp_path / "logs")):
        yield
    logger_mod._logger = None
    logging.getLogger("taskboard_cli").handlers.clear()


@pytest.fixture()
def tmp_dirs(tmp_path):
    """Point config and data directories at tmp_path and clear cached managers."""
    from taskboard_cli.config import get_config_manager

    config_dir = tmp_path / "config"
    data_dir = tmp_path / "data"
    get_config_manager.cache_clear()
    with (
        patch("taskboard_cli.config.user_config_dir", return_value=str(config_dir)),
        patch("taskboard_cli.config.user_data_dir", return_value=str(data_dir)),
    ):
        yield config_dir, data_dir
    get_config_manager.cache_clear()


# ---------------------------------------------------------------------------
# Domain wiring
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def now(clock):
    return clock.now


@pytest.fixture()
def registry():
    return VariantRegistry()


@pytest.fixture()
def validator(registry):
    return ValidationService(registry)


@pytest.fixture()
def factory(registry, validator, clock):
    return TaskFactory(registry, validator, clock=clock)


@pytest.fixture()
def provider():
    return InMemoryPersistenceProvider()


@pytest.fixture()
def repository(factory, provider, registry):
    return TaskRepository(factory, provider, registry)


@pytest.fixture()
def service(repository, validator):
    return TaskService(repository, validator)


@pytest.fixture()
def data_service(repository):
    return DataService(repository)
