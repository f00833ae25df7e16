"""Shared test fixtures and configuration.

Provides infrastructure to isolate tests from real filesystem state.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from todokeep.adapters import FileStorageAdapter, MemoryStorageAdapter, StoreTaskRepository
from todokeep.services.task_service import TaskService

T0 = datetime(2026, 3, 4, 9, 0, tzinfo=UTC)  # a Wednesday


class FakeClock:
    """Controllable clock; call it to read, advance() to move forward."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


# ---------------------------------------------------------------------------
# Logging / config isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def isolated_logger(tmp_path):
    """Keep the application log file inside tmp_path and reset the singleton."""
    import todokeep.utils.logger as logger_mod

    logger_mod._logger = None
    app_logger = logging.getLogger("todokeep")
    with patch("todokeep.utils.logger.user_log_dir", return_value=str(tmp_path / "logs")):
        yield
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()
    app_logger.propagate = True
    logger_mod._logger = None


@pytest.fixture()
def tmp_config(tmp_path, monkeypatch):
    """Provide a real ConfigService backed by a temporary directory.

    Patches platform dirs so config/data files land in *tmp_path* only.
    Also clears the lru_cache so each test gets a fresh service instance.
    """
    from todokeep.services.config_service import get_config_service

    monkeypatch.delenv("TODOKEEP_FILE", raising=False)
    config_dir = str(tmp_path / "config")
    data_dir = str(tmp_path / "data")
    get_config_service.cache_clear()
    with patch("todokeep.services.config_service.user_config_dir", return_value=config_dir):
        with patch("todokeep.services.config_service.user_data_dir", return_value=data_dir):
            yield get_config_service()
    get_config_service.cache_clear()


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def memory_adapter():
    return MemoryStorageAdapter()


@pytest.fixture()
def repository(memory_adapter):
    repo = StoreTaskRepository(memory_adapter, debounce_ms=0)
    repo.load()
    yield repo
    repo.close()


@pytest.fixture()
def service(repository, clock):
    svc = TaskService(repository, clock=clock)
    yield svc
    svc.integrity.shutdown()


@pytest.fixture()
def events(service):
    """List that collects every event the service emits."""
    received = []
    service.subscribe(received.append)
    return received


@pytest.fixture()
def store_path(tmp_path):
    return tmp_path / "todos.json"


@pytest.fixture()
def file_adapter(store_path):
    return FileStorageAdapter(store_path, retry_delay_ms=0)
