"""Shared test fixtures."""

from datetime import timedelta
from pathlib import Path

import pytest

from opencron.scheduler.engine import SchedulerEngine
from opencron.scheduler.executor import TaskExecutor
from opencron.scheduler.store import TaskStore


@pytest.fixture
def logs_dir(tmp_path: Path) -> Path:
    return tmp_path / "logs"


@pytest.fixture
async def store(tmp_path: Path) -> TaskStore:
    """A TaskStore backed by a temp database."""
    return TaskStore(db_path=tmp_path / "test.db")


@pytest.fixture
def executor(store: TaskStore, logs_dir: Path) -> TaskExecutor:
    return TaskExecutor(store=store, logs_dir=logs_dir)


@pytest.fixture
def engine(store: TaskStore, executor: TaskExecutor, logs_dir: Path) -> SchedulerEngine:
    return SchedulerEngine(
        store=store,
        executor=executor,
        logs_dir=logs_dir,
        log_retention=timedelta(hours=48),
        timezone="UTC",
    )
