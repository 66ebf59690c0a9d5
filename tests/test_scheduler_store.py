"""Tests for TaskStore — aiosqlite CRUD."""

import sqlite3
from datetime import UTC, datetime
from pathlib import Path

import pytest

from opencron.scheduler.errors import TaskNotFoundError
from opencron.scheduler.models import Task
from opencron.scheduler.store import TaskStore


def _make_task(name: str = "Test Task", **kwargs) -> Task:
    defaults = {"schedule": "* * * * *", "command": "echo hello"}
    defaults.update(kwargs)
    return Task(name=name, **defaults)


# -- create_task / get_task_by_id ----------------------------------------------


async def test_create_assigns_id_and_created_at(store: TaskStore) -> None:
    task = await store.create_task(_make_task())
    assert task.id > 0
    assert task.created_at is not None
    assert task.last_run is None


async def test_ids_are_unique(store: TaskStore) -> None:
    first = await store.create_task(_make_task("a"))
    second = await store.create_task(_make_task("b"))
    assert first.id != second.id


async def test_create_and_get(store: TaskStore) -> None:
    created = await store.create_task(_make_task(one_shot=True, enabled=False))

    fetched = await store.get_task_by_id(created.id)
    assert fetched.name == "Test Task"
    assert fetched.command == "echo hello"
    assert fetched.one_shot is True
    assert fetched.enabled is False
    assert fetched.created_at == created.created_at


async def test_get_task_not_found(store: TaskStore) -> None:
    with pytest.raises(TaskNotFoundError) as excinfo:
        await store.get_task_by_id(999)
    assert excinfo.value.task_id == 999


# -- get_tasks -----------------------------------------------------------------


async def test_get_tasks_includes_disabled(store: TaskStore) -> None:
    await store.create_task(_make_task("t1"))
    await store.create_task(_make_task("t2", enabled=False))

    names = {t.name for t in await store.get_tasks()}
    assert names == {"t1", "t2"}


async def test_get_tasks_empty(store: TaskStore) -> None:
    assert await store.get_tasks() == []


# -- update_task ---------------------------------------------------------------


async def test_update_task(store: TaskStore) -> None:
    task = await store.create_task(_make_task())
    task.command = "echo after"
    task.enabled = False
    await store.update_task(task)

    fetched = await store.get_task_by_id(task.id)
    assert fetched.command == "echo after"
    assert fetched.enabled is False


async def test_update_does_not_touch_created_at(store: TaskStore) -> None:
    task = await store.create_task(_make_task())
    original = task.created_at
    task.created_at = datetime(2000, 1, 1, tzinfo=UTC)
    await store.update_task(task)

    fetched = await store.get_task_by_id(task.id)
    assert fetched.created_at == original


async def test_update_missing_task(store: TaskStore) -> None:
    with pytest.raises(TaskNotFoundError):
        await store.update_task(Task(id=42, name="x", schedule="* * * * *", command="true"))


# -- update_last_run -----------------------------------------------------------


async def test_update_last_run(store: TaskStore) -> None:
    task = await store.create_task(_make_task())
    ts = datetime(2026, 2, 12, 8, 0, tzinfo=UTC)
    await store.update_last_run(task.id, ts)

    fetched = await store.get_task_by_id(task.id)
    assert fetched.last_run == ts


# -- delete_task ---------------------------------------------------------------


async def test_delete_task(store: TaskStore) -> None:
    task = await store.create_task(_make_task())
    assert await store.delete_task(task.id) is True

    with pytest.raises(TaskNotFoundError):
        await store.get_task_by_id(task.id)


async def test_delete_nonexistent(store: TaskStore) -> None:
    assert await store.delete_task(999) is False


# -- Migration -----------------------------------------------------------------


async def test_migrates_table_without_one_shot(tmp_path: Path) -> None:
    db_path = tmp_path / "old.db"
    conn = sqlite3.connect(db_path)
    conn.execute(
        "CREATE TABLE tasks (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT, schedule TEXT,"
        " command TEXT, enabled BOOLEAN, created_at TEXT, last_run TEXT)"
    )
    conn.execute(
        "INSERT INTO tasks (name, schedule, command, enabled, created_at)"
        " VALUES ('legacy', '@hourly', 'echo old', 1, '2025-01-01T00:00:00+00:00')"
    )
    conn.commit()
    conn.close()

    store = TaskStore(db_path=db_path)
    tasks = await store.get_tasks()
    assert len(tasks) == 1
    assert tasks[0].name == "legacy"
    assert tasks[0].one_shot is False


async def test_creates_parent_dirs(tmp_path: Path) -> None:
    store = TaskStore(db_path=tmp_path / "nested" / "dir" / "test.db")
    await store.get_tasks()
    assert (tmp_path / "nested" / "dir" / "test.db").exists()
