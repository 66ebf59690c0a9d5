"""TaskStore — aiosqlite CRUD for task definitions."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite

from opencron.config import settings
from opencron.scheduler.errors import TaskNotFoundError
from opencron.scheduler.models import Task

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS tasks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT,
    schedule TEXT,
    command TEXT,
    enabled BOOLEAN,
    one_shot BOOLEAN DEFAULT 0,
    created_at TEXT,
    last_run TEXT
)
"""

_COLUMNS = "id, name, schedule, command, enabled, one_shot, created_at, last_run"


class TaskStore:
    """Persists tasks in SQLite.

    Each operation opens its own connection, so concurrent callers are
    serialised by SQLite itself. Pass an explicit *db_path* for test
    isolation (e.g. ``tmp_path / "test.db"``).
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path
        self._initialised = False
        self._init_lock = asyncio.Lock()

    @property
    def db_path(self) -> Path:
        return self._db_path

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path))
        if not self._initialised:
            async with self._init_lock:
                if not self._initialised:
                    try:
                        await self._migrate(db)
                    except BaseException:
                        await db.close()
                        raise
                    self._initialised = True
        return db

    async def _migrate(self, db: aiosqlite.Connection) -> None:
        await db.execute(_CREATE_TABLE)
        # Databases created before one_shot existed lack the column.
        cursor = await db.execute("PRAGMA table_info(tasks)")
        columns = {row[1] for row in await cursor.fetchall()}
        if "one_shot" not in columns:
            await db.execute("ALTER TABLE tasks ADD COLUMN one_shot BOOLEAN DEFAULT 0")
            logger.info("Migrated tasks table: added one_shot column")
        await db.commit()

    # -- CRUD ------------------------------------------------------------------

    async def create_task(self, task: Task) -> Task:
        """Insert a new task, assigning ``id`` and ``created_at``."""
        task.created_at = datetime.now(UTC)
        task.last_run = None
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                INSERT INTO tasks
                    (name, schedule, command, enabled, one_shot, created_at, last_run)
                VALUES (?, ?, ?, ?, ?, ?, NULL)
                """,
                (
                    task.name,
                    task.schedule,
                    task.command,
                    int(task.enabled),
                    int(task.one_shot),
                    task.created_at.isoformat(),
                ),
            )
            await db.commit()
            task.id = cursor.lastrowid
            logger.info("Created task: %s (%d)", task.name, task.id)
            return task
        finally:
            await db.close()

    async def get_tasks(self) -> list[Task]:
        """Return every stored task, enabled or not."""
        db = await self._connect()
        try:
            cursor = await db.execute(f"SELECT {_COLUMNS} FROM tasks ORDER BY id")
            rows = await cursor.fetchall()
            return [Task.from_row(row) for row in rows]
        finally:
            await db.close()

    async def get_task_by_id(self, task_id: int) -> Task:
        """Fetch a task by ID. Raises ``TaskNotFoundError`` if absent."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
            )
            row = await cursor.fetchone()
        finally:
            await db.close()
        if row is None:
            raise TaskNotFoundError(task_id)
        return Task.from_row(row)

    async def update_task(self, task: Task) -> None:
        """Overwrite the editable fields of an existing task."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                UPDATE tasks
                SET name = ?, schedule = ?, command = ?, enabled = ?, one_shot = ?
                WHERE id = ?
                """,
                (
                    task.name,
                    task.schedule,
                    task.command,
                    int(task.enabled),
                    int(task.one_shot),
                    task.id,
                ),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise TaskNotFoundError(task.id)
            logger.info("Updated task: %s (%d)", task.name, task.id)
        finally:
            await db.close()

    async def update_last_run(self, task_id: int, timestamp: datetime) -> None:
        """Record the start time of the latest execution attempt."""
        db = await self._connect()
        try:
            await db.execute(
                "UPDATE tasks SET last_run = ? WHERE id = ?",
                (timestamp.isoformat(), task_id),
            )
            await db.commit()
        finally:
            await db.close()

    async def delete_task(self, task_id: int) -> bool:
        """Delete a task. Returns True if a row was removed."""
        db = await self._connect()
        try:
            cursor = await db.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
            if deleted:
                logger.info("Deleted task: %d", task_id)
            return deleted
        finally:
            await db.close()
