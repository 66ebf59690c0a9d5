"""TaskExecutor — runs one task's shell command and records the outcome."""

from __future__ import annotations

import asyncio
import enum
import logging
from datetime import datetime
from typing import IO, TYPE_CHECKING

from opencron.config import settings
from opencron.scheduler.errors import (
    CommandFailedError,
    EmptyCommandError,
    LogFileError,
    TaskRunError,
)
from opencron.scheduler.logfiles import daily_log_path

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from pathlib import Path

    from opencron.scheduler.models import Task
    from opencron.scheduler.store import TaskStore

logger = logging.getLogger(__name__)


class RunOutcome(enum.Enum):
    """How a successful run ended."""

    COMPLETED = "completed"
    CONSUMED = "consumed"  # one-shot task deleted after running


class TaskExecutor:
    """Executes a task's command exactly once per call to :meth:`run`.

    Output is appended to the task's per-day log file, framed by
    ``started`` and ``finished``/``failed`` marker lines.

    Args:
        store: TaskStore for ``last_run`` updates and one-shot deletion.
        logs_dir: Directory for task log files (default from settings).
    """

    def __init__(self, store: TaskStore, logs_dir: Path | None = None) -> None:
        self._store = store
        self._logs_dir = logs_dir or settings.logs_dir
        self._reload: Callable[[], Awaitable[None]] | None = None

    @property
    def logs_dir(self) -> Path:
        return self._logs_dir

    def bind_reload(self, reload: Callable[[], Awaitable[None]]) -> None:
        """Set the callback used to resync live triggers after a one-shot run."""
        self._reload = reload

    async def run(self, task: Task) -> RunOutcome:
        """Run *task* to completion.

        Raises a ``TaskRunError`` subclass when the log file cannot be opened,
        the command is empty, the shell cannot be launched, the command exits
        non-zero, or a consumed one-shot task cannot be deleted.
        """
        logger.info("Running task %s (%d): %s", task.name, task.id, task.command)
        started = datetime.now().astimezone()

        try:
            await self._store.update_last_run(task.id, started)
        except Exception:
            logger.exception("Failed to update last_run for task %s (%d)", task.name, task.id)

        log_file = self._open_log(task, started)
        with log_file:
            _mark(
                log_file,
                f"\n--- Task {task.name} started at {started.isoformat(timespec='seconds')} ---\n",
            )
            await self._run_command(task, log_file)

            if not task.one_shot:
                return RunOutcome.COMPLETED

            try:
                await self._store.delete_task(task.id)
            except Exception as exc:
                _mark(log_file, f"--- Failed to delete one-shot task: {exc} ---\n")
                msg = f"failed to delete one-shot task: {exc}"
                raise TaskRunError(msg) from exc
            _mark(log_file, "--- One-shot task deleted after first run ---\n")

        logger.info("One-shot task %s (%d) deleted after first run", task.name, task.id)
        if self._reload is not None:
            await self._reload()
        return RunOutcome.CONSUMED

    # -- Internal --------------------------------------------------------------

    def _open_log(self, task: Task, started: datetime) -> IO[bytes]:
        path = daily_log_path(self._logs_dir, task.id, started.date())
        try:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            return open(path, "ab")  # noqa: SIM115
        except OSError as exc:
            msg = f"failed to open log file {path}: {exc}"
            raise LogFileError(msg) from exc

    async def _run_command(self, task: Task, log_file: IO[bytes]) -> None:
        if not task.command:
            _mark(log_file, f"--- Task {task.name} failed: empty command ---\n")
            raise EmptyCommandError

        try:
            proc = await asyncio.create_subprocess_shell(
                task.command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=log_file,
                stderr=log_file,
            )
        except OSError as exc:
            _mark(log_file, f"--- Task {task.name} failed: {exc} ---\n")
            raise CommandFailedError(str(exc)) from exc

        returncode = await proc.wait()
        if returncode != 0:
            if returncode < 0:
                reason = f"terminated by signal {-returncode}"
            else:
                reason = f"exit status {returncode}"
            _mark(log_file, f"--- Task {task.name} failed: {reason} ---\n")
            raise CommandFailedError(reason, returncode)

        _mark(log_file, f"--- Task {task.name} finished successfully ---\n")
        logger.info("Task %s (%d) finished", task.name, task.id)


def _mark(log_file: IO[bytes], line: str) -> None:
    """Write a marker line and flush so it lands before/after child output."""
    log_file.write(line.encode("utf-8"))
    log_file.flush()
