"""SchedulerEngine — APScheduler lifecycle and registry/store reconciliation."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from opencron.config import settings
from opencron.scheduler.errors import InvalidScheduleError, TaskRunError
from opencron.scheduler.janitor import LogJanitor
from opencron.scheduler.registry import LiveTrigger, TaskRegistry, TriggerContext
from opencron.scheduler.triggers import CronScheduleParser, as_aps_trigger

if TYPE_CHECKING:
    from datetime import datetime, timedelta
    from pathlib import Path

    from opencron.scheduler.executor import RunOutcome, TaskExecutor
    from opencron.scheduler.models import Task
    from opencron.scheduler.store import TaskStore
    from opencron.scheduler.triggers import ScheduleParser

logger = logging.getLogger(__name__)


class SchedulerEngine:
    """Keeps the live trigger set in sync with the persisted tasks.

    Every change goes through :meth:`reload`, which rebuilds the registry
    from a fresh store snapshot. There is no incremental update path.

    Args:
        store: TaskStore holding the task definitions.
        executor: TaskExecutor invoked when a trigger fires.
        logs_dir: Directory the log janitor sweeps (default from settings).
        log_retention: Age after which log files are purged (default from
            settings).
        parser: Schedule parser (default: cron via APScheduler).
        timezone: IANA timezone for cron evaluation; empty means local.
        max_instances: Concurrent scheduled runs allowed per task.
    """

    def __init__(
        self,
        store: TaskStore,
        executor: TaskExecutor,
        logs_dir: Path | None = None,
        log_retention: timedelta | None = None,
        parser: ScheduleParser | None = None,
        timezone: str | None = None,
        max_instances: int | None = None,
    ) -> None:
        self._store = store
        self._executor = executor
        self._timezone = timezone if timezone is not None else settings.scheduler_timezone
        self._parser = parser or CronScheduleParser(self._timezone)
        self._scheduler = AsyncIOScheduler(
            timezone=self._timezone or None,
            job_defaults={
                "coalesce": True,
                "misfire_grace_time": None,
                "max_instances": max_instances or settings.scheduler_max_instances,
            },
        )
        self._registry = TaskRegistry()
        self._janitor = LogJanitor(
            logs_dir or settings.logs_dir,
            log_retention if log_retention is not None else settings.log_retention,
        )
        self._running = False
        self._executor.bind_reload(self.reload)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def janitor(self) -> LogJanitor:
        return self._janitor

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Start the clock, load the enabled tasks, then start the log janitor."""
        if self._running:
            logger.warning("Scheduler is already running")
            return
        self._scheduler.start()
        self._running = True
        await self.reload()
        self._janitor.start(self._scheduler)
        logger.info(
            "Scheduler started with %d live task(s) (tz=%s)",
            len(self._registry),
            self._scheduler.timezone,
        )

    async def stop(self) -> None:
        """Shut down the clock. In-flight runs are not waited for."""
        if self._running:
            self._registry.clear()
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    # -- Task management -------------------------------------------------------

    async def reload(self) -> None:
        """Replace every live trigger with one per enabled task in the store.

        Tasks with a malformed schedule are skipped and logged. If the store
        cannot be read, the current triggers are left in place.
        """
        generation = self._registry.next_generation()
        try:
            tasks = await self._store.get_tasks()
        except Exception:
            logger.exception("Failed to load tasks; keeping the current schedule")
            return

        applied = self._registry.replace(generation, lambda: self._register_all(tasks))
        if applied:
            logger.info(
                "Reloaded %d live task(s) from %d stored", len(self._registry), len(tasks)
            )
        else:
            logger.debug("Discarded stale reload snapshot (generation %d)", generation)

    async def refresh_task(self, task_id: int) -> None:
        """Resync after *task_id* changed. Always a full reload."""
        logger.debug("Refreshing schedule after change to task %d", task_id)
        await self.reload()

    async def run_task_now(self, task_id: int) -> RunOutcome:
        """Run a task immediately and wait for its command to finish.

        The task is read from the store, not the registry, so disabled tasks
        can be run too. Raises ``TaskNotFoundError`` for unknown IDs and
        ``TaskRunError`` when the run fails.
        """
        task = await self._store.get_task_by_id(task_id)
        return await self._executor.run(task)

    # -- Introspection ---------------------------------------------------------

    def scheduled_task_ids(self) -> set[int]:
        return self._registry.task_ids()

    def next_fire_time(self, task_id: int) -> datetime | None:
        entry = self._registry.get(task_id)
        return entry.next_run_time if entry is not None else None

    # -- Internal --------------------------------------------------------------

    def _register_all(self, tasks: list[Task]) -> dict[int, LiveTrigger]:
        """Create a job per enabled task. Runs under the registry lock."""
        entries: dict[int, LiveTrigger] = {}
        for task in tasks:
            if not task.enabled:
                continue
            try:
                trigger = self._parser.parse(task.schedule)
            except InvalidScheduleError as exc:
                logger.warning("Failed to schedule task %s (%d): %s", task.name, task.id, exc)
                continue
            job = self._scheduler.add_job(
                self._fire,
                trigger=as_aps_trigger(trigger),
                id=f"task-{task.id}",
                name=task.name,
                args=[TriggerContext(task=replace(task))],
                replace_existing=True,
            )
            entries[task.id] = LiveTrigger(task_id=task.id, trigger=trigger, job=job)
        return entries

    async def _fire(self, context: TriggerContext) -> None:
        """Callback invoked by APScheduler. Failures are logged, never raised."""
        task = context.task
        try:
            await self._executor.run(task)
        except TaskRunError as exc:
            logger.error("Task %s (%d) failed: %s", task.name, task.id, exc)
        except Exception:
            logger.exception("Task %s (%d) crashed", task.name, task.id)
