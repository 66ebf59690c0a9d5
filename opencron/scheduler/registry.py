"""TaskRegistry — the in-memory view of what is currently scheduled."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from apscheduler.jobstores.base import JobLookupError

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from apscheduler.job import Job

    from opencron.scheduler.models import Task
    from opencron.scheduler.triggers import Trigger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TriggerContext:
    """What a trigger callback runs, captured when the trigger is registered.

    ``task`` is a private copy, so later store edits only take effect after
    the next reload.
    """

    task: Task


@dataclass
class LiveTrigger:
    """A registered trigger and the APScheduler job that fires it."""

    task_id: int
    trigger: Trigger
    job: Job

    @property
    def next_run_time(self) -> datetime | None:
        # Jobs added before the scheduler starts have no next_run_time yet.
        return getattr(self.job, "next_run_time", None)

    def cancel(self) -> None:
        self.trigger.cancel()
        try:
            self.job.remove()
        except JobLookupError:
            logger.debug("Job %s already removed", self.job.id)


class TaskRegistry:
    """Maps task ID → live trigger.

    The registry is only ever replaced wholesale. Its lock is held for the
    cancel/clear/rebuild sequence and nothing else; callers read the store
    and run commands outside it.

    Each reload draws a generation number before reading the store. A
    snapshot whose generation is older than the one already applied is
    discarded, so a slow read can never overwrite a newer schedule.
    """

    def __init__(self) -> None:
        self._entries: dict[int, LiveTrigger] = {}
        self._lock = threading.Lock()
        self._issued = 0
        self._applied = 0

    def next_generation(self) -> int:
        with self._lock:
            self._issued += 1
            return self._issued

    def replace(
        self, generation: int, build: Callable[[], dict[int, LiveTrigger]]
    ) -> bool:
        """Cancel every live trigger and install the entries from *build*.

        Returns False (and changes nothing) if *generation* is stale.
        """
        with self._lock:
            if generation < self._applied:
                return False
            for entry in self._entries.values():
                entry.cancel()
            self._entries = {}
            self._entries = build()
            self._applied = generation
            return True

    def clear(self) -> None:
        with self._lock:
            for entry in self._entries.values():
                entry.cancel()
            self._entries = {}

    def get(self, task_id: int) -> LiveTrigger | None:
        with self._lock:
            return self._entries.get(task_id)

    def task_ids(self) -> set[int]:
        with self._lock:
            return set(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, task_id: object) -> bool:
        with self._lock:
            return task_id in self._entries
