"""LogJanitor — bounds on-disk growth of task log files."""

from __future__ import annotations

import logging
import os
import time
from typing import TYPE_CHECKING

from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from datetime import timedelta
    from pathlib import Path

    from apscheduler.schedulers.base import BaseScheduler

logger = logging.getLogger(__name__)

JOB_ID = "log-janitor"
PURGE_INTERVAL_HOURS = 1


class LogJanitor:
    """Deletes log files whose modification time is older than *retention*.

    Args:
        logs_dir: Directory holding the task logs. Scanned non-recursively.
        retention: How long a log file is kept after its last write.
    """

    def __init__(self, logs_dir: Path, retention: timedelta) -> None:
        self.logs_dir = logs_dir
        self.retention = retention

    def start(self, scheduler: BaseScheduler) -> None:
        """Purge once right away, then every hour on *scheduler*."""
        scheduler.add_job(self.purge, id=f"{JOB_ID}-startup", replace_existing=True)
        scheduler.add_job(
            self.purge,
            trigger=IntervalTrigger(hours=PURGE_INTERVAL_HOURS),
            id=JOB_ID,
            replace_existing=True,
            coalesce=True,
        )
        logger.info(
            "Log janitor started (dir=%s, retention=%s)", self.logs_dir, self.retention
        )

    def purge(self, now: float | None = None) -> int:
        """Delete expired files and return how many were removed.

        A file whose mtime equals the cutoff exactly is kept.
        """
        cutoff = (now if now is not None else time.time()) - self.retention.total_seconds()
        try:
            entries = list(os.scandir(self.logs_dir))
        except FileNotFoundError:
            return 0
        except OSError as exc:
            logger.error("Failed to read logs directory %s: %s", self.logs_dir, exc)
            return 0

        purged = 0
        for entry in entries:
            try:
                if not entry.is_file(follow_symlinks=False):
                    continue
                if entry.stat(follow_symlinks=False).st_mtime < cutoff:
                    os.remove(entry.path)
                    purged += 1
            except OSError as exc:
                logger.debug("Skipping log file %s: %s", entry.path, exc)

        if purged:
            logger.info("Purged %d old log file(s)", purged)
        return purged
