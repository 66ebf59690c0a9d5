"""Per-task log file layout.

New runs append to one file per task per calendar day,
``task_<id>_<YYYYMMDD>.log``. Older installs wrote a single
``task_<id>.log``; when present it is read back before the daily files.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import date
    from pathlib import Path

logger = logging.getLogger(__name__)

_DAILY_SUFFIX = re.compile(r"_\d{8}\.log")


def daily_log_name(task_id: int, day: date) -> str:
    return f"task_{task_id}_{day.strftime('%Y%m%d')}.log"


def daily_log_path(logs_dir: Path, task_id: int, day: date) -> Path:
    return logs_dir / daily_log_name(task_id, day)


def legacy_log_path(logs_dir: Path, task_id: int) -> Path:
    return logs_dir / f"task_{task_id}.log"


def task_log_files(logs_dir: Path, task_id: int) -> list[Path]:
    """Return the task's log files in read-back order.

    The legacy file (if any) comes first, then the daily files sorted by
    name, which is also chronological.
    """
    if not logs_dir.is_dir():
        return []
    prefix = f"task_{task_id}"
    daily = sorted(
        path
        for path in logs_dir.glob(f"{prefix}_*.log")
        if path.is_file() and _DAILY_SUFFIX.fullmatch(path.name[len(prefix) :])
    )
    legacy = legacy_log_path(logs_dir, task_id)
    if legacy.is_file():
        return [legacy, *daily]
    return daily


def read_task_logs(logs_dir: Path, task_id: int) -> str | None:
    """Concatenate every log file of a task, or ``None`` if there are none."""
    files = task_log_files(logs_dir, task_id)
    if not files:
        return None
    chunks = []
    for path in files:
        try:
            chunks.append(path.read_text(encoding="utf-8", errors="replace"))
        except OSError as exc:
            logger.warning("Could not read log file %s: %s", path, exc)
    return "".join(chunks)
