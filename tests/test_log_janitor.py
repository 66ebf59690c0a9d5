"""Tests for LogJanitor — retention-based log purging."""

import os
import time
from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from opencron.scheduler.janitor import JOB_ID, LogJanitor

RETENTION = timedelta(hours=48)


def _write(path: Path, mtime: float, content: str = "log") -> Path:
    path.write_text(content)
    os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def janitor(logs_dir: Path) -> LogJanitor:
    logs_dir.mkdir()
    return LogJanitor(logs_dir, RETENTION)


def test_purges_old_and_keeps_recent(janitor: LogJanitor, logs_dir: Path) -> None:
    now = time.time()
    old = _write(logs_dir / "task_1_20260210.log", now - 50 * 3600)
    recent = _write(logs_dir / "task_1_20260212.log", now - 10 * 3600)

    assert janitor.purge(now=now) == 1
    assert not old.exists()
    assert recent.exists()


def test_file_exactly_at_cutoff_is_kept(janitor: LogJanitor, logs_dir: Path) -> None:
    now = 1_770_000_000.0
    cutoff = now - RETENTION.total_seconds()
    at_cutoff = _write(logs_dir / "task_2_20260101.log", cutoff)
    just_before = _write(logs_dir / "task_3_20260101.log", cutoff - 1)

    assert janitor.purge(now=now) == 1
    assert at_cutoff.exists()
    assert not just_before.exists()


def test_subdirectories_are_not_touched(janitor: LogJanitor, logs_dir: Path) -> None:
    now = time.time()
    nested = logs_dir / "archive"
    nested.mkdir()
    old_nested = _write(nested / "task_1.log", now - 100 * 3600)
    os.utime(nested, (now - 100 * 3600, now - 100 * 3600))

    assert janitor.purge(now=now) == 0
    assert nested.is_dir()
    assert old_nested.exists()


def test_missing_directory_is_nothing_to_purge(tmp_path: Path) -> None:
    janitor = LogJanitor(tmp_path / "does-not-exist", RETENTION)
    assert janitor.purge() == 0


def test_unreadable_directory_is_logged(
    janitor: LogJanitor, caplog: pytest.LogCaptureFixture
) -> None:
    with patch("opencron.scheduler.janitor.os.scandir", side_effect=PermissionError("denied")):
        assert janitor.purge() == 0
    assert "Failed to read logs directory" in caplog.text


def test_start_schedules_startup_and_hourly_jobs(janitor: LogJanitor) -> None:
    scheduler = MagicMock()
    janitor.start(scheduler)

    ids = [c.kwargs["id"] for c in scheduler.add_job.call_args_list]
    assert ids == [f"{JOB_ID}-startup", JOB_ID]
    hourly = scheduler.add_job.call_args_list[1].kwargs["trigger"]
    assert hourly.interval == timedelta(hours=1)
