"""Tests for TaskRegistry — generation-guarded wholesale replacement."""

from unittest.mock import MagicMock

from apscheduler.jobstores.base import JobLookupError

from opencron.scheduler.registry import LiveTrigger, TaskRegistry


def _entry(task_id: int) -> LiveTrigger:
    job = MagicMock()
    job.id = f"task-{task_id}"
    return LiveTrigger(task_id=task_id, trigger=MagicMock(), job=job)


def test_replace_installs_entries() -> None:
    registry = TaskRegistry()
    entries = {1: _entry(1), 2: _entry(2)}

    assert registry.replace(registry.next_generation(), lambda: entries) is True
    assert registry.task_ids() == {1, 2}
    assert len(registry) == 2
    assert 1 in registry
    assert registry.get(3) is None


def test_replace_cancels_previous_entries() -> None:
    registry = TaskRegistry()
    old = _entry(1)
    registry.replace(registry.next_generation(), lambda: {1: old})

    registry.replace(registry.next_generation(), lambda: {2: _entry(2)})

    old.trigger.cancel.assert_called_once()
    old.job.remove.assert_called_once()
    assert registry.task_ids() == {2}


def test_stale_generation_is_discarded() -> None:
    registry = TaskRegistry()
    slow = registry.next_generation()
    fast = registry.next_generation()

    registry.replace(fast, lambda: {2: _entry(2)})
    build = MagicMock(return_value={1: _entry(1)})

    assert registry.replace(slow, build) is False
    build.assert_not_called()
    assert registry.task_ids() == {2}


def test_same_generation_can_be_reapplied() -> None:
    registry = TaskRegistry()
    generation = registry.next_generation()
    registry.replace(generation, lambda: {1: _entry(1)})
    assert registry.replace(generation, lambda: {}) is True
    assert len(registry) == 0


def test_clear_cancels_everything() -> None:
    registry = TaskRegistry()
    entries = {1: _entry(1), 2: _entry(2)}
    registry.replace(registry.next_generation(), lambda: entries)

    registry.clear()

    assert len(registry) == 0
    for entry in entries.values():
        entry.trigger.cancel.assert_called_once()


def test_cancel_tolerates_removed_job() -> None:
    entry = _entry(1)
    entry.job.remove.side_effect = JobLookupError("task-1")
    entry.cancel()
    entry.trigger.cancel.assert_called_once()


def test_next_run_time_of_pending_job() -> None:
    entry = LiveTrigger(task_id=1, trigger=MagicMock(), job=object())
    assert entry.next_run_time is None
