"""Tests for the Task data model and partial updates."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from opencron.scheduler.models import Task, TaskUpdate

# -- Construction & defaults ---------------------------------------------------


def test_default_values() -> None:
    task = Task(name="t", schedule="* * * * *", command="echo hi")
    assert task.id == 0
    assert task.enabled is True
    assert task.one_shot is False
    assert task.created_at is None
    assert task.last_run is None


# -- Serialization -------------------------------------------------------------


def test_to_dict_never_run() -> None:
    task = Task(
        id=7,
        name="backup",
        schedule="0 3 * * *",
        command="tar czf /tmp/b.tgz /srv",
        created_at=datetime(2026, 2, 12, 9, 30, tzinfo=UTC),
    )
    data = task.to_dict()
    assert data == {
        "id": 7,
        "name": "backup",
        "schedule": "0 3 * * *",
        "command": "tar czf /tmp/b.tgz /srv",
        "enabled": True,
        "one_shot": False,
        "created_at": "2026-02-12T09:30:00+00:00",
        "last_run": None,
    }


def test_from_row() -> None:
    row = (
        3,
        "report",
        "*/5 * * * *",
        "echo report",
        1,
        0,
        "2026-02-12T09:30:00+00:00",
        "2026-02-12T10:00:00+00:00",
    )
    task = Task.from_row(row)
    assert task.id == 3
    assert task.enabled is True
    assert task.one_shot is False
    assert task.created_at == datetime(2026, 2, 12, 9, 30, tzinfo=UTC)
    assert task.last_run == datetime(2026, 2, 12, 10, 0, tzinfo=UTC)


def test_from_row_null_columns() -> None:
    task = Task.from_row((4, None, None, None, 0, None, None, None))
    assert task.name == ""
    assert task.command == ""
    assert task.enabled is False
    assert task.one_shot is False
    assert task.last_run is None


# -- TaskUpdate ----------------------------------------------------------------


def test_update_is_empty() -> None:
    assert TaskUpdate().is_empty()
    assert not TaskUpdate(enabled=False).is_empty()


def test_update_applies_only_given_fields() -> None:
    task = Task(id=1, name="old", schedule="* * * * *", command="echo before")
    TaskUpdate(command="echo after", enabled=False).apply(task)
    assert task.command == "echo after"
    assert task.enabled is False
    assert task.name == "old"
    assert task.schedule == "* * * * *"


def test_update_ignores_unknown_fields() -> None:
    assert TaskUpdate(**{"color": "red"}).is_empty()


def test_update_rejects_bad_types() -> None:
    with pytest.raises(ValidationError):
        TaskUpdate(enabled="sometimes")
