"""Task data model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel


@dataclass
class Task:
    """A shell command to run on a schedule.

    Attributes:
        id: Store-assigned identifier (``0`` until the task is created).
        name: Human-readable label.
        schedule: Cron expression (``"*/5 * * * *"``), six-field cron with
            seconds, a descriptor such as ``"@hourly"``, or ``"@every 1h30m"``.
        command: Shell command line, run verbatim through the platform shell.
        enabled: Whether the task is registered with the live scheduler.
        one_shot: Delete the task after its first successful run.
        created_at: Set by the store on creation.
        last_run: Start time of the most recent attempt, ``None`` if never run.
    """

    name: str
    schedule: str
    command: str
    enabled: bool = True
    one_shot: bool = False
    id: int = 0
    created_at: datetime | None = None
    last_run: datetime | None = None

    # -- Serialization ---------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "id": self.id,
            "name": self.name,
            "schedule": self.schedule,
            "command": self.command,
            "enabled": self.enabled,
            "one_shot": self.one_shot,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_run": self.last_run.isoformat() if self.last_run else None,
        }

    @classmethod
    def from_row(cls, row: tuple) -> Task:
        """Deserialize from a ``tasks`` row in ``_COLUMNS`` order."""
        return cls(
            id=row[0],
            name=row[1] or "",
            schedule=row[2] or "",
            command=row[3] or "",
            enabled=bool(row[4]),
            one_shot=bool(row[5]),
            created_at=_parse_ts(row[6]),
            last_run=_parse_ts(row[7]),
        )


class TaskUpdate(BaseModel):
    """Partial update of a task's user-editable fields.

    Fields left as ``None`` are not touched.
    """

    name: str | None = None
    schedule: str | None = None
    command: str | None = None
    enabled: bool | None = None
    one_shot: bool | None = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)

    def apply(self, task: Task) -> Task:
        """Copy every provided field onto *task* and return it."""
        for field_name, value in self.model_dump(exclude_none=True).items():
            setattr(task, field_name, value)
        return task


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)
