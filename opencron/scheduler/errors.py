"""Exceptions raised by the scheduling engine."""

from __future__ import annotations


class OpencronError(Exception):
    """Base class for all opencron errors."""


class TaskNotFoundError(OpencronError):
    """No task with the given ID exists in the store."""

    def __init__(self, task_id: int) -> None:
        self.task_id = task_id
        super().__init__(f"task {task_id} not found")


class InvalidScheduleError(OpencronError):
    """A schedule expression could not be parsed."""

    def __init__(self, expression: str, reason: str) -> None:
        self.expression = expression
        self.reason = reason
        super().__init__(f"invalid schedule {expression!r}: {reason}")


class TaskRunError(OpencronError):
    """A single execution attempt failed."""


class EmptyCommandError(TaskRunError):
    def __init__(self) -> None:
        super().__init__("empty command")


class CommandFailedError(TaskRunError):
    """The shell could not be launched or the command exited non-zero.

    ``returncode`` is ``None`` when the process never started.
    """

    def __init__(self, reason: str, returncode: int | None = None) -> None:
        self.returncode = returncode
        super().__init__(reason)


class LogFileError(TaskRunError):
    """The per-run log file (or its directory) could not be opened."""
