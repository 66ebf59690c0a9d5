"""Scheduling engine — models, persistence, triggers, execution, log upkeep."""

from opencron.scheduler.engine import SchedulerEngine
from opencron.scheduler.errors import (
    CommandFailedError,
    EmptyCommandError,
    InvalidScheduleError,
    LogFileError,
    OpencronError,
    TaskNotFoundError,
    TaskRunError,
)
from opencron.scheduler.executor import RunOutcome, TaskExecutor
from opencron.scheduler.janitor import LogJanitor
from opencron.scheduler.models import Task, TaskUpdate
from opencron.scheduler.store import TaskStore

__all__ = [
    "Task",
    "TaskUpdate",
    "TaskStore",
    "TaskExecutor",
    "RunOutcome",
    "SchedulerEngine",
    "LogJanitor",
    "OpencronError",
    "TaskNotFoundError",
    "InvalidScheduleError",
    "TaskRunError",
    "EmptyCommandError",
    "CommandFailedError",
    "LogFileError",
]
