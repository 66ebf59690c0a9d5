"""Schedule expressions → APScheduler triggers.

The engine only depends on the two protocols below, so a different parser can
be injected without touching the scheduler. The default implementation
accepts:

- standard five-field cron (``"*/5 * * * *"``), day-of-week 0 or 7 = Sunday
  (when day-of-month and day-of-week are both restricted, either may match)
- six-field cron with a leading seconds field (``"30 */5 * * * *"``)
- descriptors: ``@yearly @annually @monthly @weekly @daily @midnight @hourly``
- fixed intervals: ``@every 1h30m`` (units ``h``, ``m``, ``s``, ``ms``)
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Protocol, runtime_checkable

from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from opencron.scheduler.errors import InvalidScheduleError

_DESCRIPTORS = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}

# Cron numbers days from Sunday (0 and 7); APScheduler names them instead.
_DOW_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]


@runtime_checkable
class Trigger(Protocol):
    """A recurring point-in-time trigger."""

    def next_fire_after(self, instant: datetime) -> datetime | None: ...

    def cancel(self) -> None: ...


class ScheduleParser(Protocol):
    def parse(self, expression: str) -> Trigger: ...


class ScheduleTrigger:
    """A parsed schedule backed by an APScheduler trigger.

    Once cancelled the trigger never fires again, whichever scheduler it is
    registered with.
    """

    def __init__(self, expression: str, aps_trigger: BaseTrigger) -> None:
        self.expression = expression
        self.aps_trigger = aps_trigger
        self.cancelled = False

    def next_fire_after(self, instant: datetime) -> datetime | None:
        if self.cancelled:
            return None
        # APScheduler returns times >= now; nudge so the result is strictly later.
        return self.aps_trigger.get_next_fire_time(None, instant + timedelta(microseconds=1))

    def cancel(self) -> None:
        self.cancelled = True

    def __repr__(self) -> str:
        return f"ScheduleTrigger({self.expression!r})"


class _CapabilityTrigger(BaseTrigger):
    """Lets APScheduler drive any :class:`Trigger` implementation."""

    def __init__(self, trigger: Trigger) -> None:
        self.trigger = trigger

    def get_next_fire_time(self, previous_fire_time, now):
        if previous_fire_time is not None:
            return self.trigger.next_fire_after(previous_fire_time)
        return self.trigger.next_fire_after(now - timedelta(microseconds=1))

    def __str__(self) -> str:
        return f"capability[{self.trigger!r}]"


def as_aps_trigger(trigger: Trigger) -> BaseTrigger:
    """Return the APScheduler trigger that fires on *trigger*'s schedule."""
    if isinstance(trigger, ScheduleTrigger):
        return trigger.aps_trigger
    return _CapabilityTrigger(trigger)


class CronScheduleParser:
    """Default :class:`ScheduleParser` backed by APScheduler triggers.

    Args:
        timezone: IANA zone name for cron evaluation. ``None`` or ``""``
            uses the host's local zone.
    """

    def __init__(self, timezone: str | None = None) -> None:
        self._timezone = timezone or None

    def parse(self, expression: str) -> ScheduleTrigger:
        """Parse *expression*. Raises ``InvalidScheduleError``."""
        expr = " ".join(expression.split())
        if not expr:
            raise InvalidScheduleError(expression, "empty expression")

        if expr.startswith("@every"):
            interval = _parse_every(expression, expr[len("@every") :].strip())
            aps_trigger: BaseTrigger = IntervalTrigger(
                seconds=interval.total_seconds(), timezone=self._timezone
            )
            return ScheduleTrigger(expression, aps_trigger)

        if expr.startswith("@"):
            if expr.lower() not in _DESCRIPTORS:
                raise InvalidScheduleError(expression, f"unrecognized descriptor {expr!r}")
            expr = _DESCRIPTORS[expr.lower()]

        fields = expr.split(" ")
        if len(fields) == 5:
            fields = ["0", *fields]
        elif len(fields) != 6:
            raise InvalidScheduleError(
                expression, f"expected 5 or 6 fields, got {len(fields)}"
            )

        second, minute, hour, day, month, day_of_week = fields
        common = {
            "second": second,
            "minute": minute,
            "hour": hour,
            "month": month,
            "timezone": self._timezone,
        }
        try:
            dow_names = _translate_day_of_week(expression, day_of_week)
            if _is_wildcard(day) or _is_wildcard(day_of_week):
                aps_trigger = CronTrigger(
                    day=_no_question_mark(day), day_of_week=dow_names, **common
                )
            else:
                # Both day fields restricted: cron fires when either matches.
                aps_trigger = OrTrigger(
                    [
                        CronTrigger(day=day, day_of_week="*", **common),
                        CronTrigger(day="*", day_of_week=dow_names, **common),
                    ]
                )
        except ValueError as exc:
            raise InvalidScheduleError(expression, str(exc)) from exc
        return ScheduleTrigger(expression, aps_trigger)


def _parse_every(expression: str, duration: str) -> timedelta:
    """Parse a Go-style duration such as ``1h30m`` or ``90s``.

    Sub-second remainders are dropped and anything shorter than one second
    runs every second.
    """
    if not duration or _DURATION_PART.sub("", duration):
        raise InvalidScheduleError(expression, f"invalid duration {duration!r}")
    seconds = sum(
        float(amount) * _DURATION_UNITS[unit]
        for amount, unit in _DURATION_PART.findall(duration)
    )
    return timedelta(seconds=max(1, int(seconds)))


def _is_wildcard(field: str) -> bool:
    return field.startswith(("*", "?"))


def _no_question_mark(field: str) -> str:
    return "*" if field == "?" else field


def _translate_day_of_week(expression: str, field: str) -> str:
    """Expand a cron day-of-week field into APScheduler day names."""
    field = _no_question_mark(field)
    if field == "*":
        return field

    days: set[int] = set()
    for part in field.split(","):
        span, _, step_text = part.partition("/")
        try:
            step = int(step_text) if step_text else 1
        except ValueError as exc:
            raise InvalidScheduleError(expression, f"invalid step in {part!r}") from exc
        if step < 1:
            raise InvalidScheduleError(expression, f"invalid step in {part!r}")

        if span == "*":
            low, high = 0, 6
        elif "-" in span:
            start, _, end = span.partition("-")
            low, high = _day_number(expression, start), _day_number(expression, end)
        else:
            low = _day_number(expression, span)
            high = 6 if step_text else low

        # 7 is Sunday too, so "5-7" means fri, sat, sun.
        if low > high:
            raise InvalidScheduleError(expression, f"invalid day-of-week range {span!r}")
        days.update(day % 7 for day in range(low, high + 1, step))

    return ",".join(_DOW_NAMES[day] for day in sorted(days))


def _day_number(expression: str, token: str) -> int:
    token = token.strip().lower()
    if token in _DOW_NAMES:
        return _DOW_NAMES.index(token)
    if token.isdigit() and 0 <= int(token) <= 7:
        return int(token)
    raise InvalidScheduleError(expression, f"invalid day of week {token!r}")
