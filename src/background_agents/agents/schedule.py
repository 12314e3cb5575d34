"""Schedule expressions and their recurring fire times.

Accepted forms:

- ``None`` / ``""``: no schedule (the agent runs once when started)
- a number: fixed interval in seconds
- ``"*/5 * * * *"``: standard 5-field crontab
- ``"*/30 * * * * *"``: 6-field crontab with a leading seconds field

Cron fire times are computed by APScheduler's ``CronTrigger`` in UTC.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Protocol, runtime_checkable

from apscheduler.triggers.cron import CronTrigger

from background_agents.core.errors import ConfigurationError

_CRON_FIELDS = ("minute", "hour", "day", "month", "day_of_week")


@runtime_checkable
class Schedule(Protocol):
    """Recurring trigger definition."""

    @property
    def expression(self) -> str | float: ...

    def next_fire_time(
        self, previous: datetime | None, now: datetime
    ) -> datetime | None:
        """Next firing strictly after *previous* (or from *now* if None)."""
        ...


class IntervalSchedule:
    """Fire every *seconds* seconds."""

    def __init__(self, seconds: float) -> None:
        if seconds <= 0:
            raise ConfigurationError(
                f"Interval schedule must be positive, got {seconds}"
            )
        self._seconds = float(seconds)
        self._interval = timedelta(seconds=seconds)

    @property
    def expression(self) -> float:
        return self._seconds

    def next_fire_time(
        self, previous: datetime | None, now: datetime
    ) -> datetime:
        if previous is None:
            return now + self._interval
        # Missed firings coalesce into one immediate firing
        return max(previous + self._interval, now)

    def __repr__(self) -> str:
        return f"IntervalSchedule({self._seconds}s)"


class CronSchedule:
    """Crontab expression, optionally with a leading seconds field."""

    def __init__(self, expression: str) -> None:
        self._expression = expression.strip()
        fields = self._expression.split()
        try:
            if len(fields) == 5:
                self._trigger = CronTrigger.from_crontab(
                    self._expression, timezone="UTC"
                )
            elif len(fields) == 6:
                self._trigger = CronTrigger(
                    second=fields[0],
                    **dict(zip(_CRON_FIELDS, fields[1:])),
                    timezone="UTC",
                )
            else:
                raise ValueError(
                    f"expected 5 or 6 fields, got {len(fields)}"
                )
        except ValueError as exc:
            raise ConfigurationError(
                f"Invalid cron schedule {expression!r}: {exc}"
            ) from exc

    @property
    def expression(self) -> str:
        return self._expression

    def next_fire_time(
        self, previous: datetime | None, now: datetime
    ) -> datetime | None:
        return self._trigger.get_next_fire_time(previous, now)

    def __repr__(self) -> str:
        return f"CronSchedule({self._expression!r})"


def parse_schedule(value: Any) -> Schedule | None:
    """Turn a configured schedule value into a ``Schedule`` (or None)."""
    if value is None:
        return None
    if isinstance(value, (IntervalSchedule, CronSchedule)):
        return value
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid schedule: {value!r}")
    if isinstance(value, (int, float)):
        return IntervalSchedule(value)
    if isinstance(value, str):
        if not value.strip():
            return None
        return CronSchedule(value)
    if isinstance(value, Schedule):
        return value
    raise ConfigurationError(
        f"Unsupported schedule type {type(value).__name__}: {value!r}"
    )
