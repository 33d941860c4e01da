"""Schedule strategies: turn a cron expression into a polling interval."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol

import croniter
import pytz

MINUTE = 60.0
HOUR = 3600.0
DAY = 86400.0
WEEK = 604800.0

# Checked in order; the first substring found wins.
_LEGACY_PATTERNS: tuple[tuple[str, float], ...] = (
    ("* * * * *", MINUTE),
    ("0 * * * *", HOUR),
    ("0 0 * * *", DAY),
    ("0 0 * * 0", WEEK),
)


class ScheduleStrategy(Protocol):
    """Computes how long to wait before the next scheduled run."""

    def interval_seconds(
        self, expression: str, timezone: str = "UTC", now: datetime | None = None
    ) -> float: ...


class SubstringCronInterval:
    """Recognises four literal cron patterns; everything else runs daily.

    The timezone argument is accepted and ignored.
    """

    def interval_seconds(
        self, expression: str, timezone: str = "UTC", now: datetime | None = None
    ) -> float:
        for pattern, seconds in _LEGACY_PATTERNS:
            if pattern in expression:
                return seconds
        return DAY


class CronExpressionSchedule:
    """Real 5-field cron evaluation in the trigger's timezone.

    Matching is delegated to ``croniter``, so day-of-month and day-of-week
    are ORed when both are restricted, as in standard cron.
    """

    def __init__(self, default_timezone: str = "UTC") -> None:
        self._default_timezone = default_timezone

    def next_fire(
        self, expression: str, timezone: str = "", after: datetime | None = None
    ) -> datetime:
        if len(expression.split()) != 5:
            raise ValueError(f"Cron expression must have 5 fields: {expression!r}")
        tz = _zone(timezone or self._default_timezone)
        local = (after or datetime.now(UTC)).astimezone(tz)
        try:
            cron = croniter.croniter(expression, local)
            return cron.get_next(datetime)
        except croniter.CroniterError as exc:
            raise ValueError(f"Invalid cron expression {expression!r}: {exc}") from exc

    def interval_seconds(
        self, expression: str, timezone: str = "UTC", now: datetime | None = None
    ) -> float:
        now = now or datetime.now(UTC)
        fire = self.next_fire(expression, timezone, after=now)
        return max((fire - now).total_seconds(), 0.0)


def _zone(name: str) -> pytz.BaseTzInfo:
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError as exc:
        raise ValueError(f"Unknown timezone: {name!r}") from exc


def get_strategy(name: str, default_timezone: str = "UTC") -> ScheduleStrategy:
    """Return the schedule strategy registered under ``name``."""
    if name == "legacy":
        return SubstringCronInterval()
    if name == "cron":
        return CronExpressionSchedule(default_timezone)
    raise ValueError(f"Unknown schedule strategy: {name!r}. Expected 'legacy' or 'cron'.")
