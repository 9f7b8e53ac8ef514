"""
Cron patterns and dispatch plans for reminders.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Union

import pendulum
from pendulum import Duration

from .exceptions import UnsupportedRepeatKind

DEFAULT_REMINDER_TIMEZONE = "Europe/Madrid"


class RepeatKind(str, Enum):
    NEVER = "never"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class CronExpression:
    """Builds 5-field cron patterns: ``minute hour day-of-month month day-of-week``."""

    @staticmethod
    def from_date_and_repeat(date: datetime, repeat: RepeatKind) -> str:
        """
        Get the cron pattern firing at ``date``'s wall-clock time for a repeat kind.

        Day of week follows cron numbering (Sunday = 0).

        Raises:
            UnsupportedRepeatKind: For NEVER or any kind without a cron form
        """
        minute = date.minute
        hour = date.hour

        if repeat == RepeatKind.DAILY:
            return f"{minute} {hour} * * *"
        if repeat == RepeatKind.WEEKLY:
            day_of_week = (date.weekday() + 1) % 7
            return f"{minute} {hour} * * {day_of_week}"
        if repeat == RepeatKind.MONTHLY:
            return f"{minute} {hour} {date.day} * *"

        raise UnsupportedRepeatKind(repeat)


@dataclass(frozen=True)
class Recurring:
    """Fire on every match of a cron pattern."""
    cron: str


@dataclass(frozen=True)
class OneShot:
    """Fire once after a delay."""
    delay: Duration


ReminderPlan = Union[Recurring, OneShot]


def plan_reminder(
    time: datetime,
    repeat: RepeatKind,
    now: datetime | None = None,
    timezone: str = DEFAULT_REMINDER_TIMEZONE,
) -> ReminderPlan | None:
    """
    Decide how a reminder is dispatched.

    Recurring reminders get a cron pattern built from the wall-clock time in
    ``timezone``. One-shot reminders get the delay until ``time``.

    Returns:
        Recurring, OneShot, or None if a one-shot reminder time has already passed
    """
    local_time = pendulum.instance(time).in_timezone(timezone)

    if repeat != RepeatKind.NEVER:
        return Recurring(cron=CronExpression.from_date_and_repeat(local_time, repeat))

    current = pendulum.instance(now) if now is not None else pendulum.now(timezone)
    seconds = (local_time - current).total_seconds()

    if seconds <= 0:
        return None

    return OneShot(delay=pendulum.duration(seconds=seconds))
