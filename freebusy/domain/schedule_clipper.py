"""
Turns a location's weekly operating hours into concrete intervals.
"""

from __future__ import annotations

from datetime import datetime
from typing import List

import pendulum
from pendulum import DateTime

from .interval_set import IntervalSet
from .models import Interval, Schedule


class ScheduleClipper:
    """
    Restricts intervals to a location's operating hours.

    Days are evaluated in the schedule's timezone, one local calendar day at
    a time, so a range spanning several days keeps the hours of every day
    it touches.
    """

    def free_window_for(self, date: datetime, schedule: Schedule) -> Interval | None:
        """
        Get the opening window for the local calendar day containing ``date``.
        Returns None if the location is closed that day.
        """
        local = pendulum.instance(date).in_timezone(schedule.timezone)
        entry = schedule.entry_for(local.weekday())

        if entry is None:
            return None

        start = pendulum.datetime(
            local.year, local.month, local.day,
            entry.open.hour, entry.open.minute, entry.open.second,
            tz=schedule.timezone,
        )
        end = pendulum.datetime(
            local.year, local.month, local.day,
            entry.close.hour, entry.close.minute, entry.close.second,
            tz=schedule.timezone,
        )

        return Interval(start=start, end=end)

    def clip_to_schedule(self, interval: Interval, schedule: Schedule) -> IntervalSet | None:
        """
        Clip an interval to operating hours, day by day.
        Returns None if no part of the interval falls inside opening hours.
        """
        clipped = self.operating_hours(interval, schedule)
        return clipped or None

    def operating_hours(self, interval: Interval, schedule: Schedule) -> IntervalSet:
        """Return the parts of ``interval`` inside opening hours (possibly empty)."""
        pieces: List[Interval] = []

        day: DateTime = pendulum.instance(interval.start).in_timezone(schedule.timezone).start_of("day")

        while day < interval.end:
            window = self.free_window_for(day, schedule)

            if window is not None:
                piece = interval.intersect(window)
                if piece is not None:
                    pieces.append(piece)

            day = day.add(days=1)

        return IntervalSet(pieces)
