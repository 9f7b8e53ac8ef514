"""
Tests for clipping intervals to operating hours.
"""

from datetime import time

import pendulum

from freebusy.domain.interval_set import IntervalSet
from freebusy.domain.models import Interval, Schedule, ScheduleEntry, Weekday
from freebusy.domain.schedule_clipper import ScheduleClipper

TZ = "Europe/Madrid"


def _dt(text: str):
    return pendulum.parse(text, tz=TZ)


def _weekday_schedule(open_at: time = time(9, 0), close_at: time = time(20, 0)) -> Schedule:
    """Open Monday to Friday, closed on weekends."""
    return Schedule(
        entries=tuple(
            ScheduleEntry(weekday=day, open=open_at, close=close_at)
            for day in (Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY, Weekday.FRIDAY)
        ),
        timezone=TZ,
    )


class TestFreeWindowFor:
    """Tests for ScheduleClipper.free_window_for."""

    def test_open_day(self):
        clipper = ScheduleClipper()

        window = clipper.free_window_for(_dt("2025-07-07 15:00"), _weekday_schedule())  # Monday

        assert window == Interval(start=_dt("2025-07-07 09:00"), end=_dt("2025-07-07 20:00"))

    def test_closed_day_returns_none(self):
        clipper = ScheduleClipper()

        assert clipper.free_window_for(_dt("2025-07-06 12:00"), _weekday_schedule()) is None  # Sunday

    def test_weekday_taken_in_schedule_timezone(self):
        """Sunday 23:30 UTC is already Monday in Madrid."""
        clipper = ScheduleClipper()
        utc_sunday_night = pendulum.datetime(2025, 7, 6, 23, 30, tz="UTC")

        window = clipper.free_window_for(utc_sunday_night, _weekday_schedule())

        assert window == Interval(start=_dt("2025-07-07 09:00"), end=_dt("2025-07-07 20:00"))


class TestClipToSchedule:
    """Tests for ScheduleClipper.clip_to_schedule."""

    def test_interval_inside_opening_hours(self):
        clipper = ScheduleClipper()
        interval = Interval(start=_dt("2025-07-07 10:00"), end=_dt("2025-07-07 12:00"))

        assert clipper.clip_to_schedule(interval, _weekday_schedule()) == IntervalSet([interval])

    def test_sunday_night_into_monday(self):
        """Only Monday's opening hours survive; the closed Sunday contributes nothing."""
        clipper = ScheduleClipper()
        schedule = Schedule(
            entries=(ScheduleEntry(weekday=Weekday.MONDAY, open=time(9, 0), close=time(20, 0)),),
            timezone=TZ,
        )
        interval = Interval(start=_dt("2025-07-06 23:00"), end=_dt("2025-07-07 10:00"))

        result = clipper.clip_to_schedule(interval, schedule)

        assert result == IntervalSet([Interval(start=_dt("2025-07-07 09:00"), end=_dt("2025-07-07 10:00"))])

    def test_multi_day_range_clipped_per_day(self):
        """A range over several days keeps every day's hours, not just the first."""
        clipper = ScheduleClipper()
        interval = Interval(start=_dt("2025-07-04 12:00"), end=_dt("2025-07-08 10:00"))  # Fri to Tue

        result = clipper.clip_to_schedule(interval, _weekday_schedule())

        assert list(result) == [
            Interval(start=_dt("2025-07-04 12:00"), end=_dt("2025-07-04 20:00")),
            Interval(start=_dt("2025-07-07 09:00"), end=_dt("2025-07-07 20:00")),
            Interval(start=_dt("2025-07-08 09:00"), end=_dt("2025-07-08 10:00")),
        ]

    def test_between_close_and_next_open_returns_none(self):
        clipper = ScheduleClipper()
        interval = Interval(start=_dt("2025-07-07 21:00"), end=_dt("2025-07-08 08:00"))

        assert clipper.clip_to_schedule(interval, _weekday_schedule()) is None

    def test_closed_day_returns_none(self):
        clipper = ScheduleClipper()
        interval = Interval(start=_dt("2025-07-06 08:00"), end=_dt("2025-07-06 22:00"))  # Sunday

        assert clipper.clip_to_schedule(interval, _weekday_schedule()) is None
        assert clipper.operating_hours(interval, _weekday_schedule()) == IntervalSet()
