"""
Domain models for intervals, weekly schedules and appointments.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from enum import Enum, IntEnum
from typing import Tuple

from pendulum import DateTime

from .cron import RepeatKind
from .exceptions import InvalidAppointment


@dataclass(frozen=True, order=True)
class Interval:
    """
    Represents an immutable half-open time range ``[start, end)``.

    Invariant: start must be before end. Intervals order by start, then end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "Interval") -> bool:
        """Check if this interval overlaps with another. Touching is not overlapping."""
        return self.start < other.end and other.start < self.end

    def intersect(self, other: "Interval") -> "Interval | None":
        """
        Calculate the intersection of two intervals.
        Returns None if the result would be empty.
        """
        start = max(self.start, other.start)
        end = min(self.end, other.end)

        if start >= end:
            return None

        return Interval(start=start, end=end)

    def contains(self, point: DateTime) -> bool:
        """Check if a point in time falls inside the interval."""
        return self.start <= point < self.end

    def format_display(self) -> str:
        """
        Format the interval for display.
        Format: Weekday, YYYY-MM-DD | HH:mm - HH:mm (N min)
        """
        if self.start.date() == self.end.date():
            span = f"{self.start.format('HH:mm')} - {self.end.format('HH:mm')}"
        else:
            span = f"{self.start.format('HH:mm')} - {self.end.format('YYYY-MM-DD HH:mm')}"

        return (
            f"{self.start.format('dddd, YYYY-MM-DD')} | {span} "
            f"({self.duration_minutes()} min)"
        )

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('YYYY-MM-DD HH:mm')}"


class Weekday(IntEnum):
    """Day of week, numbered like ``datetime.weekday()`` (Monday = 0)."""
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


@dataclass(frozen=True)
class ScheduleEntry:
    """Opening hours of a location on one weekday."""
    weekday: Weekday
    open: time
    close: time

    def __post_init__(self):
        if self.open >= self.close:
            raise ValueError(
                f"Opening time {self.open} must be before closing time {self.close} "
                f"on {self.weekday.name.title()}"
            )


@dataclass(frozen=True)
class Schedule:
    """
    Weekly operating hours of a location, expressed in its local timezone.

    At most one entry per weekday; a weekday without an entry means closed.
    """
    entries: Tuple[ScheduleEntry, ...] = ()
    timezone: str = "UTC"

    def __post_init__(self):
        object.__setattr__(self, "entries", tuple(self.entries))
        seen = set()
        for entry in self.entries:
            if entry.weekday in seen:
                raise ValueError(
                    f"Duplicate schedule entry for {entry.weekday.name.title()}"
                )
            seen.add(entry.weekday)

    def entry_for(self, weekday: int) -> ScheduleEntry | None:
        """Return the entry for a weekday, or None if the location is closed."""
        for entry in self.entries:
            if entry.weekday == weekday:
                return entry
        return None

    def is_open_on(self, weekday: int) -> bool:
        return self.entry_for(weekday) is not None


class AppointmentState(str, Enum):
    REQUESTED = "requested"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class BusyInterval:
    """An interval of busy time owned by one entity."""
    entity_id: str
    interval: Interval


@dataclass
class Appointment:
    """
    An appointment record as stored in an entity's calendar.

    Soft-deleted appointments and rejected or cancelled requests do not
    block time.
    """
    in_time: DateTime
    out_time: DateTime
    title: str = ""
    state: AppointmentState = AppointmentState.REQUESTED
    is_deleted: bool = False

    @property
    def blocks_time(self) -> bool:
        return not self.is_deleted and self.state not in (
            AppointmentState.REJECTED,
            AppointmentState.CANCELLED,
        )

    def to_busy_interval(self, entity_id: str) -> BusyInterval:
        """
        Convert the appointment into a busy interval.

        Raises:
            InvalidAppointment: If in_time is not before out_time
        """
        if self.in_time >= self.out_time:
            raise InvalidAppointment(
                f"Appointment '{self.title}' of {entity_id} has in_time {self.in_time} "
                f"not before out_time {self.out_time}"
            )
        return BusyInterval(
            entity_id=entity_id,
            interval=Interval(start=self.in_time, end=self.out_time),
        )


@dataclass(frozen=True)
class AvailabilityQuery:
    """
    Input to the availability resolver.

    Validation happens in the resolver so malformed queries surface as
    ``InvalidQuery`` rather than at construction.
    """
    entity_ids: Tuple[str, ...]
    range_start: DateTime
    range_end: DateTime
    location_id: str | None = None
    min_duration_minutes: int = 0

    def __post_init__(self):
        object.__setattr__(self, "entity_ids", tuple(self.entity_ids))


@dataclass(frozen=True)
class Reminder:
    """A reminder owned by a user, fired once or on a repeating pattern."""
    reminder_id: str
    user_id: str
    title: str
    time: DateTime
    repeat: RepeatKind = RepeatKind.NEVER
    description: str = ""
