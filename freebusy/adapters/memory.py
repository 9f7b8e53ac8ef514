"""
In-memory repositories and job queue.

Used by the tests and by the CLI's ``--data`` mode, where calendars are
loaded from a JSON file instead of the booking backend.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pendulum import DateTime, Duration

from ..domain.exceptions import CalendarLookupError, EntityNotFound, NoCalendar
from ..domain.models import Appointment, Interval, Schedule
from .records import busy_intervals_from_records, parse_schedule

logger = logging.getLogger(__name__)


class InMemoryCalendarRepository:
    """
    Calendar repository backed by a dict.

    An entity mapped to ``None`` exists but has no calendar. Appointments
    are validated when they are added, so invalid records never reach the
    interval algebra.
    """

    def __init__(self, calendars: Optional[Dict[str, Optional[List[Interval]]]] = None):
        self._calendars: Dict[str, Optional[List[Interval]]] = {}
        for entity_id, busy in (calendars or {}).items():
            self._calendars[entity_id] = None if busy is None else list(busy)

    def add_entity(self, entity_id: str, has_calendar: bool = True) -> None:
        self._calendars[entity_id] = [] if has_calendar else None

    def add_appointment(self, entity_id: str, appointment: Appointment) -> None:
        """
        Add an appointment to an entity's calendar.

        Raises:
            EntityNotFound: If the entity is unknown
            NoCalendar: If the entity has no calendar
            InvalidAppointment: If a time-blocking appointment has in_time not before out_time
        """
        busy = self._calendar_of(entity_id)
        if appointment.blocks_time:
            busy.append(appointment.to_busy_interval(entity_id).interval)

    async def get_busy_intervals(
        self,
        entity_id: str,
        range_start: DateTime,
        range_end: DateTime,
    ) -> List[Interval]:
        busy = self._calendar_of(entity_id)
        return [
            interval for interval in busy
            if interval.start < range_end and interval.end > range_start
        ]

    def _calendar_of(self, entity_id: str) -> List[Interval]:
        if entity_id not in self._calendars:
            raise EntityNotFound(entity_id)
        busy = self._calendars[entity_id]
        if busy is None:
            raise NoCalendar(entity_id)
        return busy


class InMemoryLocationRepository:
    """Location repository backed by a dict of schedules."""

    def __init__(self, schedules: Optional[Dict[str, Schedule]] = None):
        self._schedules: Dict[str, Schedule] = dict(schedules or {})

    def add_schedule(self, location_id: str, schedule: Schedule) -> None:
        self._schedules[location_id] = schedule

    async def get_schedule(self, location_id: str) -> Schedule:
        try:
            return self._schedules[location_id]
        except KeyError:
            raise EntityNotFound(location_id) from None


class InMemoryReminderQueue:
    """Job queue keeping jobs in a dict keyed by job id."""

    def __init__(self):
        self.jobs: Dict[str, Dict[str, Any]] = {}

    async def add(
        self,
        name: str,
        data: Dict[str, Any],
        *,
        job_id: str,
        delay: Duration | None = None,
        cron: str | None = None,
    ) -> None:
        self.jobs[job_id] = {"name": name, "data": data, "delay": delay, "cron": cron}

    async def remove(self, job_id: str) -> bool:
        return self.jobs.pop(job_id, None) is not None


def load_repositories(
    data_file: Path,
    timezone: str = "UTC",
) -> Tuple[InMemoryCalendarRepository, InMemoryLocationRepository]:
    """
    Load calendars and locations from a JSON data file.

    File format::

        {
            "calendars": {
                "alice": [{"inTime": "2025-07-07T09:00", "outTime": "2025-07-07T10:00"}],
                "bob": null
            },
            "locations": {
                "shop": {"timezone": "Europe/Madrid",
                         "schedule": [{"day": "monday", "open": "09:00", "close": "20:00"}]}
            }
        }

    A ``null`` calendar marks an entity without a calendar.

    Raises:
        FileNotFoundError: If the data file doesn't exist
        CalendarLookupError: If the file is malformed
    """
    if not data_file.exists():
        raise FileNotFoundError(f"Data file not found: {data_file}")

    try:
        with open(data_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise CalendarLookupError(f"Invalid JSON in {data_file}: {exc}") from exc

    if not isinstance(data, dict):
        raise CalendarLookupError("Data file must contain an object at the root level.")

    tz = data.get("timezone", timezone)

    calendars: Dict[str, Optional[List[Interval]]] = {}
    for entity_id, records in data.get("calendars", {}).items():
        if records is None:
            calendars[entity_id] = None
        else:
            calendars[entity_id] = busy_intervals_from_records(entity_id, records, tz)

    schedules = {
        location_id: parse_schedule(record)
        for location_id, record in data.get("locations", {}).items()
    }

    logger.debug(
        "Loaded %d calendar(s) and %d location(s) from %s",
        len(calendars),
        len(schedules),
        data_file,
    )
    return InMemoryCalendarRepository(calendars), InMemoryLocationRepository(schedules)
