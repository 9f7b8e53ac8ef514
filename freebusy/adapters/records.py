"""
Parsing of booking-backend records (appointments, locations) into domain models.
"""

import logging
from typing import Any, Dict, Iterable, List

import pendulum
from pendulum import DateTime
from pydantic import ValidationError

from ..config import LocationConfig
from ..domain.exceptions import CalendarLookupError
from ..domain.models import Appointment, AppointmentState, Interval, Schedule

logger = logging.getLogger(__name__)


def parse_datetime(value: str, timezone: str) -> DateTime:
    """
    Parse an ISO 8601 string to a pendulum DateTime.

    Strings without an offset are read in ``timezone``.
    """
    dt = pendulum.parse(value, tz=timezone)

    if isinstance(dt, DateTime):
        return dt

    raise ValueError(f"Could not parse datetime: {value}")


def parse_appointment(record: Dict[str, Any], timezone: str) -> Appointment:
    """
    Parse an appointment record.

    Record format: ``{"inTime": ..., "outTime": ..., "title": ...,
    "appointmentState": "accepted", "isDeleted": false}``

    Raises:
        CalendarLookupError: If the record is missing fields or malformed
    """
    try:
        return Appointment(
            in_time=parse_datetime(record["inTime"], timezone),
            out_time=parse_datetime(record["outTime"], timezone),
            title=record.get("title", ""),
            state=AppointmentState(record.get("appointmentState", AppointmentState.REQUESTED.value)),
            is_deleted=bool(record.get("isDeleted", False)),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise CalendarLookupError(f"Invalid appointment record {record!r}: {exc}") from exc


def busy_intervals_from_records(
    entity_id: str,
    records: Iterable[Dict[str, Any]],
    timezone: str,
) -> List[Interval]:
    """
    Turn appointment records into the busy intervals of an entity.

    Records that do not block time are dropped before validation. A live
    record with in_time not before out_time fails the whole fetch.

    Raises:
        CalendarLookupError: If a record is malformed
        InvalidAppointment: If a record has in_time not before out_time
    """
    busy: List[Interval] = []

    for record in records:
        appointment = parse_appointment(record, timezone)
        if not appointment.blocks_time:
            logger.debug("Skipping %s appointment %r of %s", appointment.state.value, appointment.title, entity_id)
            continue
        busy.append(appointment.to_busy_interval(entity_id).interval)

    return busy


def parse_schedule(record: Dict[str, Any]) -> Schedule:
    """
    Parse a location record's weekly schedule.

    Record format: ``{"timezone": "Europe/Madrid", "schedule": [{"day": "monday",
    "open": "09:00", "close": "20:00"}]}``

    Raises:
        CalendarLookupError: If the schedule is malformed
    """
    try:
        return LocationConfig.model_validate(record).to_schedule()
    except ValidationError as exc:
        raise CalendarLookupError(f"Invalid location schedule: {exc}") from exc
