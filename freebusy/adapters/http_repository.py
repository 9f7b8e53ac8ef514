"""
Booking backend REST client for calendars and location schedules.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests
from pendulum import DateTime

from ..domain.exceptions import CalendarLookupError, EntityNotFound, NoCalendar
from ..domain.models import Interval, Schedule
from .records import busy_intervals_from_records, parse_schedule

logger = logging.getLogger(__name__)


class BookingApiClient:
    """
    Thin blocking client for the booking backend.

    Endpoints used:
    - ``GET /calendar/user/{entity_id}`` - the entity's calendar, ``null`` if none
    - ``GET /calendar/{calendar_id}/appointments/{start}/{end}`` - appointments in range
    - ``GET /location/{location_id}`` - location record with its weekly schedule
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def get_json(self, path: str, missing_id: str) -> Any:
        """
        GET a path and decode the JSON body.

        Raises:
            EntityNotFound: On HTTP 404
            CalendarLookupError: On any other failure
        """
        url = f"{self.base_url}{path}"

        try:
            response = self.session.get(url, timeout=self.timeout_seconds)
        except requests.exceptions.RequestException as e:
            raise CalendarLookupError(f"Request to {url} failed: {e}") from e

        if response.status_code == 404:
            raise EntityNotFound(missing_id)

        try:
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            raise CalendarLookupError(f"Booking backend returned an error for {url}: {e}") from e
        except ValueError as e:
            raise CalendarLookupError(f"Invalid JSON from {url}: {e}") from e


class HttpCalendarRepository:
    """
    Calendar repository reading appointments from the booking backend.

    Blocking requests run in a worker thread so fetches for several
    entities can proceed concurrently.
    """

    def __init__(self, client: BookingApiClient, timezone: str = "UTC"):
        self.client = client
        self.timezone = timezone

    async def get_busy_intervals(
        self,
        entity_id: str,
        range_start: DateTime,
        range_end: DateTime,
    ) -> List[Interval]:
        return await asyncio.to_thread(self._fetch_busy_intervals, entity_id, range_start, range_end)

    def _fetch_busy_intervals(
        self,
        entity_id: str,
        range_start: DateTime,
        range_end: DateTime,
    ) -> List[Interval]:
        calendar = self.client.get_json(f"/calendar/user/{entity_id}", entity_id)
        if isinstance(calendar, dict) and "calendar" in calendar:
            calendar = calendar["calendar"]

        if not calendar:
            raise NoCalendar(entity_id)

        calendar_id = calendar.get("_id") if isinstance(calendar, dict) else None
        if not calendar_id:
            raise CalendarLookupError(f"Calendar of {entity_id} has no id")

        payload = self.client.get_json(
            f"/calendar/{calendar_id}/appointments/"
            f"{range_start.isoformat()}/{range_end.isoformat()}",
            entity_id,
        )
        records = self._appointment_records(payload)

        busy = busy_intervals_from_records(entity_id, records, self.timezone)
        logger.debug("Fetched %d busy interval(s) for %s", len(busy), entity_id)

        return [
            interval for interval in busy
            if interval.start < range_end and interval.end > range_start
        ]

    @staticmethod
    def _appointment_records(payload: Any) -> List[Dict[str, Any]]:
        """
        Extract appointment records.

        Response format: ``{"message": "...", "appointments": [{"inTime": ..., "outTime": ...}]}``
        """
        if isinstance(payload, dict):
            payload = payload.get("appointments", [])

        if not isinstance(payload, list):
            raise CalendarLookupError("Unexpected appointments response format")

        return payload


class HttpLocationRepository:
    """Location repository reading weekly schedules from the booking backend."""

    def __init__(self, client: BookingApiClient):
        self.client = client

    async def get_schedule(self, location_id: str) -> Schedule:
        return await asyncio.to_thread(self._fetch_schedule, location_id)

    def _fetch_schedule(self, location_id: str) -> Schedule:
        record = self.client.get_json(f"/location/{location_id}", location_id)

        if not isinstance(record, dict):
            raise CalendarLookupError(f"Unexpected response for location {location_id}")

        return parse_schedule(record)
