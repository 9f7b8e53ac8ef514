"""
Tests for the AvailabilityResolver orchestration layer.
"""

import asyncio
import logging
from datetime import datetime, time
from typing import Dict, List, Optional

import pendulum
import pytest

from freebusy.domain.exceptions import (
    AvailabilityTimeout,
    CalendarLookupError,
    EntityNotFound,
    InvalidQuery,
    NoAvailability,
    NoCalendar,
    SlotTaken,
)
from freebusy.domain.interval_set import IntervalSet
from freebusy.domain.models import AvailabilityQuery, Interval, Schedule, ScheduleEntry, Weekday
from freebusy.services.availability_resolver import AvailabilityResolver

TZ = "Europe/Madrid"


def _dt(text: str):
    return pendulum.parse(text, tz=TZ)


def _iv(start: str, end: str) -> Interval:
    return Interval(start=_dt(start), end=_dt(end))


class StubCalendarRepository:
    """Minimal stub matching CalendarRepository."""

    def __init__(
        self,
        busy: Dict[str, Optional[List[Interval]]],
        delays: Optional[Dict[str, float]] = None,
    ):
        self._busy = busy
        self._delays = delays or {}
        self.calls: List[str] = []
        self.cancelled: List[str] = []

    async def get_busy_intervals(self, entity_id, range_start, range_end):
        self.calls.append(entity_id)
        try:
            await asyncio.sleep(self._delays.get(entity_id, 0))
        except asyncio.CancelledError:
            self.cancelled.append(entity_id)
            raise

        if entity_id not in self._busy:
            raise EntityNotFound(entity_id)
        if self._busy[entity_id] is None:
            raise NoCalendar(entity_id)
        return self._busy[entity_id]


class FailingCalendarRepository:
    async def get_busy_intervals(self, entity_id, range_start, range_end):
        raise CalendarLookupError("database unavailable")


class TimingOutCalendarRepository:
    async def get_busy_intervals(self, entity_id, range_start, range_end):
        raise TimeoutError("socket timed out")


class StubLocationRepository:
    def __init__(self, schedules: Dict[str, Schedule]):
        self._schedules = schedules
        self.calls: List[str] = []

    async def get_schedule(self, location_id):
        self.calls.append(location_id)
        if location_id not in self._schedules:
            raise EntityNotFound(location_id)
        return self._schedules[location_id]


def _query(*entity_ids, start="2025-07-07 08:00", end="2025-07-07 18:00", **kwargs) -> AvailabilityQuery:
    return AvailabilityQuery(entity_ids=entity_ids, range_start=_dt(start), range_end=_dt(end), **kwargs)


class TestFindCommonFreeSlots:
    """Tests for AvailabilityResolver.find_common_free_slots."""

    def test_single_entity(self):
        repository = StubCalendarRepository({
            "alice": [
                _iv("2025-07-07 09:00", "2025-07-07 10:00"),
                _iv("2025-07-07 14:00", "2025-07-07 15:00"),
            ]
        })
        resolver = AvailabilityResolver(calendar_repository=repository)

        result = asyncio.run(resolver.find_common_free_slots(_query("alice")))

        assert list(result) == [
            _iv("2025-07-07 08:00", "2025-07-07 09:00"),
            _iv("2025-07-07 10:00", "2025-07-07 14:00"),
            _iv("2025-07-07 15:00", "2025-07-07 18:00"),
        ]

    def test_two_entities(self):
        repository = StubCalendarRepository({
            "alice": [_iv("2025-07-07 12:00", "2025-07-07 18:00")],
            "bob": [_iv("2025-07-07 08:00", "2025-07-07 10:00"), _iv("2025-07-07 14:00", "2025-07-07 18:00")],
        })
        resolver = AvailabilityResolver(calendar_repository=repository)

        result = asyncio.run(resolver.find_common_free_slots(_query("alice", "bob")))

        assert list(result) == [_iv("2025-07-07 10:00", "2025-07-07 12:00")]
        assert sorted(repository.calls) == ["alice", "bob"]

    def test_invalid_range_fails_before_any_fetch(self):
        """A range with start >= end fails with InvalidQuery and no repository call."""
        repository = StubCalendarRepository({"alice": []})
        resolver = AvailabilityResolver(calendar_repository=repository)

        with pytest.raises(InvalidQuery):
            asyncio.run(resolver.find_common_free_slots(
                _query("alice", start="2025-07-07 18:00", end="2025-07-07 08:00")
            ))
        with pytest.raises(InvalidQuery):
            asyncio.run(resolver.find_common_free_slots(
                _query("alice", start="2025-07-07 08:00", end="2025-07-07 08:00")
            ))

        assert repository.calls == []

    def test_empty_entity_list_rejected(self):
        repository = StubCalendarRepository({})
        resolver = AvailabilityResolver(calendar_repository=repository)

        with pytest.raises(InvalidQuery, match="At least one entity"):
            asyncio.run(resolver.find_common_free_slots(_query()))

        assert repository.calls == []

    def test_duplicate_entities_fetched_once(self):
        repository = StubCalendarRepository({"alice": []})
        resolver = AvailabilityResolver(calendar_repository=repository)

        asyncio.run(resolver.find_common_free_slots(_query("alice", "alice")))

        assert repository.calls == ["alice"]

    def test_entity_not_found(self):
        resolver = AvailabilityResolver(calendar_repository=StubCalendarRepository({"alice": []}))

        with pytest.raises(EntityNotFound) as exc_info:
            asyncio.run(resolver.find_common_free_slots(_query("alice", "ghost")))

        assert exc_info.value.entity_id == "ghost"

    def test_no_calendar(self):
        resolver = AvailabilityResolver(calendar_repository=StubCalendarRepository({"alice": [], "bob": None}))

        with pytest.raises(NoCalendar) as exc_info:
            asyncio.run(resolver.find_common_free_slots(_query("alice", "bob")))

        assert exc_info.value.entity_id == "bob"

    def test_lookup_error_propagates(self):
        resolver = AvailabilityResolver(calendar_repository=FailingCalendarRepository())

        with pytest.raises(CalendarLookupError, match="database unavailable"):
            asyncio.run(resolver.find_common_free_slots(_query("alice")))

    def test_first_failure_cancels_pending_fetches(self):
        """A failing fetch cancels the slow one still in flight."""
        repository = StubCalendarRepository({"slow": []}, delays={"slow": 5})
        resolver = AvailabilityResolver(calendar_repository=repository)

        async def run():
            with pytest.raises(EntityNotFound):
                await resolver.find_common_free_slots(_query("slow", "ghost"))
            await asyncio.sleep(0.05)

        asyncio.run(run())

        assert repository.cancelled == ["slow"]

    def test_timeout(self):
        repository = StubCalendarRepository({"alice": []}, delays={"alice": 5})
        resolver = AvailabilityResolver(calendar_repository=repository, timeout_seconds=0.05)

        with pytest.raises(AvailabilityTimeout):
            asyncio.run(resolver.find_common_free_slots(_query("alice")))

    @pytest.mark.parametrize("timeout_seconds", [None, 5])
    def test_repository_timeout_error_is_not_deadline(self, timeout_seconds):
        """A TimeoutError raised by the repository itself propagates unchanged."""
        resolver = AvailabilityResolver(
            calendar_repository=TimingOutCalendarRepository(),
            timeout_seconds=timeout_seconds,
        )

        with pytest.raises(TimeoutError, match="socket timed out") as exc_info:
            asyncio.run(resolver.find_common_free_slots(_query("alice")))

        assert not isinstance(exc_info.value, AvailabilityTimeout)

    def test_naive_bounds_rejected(self):
        repository = StubCalendarRepository({"alice": []})
        resolver = AvailabilityResolver(calendar_repository=repository)
        query = AvailabilityQuery(
            entity_ids=("alice",),
            range_start=datetime(2025, 7, 7, 8, 0),
            range_end=_dt("2025-07-07 18:00"),
        )

        with pytest.raises(InvalidQuery, match="timezone-aware"):
            asyncio.run(resolver.find_common_free_slots(query))

        assert repository.calls == []

    def test_location_schedule_clips_result(self):
        """Sunday 23:00 to Monday 10:00 against Monday 09-20 leaves Monday 09-10."""
        calendars = StubCalendarRepository({"alice": []})
        locations = StubLocationRepository({
            "shop": Schedule(
                entries=(ScheduleEntry(weekday=Weekday.MONDAY, open=time(9, 0), close=time(20, 0)),),
                timezone=TZ,
            )
        })
        resolver = AvailabilityResolver(calendar_repository=calendars, location_repository=locations)

        result = asyncio.run(resolver.find_common_free_slots(
            _query("alice", start="2025-07-06 23:00", end="2025-07-07 10:00", location_id="shop")
        ))

        assert list(result) == [_iv("2025-07-07 09:00", "2025-07-07 10:00")]
        assert locations.calls == ["shop"]

    def test_unknown_location(self):
        resolver = AvailabilityResolver(
            calendar_repository=StubCalendarRepository({"alice": []}),
            location_repository=StubLocationRepository({}),
        )

        with pytest.raises(EntityNotFound):
            asyncio.run(resolver.find_common_free_slots(_query("alice", location_id="nowhere")))

    def test_location_without_repository(self):
        repository = StubCalendarRepository({"alice": []})
        resolver = AvailabilityResolver(calendar_repository=repository)

        with pytest.raises(InvalidQuery, match="no location repository"):
            asyncio.run(resolver.find_common_free_slots(_query("alice", location_id="shop")))

        assert repository.calls == []

    def test_closed_day_is_empty_result(self):
        """No availability is a successful empty answer by default."""
        locations = StubLocationRepository({
            "shop": Schedule(
                entries=(ScheduleEntry(weekday=Weekday.MONDAY, open=time(9, 0), close=time(20, 0)),),
                timezone=TZ,
            )
        })
        resolver = AvailabilityResolver(
            calendar_repository=StubCalendarRepository({"alice": []}),
            location_repository=locations,
        )

        result = asyncio.run(resolver.find_common_free_slots(
            _query("alice", start="2025-07-06 08:00", end="2025-07-06 20:00", location_id="shop")
        ))

        assert result == IntervalSet()

    def test_raise_on_empty(self):
        repository = StubCalendarRepository({
            "alice": [],
            "carol": [_iv("2025-07-07 08:00", "2025-07-07 18:00")],
        })
        resolver = AvailabilityResolver(calendar_repository=repository, raise_on_empty=True)

        with pytest.raises(NoAvailability) as exc_info:
            asyncio.run(resolver.find_common_free_slots(_query("alice", "carol")))

        assert exc_info.value.entity_id == "carol"

    def test_min_duration_filter(self):
        repository = StubCalendarRepository({
            "alice": [
                _iv("2025-07-07 08:15", "2025-07-07 12:00"),
                _iv("2025-07-07 13:00", "2025-07-07 18:00"),
            ]
        })
        resolver = AvailabilityResolver(calendar_repository=repository)

        result = asyncio.run(resolver.find_common_free_slots(_query("alice", min_duration_minutes=30)))

        assert list(result) == [_iv("2025-07-07 12:00", "2025-07-07 13:00")]

    def test_negative_min_duration_rejected(self):
        resolver = AvailabilityResolver(calendar_repository=StubCalendarRepository({"alice": []}))

        with pytest.raises(InvalidQuery):
            asyncio.run(resolver.find_common_free_slots(_query("alice", min_duration_minutes=-5)))


class TestCheckSlot:
    """Tests for AvailabilityResolver.check_slot."""

    def test_free_slot_passes(self):
        repository = StubCalendarRepository({"worker": [_iv("2025-07-07 09:00", "2025-07-07 10:00")]})
        resolver = AvailabilityResolver(calendar_repository=repository)

        asyncio.run(resolver.check_slot("worker", _iv("2025-07-07 10:00", "2025-07-07 11:00")))

    def test_taken_slot_raises(self):
        repository = StubCalendarRepository({"worker": [_iv("2025-07-07 09:00", "2025-07-07 10:00")]})
        resolver = AvailabilityResolver(calendar_repository=repository)

        with pytest.raises(SlotTaken, match="already taken"):
            asyncio.run(resolver.check_slot("worker", _iv("2025-07-07 09:30", "2025-07-07 10:30")))

    def test_slot_inside_busy_time_raises(self):
        repository = StubCalendarRepository({"worker": [_iv("2025-07-07 08:00", "2025-07-07 18:00")]})
        resolver = AvailabilityResolver(calendar_repository=repository)

        with pytest.raises(SlotTaken):
            asyncio.run(resolver.check_slot("worker", _iv("2025-07-07 09:00", "2025-07-07 10:00")))

    def test_deadline(self):
        repository = StubCalendarRepository({"worker": []}, delays={"worker": 5})
        resolver = AvailabilityResolver(calendar_repository=repository, timeout_seconds=0.05)

        with pytest.raises(AvailabilityTimeout):
            asyncio.run(resolver.check_slot("worker", _iv("2025-07-07 09:00", "2025-07-07 10:00")))

        assert repository.cancelled == ["worker"]

    def test_repository_timeout_error_propagates(self):
        resolver = AvailabilityResolver(calendar_repository=TimingOutCalendarRepository())

        with pytest.raises(TimeoutError, match="socket timed out") as exc_info:
            asyncio.run(resolver.check_slot("worker", _iv("2025-07-07 09:00", "2025-07-07 10:00")))

        assert not isinstance(exc_info.value, AvailabilityTimeout)


class TestStages:
    """Tests for the logged pipeline stages."""

    @staticmethod
    def _stages(caplog):
        return [
            record.args[0]
            for record in caplog.records
            if record.getMessage().startswith("Availability resolver stage")
        ]

    def test_stages_with_location(self, caplog):
        caplog.set_level(logging.DEBUG, logger="freebusy.services.availability_resolver")
        locations = StubLocationRepository({
            "shop": Schedule(
                entries=(ScheduleEntry(weekday=Weekday.MONDAY, open=time(9, 0), close=time(20, 0)),),
                timezone=TZ,
            )
        })
        resolver = AvailabilityResolver(
            calendar_repository=StubCalendarRepository({"alice": [], "bob": []}),
            location_repository=locations,
        )

        asyncio.run(resolver.find_common_free_slots(_query("alice", "bob", location_id="shop")))

        assert self._stages(caplog) == [
            "validating",
            "resolving_entities",
            "computing_free",
            "clipping",
            "intersecting",
            "done",
        ]

    def test_failed_stage(self, caplog):
        caplog.set_level(logging.DEBUG, logger="freebusy.services.availability_resolver")
        resolver = AvailabilityResolver(calendar_repository=StubCalendarRepository({}))

        with pytest.raises(EntityNotFound):
            asyncio.run(resolver.find_common_free_slots(_query("ghost")))

        assert self._stages(caplog) == ["validating", "resolving_entities", "failed"]
        assert "failed while resolving_entities" in caplog.text
