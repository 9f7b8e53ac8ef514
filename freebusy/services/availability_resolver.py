"""
Application service for finding common free time across calendars.

The resolver coordinates fetching busy times and opening hours via repository
adapters and delegates the actual calculation to the domain-level
``AvailabilityCalculator``. Repositories are plain protocols, so tests and
the CLI can plug in the in-memory adapter and production code the HTTP one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Protocol, Sequence, Tuple

from pendulum import DateTime

from ..domain.availability import AvailabilityCalculator, PipelineStage
from ..domain.exceptions import AvailabilityTimeout, InvalidQuery, SlotTaken
from ..domain.interval_set import IntervalSet
from ..domain.models import AvailabilityQuery, Interval, Schedule

logger = logging.getLogger(__name__)


class CalendarRepository(Protocol):
    """Supplies the busy time of an entity."""

    async def get_busy_intervals(
        self,
        entity_id: str,
        range_start: DateTime,
        range_end: DateTime,
    ) -> List[Interval]:
        """
        Return busy intervals of an entity overlapping ``[range_start, range_end)``.

        Raises EntityNotFound, NoCalendar or CalendarLookupError.
        """


class LocationRepository(Protocol):
    """Supplies the weekly operating hours of a location."""

    async def get_schedule(self, location_id: str) -> Schedule:
        """Return the schedule of a location. Raises EntityNotFound or CalendarLookupError."""


class AvailabilityResolver:
    """
    Orchestrates busy-time retrieval and the availability calculation.

    Each call is stateless. Fetches for all entities run concurrently; the
    first failure cancels the rest and propagates, and the optional deadline
    covers the whole fan-out.
    """

    def __init__(
        self,
        calendar_repository: CalendarRepository,
        location_repository: LocationRepository | None = None,
        calculator: AvailabilityCalculator | None = None,
        timeout_seconds: float | None = None,
        raise_on_empty: bool = False,
    ) -> None:
        self._calendar_repository = calendar_repository
        self._location_repository = location_repository
        self._calculator = calculator or AvailabilityCalculator()
        self._timeout_seconds = timeout_seconds
        self._raise_on_empty = raise_on_empty

    async def find_common_free_slots(self, query: AvailabilityQuery) -> IntervalSet:
        """
        Compute the time in which every entity of the query is free.

        Returns:
            IntervalSet of common free time; empty means no common slot in range

        Raises:
            InvalidQuery: Before any repository call, if the query is malformed
            EntityNotFound, NoCalendar, CalendarLookupError: From the repositories
            AvailabilityTimeout: If fetching exceeds the deadline
            NoAvailability: Only when the resolver was built with raise_on_empty
        """
        stages = [self._enter(PipelineStage.VALIDATING)]

        def track(stage: PipelineStage) -> None:
            stages.append(self._enter(stage))

        try:
            search_range, entity_ids = self._validate(query)

            track(PipelineStage.RESOLVING_ENTITIES)
            busy_times, schedule = await self.fetch_inputs(
                entity_ids=entity_ids,
                search_range=search_range,
                location_id=query.location_id,
            )

            common = self._calculator.find_common_free_slots(
                search_range=search_range,
                busy_times=busy_times,
                schedule=schedule,
                raise_on_empty=self._raise_on_empty,
                on_stage=track,
            )
        except Exception as exc:
            self._enter(PipelineStage.FAILED)
            logger.warning("Availability query failed while %s: %s", stages[-1].value, exc)
            raise

        self._enter(PipelineStage.DONE)
        return common.filter_min_duration(query.min_duration_minutes)

    async def fetch_inputs(
        self,
        *,
        entity_ids: Sequence[str],
        search_range: Interval,
        location_id: str | None = None,
    ) -> Tuple[Dict[str, List[Interval]], Schedule | None]:
        """Fetch busy times for all entities and the location schedule concurrently."""
        if location_id is not None and self._location_repository is None:
            raise InvalidQuery(
                f"Location {location_id} requested but no location repository is configured"
            )

        busy_tasks = {
            entity_id: asyncio.create_task(
                self._calendar_repository.get_busy_intervals(
                    entity_id, search_range.start, search_range.end
                )
            )
            for entity_id in entity_ids
        }

        schedule_task = None
        if location_id is not None:
            schedule_task = asyncio.create_task(
                self._location_repository.get_schedule(location_id)
            )

        tasks = list(busy_tasks.values())
        if schedule_task is not None:
            tasks.append(schedule_task)

        await self._join(
            tasks,
            f"Fetching calendars for {len(busy_tasks)} entities exceeded {self._timeout_seconds}s",
        )

        busy_times = {
            entity_id: list(task.result()) for entity_id, task in busy_tasks.items()
        }
        schedule = schedule_task.result() if schedule_task is not None else None

        logger.debug(
            "Fetched %d busy interval(s) for %d entities",
            sum(len(busy) for busy in busy_times.values()),
            len(busy_times),
        )
        return busy_times, schedule

    async def check_slot(self, entity_id: str, interval: Interval) -> None:
        """
        Make sure an entity can be booked for ``interval``.

        Raises:
            SlotTaken: If the interval overlaps existing busy time
        """
        task = asyncio.create_task(
            self._calendar_repository.get_busy_intervals(
                entity_id, interval.start, interval.end
            )
        )
        await self._join(
            [task],
            f"Fetching calendar of {entity_id} exceeded {self._timeout_seconds}s",
        )

        free = IntervalSet(task.result()).complement(interval)
        if not free.covers(interval):
            raise SlotTaken(f"Slot {interval} already taken for {entity_id}")

    async def _join(self, tasks: List["asyncio.Task"], timeout_message: str) -> None:
        """
        Wait for all tasks under the resolver deadline.

        The first failing task's own exception is re-raised. AvailabilityTimeout
        is raised only when the deadline passes with tasks still running.
        Unfinished tasks are cancelled on every exit path.
        """
        if not tasks:
            return

        try:
            done, pending = await asyncio.wait(
                tasks,
                timeout=self._timeout_seconds,
                return_when=asyncio.FIRST_EXCEPTION,
            )
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        failed = [task for task in tasks if task in done and task.exception() is not None]
        if failed:
            raise failed[0].exception()

        if pending:
            raise AvailabilityTimeout(timeout_message)

    @staticmethod
    def _validate(query: AvailabilityQuery) -> Tuple[Interval, List[str]]:
        if not query.entity_ids:
            raise InvalidQuery("At least one entity id is required")

        if query.range_start.tzinfo is None or query.range_end.tzinfo is None:
            raise InvalidQuery("Range start and end must be timezone-aware")

        if query.range_start >= query.range_end:
            raise InvalidQuery(
                f"Range start {query.range_start} must be before range end {query.range_end}"
            )

        if query.min_duration_minutes < 0:
            raise InvalidQuery("min_duration_minutes must not be negative")

        # Preserve order while removing duplicates
        entity_ids = list(dict.fromkeys(query.entity_ids))

        return Interval(start=query.range_start, end=query.range_end), entity_ids

    @staticmethod
    def _enter(stage: PipelineStage) -> PipelineStage:
        logger.debug("Availability resolver stage: %s", stage.value)
        return stage
