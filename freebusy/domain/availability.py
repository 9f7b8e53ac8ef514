"""
Core business logic for calculating common free time.

This is pure domain logic without any external dependencies (no API calls,
no database, no I/O). Fetching busy times is the resolver's job.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from .exceptions import NoAvailability
from .interval_set import IntervalSet
from .models import Interval, Schedule
from .schedule_clipper import ScheduleClipper

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    """Stages of an availability query. Any stage may end in FAILED."""
    VALIDATING = "validating"
    RESOLVING_ENTITIES = "resolving_entities"
    COMPUTING_FREE = "computing_free"
    CLIPPING = "clipping"
    INTERSECTING = "intersecting"
    DONE = "done"
    FAILED = "failed"


StageObserver = Callable[[PipelineStage], None]


class AvailabilityCalculator:
    """
    Calculates the time in which every entity is free.

    Algorithm:
    1. For each entity, subtract its busy times from the search range
    2. If a schedule is given, keep only the location's opening hours
    3. Stop early as soon as one entity has no free time left
    4. Intersect the free times of all entities
    """

    def __init__(self, clipper: ScheduleClipper | None = None):
        self.clipper = clipper or ScheduleClipper()

    def find_common_free_slots(
        self,
        search_range: Interval,
        busy_times: Dict[str, Iterable[Interval]],
        schedule: Schedule | None = None,
        raise_on_empty: bool = False,
        on_stage: Optional[StageObserver] = None,
    ) -> IntervalSet:
        """
        Find the time inside ``search_range`` in which all entities are free.

        Args:
            search_range: Range to search in
            busy_times: Dict mapping entity id to its busy intervals
            schedule: Optional operating hours to clip against
            raise_on_empty: Raise NoAvailability instead of returning an empty set
                when an entity has no free time
            on_stage: Called with each pipeline stage as it is entered

        Returns:
            IntervalSet of common free time, possibly empty

        Raises:
            NoAvailability: If raise_on_empty is set and an entity has no free time
        """
        notify = on_stage or (lambda stage: None)

        if not busy_times:
            return IntervalSet.empty()

        notify(PipelineStage.COMPUTING_FREE)
        free_sets: List[IntervalSet] = []

        for entity_id, free in self._free_sets(search_range, busy_times, schedule, notify):
            if not free:
                logger.info("Entity %s has no free time in %s", entity_id, search_range)
                if raise_on_empty:
                    raise NoAvailability(entity_id)
                return IntervalSet.empty()
            free_sets.append(free)

        notify(PipelineStage.INTERSECTING)
        common = IntervalSet.n_ary_intersect(free_sets)
        logger.debug(
            "Common free time across %d entities: %d interval(s)",
            len(free_sets),
            len(common),
        )
        return common

    def free_set_for(self, search_range: Interval, busy: Iterable[Interval]) -> IntervalSet:
        """Free time of a single entity: the search range minus its busy time."""
        return IntervalSet([search_range]).subtract(IntervalSet(busy))

    def _free_sets(
        self,
        search_range: Interval,
        busy_times: Dict[str, Iterable[Interval]],
        schedule: Schedule | None,
        notify: StageObserver,
    ) -> Iterator[Tuple[str, IntervalSet]]:
        """Yield each entity's free set lazily so callers can stop early."""
        opening_hours = None
        if schedule is not None:
            notify(PipelineStage.CLIPPING)
            opening_hours = self.clipper.operating_hours(search_range, schedule)

        for entity_id, busy in busy_times.items():
            free = self.free_set_for(search_range, busy)
            if opening_hours is not None:
                free = free.intersect(opening_hours)
            yield entity_id, free
