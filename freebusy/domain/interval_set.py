"""
Canonical sets of time intervals with boolean set algebra.

This is the computational heart of the availability engine - pure domain
logic without any I/O.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, List, Sequence, Tuple

from pendulum import DateTime

from .models import Interval

logger = logging.getLogger(__name__)


class IntervalSet:
    """
    Ordered collection of non-overlapping, non-adjacent intervals.

    Invariant: for consecutive members ``a``, ``b``: ``a.end < b.start``.
    Instances are immutable; every operation returns a new normalized set.
    The empty set is a valid state: identity for ``union``, absorbing
    element for ``intersect``.
    """

    __slots__ = ("_intervals",)

    def __init__(self, intervals: Iterable[Interval] = ()):
        self._intervals: Tuple[Interval, ...] = tuple(self.normalize(intervals))

    @classmethod
    def _from_normalized(cls, intervals: Sequence[Interval]) -> "IntervalSet":
        instance = cls.__new__(cls)
        instance._intervals = tuple(intervals)
        return instance

    @classmethod
    def empty(cls) -> "IntervalSet":
        return cls._from_normalized(())

    @staticmethod
    def normalize(raw_intervals: Iterable[Interval]) -> List[Interval]:
        """
        Sort intervals and merge overlapping or adjacent ones.

        Example: [10:00-11:00, 09:00-10:00, 10:30-12:00] -> [09:00-12:00]
        """
        sorted_intervals = sorted(raw_intervals)
        if not sorted_intervals:
            return []

        merged: List[Interval] = [sorted_intervals[0]]

        for current in sorted_intervals[1:]:
            last = merged[-1]

            # Touching intervals merge too: no zero-width gaps survive
            if current.start <= last.end:
                if current.end > last.end:
                    merged[-1] = Interval(start=last.start, end=current.end)
            else:
                merged.append(current)

        return merged

    @property
    def intervals(self) -> Tuple[Interval, ...]:
        return self._intervals

    def union(self, other: "IntervalSet") -> "IntervalSet":
        """Return all time covered by either set."""
        if not other:
            return self
        if not self:
            return other
        return IntervalSet(self._intervals + other._intervals)

    def subtract(self, other: "IntervalSet") -> "IntervalSet":
        """
        Remove every part of ``other`` from this set.

        An interval of ``self`` is split in two when a subtracted interval
        lies strictly inside it.

        Example:
        Self: [09:00-17:00]
        Other: [10:00-11:00, 14:00-15:00]
        Result: [09:00-10:00, 11:00-14:00, 15:00-17:00]
        """
        if not self or not other:
            return self

        remaining: List[Interval] = []
        cuts = other._intervals
        cursor = 0

        for interval in self._intervals:
            # Cuts ending before this interval cannot touch any later one either
            while cursor < len(cuts) and cuts[cursor].end <= interval.start:
                cursor += 1

            current_start = interval.start
            index = cursor

            while index < len(cuts) and cuts[index].start < interval.end:
                cut = cuts[index]
                if current_start < cut.start:
                    remaining.append(Interval(start=current_start, end=cut.start))
                current_start = max(current_start, cut.end)
                if current_start >= interval.end:
                    break
                index += 1

            if current_start < interval.end:
                remaining.append(Interval(start=current_start, end=interval.end))

        return IntervalSet(remaining)

    def intersect(self, other: "IntervalSet") -> "IntervalSet":
        """
        Return the time covered by both sets.

        Linear two-pointer merge over the two sorted member lists.
        """
        if not self or not other:
            return IntervalSet.empty()

        result: List[Interval] = []
        others = other._intervals
        cursor = 0

        for interval in self._intervals:
            while cursor < len(others) and others[cursor].end <= interval.start:
                cursor += 1

            index = cursor
            while index < len(others) and others[index].start < interval.end:
                piece = interval.intersect(others[index])
                if piece is not None:
                    result.append(piece)
                index += 1

        # Pieces of two disjoint, non-adjacent sets are already canonical
        return IntervalSet._from_normalized(result)

    def complement(self, within: Interval) -> "IntervalSet":
        """Return the time inside ``within`` not covered by this set."""
        return IntervalSet([within]).subtract(self)

    @staticmethod
    def n_ary_intersect(sets: Iterable["IntervalSet"]) -> "IntervalSet":
        """
        Intersect all sets left to right.

        Returns the empty set without intersecting anything when one of the
        operands is empty, and stops as soon as an intermediate result is
        empty.

        Raises:
            ValueError: If no sets are given
        """
        operands = list(sets)
        if not operands:
            raise ValueError("n_ary_intersect needs at least one interval set")

        if any(not operand for operand in operands):
            return IntervalSet.empty()

        result = operands[0]
        for position, operand in enumerate(operands[1:], 1):
            result = result.intersect(operand)
            if not result:
                logger.debug("Intersection empty after %d of %d sets", position + 1, len(operands))
                return result

        return result

    def filter_min_duration(self, minutes: int) -> "IntervalSet":
        """Drop intervals shorter than ``minutes``."""
        if minutes <= 0:
            return self
        return IntervalSet._from_normalized(
            [interval for interval in self._intervals if interval.duration_minutes() >= minutes]
        )

    def total_minutes(self) -> int:
        return sum(interval.duration_minutes() for interval in self._intervals)

    def contains(self, point: DateTime) -> bool:
        return any(interval.contains(point) for interval in self._intervals)

    def covers(self, interval: Interval) -> bool:
        """Check if a single member fully contains ``interval``."""
        return any(
            member.start <= interval.start and interval.end <= member.end
            for member in self._intervals
        )

    def __iter__(self) -> Iterator[Interval]:
        return iter(self._intervals)

    def __len__(self) -> int:
        return len(self._intervals)

    def __bool__(self) -> bool:
        return bool(self._intervals)

    def __getitem__(self, index: int) -> Interval:
        return self._intervals[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IntervalSet):
            return NotImplemented
        return self._intervals == other._intervals

    def __hash__(self) -> int:
        return hash(self._intervals)

    def __repr__(self) -> str:
        members = ", ".join(str(interval) for interval in self._intervals)
        return f"IntervalSet([{members}])"
