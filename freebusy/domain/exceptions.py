"""
Domain-specific exception hierarchy for the availability engine.

Every outcome other than "computed a free set" has its own exception type,
so callers branch with ``except`` on the variant they care about.
"""

from __future__ import annotations


class AvailabilityError(Exception):
    """Base class for all application-level errors."""


class InvalidQuery(AvailabilityError):
    """Raised when an availability query is malformed (empty entity list, bad range)."""


class EntityNotFound(AvailabilityError):
    """Raised when an entity or location id does not resolve."""

    def __init__(self, entity_id: str) -> None:
        super().__init__(f"Entity not found: {entity_id}")
        self.entity_id = entity_id


class NoCalendar(AvailabilityError):
    """Raised when an entity exists but has no calendar configured."""

    def __init__(self, entity_id: str) -> None:
        super().__init__(f"Entity {entity_id} has no calendar")
        self.entity_id = entity_id


class CalendarLookupError(AvailabilityError):
    """Raised when calendar or schedule data cannot be fetched or parsed."""


class NoAvailability(AvailabilityError):
    """Raised when an entity has no free time left in the queried range."""

    def __init__(self, entity_id: str) -> None:
        super().__init__(f"Entity {entity_id} has no free time in the given range")
        self.entity_id = entity_id


class AvailabilityTimeout(AvailabilityError):
    """Raised when collaborator I/O exceeds the resolver deadline."""


class UnsupportedRepeatKind(AvailabilityError):
    """Raised when a repeat kind cannot be expressed as a cron pattern."""

    def __init__(self, repeat: object) -> None:
        super().__init__(f"Unsupported repeat kind for cron: {repeat}")
        self.repeat = repeat


class InvalidAppointment(AvailabilityError):
    """Raised when an appointment record cannot become a busy interval."""


class SlotTaken(AvailabilityError):
    """Raised when a requested booking overlaps existing busy time."""
