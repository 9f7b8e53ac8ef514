"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability_resolver import (
    AvailabilityResolver,
    CalendarRepository,
    LocationRepository,
)
from .reminder_scheduler import ReminderQueue, ReminderScheduler

__all__ = [
    "AvailabilityResolver",
    "CalendarRepository",
    "LocationRepository",
    "ReminderQueue",
    "ReminderScheduler",
]
