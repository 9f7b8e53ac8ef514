"""
Adapters layer - Repositories and queues backed by memory or the booking backend.
"""

from .http_repository import BookingApiClient, HttpCalendarRepository, HttpLocationRepository
from .memory import (
    InMemoryCalendarRepository,
    InMemoryLocationRepository,
    InMemoryReminderQueue,
    load_repositories,
)

__all__ = [
    "BookingApiClient",
    "HttpCalendarRepository",
    "HttpLocationRepository",
    "InMemoryCalendarRepository",
    "InMemoryLocationRepository",
    "InMemoryReminderQueue",
    "load_repositories",
]
