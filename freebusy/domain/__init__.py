"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityCalculator, PipelineStage
from .cron import CronExpression, OneShot, Recurring, RepeatKind, plan_reminder
from .interval_set import IntervalSet
from .models import (
    Appointment,
    AppointmentState,
    AvailabilityQuery,
    BusyInterval,
    Interval,
    Schedule,
    ScheduleEntry,
    Weekday,
)
from .schedule_clipper import ScheduleClipper

__all__ = [
    "Appointment",
    "AppointmentState",
    "AvailabilityCalculator",
    "AvailabilityQuery",
    "BusyInterval",
    "CronExpression",
    "Interval",
    "IntervalSet",
    "OneShot",
    "PipelineStage",
    "Recurring",
    "RepeatKind",
    "Schedule",
    "ScheduleClipper",
    "ScheduleEntry",
    "Weekday",
    "plan_reminder",
]
