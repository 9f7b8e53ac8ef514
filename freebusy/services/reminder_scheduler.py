"""
Application service dispatching reminders to a job queue.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Protocol

from pendulum import Duration

from ..domain.cron import DEFAULT_REMINDER_TIMEZONE, OneShot, Recurring, ReminderPlan, plan_reminder
from ..domain.models import Reminder

logger = logging.getLogger(__name__)

REMINDER_JOB_NAME = "sendReminder"


class ReminderQueue(Protocol):
    """Protocol describing the job queue behaviour needed by the scheduler."""

    async def add(
        self,
        name: str,
        data: Dict[str, Any],
        *,
        job_id: str,
        delay: Duration | None = None,
        cron: str | None = None,
    ) -> None:
        """Enqueue a delayed (``delay``) or repeating (``cron``) job."""

    async def remove(self, job_id: str) -> bool:
        """Remove a job. Returns False if no such job exists."""


class ReminderScheduler:
    """
    Turns reminders into queue jobs.

    Repeating reminders become cron jobs; one-shot reminders become delayed
    jobs. A one-shot reminder whose time has passed is not scheduled.
    """

    def __init__(self, queue: ReminderQueue, timezone: str = DEFAULT_REMINDER_TIMEZONE) -> None:
        self._queue = queue
        self._timezone = timezone

    async def schedule(self, reminder: Reminder, now: datetime | None = None) -> ReminderPlan | None:
        """
        Enqueue a job for the reminder.

        Returns:
            The plan that was enqueued, or None if the reminder time has passed
        """
        plan = plan_reminder(reminder.time, reminder.repeat, now=now, timezone=self._timezone)
        data = self._job_data(reminder)

        if plan is None:
            logger.warning(
                "Reminder %s time %s has passed, not scheduling",
                reminder.reminder_id,
                reminder.time,
            )
            return None

        if isinstance(plan, Recurring):
            logger.info("Scheduling reminder %s with cron '%s'", reminder.reminder_id, plan.cron)
            await self._queue.add(REMINDER_JOB_NAME, data, job_id=reminder.reminder_id, cron=plan.cron)
        elif isinstance(plan, OneShot):
            logger.info(
                "Scheduling one-shot reminder %s in %ss",
                reminder.reminder_id,
                int(plan.delay.total_seconds()),
            )
            await self._queue.add(REMINDER_JOB_NAME, data, job_id=reminder.reminder_id, delay=plan.delay)

        return plan

    async def reschedule(self, reminder: Reminder, now: datetime | None = None) -> ReminderPlan | None:
        """Replace the existing job of a reminder with one for its new time."""
        await self.cancel(reminder.reminder_id)
        return await self.schedule(reminder, now=now)

    async def cancel(self, reminder_id: str) -> bool:
        removed = await self._queue.remove(reminder_id)
        if removed:
            logger.info("Removed job of reminder %s", reminder_id)
        return removed

    @staticmethod
    def _job_data(reminder: Reminder) -> Dict[str, Any]:
        return {
            "reminderId": reminder.reminder_id,
            "userId": reminder.user_id,
            "title": reminder.title,
            "description": reminder.description,
        }
