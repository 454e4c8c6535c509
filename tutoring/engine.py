"""
Wires the lesson engine together.

Every component is constructed explicitly and handed its collaborators, so
tests can build an engine around an in-memory store and a fake email channel.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from .class_status import ClassStatusEngine
from .conversion import TrialConversionService
from .enums import LeadTime
from .notifications.channels.email import create_email_channel
from .notifications.dispatcher import NotificationDispatcher
from .notifications.events import EventNotifier
from .notifications.reminders import ReminderWindowDetector
from .notifications.templates import TemplateRenderer
from .scheduler import TaskScheduler
from .store import Store
from .timezone import utc_now

logger = logging.getLogger(__name__)


JOB_INTERVALS = {
    "class_status_update": timedelta(minutes=5),
    "class_reminders_24h": timedelta(minutes=60),
    "class_reminders_1h": timedelta(minutes=15),
    "class_reminders_15m": timedelta(minutes=5),
    "low_credit_balance_check": timedelta(hours=6),
    "expiring_trials_check": timedelta(hours=12),
}


@dataclass
class LessonEngine:
    """The background engine's components and its scheduler."""

    store: Store
    email_channel: object
    dispatcher: NotificationDispatcher
    notifier: EventNotifier
    converter: TrialConversionService
    status_engine: ClassStatusEngine
    reminders: ReminderWindowDetector
    scheduler: TaskScheduler

    def start(self) -> None:
        self.scheduler.start()

    async def stop(self, timeout: float | None = None) -> None:
        await self.scheduler.stop(timeout=timeout)

    async def verify_channels(self) -> bool:
        """Log whether email can be delivered. Never blocks boot."""
        return await self.email_channel.verify()

    def register_jobs(self) -> None:
        jobs = {
            "class_status_update": self.status_engine.run,
            "class_reminders_24h": lambda: self.reminders.sweep(LeadTime.hours_24),
            "class_reminders_1h": lambda: self.reminders.sweep(LeadTime.hour_1),
            "class_reminders_15m": lambda: self.reminders.sweep(LeadTime.minutes_15),
            "low_credit_balance_check": self.notifier.check_low_credit_balances,
            "expiring_trials_check": self.notifier.check_expiring_trials,
        }
        for name, task in jobs.items():
            self.scheduler.register(name, JOB_INTERVALS[name], task)


def build_engine(
    store: Store | None = None,
    email_channel=None,
    renderer: TemplateRenderer | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> LessonEngine:
    """Construct every component and register the periodic jobs."""
    store = store or Store()
    email_channel = email_channel or create_email_channel()

    dispatcher = NotificationDispatcher(
        store, renderer=renderer or TemplateRenderer(), email_channel=email_channel
    )
    notifier = EventNotifier(store, dispatcher, clock=clock)
    converter = TrialConversionService(store, notifier)

    engine = LessonEngine(
        store=store,
        email_channel=email_channel,
        dispatcher=dispatcher,
        notifier=notifier,
        converter=converter,
        status_engine=ClassStatusEngine(store, converter, clock=clock),
        reminders=ReminderWindowDetector(store, dispatcher, clock=clock),
        scheduler=TaskScheduler(),
    )
    engine.register_jobs()
    return engine
