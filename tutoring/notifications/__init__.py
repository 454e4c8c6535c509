"""
Notification system: reminders, event notifications and delivery.

Public API:
    NotificationDispatcher.dispatch(intent) - Deliver one notification to one user
    ReminderWindowDetector.sweep(lead_time) - Send 24h/1h/15m class reminders
    EventNotifier - Low balance / trial expiry sweeps and one-off events
    TemplateRenderer.render(kind, language, params) - Render message texts
"""

from .dispatcher import NotificationDispatcher
from .events import EventNotifier
from .models import (
    ChannelResult,
    DispatchResult,
    NotificationIntent,
    NotificationPreferences,
)
from .reminders import REMINDER_CONFIG, ReminderWindowDetector
from .templates import RenderedMessage, TemplateRenderer

__all__ = [
    "NotificationDispatcher",
    "EventNotifier",
    "ReminderWindowDetector",
    "REMINDER_CONFIG",
    "TemplateRenderer",
    "RenderedMessage",
    "NotificationIntent",
    "NotificationPreferences",
    "ChannelResult",
    "DispatchResult",
]
