"""
Lesson engine - class lifecycle and notification scheduling.

Runs as a background process next to the tutoring platform: advances class
sessions through their statuses, sends class reminders and event
notifications, and converts trial students after their trial lesson.
"""

# Domain types
from .class_sessions import ClassSession, expected_status
from .enums import ClassStatus, DeliveryChannel, LeadTime, NotificationType

# Persistence
from .database import check_connection, close_engine, get_engine
from .errors import NotFoundError, StoreError
from .store import Store

# Engine components
from .class_status import ClassStatusEngine
from .conversion import TrialConversionService
from .scheduler import TaskScheduler
from .engine import JOB_INTERVALS, LessonEngine, build_engine

__all__ = [
    "ClassSession",
    "expected_status",
    "ClassStatus",
    "DeliveryChannel",
    "LeadTime",
    "NotificationType",
    "check_connection",
    "close_engine",
    "get_engine",
    "NotFoundError",
    "StoreError",
    "Store",
    "ClassStatusEngine",
    "TrialConversionService",
    "TaskScheduler",
    "JOB_INTERVALS",
    "LessonEngine",
    "build_engine",
]
