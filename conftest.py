"""Root pytest configuration."""

import dataclasses
import itertools
from datetime import date, datetime, time
from pathlib import Path

import pytest
from dotenv import load_dotenv

from tutoring.class_sessions import ClassSession
from tutoring.enums import ClassStatus, NotificationType, UserRole
from tutoring.errors import NotFoundError, StoreError
from tutoring.notifications.models import ChannelResult, NotificationPreferences
from tutoring.timezone import utc_now

# Load environment variables before tests run
_root = Path(__file__).parent
load_dotenv(_root / ".env")
load_dotenv(_root / ".env.local", override=True)


@pytest.fixture(scope="session")
def event_loop_policy():
    """Use default event loop policy for all async tests."""
    import asyncio

    return asyncio.DefaultEventLoopPolicy()


class FakeStore:
    """
    In-memory stand-in for ``tutoring.store.Store``.

    Same method names and error semantics. Put a method name in ``fail_on``
    to make it raise ``StoreError``.
    """

    def __init__(self):
        self.sessions: dict[str, ClassSession] = {}
        self.profiles: dict[str, dict] = {}
        self.credits: dict[str, int] = {}
        self.preferences: dict[str, NotificationPreferences] = {}
        self.notifications: list[dict] = []
        self.delivery_records: dict[str, dict] = {}
        self.markers: set[tuple] = set()
        self.marker_notifications: dict[tuple, str] = {}
        self.audit_logs: list[dict] = []
        self.transitions: list[tuple] = []
        self.fail_on: set[str] = set()
        self.clock = utc_now
        self._ids = itertools.count(1)

    def _check(self, name: str) -> None:
        if name in self.fail_on:
            raise StoreError(f"{name} failed")

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    # Seeding helpers

    def add_profile(
        self,
        user_id: str,
        first_name: str = "",
        last_name: str = "",
        email: str | None = None,
        role: UserRole = UserRole.student,
        is_trial: bool = False,
        trial_completed: bool = False,
        created_at: datetime | None = None,
    ) -> dict:
        profile = {
            "id": user_id,
            "first_name": first_name,
            "last_name": last_name,
            "email": email if email is not None else f"{user_id}@example.com",
            "phone": None,
            "role": role,
            "is_trial": is_trial,
            "trial_completed": trial_completed,
            "converted_at": None,
            "created_at": created_at or utc_now(),
        }
        self.profiles[user_id] = profile
        return profile

    def add_session(
        self,
        session_id: str = "session-1",
        student_id: str = "student-1",
        teacher_id: str = "teacher-1",
        day: date | str = date(2025, 11, 6),
        clock: time | str = time(16, 0),
        duration_minutes: int = 60,
        status: ClassStatus = ClassStatus.scheduled,
        is_trial: bool = False,
    ) -> ClassSession:
        session = ClassSession(
            id=session_id,
            student_id=student_id,
            teacher_id=teacher_id,
            date=day,
            time=clock,
            duration_minutes=duration_minutes,
            status=status,
            meeting_link=f"https://meet.example.com/{session_id}",
            is_trial=is_trial,
        )
        self.sessions[session_id] = session
        return session

    def notifications_for(self, user_id: str, kind: NotificationType | None = None) -> list[dict]:
        return [
            n
            for n in self.notifications
            if n["user_id"] == user_id and (kind is None or n["type"] == kind)
        ]

    # Class sessions

    async def get_session(self, session_id: str) -> ClassSession:
        self._check("get_session")
        if session_id not in self.sessions:
            raise NotFoundError(f"Class session {session_id} not found")
        return dataclasses.replace(self.sessions[session_id])

    async def get_sessions_by_status(self, statuses, date_from=None, date_to=None):
        self._check("get_sessions_by_status")
        found = []
        for session in self.sessions.values():
            if session.status not in statuses:
                continue
            try:
                day = session.local_date
            except ValueError:
                found.append(dataclasses.replace(session))
                continue
            if date_from is not None and day < date_from:
                continue
            if date_to is not None and day > date_to:
                continue
            found.append(dataclasses.replace(session))
        return found

    async def get_completed_trial_session_ids(self) -> list[str]:
        self._check("get_completed_trial_session_ids")
        return [
            s.id
            for s in self.sessions.values()
            if s.is_trial and s.status == ClassStatus.completed
        ]

    async def transition_session_status(self, session_id, from_status, to_status) -> bool:
        self._check("transition_session_status")
        session = self.sessions.get(session_id)
        if session is None or session.status != from_status:
            return False
        session.status = to_status
        self.transitions.append((session_id, from_status, to_status))
        return True

    # Profiles, credits, audit

    async def get_profile(self, user_id: str) -> dict:
        self._check("get_profile")
        if user_id not in self.profiles:
            raise NotFoundError(f"Profile {user_id} not found")
        return dict(self.profiles[user_id])

    async def get_profiles(self, user_ids) -> dict[str, dict]:
        self._check("get_profiles")
        return {uid: dict(self.profiles[uid]) for uid in user_ids if uid in self.profiles}

    async def get_admin_ids(self) -> list[str]:
        self._check("get_admin_ids")
        return [uid for uid, p in self.profiles.items() if p["role"] == UserRole.admin]

    async def get_active_trial_profiles(self) -> list[dict]:
        self._check("get_active_trial_profiles")
        return [
            {"id": p["id"], "created_at": p["created_at"]}
            for p in self.profiles.values()
            if p["is_trial"] and not p["trial_completed"]
        ]

    async def mark_trial_converted(self, user_id: str) -> bool:
        self._check("mark_trial_converted")
        profile = self.profiles.get(user_id)
        if profile is None or not profile["is_trial"] or profile["trial_completed"]:
            return False
        profile.update(is_trial=False, trial_completed=True, converted_at=utc_now())
        return True

    async def get_low_credit_balances(self, threshold: int) -> list[dict]:
        self._check("get_low_credit_balances")
        return [
            {"user_id": uid, "credits": credits}
            for uid, credits in self.credits.items()
            if credits < threshold
        ]

    async def add_audit_log(self, user_id, action, entity_type, entity_id, old_value=None, new_value=None, description=None):
        self._check("add_audit_log")
        self.audit_logs.append(
            {
                "user_id": user_id,
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "old_value": old_value,
                "new_value": new_value,
                "description": description,
            }
        )

    # Notifications and delivery records

    async def get_preferences(self, user_id: str) -> NotificationPreferences:
        self._check("get_preferences")
        return self.preferences.get(user_id) or NotificationPreferences()

    async def create_notification(self, user_id, notification_type, title, message, class_id=None, metadata=None) -> str:
        self._check("create_notification")
        notification_id = self._next_id("notification")
        self.notifications.append(
            {
                "id": notification_id,
                "user_id": user_id,
                "type": notification_type,
                "title": title,
                "message": message,
                "class_id": class_id,
                "metadata": metadata or {},
                "read": False,
                "created_at": self.clock(),
            }
        )
        return notification_id

    async def was_notification_created_since(self, user_id, notification_type, since) -> bool:
        self._check("was_notification_created_since")
        return any(n["created_at"] >= since for n in self.notifications_for(user_id, notification_type))

    async def create_delivery_record(self, user_id, notification_id, notification_type, channel, recipient_address, subject, body) -> str:
        self._check("create_delivery_record")
        record_id = self._next_id("delivery")
        self.delivery_records[record_id] = {
            "id": record_id,
            "user_id": user_id,
            "notification_id": notification_id,
            "notification_type": notification_type,
            "channel": channel,
            "recipient_address": recipient_address,
            "subject": subject,
            "body": body,
            "status": "pending",
            "error_message": None,
        }
        return record_id

    async def finish_delivery_record(self, record_id, success, error_message=None) -> None:
        self._check("finish_delivery_record")
        record = self.delivery_records[record_id]
        record["status"] = "sent" if success else "failed"
        record["error_message"] = None if success else error_message

    # Reminder dispatch markers

    async def add_dispatch_marker(self, session_id, lead_time, user_id) -> bool:
        self._check("add_dispatch_marker")
        key = (session_id, lead_time, user_id)
        if key in self.markers:
            return False
        self.markers.add(key)
        return True

    async def link_dispatch_marker(self, session_id, lead_time, user_id, notification_id) -> None:
        self._check("link_dispatch_marker")
        self.marker_notifications[(session_id, lead_time, user_id)] = notification_id

    async def remove_dispatch_marker(self, session_id, lead_time, user_id) -> None:
        self._check("remove_dispatch_marker")
        self.markers.discard((session_id, lead_time, user_id))


class RecordingEmailChannel:
    """Email channel double that records messages instead of sending them."""

    def __init__(self, configured: bool = True):
        self.configured = configured
        self.fail = False
        self.sent = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def send(self, message) -> ChannelResult:
        if not self.configured:
            return ChannelResult(success=False, error="not configured")
        if self.fail:
            return ChannelResult(success=False, error="connection refused")
        self.sent.append(message)
        return ChannelResult(success=True)

    async def verify(self) -> bool:
        return self.configured


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def email_channel():
    return RecordingEmailChannel()


@pytest.fixture
def dispatcher(store, email_channel):
    from tutoring.notifications.dispatcher import NotificationDispatcher
    from tutoring.notifications.templates import TemplateRenderer

    return NotificationDispatcher(store, TemplateRenderer(), email_channel=email_channel)


@pytest.fixture
def participants(store):
    """A student and a teacher with profiles."""
    store.add_profile("student-1", "Sara", "Ali", email="sara@example.com")
    store.add_profile("teacher-1", "Omar", "Hassan", email="omar@example.com", role=UserRole.teacher)
    return store
