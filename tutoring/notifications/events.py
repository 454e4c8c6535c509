"""
Event notifications outside the reminder windows.

Covers the periodic low-balance and trial-expiry sweeps and the one-off
notifications raised by booking, cancellation and trial conversion.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Callable

from tutoring.class_sessions import ClassSession
from tutoring.config import (
    get_default_language,
    get_low_credit_threshold,
    get_trial_duration_days,
)
from tutoring.enums import NotificationType
from tutoring.errors import NotFoundError, StoreError
from tutoring.notifications.dispatcher import NotificationDispatcher
from tutoring.notifications.models import NotificationIntent
from tutoring.timezone import format_time, utc_now


logger = logging.getLogger(__name__)

LOW_BALANCE_DEDUP_WINDOW = timedelta(days=7)
TRIAL_EXPIRY_DEDUP_WINDOW = timedelta(hours=24)
TRIAL_NOTIFY_DAYS_BEFORE = (3, 1)

# Wording that depends on the recipient's language but not on the template
CLASS_LABELS = {
    "ar": {True: "تجريبية", False: "جديدة"},
    "en": {True: "trial", False: "new"},
}
REFUND_NOTES = {
    "ar": ". تم إرجاع {amount} رصيد إلى حسابك",
    "en": ". {amount} credits were returned to your account",
}


def full_name(profile: dict | None, fallback: str = "") -> str:
    """First and last name joined, or ``fallback`` if neither is set."""
    if not profile:
        return fallback
    name = f"{profile.get('first_name') or ''} {profile.get('last_name') or ''}".strip()
    return name or fallback


class EventNotifier:
    """Sends notifications for platform events."""

    def __init__(
        self,
        store,
        dispatcher: NotificationDispatcher,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.clock = clock

    async def _language_for(self, user_id: str) -> str:
        try:
            preferences = await self.store.get_preferences(user_id)
        except StoreError:
            return get_default_language()
        return preferences.language if preferences.language in CLASS_LABELS else get_default_language()

    async def _send(self, user_id: str, kind: NotificationType, params: dict, session_id=None) -> bool:
        result = await self.dispatcher.dispatch(
            NotificationIntent(
                user_id=user_id,
                kind=kind,
                template_params=params,
                session_id=session_id,
            )
        )
        if result.opted_out:
            return False
        if result.delivered:
            logger.info(f"{kind.value} notification sent to user {user_id}")
        else:
            logger.warning(f"{kind.value} notification to user {user_id} failed: {result.error}")
        return result.delivered

    async def _load_session(self, session_id: str) -> ClassSession | None:
        try:
            return await self.store.get_session(session_id)
        except NotFoundError:
            logger.error(f"Class session {session_id} not found")
        except StoreError as e:
            logger.error(f"Failed to fetch class session {session_id}: {e}")
        return None

    # -----------------------------------------------------------------
    # One-off events
    # -----------------------------------------------------------------

    async def notify_class_scheduled(self, session_id: str) -> bool:
        """Tell the student a class was booked for them."""
        session = await self._load_session(session_id)
        if session is None:
            return False

        try:
            teacher = await self.store.get_profile(session.teacher_id)
        except StoreError:
            teacher = None

        language = await self._language_for(session.student_id)
        params = {
            "date": session.local_date.isoformat(),
            "time": format_time(session.local_time),
            "duration": session.duration_minutes,
            "teacher_name": full_name(teacher, "المدرس" if language == "ar" else "your teacher"),
            "class_label": CLASS_LABELS[language][session.is_trial],
        }
        return await self._send(
            session.student_id, NotificationType.class_scheduled, params, session.id
        )

    async def notify_class_cancelled(
        self, session_id: str, refund_amount: int | None = None
    ) -> bool:
        """Tell the student a class was cancelled, with the refund if any."""
        session = await self._load_session(session_id)
        if session is None:
            return False

        language = await self._language_for(session.student_id)
        refund_note = ""
        if refund_amount:
            refund_note = REFUND_NOTES[language].format(amount=refund_amount)

        params = {
            "date": session.local_date.isoformat(),
            "time": format_time(session.local_time),
            "refund_note": refund_note,
        }
        return await self._send(
            session.student_id, NotificationType.class_cancelled, params, session.id
        )

    async def notify_conversion_complete(self, user_id: str) -> bool:
        return await self._send(user_id, NotificationType.conversion_complete, {})

    async def notify_admins_of_conversion(self, student: dict) -> int:
        """
        Tell every admin that ``student`` became a regular student.

        Returns:
            Number of admins notified
        """
        try:
            admin_ids = await self.store.get_admin_ids()
        except StoreError as e:
            logger.error(f"Failed to fetch admins for conversion notification: {e}")
            return 0

        if not admin_ids:
            logger.warning("No admin users found for conversion notification")
            return 0

        params = {
            "student_name": full_name(student),
            "student_email": student.get("email") or "",
        }
        notified = 0
        for admin_id in admin_ids:
            if await self._send(admin_id, NotificationType.student_converted, params):
                notified += 1
        return notified

    # -----------------------------------------------------------------
    # Periodic sweeps
    # -----------------------------------------------------------------

    async def check_low_credit_balances(self, now: datetime | None = None) -> int:
        """
        Notify users whose credit balance is below the threshold.

        A user is notified at most once per 7 days.

        Returns:
            Number of users notified
        """
        now = now or self.clock()
        threshold = get_low_credit_threshold()

        try:
            balances = await self.store.get_low_credit_balances(threshold)
        except StoreError as e:
            logger.error(f"Failed to fetch users with low credit balance: {e}")
            return 0

        if not balances:
            logger.info("No users with low credit balance found")
            return 0

        notified = 0
        for balance in balances:
            user_id = str(balance["user_id"])
            try:
                if await self.store.was_notification_created_since(
                    user_id, NotificationType.low_credit_balance, now - LOW_BALANCE_DEDUP_WINDOW
                ):
                    logger.info(f"Low balance notification already sent recently for user {user_id}")
                    continue
            except StoreError as e:
                logger.error(f"Could not check recent notifications for user {user_id}: {e}")
                continue

            if await self._send(
                user_id,
                NotificationType.low_credit_balance,
                {"current_balance": balance["credits"]},
            ):
                notified += 1

        logger.info(f"Notified {notified} users about low credit balance")
        return notified

    async def check_expiring_trials(self, now: datetime | None = None) -> int:
        """
        Notify trial students whose trial ends in 3 or 1 days.

        Days remaining are rounded up; a student is notified at most once per
        24 hours.

        Returns:
            Number of students notified
        """
        now = now or self.clock()
        trial_length = timedelta(days=get_trial_duration_days())

        try:
            students = await self.store.get_active_trial_profiles()
        except StoreError as e:
            logger.error(f"Failed to fetch trial students: {e}")
            return 0

        if not students:
            logger.info("No trial students found")
            return 0

        notified = 0
        for student in students:
            user_id = str(student["id"])
            created_at = student.get("created_at")
            if created_at is None:
                continue

            remaining = (created_at + trial_length - now).total_seconds()
            days_remaining = math.ceil(remaining / 86400)
            if days_remaining not in TRIAL_NOTIFY_DAYS_BEFORE:
                continue

            try:
                if await self.store.was_notification_created_since(
                    user_id, NotificationType.trial_expiring, now - TRIAL_EXPIRY_DEDUP_WINDOW
                ):
                    continue
            except StoreError as e:
                logger.error(f"Could not check recent notifications for user {user_id}: {e}")
                continue

            if await self._send(
                user_id,
                NotificationType.trial_expiring,
                {"days_remaining": days_remaining},
            ):
                notified += 1

        logger.info(f"Notified {notified} trial students about expiring trials")
        return notified
