"""
Trial-to-regular student conversion.

Triggered when a trial session completes. The profile update is the only
step that decides the outcome; notifications and the audit-log entry are
best-effort follow-ups that never undo a conversion.
"""

import logging

import sentry_sdk

from .enums import ClassStatus
from .errors import NotFoundError, StoreError
from .notifications.events import EventNotifier, full_name
from .timezone import utc_now

logger = logging.getLogger(__name__)

AUDIT_ACTION = "trial_conversion"


class TrialConversionService:
    def __init__(self, store, notifier: EventNotifier | None = None):
        self.store = store
        self.notifier = notifier

    async def convert_trial_if_eligible(self, session_id: str) -> bool:
        """
        Convert the session's student if it was a completed trial lesson.

        Returns:
            True if the student was converted by this call
        """
        try:
            session = await self.store.get_session(session_id)
        except NotFoundError:
            logger.error(f"Class session {session_id} not found")
            return False
        except StoreError as e:
            logger.error(f"Failed to fetch class session {session_id}: {e}")
            return False

        if not session.is_trial or session.status != ClassStatus.completed:
            return False

        student_id = session.student_id
        try:
            profile = await self.store.get_profile(student_id)
        except StoreError as e:
            logger.error(f"Failed to fetch student profile {student_id}: {e}")
            return False

        if not profile.get("is_trial") or profile.get("trial_completed"):
            logger.info(f"Student {student_id} already converted or not in trial")
            return False

        try:
            converted = await self.store.mark_trial_converted(student_id)
        except StoreError as e:
            logger.error(f"Failed to update profile {student_id} for conversion: {e}")
            return False

        if not converted:
            logger.info(f"Student {student_id} was converted concurrently")
            return False

        logger.info(f"Converted trial student {student_id} to regular")
        await self._after_conversion(profile)
        return True

    async def _after_conversion(self, profile: dict) -> None:
        student_id = str(profile["id"])

        if self.notifier is not None:
            try:
                await self.notifier.notify_conversion_complete(student_id)
                await self.notifier.notify_admins_of_conversion(profile)
            except Exception as e:
                logger.error(f"Error sending conversion notifications for {student_id}: {e}")
                sentry_sdk.capture_exception(e)

        try:
            await self.store.add_audit_log(
                user_id=student_id,
                action=AUDIT_ACTION,
                entity_type="profile",
                entity_id=student_id,
                old_value={"is_trial": True, "trial_completed": False},
                new_value={
                    "is_trial": False,
                    "trial_completed": True,
                    "converted_at": utc_now().isoformat(),
                },
                description=(
                    f"Trial student {full_name(profile, 'Unknown')} "
                    "converted to regular student"
                ),
            )
        except StoreError as e:
            logger.error(f"Failed to create audit log for conversion of {student_id}: {e}")
            sentry_sdk.capture_exception(e)

    async def process_completed_trials(self) -> int:
        """
        Re-check every completed trial session and convert eligible students.

        Returns:
            Number of students converted
        """
        try:
            session_ids = await self.store.get_completed_trial_session_ids()
        except StoreError as e:
            logger.error(f"Failed to fetch completed trial sessions: {e}")
            return 0

        converted = 0
        for session_id in session_ids:
            if await self.convert_trial_if_eligible(session_id):
                converted += 1

        logger.info(
            f"Processed {len(session_ids)} completed trials, converted {converted} students"
        )
        return converted
