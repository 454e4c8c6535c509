"""
Reminder window detection.

Each sweep looks for scheduled sessions starting within ``[now, now + lead]``
and dispatches one reminder per participant. A dispatch marker keyed by
(session, lead time, user) is claimed before the dispatch and released when
the dispatcher reports no delivery. The overlapping sweeps of a coarse
cadence therefore send each reminder at most once, and a failed delivery is
retried by the next sweep.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from tutoring.class_sessions import ClassSession
from tutoring.enums import ClassStatus, LeadTime, NotificationType
from tutoring.errors import StoreError
from tutoring.notifications.dispatcher import NotificationDispatcher
from tutoring.notifications.events import full_name
from tutoring.notifications.models import NotificationIntent
from tutoring.timezone import format_time, operating_date, to_operating, utc_now


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderWindow:
    lead: timedelta
    kind: NotificationType
    notify_teacher: bool


REMINDER_CONFIG = {
    LeadTime.hours_24: ReminderWindow(
        lead=timedelta(hours=24),
        kind=NotificationType.class_reminder_24h,
        notify_teacher=False,
    ),
    LeadTime.hour_1: ReminderWindow(
        lead=timedelta(hours=1),
        kind=NotificationType.class_reminder_1h,
        notify_teacher=True,
    ),
    LeadTime.minutes_15: ReminderWindow(
        lead=timedelta(minutes=15),
        kind=NotificationType.class_reminder_15m,
        notify_teacher=True,
    ),
}


class ReminderWindowDetector:
    """Finds sessions entering a reminder window and notifies participants."""

    def __init__(
        self,
        store,
        dispatcher: NotificationDispatcher,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.clock = clock

    async def sweep(self, lead_time: LeadTime, now: datetime | None = None) -> dict:
        """
        Run one reminder sweep for ``lead_time``.

        A failed session read aborts the sweep with zero counts; per-session
        and per-recipient failures are logged and counted.

        Returns:
            Dict with counts: {"found", "sent", "skipped", "failed"}
        """
        window = REMINDER_CONFIG[lead_time]
        now = to_operating(now or self.clock())
        window_end = now + window.lead
        stats = {"found": 0, "sent": 0, "skipped": 0, "failed": 0}

        try:
            sessions = await self.store.get_sessions_by_status(
                [ClassStatus.scheduled],
                date_from=operating_date(now),
                date_to=operating_date(window_end),
            )
        except StoreError as e:
            logger.error(f"Could not read sessions for {lead_time.value} reminders: {e}")
            return stats

        for session in sessions:
            try:
                start = session.starts_at
            except ValueError as e:
                logger.warning(f"Skipping session {session.id} with malformed date/time: {e}")
                stats["skipped"] += 1
                continue

            if not now <= start <= window_end:
                continue

            stats["found"] += 1
            await self._remind_session(session, lead_time, window, stats)

        logger.info(
            f"{lead_time.value} reminders: found {stats['found']} sessions, "
            f"sent {stats['sent']}, skipped {stats['skipped']}, failed {stats['failed']}"
        )
        return stats

    async def _remind_session(
        self,
        session: ClassSession,
        lead_time: LeadTime,
        window: ReminderWindow,
        stats: dict,
    ) -> None:
        recipients = [session.student_id]
        if window.notify_teacher:
            recipients.append(session.teacher_id)

        try:
            profiles = await self.store.get_profiles(list(session.participant_ids))
        except StoreError as e:
            logger.error(f"Could not load participants of session {session.id}: {e}")
            stats["failed"] += len(recipients)
            return

        student_name = full_name(profiles.get(session.student_id))
        teacher_name = full_name(profiles.get(session.teacher_id))
        params = {
            "date": session.local_date.isoformat(),
            "time": format_time(session.local_time),
            "duration": session.duration_minutes,
            "meeting_link": session.meeting_link or "",
            "student_name": student_name,
            "teacher_name": teacher_name,
        }

        for user_id in recipients:
            # Name the other participant
            counterpart = student_name if user_id == session.teacher_id else teacher_name
            await self._remind_user(
                session,
                user_id,
                lead_time,
                window,
                {**params, "counterpart_name": counterpart},
                stats,
            )

    async def _remind_user(
        self,
        session: ClassSession,
        user_id: str,
        lead_time: LeadTime,
        window: ReminderWindow,
        params: dict,
        stats: dict,
    ) -> None:
        # Claim first: a reminder whose marker cannot be written is never sent
        try:
            claimed = await self.store.add_dispatch_marker(session.id, lead_time, user_id)
        except StoreError as e:
            logger.error(f"Could not claim reminder marker for session {session.id}: {e}")
            stats["failed"] += 1
            return
        if not claimed:
            stats["skipped"] += 1
            return

        result = await self.dispatcher.dispatch(
            NotificationIntent(
                user_id=user_id,
                kind=window.kind,
                template_params=params,
                session_id=session.id,
                lead_time=lead_time,
            )
        )
        if not result.delivered:
            logger.warning(
                f"{lead_time.value} reminder for session {session.id} to user {user_id} "
                f"not delivered ({result.error or 'all channels failed'}), will retry"
            )
            stats["failed"] += 1
            try:
                await self.store.remove_dispatch_marker(session.id, lead_time, user_id)
            except StoreError as e:
                logger.error(
                    f"Could not release reminder marker for session {session.id} "
                    f"({lead_time.value}, user {user_id}), it will not be retried: {e}"
                )
            return

        stats["sent"] += 1
        if result.in_app_id:
            try:
                await self.store.link_dispatch_marker(
                    session.id, lead_time, user_id, result.in_app_id
                )
            except StoreError as e:
                logger.warning(f"Could not link reminder marker to notification {result.in_app_id}: {e}")
