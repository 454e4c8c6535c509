"""
Time-driven class session status transitions.

    scheduled --[start <= now < end]--> in_progress --[now >= end]--> completed

Cancelled and no-show sessions are set by other flows and never touched here.
Every update is conditional on the status we read, so a cancellation that
lands mid-sweep wins.
"""

import logging
from datetime import datetime
from typing import Callable

import sentry_sdk

from .class_sessions import ClassSession, expected_status
from .enums import ClassStatus
from .errors import StoreError
from .timezone import operating_date, to_operating, utc_now

logger = logging.getLogger(__name__)


class ClassStatusEngine:
    """Moves sessions along their status state machine as time passes."""

    def __init__(
        self,
        store,
        converter=None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.converter = converter
        self.clock = clock

    async def run(self, now: datetime | None = None) -> dict:
        """
        Run one status sweep.

        Returns dict with counts: {"in_progress": N, "completed": N, "skipped": N, "failed": N}
        """
        now = to_operating(now or self.clock())
        stats = {"in_progress": 0, "completed": 0, "skipped": 0, "failed": 0}

        try:
            sessions = await self.store.get_sessions_by_status(
                [ClassStatus.scheduled, ClassStatus.in_progress],
                date_to=operating_date(now),
            )
        except StoreError as e:
            logger.error(f"Could not read sessions for status update: {e}")
            return stats

        for session in sessions:
            await self._advance(session, now, stats)

        if stats["in_progress"] or stats["completed"]:
            logger.info(
                f"Updated class statuses: {stats['in_progress']} in progress, "
                f"{stats['completed']} completed"
            )
        return stats

    async def _advance(self, session: ClassSession, now: datetime, stats: dict) -> None:
        try:
            target = expected_status(session, now)
        except ValueError as e:
            logger.warning(f"Skipping session {session.id} with malformed date/time: {e}")
            stats["skipped"] += 1
            return

        if target in (ClassStatus.scheduled, session.status):
            return

        try:
            moved = await self.store.transition_session_status(
                session.id, session.status, target
            )
        except StoreError as e:
            logger.error(f"Failed to update status of session {session.id}: {e}")
            stats["failed"] += 1
            return

        if not moved:
            # Status changed underneath us (e.g. cancelled)
            logger.info(f"Session {session.id} is no longer {session.status.value}, skipping")
            stats["skipped"] += 1
            return

        stats[target.value] += 1
        if target == ClassStatus.completed and session.is_trial:
            await self._convert(session.id)

    async def _convert(self, session_id: str) -> None:
        if self.converter is None:
            return
        try:
            await self.converter.convert_trial_if_eligible(session_id)
        except Exception as e:
            logger.error(f"Trial conversion failed for session {session_id}: {e}")
            sentry_sdk.capture_exception(e)
