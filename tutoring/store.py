"""
Data store facade used by the engine components.

Wraps the query layer with connection/transaction handling and turns driver
failures into ``StoreError`` and missing rows into ``NotFoundError`` so
callers can tell "not there" apart from "couldn't ask". Components receive a
``Store`` in their constructor, which lets tests swap in an in-memory double.
"""

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from .class_sessions import ClassSession
from .database import get_engine
from .enums import ClassStatus, DeliveryChannel, LeadTime, NotificationType
from .errors import NotFoundError, StoreError
from .notifications.models import NotificationPreferences
from .queries import notifications as notification_queries
from .queries import profiles as profile_queries
from .queries import sessions as session_queries

logger = logging.getLogger(__name__)


class Store:
    """Persistence operations for sessions, profiles and notifications."""

    def __init__(self, engine: AsyncEngine | None = None):
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = get_engine()
        return self._engine

    @asynccontextmanager
    async def _connect(self) -> AsyncGenerator[AsyncConnection, None]:
        """Read-only connection; driver errors become StoreError."""
        try:
            async with self.engine.connect() as conn:
                yield conn
        except (SQLAlchemyError, OSError) as e:
            raise StoreError(str(e)) from e

    @asynccontextmanager
    async def _transaction(self) -> AsyncGenerator[AsyncConnection, None]:
        """Connection that commits on success and rolls back on error."""
        try:
            async with self.engine.begin() as conn:
                yield conn
        except (SQLAlchemyError, OSError) as e:
            raise StoreError(str(e)) from e

    # -----------------------------------------------------------------
    # Class sessions
    # -----------------------------------------------------------------

    async def get_session(self, session_id: str) -> ClassSession:
        async with self._connect() as conn:
            row = await session_queries.get_session(conn, session_id)
        if row is None:
            raise NotFoundError(f"Class session {session_id} not found")
        return ClassSession.from_row(row)

    async def get_sessions_by_status(
        self,
        statuses: list[ClassStatus],
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[ClassSession]:
        async with self._connect() as conn:
            rows = await session_queries.get_sessions_by_status(
                conn, statuses, date_from=date_from, date_to=date_to
            )
        return [ClassSession.from_row(row) for row in rows]

    async def get_completed_trial_session_ids(self) -> list[str]:
        async with self._connect() as conn:
            return await session_queries.get_completed_trial_session_ids(conn)

    async def transition_session_status(
        self,
        session_id: str,
        from_status: ClassStatus,
        to_status: ClassStatus,
    ) -> bool:
        async with self._transaction() as conn:
            return await session_queries.update_session_status(
                conn, session_id, from_status, to_status
            )

    # -----------------------------------------------------------------
    # Profiles, credits, audit
    # -----------------------------------------------------------------

    async def get_profile(self, user_id: str) -> dict:
        async with self._connect() as conn:
            row = await profile_queries.get_profile(conn, user_id)
        if row is None:
            raise NotFoundError(f"Profile {user_id} not found")
        return row

    async def get_profiles(self, user_ids: list[str]) -> dict[str, dict]:
        async with self._connect() as conn:
            return await profile_queries.get_profiles(conn, list(user_ids))

    async def get_admin_ids(self) -> list[str]:
        async with self._connect() as conn:
            return await profile_queries.get_admin_ids(conn)

    async def get_active_trial_profiles(self) -> list[dict]:
        async with self._connect() as conn:
            return await profile_queries.get_active_trial_profiles(conn)

    async def mark_trial_converted(self, user_id: str) -> bool:
        async with self._transaction() as conn:
            return await profile_queries.mark_trial_converted(conn, user_id)

    async def get_low_credit_balances(self, threshold: int) -> list[dict]:
        async with self._connect() as conn:
            return await profile_queries.get_low_credit_balances(conn, threshold)

    async def add_audit_log(
        self,
        user_id: str | None,
        action: str,
        entity_type: str,
        entity_id: str | None,
        old_value: dict | None = None,
        new_value: dict | None = None,
        description: str | None = None,
    ) -> None:
        async with self._transaction() as conn:
            await profile_queries.insert_audit_log(
                conn,
                user_id=user_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                old_value=old_value,
                new_value=new_value,
                description=description,
            )

    # -----------------------------------------------------------------
    # Notifications and delivery records
    # -----------------------------------------------------------------

    async def get_preferences(self, user_id: str) -> NotificationPreferences:
        """Preferences for ``user_id``; defaults when the user has no row."""
        async with self._connect() as conn:
            row = await notification_queries.get_preferences(conn, user_id)
        return NotificationPreferences.from_row(row)

    async def create_notification(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        class_id: str | None = None,
        metadata: dict | None = None,
    ) -> str:
        async with self._transaction() as conn:
            return await notification_queries.create_notification(
                conn,
                user_id=user_id,
                notification_type=notification_type,
                title=title,
                message=message,
                class_id=class_id,
                metadata=metadata,
            )

    async def was_notification_created_since(
        self,
        user_id: str,
        notification_type: NotificationType,
        since: datetime,
    ) -> bool:
        async with self._connect() as conn:
            return await notification_queries.was_notification_created_since(
                conn, user_id, notification_type, since
            )

    async def create_delivery_record(
        self,
        user_id: str,
        notification_id: str | None,
        notification_type: NotificationType,
        channel: DeliveryChannel,
        recipient_address: str,
        subject: str,
        body: str,
    ) -> str:
        async with self._transaction() as conn:
            return await notification_queries.create_delivery_record(
                conn,
                user_id=user_id,
                notification_id=notification_id,
                notification_type=notification_type,
                channel=channel,
                recipient_address=recipient_address,
                subject=subject,
                body=body,
            )

    async def finish_delivery_record(
        self,
        record_id: str,
        success: bool,
        error_message: str | None = None,
    ) -> None:
        async with self._transaction() as conn:
            await notification_queries.finish_delivery_record(
                conn, record_id, success, error_message
            )

    # -----------------------------------------------------------------
    # Reminder dispatch markers
    # -----------------------------------------------------------------

    async def add_dispatch_marker(
        self, session_id: str, lead_time: LeadTime, user_id: str
    ) -> bool:
        """Claim a reminder. Returns False when it was already claimed."""
        async with self._transaction() as conn:
            return await notification_queries.add_dispatch_marker(
                conn, session_id, lead_time, user_id
            )

    async def link_dispatch_marker(
        self,
        session_id: str,
        lead_time: LeadTime,
        user_id: str,
        notification_id: str,
    ) -> None:
        async with self._transaction() as conn:
            await notification_queries.link_dispatch_marker(
                conn, session_id, lead_time, user_id, notification_id
            )

    async def remove_dispatch_marker(
        self, session_id: str, lead_time: LeadTime, user_id: str
    ) -> None:
        async with self._transaction() as conn:
            await notification_queries.remove_dispatch_marker(
                conn, session_id, lead_time, user_id
            )
