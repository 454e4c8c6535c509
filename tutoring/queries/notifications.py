"""Database queries for notifications, delivery records, preferences and markers."""

from datetime import datetime

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncConnection

from ..enums import DeliveryChannel, DeliveryStatus, LeadTime, NotificationType
from ..tables import (
    delivery_records,
    notification_preferences,
    notifications,
    reminder_dispatch_markers,
)


async def create_notification(
    conn: AsyncConnection,
    user_id: str,
    notification_type: NotificationType,
    title: str,
    message: str,
    class_id: str | None = None,
    metadata: dict | None = None,
) -> str:
    """
    Create an in-app notification record.

    Returns:
        The new notification id
    """
    result = await conn.execute(
        insert(notifications)
        .values(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            class_id=class_id,
            metadata=metadata or {},
            read=False,
        )
        .returning(notifications.c.id)
    )
    return str(result.scalar_one())


async def was_notification_created_since(
    conn: AsyncConnection,
    user_id: str,
    notification_type: NotificationType,
    since: datetime,
) -> bool:
    """Check whether ``user_id`` got a notification of this type after ``since``."""
    result = await conn.execute(
        select(notifications.c.id)
        .where(notifications.c.user_id == user_id)
        .where(notifications.c.type == notification_type)
        .where(notifications.c.created_at >= since)
        .limit(1)
    )
    return result.first() is not None


async def create_delivery_record(
    conn: AsyncConnection,
    user_id: str,
    notification_id: str | None,
    notification_type: NotificationType,
    channel: DeliveryChannel,
    recipient_address: str,
    subject: str,
    body: str,
) -> str:
    """
    Record a channel delivery attempt in ``pending`` state.

    Returns:
        The new delivery record id
    """
    result = await conn.execute(
        insert(delivery_records)
        .values(
            user_id=user_id,
            notification_id=notification_id,
            notification_type=notification_type,
            channel=channel,
            recipient_address=recipient_address,
            subject=subject,
            body=body,
            status=DeliveryStatus.pending,
        )
        .returning(delivery_records.c.id)
    )
    return str(result.scalar_one())


async def finish_delivery_record(
    conn: AsyncConnection,
    record_id: str,
    success: bool,
    error_message: str | None = None,
) -> None:
    """Mark a delivery record ``sent`` or ``failed``."""
    await conn.execute(
        update(delivery_records)
        .where(delivery_records.c.id == record_id)
        .values(
            status=DeliveryStatus.sent if success else DeliveryStatus.failed,
            sent_at=func.now() if success else None,
            error_message=None if success else error_message,
            updated_at=func.now(),
        )
    )


async def get_preferences(
    conn: AsyncConnection,
    user_id: str,
) -> dict | None:
    """Get a user's notification preferences row, if any."""
    result = await conn.execute(
        select(notification_preferences).where(
            notification_preferences.c.user_id == user_id
        )
    )
    row = result.first()
    return dict(row._mapping) if row else None


def _marker_key(session_id: str, lead_time: LeadTime, user_id: str):
    return (
        (reminder_dispatch_markers.c.session_id == session_id)
        & (reminder_dispatch_markers.c.lead_time == lead_time)
        & (reminder_dispatch_markers.c.user_id == user_id)
    )


async def add_dispatch_marker(
    conn: AsyncConnection,
    session_id: str,
    lead_time: LeadTime,
    user_id: str,
) -> bool:
    """
    Claim a reminder before it is dispatched.

    Idempotent: an existing marker is left untouched.

    Returns:
        True if a new marker was inserted, False if the reminder was already claimed
    """
    result = await conn.execute(
        pg_insert(reminder_dispatch_markers)
        .values(
            session_id=session_id,
            lead_time=lead_time,
            user_id=user_id,
        )
        .on_conflict_do_nothing(
            constraint="uq_reminder_dispatch_markers_session_lead_user"
        )
        .returning(reminder_dispatch_markers.c.marker_id)
    )
    return result.first() is not None


async def link_dispatch_marker(
    conn: AsyncConnection,
    session_id: str,
    lead_time: LeadTime,
    user_id: str,
    notification_id: str,
) -> None:
    """Attach the in-app notification a claimed reminder produced."""
    await conn.execute(
        update(reminder_dispatch_markers)
        .where(_marker_key(session_id, lead_time, user_id))
        .values(notification_id=notification_id)
    )


async def remove_dispatch_marker(
    conn: AsyncConnection,
    session_id: str,
    lead_time: LeadTime,
    user_id: str,
) -> None:
    """Release a claim whose reminder was not delivered."""
    await conn.execute(
        delete(reminder_dispatch_markers).where(
            _marker_key(session_id, lead_time, user_id)
        )
    )
