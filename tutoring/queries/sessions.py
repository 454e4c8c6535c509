"""Database queries for class sessions."""

from datetime import date

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncConnection

from ..enums import ClassStatus
from ..tables import class_sessions


async def get_session(
    conn: AsyncConnection,
    session_id: str,
) -> dict | None:
    """Get a single class session by ID."""
    result = await conn.execute(
        select(class_sessions).where(class_sessions.c.id == session_id)
    )
    row = result.first()
    return dict(row._mapping) if row else None


async def get_sessions_by_status(
    conn: AsyncConnection,
    statuses: list[ClassStatus],
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[dict]:
    """
    Get sessions in any of ``statuses``, optionally bounded by local date.

    The date bounds are a coarse pre-filter; exact start/end instants are
    computed by the caller.
    """
    query = select(class_sessions).where(class_sessions.c.status.in_(statuses))
    if date_from is not None:
        query = query.where(class_sessions.c.date >= date_from)
    if date_to is not None:
        query = query.where(class_sessions.c.date <= date_to)
    query = query.order_by(class_sessions.c.date, class_sessions.c.time)

    result = await conn.execute(query)
    return [dict(row._mapping) for row in result]


async def get_completed_trial_session_ids(conn: AsyncConnection) -> list[str]:
    """IDs of every completed trial session."""
    result = await conn.execute(
        select(class_sessions.c.id)
        .where(class_sessions.c.is_trial.is_(True))
        .where(class_sessions.c.status == ClassStatus.completed)
    )
    return [str(row.id) for row in result]


async def update_session_status(
    conn: AsyncConnection,
    session_id: str,
    from_status: ClassStatus,
    to_status: ClassStatus,
) -> bool:
    """
    Conditionally move a session from ``from_status`` to ``to_status``.

    Only updates the row if it still has ``from_status``, so a concurrent
    cancellation is never overwritten.

    Returns:
        True if the row was updated
    """
    result = await conn.execute(
        update(class_sessions)
        .where(class_sessions.c.id == session_id)
        .where(class_sessions.c.status == from_status)
        .values(status=to_status, updated_at=func.now())
        .returning(class_sessions.c.id)
    )
    return result.first() is not None
