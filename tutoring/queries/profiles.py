"""Database queries for profiles, credits and audit logs."""

from sqlalchemy import func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncConnection

from ..enums import UserRole
from ..tables import audit_logs, class_credits, profiles


async def get_profile(
    conn: AsyncConnection,
    user_id: str,
) -> dict | None:
    """Get a single profile by ID."""
    result = await conn.execute(select(profiles).where(profiles.c.id == user_id))
    row = result.first()
    return dict(row._mapping) if row else None


async def get_profiles(
    conn: AsyncConnection,
    user_ids: list[str],
) -> dict[str, dict]:
    """Get several profiles at once, keyed by ID."""
    if not user_ids:
        return {}
    result = await conn.execute(select(profiles).where(profiles.c.id.in_(user_ids)))
    return {str(row.id): dict(row._mapping) for row in result}


async def get_admin_ids(conn: AsyncConnection) -> list[str]:
    """IDs of all admin profiles."""
    result = await conn.execute(
        select(profiles.c.id).where(profiles.c.role == UserRole.admin)
    )
    return [str(row.id) for row in result]


async def get_active_trial_profiles(conn: AsyncConnection) -> list[dict]:
    """Profiles still in their trial period."""
    result = await conn.execute(
        select(profiles.c.id, profiles.c.created_at)
        .where(profiles.c.is_trial.is_(True))
        .where(profiles.c.trial_completed.is_(False))
    )
    return [dict(row._mapping) for row in result]


async def mark_trial_converted(
    conn: AsyncConnection,
    user_id: str,
) -> bool:
    """
    Convert a trial student to a regular student.

    Conditional on the profile still being an unconverted trial, so two
    concurrent conversions only succeed once.

    Returns:
        True if the profile was converted by this call
    """
    result = await conn.execute(
        update(profiles)
        .where(profiles.c.id == user_id)
        .where(profiles.c.is_trial.is_(True))
        .where(profiles.c.trial_completed.is_(False))
        .values(
            is_trial=False,
            trial_completed=True,
            converted_at=func.now(),
            updated_at=func.now(),
        )
        .returning(profiles.c.id)
    )
    return result.first() is not None


async def get_low_credit_balances(
    conn: AsyncConnection,
    threshold: int,
) -> list[dict]:
    """Users whose credit balance is below ``threshold``."""
    result = await conn.execute(
        select(class_credits.c.user_id, class_credits.c.credits).where(
            class_credits.c.credits < threshold
        )
    )
    return [dict(row._mapping) for row in result]


async def insert_audit_log(
    conn: AsyncConnection,
    user_id: str | None,
    action: str,
    entity_type: str,
    entity_id: str | None,
    old_value: dict | None = None,
    new_value: dict | None = None,
    description: str | None = None,
) -> None:
    """Append an audit-log entry for a system action."""
    await conn.execute(
        insert(audit_logs).values(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_value=old_value,
            new_value=new_value,
            description=description,
        )
    )
