"""Initial schema baseline.

Revision ID: 001
Revises:
Create Date: 2025-10-01

This is a baseline migration - the platform schema already exists in the
database (profiles, class_sessions, class_credits, notifications,
notification_preferences, audit_logs and their enums).
After deploying the lesson engine, run: alembic stamp 001
"""

from typing import Sequence, Union

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Schema already exists in database.

    This migration exists only to establish the baseline.
    """
    pass


def downgrade() -> None:
    """Cannot downgrade - would drop entire schema."""
    raise RuntimeError("Cannot downgrade initial baseline migration")
