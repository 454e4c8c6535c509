"""Add delivery_records and reminder_dispatch_markers tables.

Revision ID: 002
Revises: 001
Create Date: 2025-11-06

delivery_records holds one row per channel delivery attempt.
reminder_dispatch_markers records which (session, lead time, user) reminders
were already sent, so overlapping reminder sweeps never send twice.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

delivery_channel = postgresql.ENUM(
    "in_app", "email", "sms", "messaging_app", name="delivery_channel", create_type=False
)
delivery_status = postgresql.ENUM(
    "pending", "sent", "failed", name="delivery_status", create_type=False
)
lead_time = postgresql.ENUM("24h", "1h", "15m", name="lead_time", create_type=False)
notification_type = postgresql.ENUM(name="notification_type", create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    delivery_channel.create(bind, checkfirst=True)
    delivery_status.create(bind, checkfirst=True)
    lead_time.create(bind, checkfirst=True)

    op.create_table(
        "delivery_records",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("notification_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("notification_type", notification_type, nullable=False),
        sa.Column("channel", delivery_channel, nullable=False),
        sa.Column("recipient_address", sa.Text(), nullable=False),
        sa.Column("subject", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column(
            "status", delivery_status, server_default="pending", nullable=False
        ),
        sa.Column("sent_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["profiles.id"],
            name=op.f("fk_delivery_records_user_id_profiles"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["notification_id"],
            ["notifications.id"],
            name=op.f("fk_delivery_records_notification_id_notifications"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_delivery_records")),
    )
    op.create_index(
        "idx_delivery_records_user_id", "delivery_records", ["user_id"], unique=False
    )
    op.create_index(
        "idx_delivery_records_status", "delivery_records", ["status"], unique=False
    )

    op.create_table(
        "reminder_dispatch_markers",
        sa.Column("marker_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("lead_time", lead_time, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("notification_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column(
            "dispatched_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(
            ["session_id"],
            ["class_sessions.id"],
            name=op.f("fk_reminder_dispatch_markers_session_id_class_sessions"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["profiles.id"],
            name=op.f("fk_reminder_dispatch_markers_user_id_profiles"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("marker_id", name=op.f("pk_reminder_dispatch_markers")),
        sa.UniqueConstraint(
            "session_id",
            "lead_time",
            "user_id",
            name="uq_reminder_dispatch_markers_session_lead_user",
        ),
    )


def downgrade() -> None:
    op.drop_table("reminder_dispatch_markers")
    op.drop_index("idx_delivery_records_status", table_name="delivery_records")
    op.drop_index("idx_delivery_records_user_id", table_name="delivery_records")
    op.drop_table("delivery_records")

    bind = op.get_bind()
    lead_time.drop(bind, checkfirst=True)
    delivery_status.drop(bind, checkfirst=True)
    delivery_channel.drop(bind, checkfirst=True)
