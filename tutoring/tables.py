"""SQLAlchemy Core table definitions for the database schema."""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    Time,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, TIMESTAMP, UUID

from .enums import (
    class_status_enum,
    delivery_channel_enum,
    delivery_status_enum,
    lead_time_enum,
    notification_type_enum,
    user_role_enum,
)

# Naming convention for constraints (helps Alembic generate better names)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)


def _uuid_pk() -> Column:
    return Column(
        "id",
        UUID(as_uuid=False),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )


# =====================================================
# 1. PROFILES
# =====================================================
profiles = Table(
    "profiles",
    metadata,
    _uuid_pk(),
    Column("first_name", Text),
    Column("last_name", Text),
    Column("email", Text),
    Column("phone", Text),
    Column("role", user_role_enum, nullable=False, server_default="student"),
    Column("is_trial", Boolean, server_default="false"),
    Column("trial_completed", Boolean, server_default="false"),
    Column("converted_at", TIMESTAMP(timezone=True)),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_profiles_role", "role"),
    Index("idx_profiles_trial", "is_trial", "trial_completed"),
)


# =====================================================
# 2. CLASS_SESSIONS
# =====================================================
class_sessions = Table(
    "class_sessions",
    metadata,
    _uuid_pk(),
    Column(
        "student_id",
        UUID(as_uuid=False),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "teacher_id",
        UUID(as_uuid=False),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    ),
    # Local wall-clock date/time in the operating timezone
    Column("date", Date, nullable=False),
    Column("time", Time, nullable=False),
    Column("duration", Integer, nullable=False, server_default="60"),  # minutes
    Column("meeting_link", Text),
    Column("is_trial", Boolean, server_default="false"),
    Column("status", class_status_enum, nullable=False, server_default="scheduled"),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_class_sessions_status_date", "status", "date"),
    Index("idx_class_sessions_student_date", "student_id", "date"),
    Index("idx_class_sessions_teacher_date", "teacher_id", "date"),
)


# =====================================================
# 3. CLASS_CREDITS
# =====================================================
class_credits = Table(
    "class_credits",
    metadata,
    Column(
        "user_id",
        UUID(as_uuid=False),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("credits", Integer, nullable=False, server_default="0"),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
)


# =====================================================
# 4. NOTIFICATIONS (in-app)
# =====================================================
notifications = Table(
    "notifications",
    metadata,
    _uuid_pk(),
    Column(
        "user_id",
        UUID(as_uuid=False),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("type", notification_type_enum, nullable=False),
    Column("title", Text, nullable=False),
    Column("message", Text, nullable=False),
    Column("read", Boolean, nullable=False, server_default="false"),
    Column(
        "class_id",
        UUID(as_uuid=False),
        ForeignKey("class_sessions.id", ondelete="SET NULL"),
    ),
    Column("metadata", JSONB, server_default=text("'{}'::jsonb")),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_notifications_user_read", "user_id", "read"),
    Index("idx_notifications_user_type_created", "user_id", "type", "created_at"),
)


# =====================================================
# 5. DELIVERY_RECORDS (one per channel attempt)
# =====================================================
delivery_records = Table(
    "delivery_records",
    metadata,
    _uuid_pk(),
    Column(
        "user_id",
        UUID(as_uuid=False),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "notification_id",
        UUID(as_uuid=False),
        ForeignKey("notifications.id", ondelete="SET NULL"),
    ),
    Column("notification_type", notification_type_enum, nullable=False),
    Column("channel", delivery_channel_enum, nullable=False),
    Column("recipient_address", Text, nullable=False),
    Column("subject", Text, nullable=False),
    Column("body", Text, nullable=False),
    Column("status", delivery_status_enum, nullable=False, server_default="pending"),
    Column("sent_at", TIMESTAMP(timezone=True)),
    Column("error_message", Text),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_delivery_records_user_id", "user_id"),
    Index("idx_delivery_records_status", "status"),
)


# =====================================================
# 6. NOTIFICATION_PREFERENCES
# =====================================================
notification_preferences = Table(
    "notification_preferences",
    metadata,
    Column(
        "user_id",
        UUID(as_uuid=False),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("in_app_enabled", Boolean, nullable=False, server_default="true"),
    Column("email_enabled", Boolean, nullable=False, server_default="true"),
    Column("sms_enabled", Boolean, nullable=False, server_default="false"),
    Column("messaging_app_enabled", Boolean, nullable=False, server_default="false"),
    Column("class_reminders_enabled", Boolean, nullable=False, server_default="true"),
    Column("class_updates_enabled", Boolean, nullable=False, server_default="true"),
    Column("messages_enabled", Boolean, nullable=False, server_default="true"),
    Column("system_updates_enabled", Boolean, nullable=False, server_default="true"),
    Column(
        "reminder_lead_times",
        ARRAY(Text),
        nullable=False,
        server_default=text("ARRAY['24h','1h','15m']"),
    ),
    Column("language", Text),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
)


# =====================================================
# 7. REMINDER_DISPATCH_MARKERS
# =====================================================
reminder_dispatch_markers = Table(
    "reminder_dispatch_markers",
    metadata,
    Column("marker_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "session_id",
        UUID(as_uuid=False),
        ForeignKey("class_sessions.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("lead_time", lead_time_enum, nullable=False),
    Column(
        "user_id",
        UUID(as_uuid=False),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("notification_id", UUID(as_uuid=False)),
    Column("dispatched_at", TIMESTAMP(timezone=True), server_default=func.now()),
    UniqueConstraint(
        "session_id",
        "lead_time",
        "user_id",
        name="uq_reminder_dispatch_markers_session_lead_user",
    ),
)


# =====================================================
# 8. AUDIT_LOGS
# =====================================================
audit_logs = Table(
    "audit_logs",
    metadata,
    _uuid_pk(),
    Column("user_id", UUID(as_uuid=False)),
    Column("action", Text, nullable=False),
    Column("entity_type", Text, nullable=False),
    Column("entity_id", Text),
    Column("old_value", JSONB),
    Column("new_value", JSONB),
    Column("description", Text),
    Column("ip_address", Text),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_audit_logs_user_id", "user_id"),
)
