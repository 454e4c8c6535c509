"""SQLAlchemy enum definitions for the database schema."""

import enum

from sqlalchemy import Enum as SQLEnum


# =====================================================
# Python Enum Classes
# =====================================================


class ClassStatus(str, enum.Enum):
    scheduled = "scheduled"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"
    no_show = "no_show"


class UserRole(str, enum.Enum):
    student = "student"
    teacher = "teacher"
    admin = "admin"


class NotificationType(str, enum.Enum):
    class_reminder_24h = "class_reminder_24h"
    class_reminder_1h = "class_reminder_1h"
    class_reminder_15m = "class_reminder_15m"
    class_scheduled = "class_scheduled"
    class_cancelled = "class_cancelled"
    low_credit_balance = "low_credit_balance"
    trial_expiring = "trial_expiring"
    conversion_complete = "conversion_complete"
    student_converted = "student_converted"


class NotificationCategory(str, enum.Enum):
    class_reminders = "class_reminders"
    class_updates = "class_updates"
    messages = "messages"
    system_updates = "system_updates"


class DeliveryChannel(str, enum.Enum):
    in_app = "in_app"
    email = "email"
    sms = "sms"
    messaging_app = "messaging_app"


class DeliveryStatus(str, enum.Enum):
    pending = "pending"
    sent = "sent"
    failed = "failed"


class LeadTime(str, enum.Enum):
    hours_24 = "24h"
    hour_1 = "1h"
    minutes_15 = "15m"


# Which preference category gates each notification type
NOTIFICATION_CATEGORIES = {
    NotificationType.class_reminder_24h: NotificationCategory.class_reminders,
    NotificationType.class_reminder_1h: NotificationCategory.class_reminders,
    NotificationType.class_reminder_15m: NotificationCategory.class_reminders,
    NotificationType.class_scheduled: NotificationCategory.class_updates,
    NotificationType.class_cancelled: NotificationCategory.class_updates,
    NotificationType.low_credit_balance: NotificationCategory.system_updates,
    NotificationType.trial_expiring: NotificationCategory.system_updates,
    NotificationType.conversion_complete: NotificationCategory.system_updates,
    NotificationType.student_converted: NotificationCategory.system_updates,
}


# =====================================================
# SQLAlchemy Enum Types
# These reference existing PostgreSQL types (create_type=False)
# =====================================================

class_status_enum = SQLEnum(
    ClassStatus, name="class_status", create_type=False, native_enum=True
)
user_role_enum = SQLEnum(
    UserRole, name="user_role", create_type=False, native_enum=True
)
notification_type_enum = SQLEnum(
    NotificationType, name="notification_type", create_type=False, native_enum=True
)
delivery_channel_enum = SQLEnum(
    DeliveryChannel, name="delivery_channel", create_type=False, native_enum=True
)
delivery_status_enum = SQLEnum(
    DeliveryStatus, name="delivery_status", create_type=False, native_enum=True
)
lead_time_enum = SQLEnum(
    LeadTime,
    name="lead_time",
    create_type=False,
    native_enum=True,
    values_callable=lambda e: [member.value for member in e],
)
