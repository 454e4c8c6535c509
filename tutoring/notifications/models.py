"""Value types passed between the reminder detector, dispatcher and channels."""

from dataclasses import dataclass, field

from tutoring.config import get_default_language
from tutoring.enums import (
    DeliveryChannel,
    LeadTime,
    NotificationCategory,
    NotificationType,
)


@dataclass(frozen=True)
class NotificationIntent:
    """A notification that should reach one user. Consumed immediately."""

    user_id: str
    kind: NotificationType
    template_params: dict = field(default_factory=dict)
    session_id: str | None = None
    lead_time: LeadTime | None = None


@dataclass
class NotificationPreferences:
    """Per-user delivery preferences. Defaults apply when a user has no row."""

    channels: set[DeliveryChannel] = field(
        default_factory=lambda: {DeliveryChannel.in_app, DeliveryChannel.email}
    )
    categories: set[NotificationCategory] = field(
        default_factory=lambda: set(NotificationCategory)
    )
    lead_times: set[LeadTime] = field(default_factory=lambda: set(LeadTime))
    language: str = field(default_factory=get_default_language)

    @classmethod
    def from_row(cls, row: dict | None) -> "NotificationPreferences":
        """Build preferences from a ``notification_preferences`` row."""
        if row is None:
            return cls()

        defaults = cls()
        channels = {
            channel
            for channel in DeliveryChannel
            if row.get(f"{channel.value}_enabled", channel in defaults.channels)
        }
        categories = {
            category
            for category in NotificationCategory
            if row.get(f"{category.value}_enabled", True)
        }
        lead_times = set(LeadTime)
        if row.get("reminder_lead_times") is not None:
            lead_times = {
                LeadTime(value)
                for value in row["reminder_lead_times"]
                if value in LeadTime._value2member_map_
            }

        return cls(
            channels=channels,
            categories=categories,
            lead_times=lead_times,
            language=row.get("language") or get_default_language(),
        )

    def allows(self, category: NotificationCategory, lead_time: LeadTime | None) -> bool:
        """True if the user wants notifications of this category/lead time."""
        if category not in self.categories:
            return False
        return lead_time is None or lead_time in self.lead_times


@dataclass
class ChannelResult:
    """Outcome of one channel delivery attempt."""

    success: bool
    error: str | None = None
    record_id: str | None = None


@dataclass
class DispatchResult:
    """Outcome of dispatching one intent."""

    in_app_id: str | None = None
    channel_results: dict[DeliveryChannel, ChannelResult] = field(default_factory=dict)
    opted_out: bool = False
    in_app_enabled: bool = True
    error: str | None = None

    @property
    def delivered(self) -> bool:
        """
        Whether the reminder counts as handled for dispatch-marker purposes.

        Opted-out users count as delivered. Once the in-app record exists the
        intent is delivered even if a secondary channel failed; otherwise at
        least one channel must have succeeded.
        """
        if self.error:
            return False
        if self.opted_out or self.in_app_id is not None:
            return True
        if self.in_app_enabled:
            return False
        return any(result.success for result in self.channel_results.values())
