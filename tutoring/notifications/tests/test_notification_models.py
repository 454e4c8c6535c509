"""Tests for notification preferences and dispatch results."""

from unittest.mock import patch

from tutoring.enums import DeliveryChannel, LeadTime, NotificationCategory
from tutoring.notifications.models import (
    ChannelResult,
    DispatchResult,
    NotificationPreferences,
)


class TestNotificationPreferences:
    def test_defaults_enable_in_app_and_email(self):
        preferences = NotificationPreferences.from_row(None)

        assert preferences.channels == {DeliveryChannel.in_app, DeliveryChannel.email}
        assert preferences.categories == set(NotificationCategory)
        assert preferences.lead_times == set(LeadTime)
        assert preferences.language == "ar"

    def test_default_language_from_environment(self):
        with patch.dict("os.environ", {"DEFAULT_LANGUAGE": "en"}):
            assert NotificationPreferences().language == "en"

    def test_from_row(self):
        row = {
            "in_app_enabled": True,
            "email_enabled": False,
            "sms_enabled": True,
            "class_updates_enabled": False,
            "reminder_lead_times": ["1h", "15m", "3d"],
            "language": "en",
        }

        preferences = NotificationPreferences.from_row(row)

        assert preferences.channels == {DeliveryChannel.in_app, DeliveryChannel.sms}
        assert NotificationCategory.class_updates not in preferences.categories
        assert NotificationCategory.class_reminders in preferences.categories
        assert preferences.lead_times == {LeadTime.hour_1, LeadTime.minutes_15}
        assert preferences.language == "en"

    def test_allows_checks_category_and_lead_time(self):
        preferences = NotificationPreferences(
            categories={NotificationCategory.class_reminders},
            lead_times={LeadTime.hour_1},
        )

        assert preferences.allows(NotificationCategory.class_reminders, LeadTime.hour_1)
        assert not preferences.allows(NotificationCategory.class_reminders, LeadTime.hours_24)
        assert not preferences.allows(NotificationCategory.system_updates, None)
        assert preferences.allows(NotificationCategory.class_reminders, None)


class TestDispatchResultDelivered:
    def test_in_app_record_is_enough(self):
        result = DispatchResult(
            in_app_id="n-1",
            channel_results={DeliveryChannel.email: ChannelResult(success=False, error="x")},
        )
        assert result.delivered

    def test_opted_out_counts_as_delivered(self):
        assert DispatchResult(opted_out=True).delivered

    def test_error_is_never_delivered(self):
        assert not DispatchResult(in_app_id="n-1", error="boom").delivered

    def test_in_app_enabled_without_record_is_not_delivered(self):
        result = DispatchResult(
            channel_results={DeliveryChannel.email: ChannelResult(success=True)}
        )
        assert not result.delivered

    def test_in_app_disabled_needs_one_successful_channel(self):
        ok = DispatchResult(
            in_app_enabled=False,
            channel_results={DeliveryChannel.email: ChannelResult(success=True)},
        )
        failed = DispatchResult(
            in_app_enabled=False,
            channel_results={DeliveryChannel.email: ChannelResult(success=False)},
        )

        assert ok.delivered
        assert not failed.delivered
