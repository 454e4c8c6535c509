"""
Notification dispatcher - routes notifications to channels based on user preferences.
"""

import logging

from tutoring.enums import (
    NOTIFICATION_CATEGORIES,
    DeliveryChannel,
    NotificationCategory,
)
from tutoring.errors import NotFoundError, StoreError
from tutoring.notifications.channels.email import EmailMessage
from tutoring.notifications.models import (
    ChannelResult,
    DispatchResult,
    NotificationIntent,
)
from tutoring.notifications.templates import RenderedMessage, TemplateRenderer


logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Delivers one intent to one user.

    The in-app record is written first. Email is attempted afterwards and
    each attempt gets its own delivery record; a failed channel never undoes
    the in-app record or another channel's record.
    """

    def __init__(self, store, renderer: TemplateRenderer | None = None, email_channel=None):
        self.store = store
        self.renderer = renderer or TemplateRenderer()
        self.email_channel = email_channel

    async def dispatch(self, intent: NotificationIntent) -> DispatchResult:
        """
        Send a notification to a user via their enabled channels.

        Never raises for a store or transport failure; problems are reported
        through the returned ``DispatchResult``.
        """
        category = NOTIFICATION_CATEGORIES.get(intent.kind, NotificationCategory.system_updates)

        try:
            preferences = await self.store.get_preferences(intent.user_id)
            profile = await self.store.get_profile(intent.user_id)
        except NotFoundError:
            logger.warning(f"User {intent.user_id} not found for {intent.kind.value} notification")
            return DispatchResult(error="User not found")
        except StoreError as e:
            logger.error(f"Could not load recipient {intent.user_id}: {e}")
            return DispatchResult(error=str(e))

        in_app_enabled = DeliveryChannel.in_app in preferences.channels
        if not preferences.allows(category, intent.lead_time):
            logger.info(
                f"User {intent.user_id} opted out of {category.value}, "
                f"skipping {intent.kind.value}"
            )
            return DispatchResult(opted_out=True, in_app_enabled=in_app_enabled)

        context = {
            "name": profile.get("first_name") or "",
            "email": profile.get("email") or "",
            **intent.template_params,
        }
        rendered = self.renderer.render(intent.kind, preferences.language, context)

        result = DispatchResult(in_app_enabled=in_app_enabled)

        if in_app_enabled:
            metadata = {"lead_time": intent.lead_time.value} if intent.lead_time else {}
            try:
                result.in_app_id = await self.store.create_notification(
                    user_id=intent.user_id,
                    notification_type=intent.kind,
                    title=rendered.title,
                    message=rendered.message,
                    class_id=intent.session_id,
                    metadata=metadata,
                )
            except StoreError as e:
                # Nothing sent yet, so a retry on the next sweep cannot duplicate
                logger.error(
                    f"Failed to create in-app notification for user {intent.user_id}: {e}"
                )
                result.error = str(e)
                return result

        if DeliveryChannel.email in preferences.channels and self.email_channel is not None:
            if rendered.has_email:
                result.channel_results[DeliveryChannel.email] = await self._send_email(
                    intent, profile, rendered, result.in_app_id
                )

        for channel in (DeliveryChannel.sms, DeliveryChannel.messaging_app):
            if channel in preferences.channels:
                logger.debug(f"No adaptor for {channel.value}, skipping")

        if not in_app_enabled and not result.channel_results:
            logger.info(f"No enabled channel for user {intent.user_id}, skipping {intent.kind.value}")
            result.opted_out = True

        return result

    async def _send_email(
        self,
        intent: NotificationIntent,
        profile: dict,
        rendered: RenderedMessage,
        notification_id: str | None,
    ) -> ChannelResult:
        address = profile.get("email") or ""

        try:
            record_id = await self.store.create_delivery_record(
                user_id=intent.user_id,
                notification_id=notification_id,
                notification_type=intent.kind,
                channel=DeliveryChannel.email,
                recipient_address=address,
                subject=rendered.subject,
                body=rendered.html,
            )
        except StoreError as e:
            logger.error(f"Failed to record email delivery for user {intent.user_id}: {e}")
            return ChannelResult(success=False, error=str(e))

        channel_result = await self.email_channel.send(
            EmailMessage(
                to_email=address,
                subject=rendered.subject,
                html=rendered.html,
                text=rendered.text,
            )
        )
        channel_result.record_id = record_id

        if not channel_result.success:
            logger.warning(
                f"Email {intent.kind.value} to user {intent.user_id} failed: {channel_result.error}"
            )

        try:
            await self.store.finish_delivery_record(
                record_id, channel_result.success, channel_result.error
            )
        except StoreError as e:
            logger.error(f"Failed to update delivery record {record_id}: {e}")

        return channel_result
