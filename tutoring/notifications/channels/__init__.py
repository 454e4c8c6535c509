"""Notification delivery channels."""

from .email import (
    EmailMessage,
    SendGridEmailChannel,
    SmtpEmailChannel,
    create_email_channel,
)

__all__ = [
    "EmailMessage",
    "SendGridEmailChannel",
    "SmtpEmailChannel",
    "create_email_channel",
]
