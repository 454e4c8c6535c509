"""Email delivery channels (SMTP and SendGrid)."""

import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from tutoring.config import SmtpSettings, get_sendgrid_api_key, get_smtp_settings
from tutoring.notifications.models import ChannelResult
from tutoring.notifications.templates import html_to_plain_text


logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 30


@dataclass
class EmailMessage:
    """Email message data."""

    to_email: str
    subject: str
    html: str
    text: str | None = None

    @property
    def plain_text(self) -> str:
        return self.text if self.text is not None else html_to_plain_text(self.html)


class SmtpEmailChannel:
    """
    Sends email through an SMTP server.

    Missing credentials leave the channel unconfigured: every send fails
    immediately without opening a connection.
    """

    name = "smtp"

    def __init__(self, settings: SmtpSettings | None = None):
        self.settings = settings or get_smtp_settings()
        if not self.is_configured:
            logger.warning("SMTP not configured (SMTP_USER/SMTP_PASSWORD not set)")

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.host) and self.settings.has_credentials

    def _build_mime(self, message: EmailMessage) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = formataddr((self.settings.from_name, self.settings.from_email))
        msg["To"] = message.to_email
        msg["Subject"] = message.subject
        msg.attach(MIMEText(message.plain_text, "plain", "utf-8"))
        msg.attach(MIMEText(message.html, "html", "utf-8"))
        return msg

    def _open(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.settings.secure:
            server = smtplib.SMTP_SSL(
                self.settings.host,
                self.settings.port,
                context=context,
                timeout=SMTP_TIMEOUT_SECONDS,
            )
        else:
            server = smtplib.SMTP(
                self.settings.host, self.settings.port, timeout=SMTP_TIMEOUT_SECONDS
            )
            server.starttls(context=context)
        server.login(self.settings.user, self.settings.password)
        return server

    def _send_sync(self, message: EmailMessage) -> None:
        msg = self._build_mime(message)
        with self._open() as server:
            server.sendmail(self.settings.from_email, [message.to_email], msg.as_string())

    def _verify_sync(self) -> None:
        with self._open() as server:
            server.noop()

    async def send(self, message: EmailMessage) -> ChannelResult:
        if not self.is_configured:
            return ChannelResult(success=False, error="SMTP not configured")
        if not message.to_email:
            return ChannelResult(success=False, error="No recipient address")

        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {message.to_email}: {e}")
            return ChannelResult(success=False, error=str(e))

        logger.info(f"Email sent to {message.to_email}")
        return ChannelResult(success=True)

    async def verify(self) -> bool:
        """Check that the server accepts our credentials. Never raises."""
        if not self.is_configured:
            logger.warning("Email service not configured, skipping verification")
            return False
        try:
            await asyncio.to_thread(self._verify_sync)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(
                f"Email service verification failed ({self.settings.host}:{self.settings.port}): {e}"
            )
            return False
        logger.info(f"Email service ready ({self.settings.host}:{self.settings.port})")
        return True


class SendGridEmailChannel:
    """Sends email through the SendGrid API."""

    name = "sendgrid"

    def __init__(
        self,
        api_key: str | None,
        from_email: str,
        from_name: str,
    ):
        self.from_email = from_email
        self.from_name = from_name
        self._client = SendGridAPIClient(api_key) if api_key else None
        if self._client is None:
            logger.warning("SendGrid not configured (SENDGRID_API_KEY not set)")

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def _send_sync(self, message: EmailMessage) -> int:
        mail = Mail(
            from_email=(self.from_email, self.from_name),
            to_emails=message.to_email,
            subject=message.subject,
            plain_text_content=message.plain_text,
            html_content=message.html,
        )
        response = self._client.send(mail)
        return response.status_code

    async def send(self, message: EmailMessage) -> ChannelResult:
        if not self.is_configured:
            return ChannelResult(success=False, error="SendGrid not configured")
        if not message.to_email:
            return ChannelResult(success=False, error="No recipient address")

        try:
            status_code = await asyncio.to_thread(self._send_sync, message)
        except Exception as e:
            # python_http_client raises HTTPError subclasses, anything else is transport
            logger.error(f"Failed to send email to {message.to_email}: {e}")
            return ChannelResult(success=False, error=str(e))

        if status_code not in (200, 201, 202):
            logger.error(f"SendGrid rejected email to {message.to_email}: {status_code}")
            return ChannelResult(success=False, error=f"SendGrid status {status_code}")

        logger.info(f"Email sent to {message.to_email}")
        return ChannelResult(success=True)

    async def verify(self) -> bool:
        if not self.is_configured:
            logger.warning("Email service not configured, skipping verification")
            return False
        logger.info("Email service ready (SendGrid)")
        return True


def create_email_channel() -> SmtpEmailChannel | SendGridEmailChannel:
    """SendGrid when SENDGRID_API_KEY is set, SMTP otherwise."""
    settings = get_smtp_settings()
    api_key = get_sendgrid_api_key()
    if api_key:
        return SendGridEmailChannel(
            api_key, from_email=settings.from_email, from_name=settings.from_name
        )
    return SmtpEmailChannel(settings)
