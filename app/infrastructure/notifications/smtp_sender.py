import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from ...application.ports.notification_sender import NotificationSender
from ...core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class SmtpNotificationSender(NotificationSender):
    """Sends HTML mail through the clinic's SMTP account.

    Every network step is bounded by SMTP_TIMEOUT_SECONDS so a slow mail
    server cannot hold a booking response open.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    def send(self, to_email: str, subject: str, html_body: str) -> None:
        s = self.settings
        from_address = f"{s.SMTP_FROM_NAME} <{s.SMTP_USER}>"

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = from_address
        msg["To"] = to_email
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        if s.SMTP_PORT == 465:
            context = ssl.create_default_context()
            server = smtplib.SMTP_SSL(s.SMTP_HOST, s.SMTP_PORT, context=context, timeout=s.SMTP_TIMEOUT_SECONDS)
        else:
            server = smtplib.SMTP(s.SMTP_HOST, s.SMTP_PORT, timeout=s.SMTP_TIMEOUT_SECONDS)
        try:
            if s.SMTP_PORT != 465 and s.SMTP_USE_TLS:
                server.starttls(context=ssl.create_default_context())
            if s.SMTP_PASSWORD:
                server.login(s.SMTP_USER, s.SMTP_PASSWORD)
            server.sendmail(s.SMTP_USER, [to_email], msg.as_string())
        finally:
            server.quit()

        logger.info(f"Email '{subject}' sent via {s.SMTP_HOST}")


class LoggingNotificationSender(NotificationSender):
    """Used when SMTP is not configured; records what would have been sent."""

    def send(self, to_email: str, subject: str, html_body: str) -> None:
        logger.info(f"SMTP not configured, skipping email '{subject}' to {to_email}")


def get_notification_sender() -> NotificationSender:
    if default_settings.smtp_enabled:
        return SmtpNotificationSender()
    return LoggingNotificationSender()
