"""
Ticket External Service Integrations
====================================

Outbound mail submission for ticket notifications.

smtplib is blocking, so every send runs in a worker thread; the
NotificationService bounds it with its own timeout.
"""

import asyncio
import smtplib
from email.message import EmailMessage
from typing import Optional

from helpdesk.core import NotificationException
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.tickets.application import IMailTransport
from helpdesk.tickets.domain import RenderedNotification

logger = get_logger(__name__)


class SMTPMailTransport(IMailTransport):
    """
    SMTP submission client.

    Uses implicit TLS when `secure` is set, otherwise upgrades with
    STARTTLS when the server offers it. With no host configured every send
    is skipped, which keeps local development quiet.
    """

    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        secure: bool = False,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        timeout_seconds: float = 10.0
    ):
        self.host = host
        self.port = port
        self.secure = secure
        self.username = username
        self.password = password
        self.sender = sender or username
        self.timeout_seconds = timeout_seconds

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.sender)

    def build_message(self, recipient: str, notification: RenderedNotification) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = recipient
        message["Subject"] = notification.subject
        message.set_content(notification.text)
        message.add_alternative(notification.html, subtype="html")
        return message

    def _send_blocking(self, message: EmailMessage) -> None:
        if self.secure:
            client = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout_seconds)
        else:
            client = smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds)

        with client as smtp:
            if not self.secure:
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls()
                    smtp.ehlo()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(message)

    async def send(self, recipient: str, notification: RenderedNotification) -> None:
        """
        Submit one message.

        Raises:
            NotificationException: SMTP or connection failure
        """
        if not self.is_configured:
            logger.debug(
                "SMTP not configured, skipping notification",
                extra={"recipient": recipient, "subject": notification.subject}
            )
            return

        message = self.build_message(recipient, notification)
        try:
            await asyncio.to_thread(self._send_blocking, message)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationException(
                f"Failed to send to {recipient}: {e}",
                {"recipient": recipient, "host": self.host, "port": self.port}
            ) from e
