"""
Email Module - Black Box Interface

Purpose: Outbound transactional email (password reset)
Interface: EmailService.send_email()
Hidden: SMTP transport, TLS negotiation

When no SMTP host is configured, messages are logged instead of sent.
"""

import asyncio
import logging
import smtplib
from email.mime.text import MIMEText
from typing import List

from ...config.provider import EmailConfig

logger = logging.getLogger(__name__)


class EmailService:
    """Sends plain-text email through SMTP."""

    def __init__(self, config: EmailConfig):
        self.config = config
        self.outbox: List[MIMEText] = []

    def _build(self, to: str, subject: str, message: str) -> MIMEText:
        msg = MIMEText(message, "plain")
        msg["Subject"] = subject
        msg["From"] = self.config.sender
        msg["To"] = to
        return msg

    def _deliver(self, msg: MIMEText) -> None:
        with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port, timeout=10) as server:
            if self.config.use_tls:
                server.starttls()
            if self.config.smtp_user:
                server.login(self.config.smtp_user, self.config.smtp_password or "")
            server.send_message(msg)

    async def send_email(self, to: str, subject: str, message: str) -> None:
        """
        Send one message.

        Raises:
            smtplib.SMTPException, OSError: On delivery failure
        """
        msg = self._build(to, subject, message)
        if not self.config.is_configured:
            # Kept for inspection in development and tests
            self.outbox.append(msg)
            del self.outbox[:-50]
            logger.info(f"SMTP not configured; email to {to} not sent: {subject}")
            return
        await asyncio.to_thread(self._deliver, msg)
        logger.info(f"Email sent to {to}: {subject}")


__all__ = ["EmailService"]
