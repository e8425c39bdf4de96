"""Email delivery channel."""

import asyncio
import smtplib
from dataclasses import dataclass
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from omihorizn.core.config import settings
from omihorizn.core.database import utcnow


@dataclass
class ChannelDeliveryResult:
    """Result of a channel delivery attempt."""
    success: bool
    channel: str
    recipient: str
    delivered_at: Optional[datetime] = None
    error: Optional[str] = None


class EmailChannel:
    """Email delivery over SMTP."""

    channel_name = "email"

    async def deliver(
        self,
        recipient: str,
        title: str,
        message: str,
    ) -> ChannelDeliveryResult:
        """Send an email. Never raises; failures are reported in the result."""
        if not settings.SMTP_HOST or not settings.SMTP_FROM_EMAIL:
            return self._failure(recipient, "SMTP not configured")

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = title
            msg["From"] = settings.SMTP_FROM_EMAIL
            msg["To"] = recipient
            msg.attach(MIMEText(message, "plain"))
            html_content = (
                f"<html><body><h2>{title}</h2>"
                f"<p>{message.replace(chr(10), '<br>')}</p></body></html>"
            )
            msg.attach(MIMEText(html_content, "html"))

            # smtplib blocks
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._send_smtp, recipient, msg)

            return ChannelDeliveryResult(
                success=True,
                channel=self.channel_name,
                recipient=recipient,
                delivered_at=utcnow(),
            )
        except Exception as e:
            return self._failure(recipient, str(e))

    def _failure(self, recipient: str, error: str) -> ChannelDeliveryResult:
        return ChannelDeliveryResult(
            success=False,
            channel=self.channel_name,
            recipient=recipient,
            error=error,
        )

    def _send_smtp(self, recipient: str, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
            if settings.SMTP_TLS:
                server.starttls()
            if settings.SMTP_USER and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(settings.SMTP_FROM_EMAIL, recipient, msg.as_string())
