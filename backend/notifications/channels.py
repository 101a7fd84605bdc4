"""Notification channel implementations.

Each channel handles delivery for one transport (email, Slack, webhook,
in-app). The NotificationManager dispatches to the appropriate channel.
A channel never raises on delivery problems; it reports them in the
DeliveryResult.
"""

import asyncio
import html
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from enum import Enum
from typing import Any, Optional

import httpx
import structlog

from core.utils import utc_now

logger = structlog.get_logger(__name__)


# ─── Data Types ────────────────────────────────────────────────

class NotificationChannel(str, Enum):
    EMAIL = "email"
    SLACK = "slack"
    WEBHOOK = "webhook"
    IN_APP = "in_app"


@dataclass
class Notification:
    """A message to be delivered."""
    subject: str
    body: str
    channel: NotificationChannel
    recipient: str = ""  # email, Slack channel, webhook URL, user id
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=lambda: utc_now().isoformat())


@dataclass
class DeliveryResult:
    """Result of a single delivery attempt."""
    success: bool
    channel: NotificationChannel
    recipient: str
    message: str = ""
    error: Optional[str] = None
    delivered_at: Optional[str] = None


# ─── Base Channel ──────────────────────────────────────────────

class BaseChannel(ABC):
    """Abstract base for notification channels."""

    channel_type: NotificationChannel

    @abstractmethod
    async def send(self, notification: Notification) -> DeliveryResult:
        """Send a notification through this channel."""
        ...

    def _delivered(self, recipient: str, message: str) -> DeliveryResult:
        return DeliveryResult(
            success=True,
            channel=self.channel_type,
            recipient=recipient,
            message=message,
            delivered_at=utc_now().isoformat(),
        )

    def _failed(self, recipient: str, error: str) -> DeliveryResult:
        logger.warning("notification_delivery_failed", channel=self.channel_type.value, error=error)
        return DeliveryResult(
            success=False,
            channel=self.channel_type,
            recipient=recipient,
            error=error,
        )


# ─── Email Channel ─────────────────────────────────────────────

class EmailChannel(BaseChannel):
    """Send notifications via SMTP email.

    Config:
        smtp_host, smtp_port, smtp_user, smtp_password,
        from_address, use_tls
    """

    channel_type = NotificationChannel.EMAIL

    def __init__(self, config: dict = None):
        self.config = config or {}

    async def send(self, notification: Notification) -> DeliveryResult:
        """Send email notification."""
        if not notification.recipient:
            return self._failed("", "No email recipient")

        from_addr = self.config.get("from_address", "workflow@localhost")
        msg = MIMEMultipart("alternative")
        msg["Subject"] = notification.subject
        msg["From"] = from_addr
        msg["To"] = notification.recipient
        msg.attach(MIMEText(notification.body, "plain"))
        msg.attach(MIMEText(self._render_html(notification), "html"))

        try:
            # smtplib blocks; keep it off the event loop
            await asyncio.to_thread(self._send_smtp, from_addr, notification.recipient, msg)
        except (smtplib.SMTPException, OSError) as e:
            return self._failed(notification.recipient, f"Email send failed: {e}")

        return self._delivered(notification.recipient, "Email sent")

    @staticmethod
    def _render_html(notification: Notification) -> str:
        body = html.escape(notification.body).replace("\n", "<br>")
        return f"""
        <div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">
            <h2 style="color: #333;">{html.escape(notification.subject)}</h2>
            <div style="color: #555; line-height: 1.6;">{body}</div>
        </div>
        """

    def _send_smtp(self, from_addr: str, to_addr: str, msg: MIMEMultipart) -> None:
        host = self.config.get("smtp_host", "localhost")
        port = self.config.get("smtp_port", 587)
        user = self.config.get("smtp_user", "")
        password = self.config.get("smtp_password", "")
        with smtplib.SMTP(host, port, timeout=30) as server:
            if self.config.get("use_tls", True):
                server.starttls()
            if user and password:
                server.login(user, password)
            server.sendmail(from_addr, to_addr, msg.as_string())


# ─── Slack Channel ─────────────────────────────────────────────

class SlackChannel(BaseChannel):
    """Send notifications to Slack via an incoming webhook.

    Config:
        webhook_url
    """

    channel_type = NotificationChannel.SLACK

    def __init__(self, config: dict = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or {}
        self._transport = transport

    async def send(self, notification: Notification) -> DeliveryResult:
        """Send Slack notification."""
        webhook_url = self.config.get("webhook_url")
        if not webhook_url:
            return self._failed(notification.recipient, "No Slack webhook URL configured")

        payload = {
            "blocks": [
                {"type": "header", "text": {"type": "plain_text", "text": notification.subject[:150]}},
                {"type": "section", "text": {"type": "mrkdwn", "text": notification.body[:3000]}},
            ],
        }
        if notification.recipient:
            payload["channel"] = notification.recipient

        try:
            async with httpx.AsyncClient(timeout=10, transport=self._transport) as client:
                response = await client.post(webhook_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            return self._failed(notification.recipient, f"Slack send failed: {e}")

        return self._delivered(notification.recipient, "Slack message sent")


# ─── Webhook Channel ──────────────────────────────────────────

class WebhookChannel(BaseChannel):
    """POST notifications to an HTTP endpoint.

    The recipient, if it is a URL, overrides the configured url.

    Config:
        url: Target URL
        headers: Additional headers
    """

    channel_type = NotificationChannel.WEBHOOK

    def __init__(self, config: dict = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or {}
        self._transport = transport

    async def send(self, notification: Notification) -> DeliveryResult:
        """Send webhook notification."""
        recipient = notification.recipient
        url = recipient if recipient.startswith(("http://", "https://")) else self.config.get("url")
        if not url:
            return self._failed(recipient, "No webhook URL")

        headers = {
            "Content-Type": "application/json",
            "X-Workflow-Event": "notification",
            **self.config.get("headers", {}),
        }
        payload = {
            "subject": notification.subject,
            "message": notification.body,
            "recipient": recipient,
            "metadata": notification.metadata,
            "timestamp": notification.created_at,
        }

        try:
            async with httpx.AsyncClient(timeout=15, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as e:
            return self._failed(url, f"Webhook send failed: {e}")

        return self._delivered(url, f"Webhook delivered (HTTP {response.status_code})")


# ─── In-app Channel ───────────────────────────────────────────

class InAppChannel(BaseChannel):
    """In-app inbox delivery.

    The notifications table is the inbox, so delivery is recording the row;
    there is no transport that can fail.
    """

    channel_type = NotificationChannel.IN_APP

    async def send(self, notification: Notification) -> DeliveryResult:
        return self._delivered(notification.recipient, "Stored in in-app inbox")
