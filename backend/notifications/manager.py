"""Notification Manager — the dispatcher the workflow engine sends through.

Routes a message to the channel named by the workflow step's action and
reports a pass/fail DeliveryResult. The engine depends only on the
NotificationDispatcher protocol, so tests can pass a fake.
"""

from typing import Optional, Protocol

import structlog

from notifications.channels import (
    BaseChannel,
    DeliveryResult,
    EmailChannel,
    InAppChannel,
    Notification,
    NotificationChannel,
    SlackChannel,
    WebhookChannel,
)

logger = structlog.get_logger(__name__)

# Step actions that are aliases of a channel
_CHANNEL_ALIASES = {
    "both": NotificationChannel.EMAIL,
    "in-app": NotificationChannel.IN_APP,
    "inapp": NotificationChannel.IN_APP,
}


class NotificationDispatcher(Protocol):
    """Send contract required by the engine."""

    async def send(
        self,
        recipient: str,
        subject: str,
        body: str,
        channel: str = "email",
    ) -> DeliveryResult:
        ...


def resolve_channel(name: Optional[str]) -> Optional[NotificationChannel]:
    """Map a step action to a channel; None action means email."""
    if not name:
        return NotificationChannel.EMAIL
    key = name.strip().lower()
    if key in _CHANNEL_ALIASES:
        return _CHANNEL_ALIASES[key]
    try:
        return NotificationChannel(key)
    except ValueError:
        return None


class NotificationManager:
    """Channel registry and dispatcher.

    The in-app channel is always registered; transports that need
    credentials are added through configure_channels().
    """

    def __init__(self):
        self._channels: dict[NotificationChannel, BaseChannel] = {}
        self.register_channel(InAppChannel())

    def register_channel(self, channel: BaseChannel) -> None:
        """Register (or replace) the channel for its transport."""
        self._channels[channel.channel_type] = channel
        logger.info("notification_channel_registered", channel=channel.channel_type.value)

    def configure_channels(self, config: dict) -> None:
        """Configure channels from app settings.

        Args:
            config: Dict with channel configs:
                {
                    "email": {"smtp_host": ..., "smtp_port": ...},
                    "slack": {"webhook_url": ...},
                    "webhook": {"url": ...},
                }
        """
        if "email" in config:
            self.register_channel(EmailChannel(config["email"]))

        if "slack" in config:
            self.register_channel(SlackChannel(config["slack"]))

        if "webhook" in config:
            self.register_channel(WebhookChannel(config["webhook"]))

    @property
    def channels(self) -> list[str]:
        return [c.value for c in self._channels]

    async def send(
        self,
        recipient: str,
        subject: str,
        body: str,
        channel: str = "email",
    ) -> DeliveryResult:
        """Deliver one message; failures come back in the result, never raised."""
        resolved = resolve_channel(channel)
        if resolved is None:
            return DeliveryResult(
                success=False,
                channel=NotificationChannel.IN_APP,
                recipient=recipient,
                error=f"Unknown notification channel: {channel}",
            )

        handler = self._channels.get(resolved)
        if handler is None:
            return DeliveryResult(
                success=False,
                channel=resolved,
                recipient=recipient,
                error=f"Channel not configured: {resolved.value}",
            )

        result = await handler.send(
            Notification(subject=subject, body=body, channel=resolved, recipient=recipient)
        )

        if result.success:
            logger.info("notification_sent", channel=resolved.value, recipient=recipient)
        else:
            logger.warning("notification_failed", channel=resolved.value, error=result.error)

        return result


def build_notification_manager(channels_config: Optional[dict] = None) -> NotificationManager:
    """Create a manager with the given channel configs applied."""
    manager = NotificationManager()
    if channels_config:
        manager.configure_channels(channels_config)
    return manager


_manager: Optional[NotificationManager] = None


def get_notification_manager() -> NotificationManager:
    """Get or create the process-wide NotificationManager from settings."""
    global _manager
    if _manager is None:
        from app.config import get_settings

        _manager = build_notification_manager(get_settings().notification_channels_config)
    return _manager
