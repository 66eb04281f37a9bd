"""Notification bus implementations and factory."""

from __future__ import annotations

from nodelens.models.config import NotificationConfig
from nodelens.notifications.base import NotificationBus, NotificationEvent, format_alert_message
from nodelens.notifications.slack import SlackNotificationBus
from nodelens.notifications.webhook import WebhookNotificationBus

__all__ = [
    "NotificationBus",
    "NotificationEvent",
    "SlackNotificationBus",
    "WebhookNotificationBus",
    "build_notification_bus",
    "format_alert_message",
]


def build_notification_bus(config: NotificationConfig) -> NotificationBus:
    """Create the bus selected by ``config.backend``.

    Raises ValueError when the backend is unknown or no URL is configured.
    """
    if config.backend == "slack":
        return SlackNotificationBus(webhook_url=config.url, timeout=float(config.timeout_seconds))
    if config.backend == "webhook":
        return WebhookNotificationBus(
            url=config.url,
            topic=config.topic,
            timeout=float(config.timeout_seconds),
        )
    raise ValueError(f"Unknown notification backend: {config.backend!r}")
