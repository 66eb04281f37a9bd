"""Notification bus abstraction.

A bus accepts one NotificationEvent per analysed alert and hands it to a
downstream notifier.  Implementations raise NotificationError when the event
could not be handed off; the coordinator lets that propagate so the webhook
caller sees a 5xx instead of a silently lost notification.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class NotificationEvent:
    """Message published for one alert.

    action_id and action_value are reserved for interactive notifications
    (buttons) and are left unset by the analysis pipeline.
    """

    recipient_ids: list[str] = field(default_factory=list)
    message: str = ""
    action_id: str | None = None
    action_value: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "recipientIds": list(self.recipient_ids),
            "message": self.message,
            "actionId": self.action_id,
            "actionValue": self.action_value,
        }


def format_alert_message(node_name: str, alert_name: str, analysis: str) -> str:
    """Compose the notification text for an analysed alert."""
    return f"🚨 *Node alert: {node_name}*\n\n*Alert:* {alert_name}\n\n*AI analysis:*\n{analysis}"


class NotificationBus(ABC):
    """Abstract publisher for NotificationEvents."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Short identifier used in logs and metrics labels."""

    @abstractmethod
    async def publish(self, event: NotificationEvent) -> None:
        """Hand *event* to the bus.  Raises NotificationError on failure."""

    async def aclose(self) -> None:
        """Release any held connections.  Default is a no-op."""
