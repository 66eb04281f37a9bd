"""HTTP notification bus.

Publishes each NotificationEvent as JSON to a bus ingestion endpoint
(an event gateway or a REST proxy in front of the message broker), tagged
with the configured topic.  Any 2xx response counts as accepted; delivery to
the final recipients is the downstream notifier's concern.
"""

from __future__ import annotations

import httpx
import structlog

from nodelens.errors import NotificationError
from nodelens.notifications.base import NotificationBus, NotificationEvent
from nodelens.observability.metrics import notifications_published_total

_log = structlog.get_logger(component="notifications.webhook")


class WebhookNotificationBus(NotificationBus):
    """Posts events to an HTTP publish endpoint.

    Args:
        url: Publish endpoint URL.
        topic: Topic the downstream notifier consumes.
        timeout: HTTP request timeout in seconds.  Defaults to 10.
        client: Optional shared httpx.AsyncClient.
    """

    def __init__(
        self,
        url: str,
        topic: str = "monitoring.notification",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not url:
            raise ValueError("Notification bus url must not be empty")
        self._url = url
        self._topic = topic
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def backend_name(self) -> str:
        return "webhook"

    async def publish(self, event: NotificationEvent) -> None:
        payload = self._build_payload(event)
        try:
            response = await self._client.post(self._url, json=payload)
        except httpx.TimeoutException as exc:
            notifications_published_total.labels(backend=self.backend_name, success="false").inc()
            raise NotificationError(self.backend_name, "request timed out") from exc
        except httpx.HTTPError as exc:
            notifications_published_total.labels(backend=self.backend_name, success="false").inc()
            raise NotificationError(self.backend_name, str(exc)) from exc

        if not response.is_success:
            notifications_published_total.labels(backend=self.backend_name, success="false").inc()
            _log.warning(
                "notification_bus_unexpected_status",
                status_code=response.status_code,
                body=response.text[:200],
            )
            raise NotificationError(self.backend_name, f"HTTP {response.status_code}")

        notifications_published_total.labels(backend=self.backend_name, success="true").inc()
        _log.info("notification_published", topic=self._topic, recipients=len(event.recipient_ids))

    def _build_payload(self, event: NotificationEvent) -> dict[str, object]:
        return {"topic": self._topic, "event": event.to_dict()}

    async def aclose(self) -> None:
        await self._client.aclose()
