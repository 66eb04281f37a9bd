"""Slack notification bus for NodeLens.

Posts NotificationEvents to a Slack incoming webhook using Block Kit.
Recipient ids are rendered as user mentions so the people on call are
pinged in the channel the webhook is bound to.
"""

from __future__ import annotations

import httpx
import structlog

from nodelens.errors import NotificationError
from nodelens.notifications.base import NotificationBus, NotificationEvent
from nodelens.observability.metrics import notifications_published_total

_log = structlog.get_logger(component="notifications.slack")

# Slack rejects section text longer than 3000 characters
_MAX_SECTION_CHARS = 3000


class SlackNotificationBus(NotificationBus):
    """Delivers events to a Slack channel via an incoming webhook.

    Args:
        webhook_url: Slack incoming webhook URL
                     (e.g. ``https://hooks.slack.com/services/…``).
        timeout: HTTP request timeout in seconds. Defaults to 10.
        client: Optional shared httpx.AsyncClient.
    """

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not webhook_url:
            raise ValueError("Slack webhook_url must not be empty")
        self._webhook_url = webhook_url
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def backend_name(self) -> str:
        return "slack"

    async def publish(self, event: NotificationEvent) -> None:
        """Post *event* to Slack.  Raises NotificationError unless Slack answers 200."""
        payload = self._build_payload(event)
        try:
            response = await self._client.post(self._webhook_url, json=payload)
        except httpx.TimeoutException as exc:
            notifications_published_total.labels(backend=self.backend_name, success="false").inc()
            _log.warning("slack_request_timeout")
            raise NotificationError(self.backend_name, "request timed out") from exc
        except httpx.HTTPError as exc:
            notifications_published_total.labels(backend=self.backend_name, success="false").inc()
            _log.warning("slack_http_error", error=str(exc))
            raise NotificationError(self.backend_name, str(exc)) from exc

        if response.status_code != 200:
            notifications_published_total.labels(backend=self.backend_name, success="false").inc()
            _log.warning(
                "slack_unexpected_status",
                status_code=response.status_code,
                body=response.text[:200],
            )
            raise NotificationError(self.backend_name, f"HTTP {response.status_code}")

        notifications_published_total.labels(backend=self.backend_name, success="true").inc()

    def _build_payload(self, event: NotificationEvent) -> dict[str, object]:
        """Construct a Slack Block Kit message payload."""
        text = event.message
        if len(text) > _MAX_SECTION_CHARS:
            text = text[: _MAX_SECTION_CHARS - 15] + "\n...[TRUNCATED]"

        blocks: list[dict[str, object]] = [
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": text},
            }
        ]
        if event.recipient_ids:
            mentions = " ".join(f"<@{uid}>" for uid in event.recipient_ids)
            blocks.append(
                {
                    "type": "context",
                    "elements": [{"type": "mrkdwn", "text": f"cc {mentions}"}],
                }
            )
        if event.action_id and event.action_value:
            blocks.append(
                {
                    "type": "actions",
                    "elements": [
                        {
                            "type": "button",
                            "text": {"type": "plain_text", "text": "Acknowledge"},
                            "action_id": event.action_id,
                            "value": event.action_value,
                        }
                    ],
                }
            )

        # "text" is the fallback shown in push notifications
        return {"text": event.message.split("\n", 1)[0], "blocks": blocks}

    async def aclose(self) -> None:
        await self._client.aclose()
