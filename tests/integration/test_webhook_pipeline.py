"""Integration tests for the alert pipeline behind the REST API.

Wires the real MetricsGateway, HistoryAccumulator, AlertCoordinator and
WebhookNotificationBus together.  The metrics backend and the notification
bus are served by httpx.MockTransport; the analysis engine is a recording
double so the assembled prompt can be inspected.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime

import httpx
import pytest
from fastapi.testclient import TestClient

from nodelens.analyst.coordinator import AlertCoordinator
from nodelens.api.app import create_app
from nodelens.errors import AnalysisEngineError
from nodelens.metrics.gateway import MetricsGateway
from nodelens.metrics.history import HistoryAccumulator
from nodelens.models.config import PrometheusConfig
from nodelens.notifications.webhook import WebhookNotificationBus

pytestmark = pytest.mark.integration

_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


def _vector(*samples: tuple[dict[str, str], float]) -> dict[str, object]:
    return {
        "status": "success",
        "data": {
            "resultType": "vector",
            "result": [{"metric": labels, "value": [_NOW.timestamp(), str(value)]} for labels, value in samples],
        },
    }


class _FakePrometheus:
    """Serves fixed values for one known node; every other node has no series."""

    def __init__(self, node: str = "app-vm-01", down: bool = False) -> None:
        self.node = node
        self.down = down
        self.queries: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.down:
            raise httpx.ConnectError("connection refused", request=request)
        query = request.url.params["query"]
        self.queries.append(query)
        if f".*{self.node}.*" not in query:
            return httpx.Response(200, json=_vector())
        if "node_cpu_seconds_total" in query:
            return httpx.Response(200, json=_vector(({}, 95.0)))
        if "node_memory_MemAvailable_bytes" in query:
            return httpx.Response(200, json=_vector(({}, 62.5)))
        if "node_filesystem_avail_bytes" in query:
            return httpx.Response(200, json=_vector(({}, 41.0)))
        if "container_cpu_usage_seconds_total" in query:
            return httpx.Response(200, json=_vector(({"name": "api-server"}, 88.0), ({"name": "redis"}, 3.5)))
        if 'name="api-server"' in query:
            return httpx.Response(200, json=_vector(({}, 1536.0)))
        if 'name="redis"' in query:
            return httpx.Response(200, json=_vector(({}, 64.0)))
        return httpx.Response(200, json=_vector())


class _FakeBus:
    """Records events posted to the publish endpoint."""

    def __init__(self, status_code: int = 202) -> None:
        self.status_code = status_code
        self.bodies: list[dict[str, object]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.bodies.append(json.loads(request.content))
        return httpx.Response(self.status_code)


class _RecordingAnalyzer:
    def __init__(self, reply: str = "[Current State] CPU saturated", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    async def analyze(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


def _make_client(
    prometheus: _FakePrometheus,
    analyzer: _RecordingAnalyzer,
    bus: _FakeBus,
) -> TestClient:
    gateway = MetricsGateway(
        PrometheusConfig(url="http://prom:9090"),
        client=httpx.AsyncClient(transport=httpx.MockTransport(prometheus)),
    )
    coordinator = AlertCoordinator(
        accumulator=HistoryAccumulator(gateway, clock=lambda: _NOW),
        analyzer=analyzer,
        bus=WebhookNotificationBus(
            "http://bus/publish",
            client=httpx.AsyncClient(transport=httpx.MockTransport(bus)),
        ),
        recipient_ids=["oncall-1"],
    )
    return TestClient(create_app(coordinator=coordinator), raise_server_exceptions=False)


def _high_cpu_webhook() -> dict[str, object]:
    return {
        "receiver": "nodelens",
        "status": "firing",
        "alerts": [
            {
                "status": "firing",
                "labels": {"alertname": "HighCPU", "instance": "app-vm-01:9100", "job": "prometheus"},
                "annotations": {"summary": "CPU above 90% for 5 minutes"},
                "startsAt": "2024-05-01T11:55:00Z",
            }
        ],
        "commonLabels": {"severity": "critical"},
    }


# ---------------------------------------------------------------------------
# Webhook path
# ---------------------------------------------------------------------------


class TestWebhookPipeline:
    def test_high_cpu_alert_end_to_end(self) -> None:
        prometheus = _FakePrometheus()
        analyzer = _RecordingAnalyzer()
        bus = _FakeBus()

        response = _make_client(prometheus, analyzer, bus).post("/api/v1/alert", json=_high_cpu_webhook())

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "published"
        assert body["detail"] == "Alert processed successfully"
        assert body["node_name"] == "app-vm-01"

        # six hourly points x three node queries, then one vector + two memory queries
        assert len(prometheus.queries) == 18 + 1 + 2

        prompt = analyzer.prompts[0]
        assert "- CPU usage: 95.00%" in prompt
        assert "- Memory usage: 62.50%" in prompt
        assert "Severity: critical" in prompt
        assert "- api-server: CPU 88.00%, Memory 1536.00 MB" in prompt
        assert "6h ago - CPU: 95.00%" in prompt
        assert "Identify the workload consuming the most resources" in prompt

        event = bus.bodies[0]["event"]
        assert bus.bodies[0]["topic"] == "monitoring.notification"
        assert event["recipientIds"] == ["oncall-1"]  # type: ignore[index]
        assert event["message"].startswith("🚨 *Node alert: app-vm-01*")  # type: ignore[index]
        assert event["message"].endswith("[Current State] CPU saturated")  # type: ignore[index]

    def test_node_from_annotation_and_name_from_common_labels(self) -> None:
        prometheus = _FakePrometheus()
        analyzer = _RecordingAnalyzer()
        bus = _FakeBus()
        payload = {
            "alerts": [{"labels": {"severity": "critical"}, "annotations": {"node": "app-vm-01"}}],
            "commonLabels": {"alertname": "HighCPU"},
        }

        response = _make_client(prometheus, analyzer, bus).post("/api/v1/alert", json=payload)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "published"
        assert body["node_name"] == "app-vm-01"
        assert body["alert_name"] == "HighCPU"
        prompt = analyzer.prompts[0]
        assert "95.00%" in prompt
        assert "Alert: HighCPU" in prompt
        assert "Severity: critical" in prompt
        assert len(bus.bodies) == 1

    def test_empty_alert_list_makes_no_calls(self) -> None:
        prometheus = _FakePrometheus()
        analyzer = _RecordingAnalyzer()
        bus = _FakeBus()

        response = _make_client(prometheus, analyzer, bus).post("/api/v1/alert", json={"alerts": []})

        assert response.status_code == 200
        assert response.json()["status"] == "no_alerts"
        assert prometheus.queries == []
        assert analyzer.prompts == []
        assert bus.bodies == []

    def test_analysis_failure_publishes_notice(self) -> None:
        analyzer = _RecordingAnalyzer(error=AnalysisEngineError("LLM timeout after 30s"))
        bus = _FakeBus()

        response = _make_client(_FakePrometheus(), analyzer, bus).post("/api/v1/alert", json=_high_cpu_webhook())

        assert response.status_code == 200
        assert response.json()["analysis"] == "AI analysis failed: LLM timeout after 30s"
        message = bus.bodies[0]["event"]["message"]  # type: ignore[index]
        assert message.endswith("AI analysis failed: LLM timeout after 30s")

    def test_metrics_backend_down_still_publishes(self) -> None:
        analyzer = _RecordingAnalyzer()
        bus = _FakeBus()

        response = _make_client(_FakePrometheus(down=True), analyzer, bus).post(
            "/api/v1/alert", json=_high_cpu_webhook()
        )

        assert response.status_code == 200
        assert response.json()["status"] == "published"
        assert "- CPU usage: 0.00%" in analyzer.prompts[0]
        assert len(bus.bodies) == 1

    def test_bus_rejection_is_500(self) -> None:
        response = _make_client(_FakePrometheus(), _RecordingAnalyzer(), _FakeBus(status_code=503)).post(
            "/api/v1/alert", json=_high_cpu_webhook()
        )

        assert response.status_code == 500
        assert response.json()["error"] == "NOTIFICATION_FAILED"

    def test_malformed_body_is_500(self) -> None:
        bus = _FakeBus()
        response = _make_client(_FakePrometheus(), _RecordingAnalyzer(), bus).post(
            "/api/v1/alert",
            content=b"not-json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 500
        assert response.json()["error"] == "INVALID_PAYLOAD"
        assert bus.bodies == []


# ---------------------------------------------------------------------------
# Manual trigger
# ---------------------------------------------------------------------------


class TestManualTrigger:
    def test_unknown_node_analysed_with_zeros(self) -> None:
        analyzer = _RecordingAnalyzer()
        bus = _FakeBus()

        response = _make_client(_FakePrometheus(), analyzer, bus).post(
            "/api/v1/analyze", params={"nodeName": "ghost-node"}
        )

        assert response.status_code == 200
        assert response.json()["detail"] == "Analysis completed"
        prompt = analyzer.prompts[0]
        assert "- Node: ghost-node" in prompt
        assert "- CPU usage: 0.00%" in prompt
        assert "[Workloads on this node]" not in prompt
        assert "Estimate the most likely root cause." in prompt
        assert "*Alert:* Manual Analysis" in bus.bodies[0]["event"]["message"]  # type: ignore[index]

    def test_unsafe_node_name_rejected_before_queries(self) -> None:
        prometheus = _FakePrometheus()
        response = _make_client(prometheus, _RecordingAnalyzer(), _FakeBus()).post(
            "/api/v1/analyze", params={"nodeName": 'x",job="y'}
        )

        assert response.status_code == 400
        assert prometheus.queries == []
