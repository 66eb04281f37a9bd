"""Tests for nodelens.analyst.coordinator: the per-alert pipeline."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from nodelens.analyst.coordinator import (
    ANALYSIS_FAILURE_PREFIX,
    MANUAL_ALERT_NAME,
    AlertCoordinator,
    build_alert_context,
)
from nodelens.api.schemas import WebhookPayload
from nodelens.errors import AnalysisEngineError, NotificationError
from nodelens.models.analysis import PipelineStatus
from nodelens.models.metrics import NodeSnapshot, WorkloadSnapshot
from nodelens.notifications.base import NotificationEvent

_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_history(node: str = "app-vm-01", hours: int = 6, cpu: float = 95.0) -> list[NodeSnapshot]:
    return [
        NodeSnapshot(node_name=node, timestamp=_NOW - timedelta(hours=i), cpu_usage_percent=cpu)
        for i in range(hours)
    ]


def _make_accumulator(
    history: list[NodeSnapshot] | None = None,
    workloads: dict[str, WorkloadSnapshot] | None = None,
) -> MagicMock:
    hist = _make_history() if history is None else history
    accumulator = MagicMock()
    accumulator.accumulate = AsyncMock(return_value=(hist[0] if hist else None, hist))
    accumulator.fetch_workloads = AsyncMock(return_value=workloads or {})
    return accumulator


def _make_analyzer(result: str | Exception = "[Current State] high") -> MagicMock:
    analyzer = MagicMock()
    if isinstance(result, Exception):
        analyzer.analyze = AsyncMock(side_effect=result)
    else:
        analyzer.analyze = AsyncMock(return_value=result)
    return analyzer


def _make_bus(error: Exception | None = None) -> MagicMock:
    bus = MagicMock()
    bus.backend_name = "fake"
    bus.publish = AsyncMock(side_effect=error)
    return bus


def _make_coordinator(
    accumulator: MagicMock | None = None,
    analyzer: MagicMock | None = None,
    bus: MagicMock | None = None,
    recipient_ids: list[str] | None = None,
) -> AlertCoordinator:
    return AlertCoordinator(
        accumulator=accumulator or _make_accumulator(),
        analyzer=analyzer or _make_analyzer(),
        bus=bus or _make_bus(),
        recipient_ids=recipient_ids,
    )


def _make_payload(**overrides: object) -> WebhookPayload:
    body: dict[str, object] = {
        "status": "firing",
        "alerts": [
            {
                "status": "firing",
                "labels": {"alertname": "HighCPU", "severity": "critical", "instance": "app-vm-01:9100"},
                "annotations": {"summary": "CPU high"},
            }
        ],
        "commonLabels": {},
    }
    body.update(overrides)
    return WebhookPayload.model_validate(body)


def _published_event(bus: MagicMock) -> NotificationEvent:
    event = bus.publish.await_args.args[0]
    assert isinstance(event, NotificationEvent)
    return event


# ---------------------------------------------------------------------------
# handle_webhook
# ---------------------------------------------------------------------------


class TestHandleWebhook:
    @pytest.mark.asyncio
    async def test_no_alerts(self) -> None:
        accumulator = _make_accumulator()
        bus = _make_bus()
        coordinator = _make_coordinator(accumulator=accumulator, bus=bus)

        outcome = await coordinator.handle_webhook(_make_payload(alerts=[]))

        assert outcome.status == PipelineStatus.NO_ALERTS
        assert outcome.detail == "No alerts to process"
        accumulator.accumulate.assert_not_awaited()
        bus.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_published_outcome(self) -> None:
        bus = _make_bus()
        outcome = await _make_coordinator(bus=bus, recipient_ids=["U1"]).handle_webhook(_make_payload())

        assert outcome.status == PipelineStatus.PUBLISHED
        assert outcome.detail == "Alert processed successfully"
        assert outcome.node_name == "app-vm-01"
        assert outcome.alert_name == "HighCPU"
        assert outcome.analysis == "[Current State] high"

        event = _published_event(bus)
        assert event.recipient_ids == ["U1"]
        assert event.message.startswith("🚨 *Node alert: app-vm-01*")
        assert "*Alert:* HighCPU" in event.message
        assert event.message.endswith("[Current State] high")

    @pytest.mark.asyncio
    async def test_requests_six_hours_for_resolved_node(self) -> None:
        accumulator = _make_accumulator()
        await _make_coordinator(accumulator=accumulator).handle_webhook(_make_payload())

        accumulator.accumulate.assert_awaited_once_with("app-vm-01", 6)
        accumulator.fetch_workloads.assert_awaited_once_with("app-vm-01")

    @pytest.mark.asyncio
    async def test_common_labels_override_alert_labels(self) -> None:
        accumulator = _make_accumulator()
        payload = _make_payload(commonLabels={"node": "common-node"})
        outcome = await _make_coordinator(accumulator=accumulator).handle_webhook(payload)

        assert outcome.node_name == "common-node"
        accumulator.accumulate.assert_awaited_once_with("common-node", 6)

    @pytest.mark.asyncio
    async def test_only_first_alert_processed(self) -> None:
        second = {"labels": {"alertname": "DiskFull", "node": "other"}, "annotations": {}}
        payload = _make_payload()
        payload = _make_payload(alerts=[payload.alerts[0].model_dump(by_alias=True), second])
        accumulator = _make_accumulator()
        bus = _make_bus()

        outcome = await _make_coordinator(accumulator=accumulator, bus=bus).handle_webhook(payload)

        assert outcome.alert_name == "HighCPU"
        assert accumulator.accumulate.await_count == 1
        assert bus.publish.await_count == 1

    @pytest.mark.asyncio
    async def test_unresolvable_node_is_unknown(self) -> None:
        payload = _make_payload(alerts=[{"labels": {"alertname": "X"}, "annotations": {}}])
        outcome = await _make_coordinator().handle_webhook(payload)
        assert outcome.node_name == "unknown"

    @pytest.mark.asyncio
    async def test_prompt_contains_current_state(self) -> None:
        analyzer = _make_analyzer()
        await _make_coordinator(analyzer=analyzer).handle_webhook(_make_payload())

        prompt = analyzer.analyze.await_args.args[0]
        assert "- Node: app-vm-01" in prompt
        assert "- CPU usage: 95.00%" in prompt
        assert "Alert: HighCPU" in prompt


# ---------------------------------------------------------------------------
# Degraded paths
# ---------------------------------------------------------------------------


class TestDegradedPaths:
    @pytest.mark.asyncio
    async def test_empty_history_ends_early(self) -> None:
        accumulator = _make_accumulator(history=[])
        analyzer = _make_analyzer()
        bus = _make_bus()

        outcome = await _make_coordinator(accumulator=accumulator, analyzer=analyzer, bus=bus).handle_webhook(
            _make_payload()
        )

        assert outcome.status == PipelineStatus.NO_METRICS_DATA
        assert outcome.detail == "No metrics data available"
        accumulator.fetch_workloads.assert_not_awaited()
        analyzer.analyze.assert_not_awaited()
        bus.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_analysis_failure_still_publishes_notice(self) -> None:
        bus = _make_bus()
        analyzer = _make_analyzer(AnalysisEngineError("LLM timeout after 30s"))

        outcome = await _make_coordinator(analyzer=analyzer, bus=bus).handle_webhook(_make_payload())

        assert outcome.status == PipelineStatus.PUBLISHED
        assert outcome.analysis == f"{ANALYSIS_FAILURE_PREFIX}LLM timeout after 30s"
        assert _published_event(bus).message.endswith("AI analysis failed: LLM timeout after 30s")

    @pytest.mark.asyncio
    async def test_unexpected_analyzer_error_becomes_notice(self) -> None:
        analyzer = _make_analyzer(RuntimeError("boom"))
        outcome = await _make_coordinator(analyzer=analyzer).handle_webhook(_make_payload())
        assert outcome.analysis == "AI analysis failed: boom"

    @pytest.mark.asyncio
    async def test_publish_failure_propagates(self) -> None:
        bus = _make_bus(error=NotificationError("fake", "HTTP 503"))
        with pytest.raises(NotificationError):
            await _make_coordinator(bus=bus).handle_webhook(_make_payload())

    @pytest.mark.asyncio
    async def test_all_zero_history_still_analysed(self) -> None:
        analyzer = _make_analyzer()
        accumulator = _make_accumulator(history=_make_history(node="ghost-node", cpu=0.0))

        outcome = await _make_coordinator(accumulator=accumulator, analyzer=analyzer).analyze_node("ghost-node")

        assert outcome.status == PipelineStatus.PUBLISHED
        prompt = analyzer.analyze.await_args.args[0]
        assert "- CPU usage: 0.00%" in prompt
        assert "[Workloads on this node]" not in prompt


# ---------------------------------------------------------------------------
# analyze_node
# ---------------------------------------------------------------------------


class TestAnalyzeNode:
    @pytest.mark.asyncio
    async def test_manual_alert(self) -> None:
        bus = _make_bus()
        analyzer = _make_analyzer()

        outcome = await _make_coordinator(analyzer=analyzer, bus=bus).analyze_node("app-vm-02")

        assert outcome.status == PipelineStatus.PUBLISHED
        assert outcome.detail == "Analysis completed"
        assert outcome.alert_name == MANUAL_ALERT_NAME
        prompt = analyzer.analyze.await_args.args[0]
        assert "Severity: info" in prompt
        assert "Manual analysis requested for app-vm-02" in prompt
        assert "*Alert:* Manual Analysis" in _published_event(bus).message

    @pytest.mark.asyncio
    async def test_workloads_reach_prompt(self) -> None:
        analyzer = _make_analyzer()
        accumulator = _make_accumulator(workloads={"api": WorkloadSnapshot("api", 80.0, 512.0)})

        await _make_coordinator(accumulator=accumulator, analyzer=analyzer).analyze_node("app-vm-01")

        prompt = analyzer.analyze.await_args.args[0]
        assert "- api: CPU 80.00%, Memory 512.00 MB" in prompt


class TestBuildAlertContext:
    def test_defaults_when_labels_missing(self) -> None:
        alert = build_alert_context({}, {})
        assert alert.alert_name == "Unknown"
        assert alert.severity == "warning"
        assert alert.summary is None

    def test_fields_from_labels_and_annotations(self) -> None:
        alert = build_alert_context(
            {"alertname": "HighMemory", "severity": "critical"},
            {"summary": "s", "description": "d"},
        )
        assert alert.alert_name == "HighMemory"
        assert alert.severity == "critical"
        assert alert.summary == "s"
        assert alert.description == "d"
