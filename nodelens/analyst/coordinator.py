"""Alert coordinator: runs the enrichment and analysis pipeline per alert.

Receives parsed webhook payloads (or a bare node name from the manual
trigger), resolves the node, fetches its hourly history and workloads,
builds the analysis context, asks the LLM for a diagnosis and publishes the
result on the notification bus.

Failure policy:
    * metrics-backend failures never reach this module (the gateway fails open);
    * an empty history ends the pipeline early with NO_METRICS_DATA;
    * analysis-engine failures are replaced by a visible failure notice;
    * notification publish failures propagate to the caller.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Protocol

import structlog

from nodelens.analyst.identity import merge_labels, resolve_node_name
from nodelens.llm.context import build_context
from nodelens.models.analysis import AlertContext, AnalysisRequest, PipelineOutcome, PipelineStatus
from nodelens.models.metrics import NodeSnapshot, WorkloadSnapshot
from nodelens.notifications.base import NotificationEvent, format_alert_message
from nodelens.observability.logging import pipeline_context
from nodelens.observability.metrics import (
    alerts_received_total,
    pipeline_duration_seconds,
    pipeline_outcomes_total,
)

if TYPE_CHECKING:
    from nodelens.api.schemas import WebhookPayload
    from nodelens.notifications.base import NotificationBus


class _AccumulatorProto(Protocol):
    """Minimal history interface required by AlertCoordinator."""

    async def accumulate(self, node_name: str, hours: int) -> tuple[NodeSnapshot | None, list[NodeSnapshot]]: ...

    async def fetch_workloads(self, node_name: str) -> dict[str, WorkloadSnapshot]: ...


class _AnalyzerProto(Protocol):
    """Minimal analysis engine interface required by AlertCoordinator."""

    async def analyze(self, prompt: str) -> str: ...


_logger = structlog.get_logger(component="alert_coordinator")

ANALYSIS_FAILURE_PREFIX = "AI analysis failed: "
MANUAL_ALERT_NAME = "Manual Analysis"
DEFAULT_HISTORY_HOURS = 6


def build_alert_context(labels: Mapping[str, str], annotations: Mapping[str, str]) -> AlertContext:
    """Derive the AlertContext from merged labels and the alert's own annotations."""
    return AlertContext(
        alert_name=labels.get("alertname") or "Unknown",
        severity=labels.get("severity") or "warning",
        summary=annotations.get("summary") or None,
        description=annotations.get("description") or None,
        labels=labels,
    )


def manual_alert_context(node_name: str) -> AlertContext:
    return AlertContext(
        alert_name=MANUAL_ALERT_NAME,
        severity="info",
        summary=f"Manual analysis requested for {node_name}",
    )


class AlertCoordinator:
    """Entry point for alert analysis.

    Holds only process-wide, stateless collaborators; concurrent alerts run
    independent pipelines with no shared mutable state.
    """

    def __init__(
        self,
        accumulator: _AccumulatorProto,
        analyzer: _AnalyzerProto,
        bus: NotificationBus,
        recipient_ids: list[str] | None = None,
        history_hours: int = DEFAULT_HISTORY_HOURS,
    ) -> None:
        self._accumulator = accumulator
        self._analyzer = analyzer
        self._bus = bus
        self._recipient_ids = list(recipient_ids or [])
        self._history_hours = history_hours

    async def handle_webhook(self, payload: WebhookPayload) -> PipelineOutcome:
        """Run the pipeline for the first alert of a webhook notification."""
        if not payload.alerts:
            _logger.info("webhook_without_alerts", status=payload.status, receiver=payload.receiver)
            pipeline_outcomes_total.labels(status=PipelineStatus.NO_ALERTS.value).inc()
            return PipelineOutcome(status=PipelineStatus.NO_ALERTS, detail="No alerts to process")

        alerts_received_total.labels(source="webhook").inc()
        first = payload.alerts[0]
        if len(payload.alerts) > 1:
            _logger.info("webhook_extra_alerts_ignored", alerts=len(payload.alerts))

        merged = merge_labels(first.labels, payload.common_labels)
        node_name = resolve_node_name(merged, first.annotations)
        alert = build_alert_context(merged, first.annotations)

        with pipeline_context(node_name=node_name, alert_name=alert.alert_name, source="webhook"):
            _logger.info(
                "node_name_resolved",
                status=PipelineStatus.IDENTITY_RESOLVED.value,
                severity=alert.severity,
                fingerprint=first.fingerprint,
            )
            return await self._run(node_name, alert, success_detail="Alert processed successfully")

    async def analyze_node(self, node_name: str) -> PipelineOutcome:
        """Run the pipeline for *node_name* with a synthesized informational alert."""
        alerts_received_total.labels(source="manual").inc()
        alert = manual_alert_context(node_name)
        with pipeline_context(node_name=node_name, alert_name=alert.alert_name, source="manual"):
            _logger.info("manual_analysis_requested")
            return await self._run(node_name, alert, success_detail="Analysis completed")

    async def _run(self, node_name: str, alert: AlertContext, success_detail: str) -> PipelineOutcome:
        start = time.monotonic()
        try:
            outcome = await self._pipeline(node_name, alert, success_detail)
        except Exception:
            pipeline_outcomes_total.labels(status=PipelineStatus.FAILED.value).inc()
            raise
        finally:
            pipeline_duration_seconds.observe(time.monotonic() - start)
        pipeline_outcomes_total.labels(status=outcome.status.value).inc()
        return outcome

    async def _pipeline(self, node_name: str, alert: AlertContext, success_detail: str) -> PipelineOutcome:
        current, history = await self._accumulator.accumulate(node_name, self._history_hours)
        if current is None or not history:
            _logger.warning("no_metrics_data", status=PipelineStatus.NO_METRICS_DATA.value)
            return PipelineOutcome(
                status=PipelineStatus.NO_METRICS_DATA,
                detail="No metrics data available",
                node_name=node_name,
                alert_name=alert.alert_name,
            )

        workloads = await self._accumulator.fetch_workloads(node_name)
        request = AnalysisRequest(current=current, history=tuple(history), workloads=workloads, alert=alert)
        _logger.debug(
            "history_fetched",
            status=PipelineStatus.HISTORY_FETCHED.value,
            history_points=len(request.history),
            workloads=len(request.workloads),
        )

        prompt = build_context(request.current, request.history, request.workloads, request.alert)
        _logger.debug("context_built", status=PipelineStatus.CONTEXT_BUILT.value, prompt_chars=len(prompt))

        analysis = await self._analyze(prompt)
        _logger.info("analysis_done", status=PipelineStatus.ANALYZED.value)

        event = NotificationEvent(
            recipient_ids=list(self._recipient_ids),
            message=format_alert_message(node_name, alert.alert_name, analysis),
        )
        try:
            await self._bus.publish(event)
        except Exception as exc:
            _logger.error("notification_publish_failed", backend=self._bus.backend_name, error=str(exc))
            raise
        _logger.info("notification_sent", status=PipelineStatus.PUBLISHED.value, backend=self._bus.backend_name)

        return PipelineOutcome(
            status=PipelineStatus.PUBLISHED,
            detail=success_detail,
            node_name=node_name,
            alert_name=alert.alert_name,
            analysis=analysis,
        )

    async def _analyze(self, prompt: str) -> str:
        """Call the analysis engine; any failure becomes the failure notice."""
        try:
            return await self._analyzer.analyze(prompt)
        except Exception as exc:  # noqa: BLE001
            _logger.error("analysis_failed", error=str(exc), error_type=type(exc).__name__)
            return f"{ANALYSIS_FAILURE_PREFIX}{exc}"
