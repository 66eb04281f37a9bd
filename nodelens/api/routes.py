"""FastAPI route handlers for the NodeLens REST API.

All routes are registered on a single APIRouter that ``app.py`` mounts
under the ``/api/v1`` prefix.

Error code conventions:
    400 INVALID_NODE_NAME     -- manual trigger node name is empty or unsafe
    500 INVALID_PAYLOAD       -- webhook body is not valid JSON / not a webhook
    500 NOTIFICATION_FAILED   -- the notification bus rejected the message
    500 INTERNAL_ERROR        -- unexpected server-side failure
    (analysis-engine and metrics-backend failures never produce an error
    status; they are surfaced in the response body)
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from nodelens.api.schemas import AnalysisResponseSchema, ErrorResponse, HealthStatus, WebhookPayload
from nodelens.errors import InvalidIdentifierError, NotificationError
from nodelens.metrics.queries import validate_identifier
from nodelens.models.analysis import PipelineOutcome

_log = structlog.get_logger(component="api.routes")

router = APIRouter()

HEALTH_MESSAGE = "Monitoring server is running"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _outcome_to_schema(outcome: PipelineOutcome) -> AnalysisResponseSchema:
    return AnalysisResponseSchema(
        status=outcome.status.value,
        detail=outcome.detail,
        node_name=outcome.node_name,
        alert_name=outcome.alert_name,
        analysis=outcome.analysis,
    )


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail).model_dump(),
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post(
    "/alert",
    response_model=AnalysisResponseSchema,
    summary="Receive an alert webhook",
    description=(
        "Grafana / Alertmanager webhook receiver.  Analyses the first alert of "
        "the notification and publishes the diagnosis.  Analysis-engine failures "
        "are reported in the body, never as an error status."
    ),
    responses={500: {"model": ErrorResponse}},
)
async def post_alert(request: Request) -> AnalysisResponseSchema:
    """``POST /api/v1/alert``"""
    raw = await request.body()
    _log.debug("webhook_received", bytes=len(raw))

    try:
        payload = WebhookPayload.model_validate_json(raw or b"{}")
    except ValidationError as exc:
        _log.error("webhook_payload_invalid", error=str(exc))
        return _error(500, "INVALID_PAYLOAD", f"Error: {exc}")  # type: ignore[return-value]

    coordinator = request.app.state.coordinator
    try:
        outcome: PipelineOutcome = await coordinator.handle_webhook(payload)
    except NotificationError as exc:
        return _error(500, "NOTIFICATION_FAILED", f"Error: {exc}")  # type: ignore[return-value]
    except Exception as exc:
        _log.error("alert_endpoint_error", error=str(exc))
        return _error(500, "INTERNAL_ERROR", f"Error: {exc}")  # type: ignore[return-value]

    return _outcome_to_schema(outcome)


@router.post(
    "/analyze",
    response_model=AnalysisResponseSchema,
    summary="Analyse a node on demand",
    description=(
        "Runs the metrics enrichment and analysis pipeline for the given node "
        "with a synthesized informational alert, and publishes the result."
    ),
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def post_analyze(
    request: Request,
    node_name: str = Query(..., alias="nodeName", description="Node identifier, e.g. ``app-vm-01``."),
) -> AnalysisResponseSchema:
    """``POST /api/v1/analyze?nodeName={node}``"""
    try:
        validate_identifier(node_name.strip())
    except InvalidIdentifierError as exc:
        return _error(400, "INVALID_NODE_NAME", str(exc))  # type: ignore[return-value]

    coordinator = request.app.state.coordinator
    try:
        outcome: PipelineOutcome = await coordinator.analyze_node(node_name.strip())
    except NotificationError as exc:
        return _error(500, "NOTIFICATION_FAILED", f"Error: {exc}")  # type: ignore[return-value]
    except Exception as exc:
        _log.error("analyze_endpoint_error", node_name=node_name, error=str(exc))
        return _error(500, "INTERNAL_ERROR", f"Error: {exc}")  # type: ignore[return-value]

    return _outcome_to_schema(outcome)


@router.get(
    "/health",
    response_model=HealthStatus,
    summary="Health check",
    description="Lightweight liveness probe.  Always returns 200 if the process is up.",
)
async def get_health() -> HealthStatus:
    """``GET /api/v1/health``"""
    from nodelens import __version__

    return HealthStatus(status="ok", message=HEALTH_MESSAGE, version=__version__)
