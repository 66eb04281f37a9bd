"""Pydantic request/response models for the NodeLens REST API.

All models use Pydantic v2 syntax.  Field descriptions are also used
by FastAPI to generate the OpenAPI schema.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Inbound webhook (Grafana / Alertmanager notification format)
# ---------------------------------------------------------------------------


def _string_map(value: Any) -> dict[str, str]:
    """Coerce a JSON object into ``dict[str, str]``; null becomes empty."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"expected an object, got {type(value).__name__}")
    return {str(k): "" if v is None else str(v) for k, v in value.items()}


class WebhookAlert(BaseModel):
    """One alert inside a webhook notification."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    status: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    starts_at: str = Field(default="", alias="startsAt")
    ends_at: str = Field(default="", alias="endsAt")
    generator_url: str = Field(default="", alias="generatorURL")
    fingerprint: str = ""

    @field_validator("status", "starts_at", "ends_at", "generator_url", "fingerprint", mode="before")
    @classmethod
    def null_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("labels", "annotations", mode="before")
    @classmethod
    def coerce_string_map(cls, value: Any) -> dict[str, str]:
        return _string_map(value)


class WebhookPayload(BaseModel):
    """Body of ``POST /api/v1/alert``.  Unknown fields are ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    status: str = ""
    receiver: str = ""
    alerts: list[WebhookAlert] = Field(default_factory=list)
    group_labels: dict[str, str] = Field(default_factory=dict, alias="groupLabels")
    common_labels: dict[str, str] = Field(default_factory=dict, alias="commonLabels")
    common_annotations: dict[str, str] = Field(default_factory=dict, alias="commonAnnotations")
    external_url: str = Field(default="", alias="externalURL")

    @field_validator("status", "receiver", "external_url", mode="before")
    @classmethod
    def null_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("alerts", mode="before")
    @classmethod
    def null_alerts_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("group_labels", "common_labels", "common_annotations", mode="before")
    @classmethod
    def coerce_string_map(cls, value: Any) -> dict[str, str]:
        return _string_map(value)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AnalysisResponseSchema(BaseModel):
    """Response body for the alert webhook and the manual trigger."""

    status: str = Field(
        ...,
        description="Terminal pipeline state.",
        examples=["published", "no_alerts", "no_metrics_data"],
    )
    detail: str = Field(
        ...,
        description="Human-readable outcome.",
        examples=["Alert processed successfully"],
    )
    node_name: str | None = Field(default=None, description="Resolved node identifier.")
    alert_name: str | None = Field(default=None, description="Alert name used in the notification.")
    analysis: str | None = Field(
        default=None,
        description="Diagnosis text, or the failure notice when the analysis engine failed.",
    )


class HealthStatus(BaseModel):
    """Response body for ``GET /api/v1/health``."""

    status: str = Field(
        ...,
        description="Always ``ok`` while the process is running.",
        examples=["ok"],
    )
    message: str = Field(
        ...,
        description="Fixed liveness message.",
        examples=["Monitoring server is running"],
    )
    version: str = Field(
        ...,
        description="NodeLens version string.",
        examples=["0.1.0"],
    )


class ErrorResponse(BaseModel):
    """Standard error envelope returned for all 4xx and 5xx responses."""

    error: str = Field(
        ...,
        description="Machine-readable error code.",
        examples=["INVALID_PAYLOAD", "INVALID_NODE_NAME", "NOTIFICATION_FAILED", "INTERNAL_ERROR"],
    )
    detail: str = Field(
        ...,
        description="Human-readable description of the error.",
        examples=["Invalid JSON: expected value at line 1 column 1"],
    )
