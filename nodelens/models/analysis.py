"""Analysis pipeline data structures."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType

from nodelens.models.metrics import NodeSnapshot, WorkloadSnapshot

MAX_HISTORY_ENTRIES = 6


class PipelineStatus(StrEnum):
    """States an alert passes through.  The last four are terminal."""

    RECEIVED = "received"
    IDENTITY_RESOLVED = "identity_resolved"
    HISTORY_FETCHED = "history_fetched"
    CONTEXT_BUILT = "context_built"
    ANALYZED = "analyzed"
    PUBLISHED = "published"
    NO_ALERTS = "no_alerts"
    NO_METRICS_DATA = "no_metrics_data"
    FAILED = "failed"


@dataclass(frozen=True)
class AlertContext:
    """Alert metadata relevant to the diagnosis.

    labels is the merged label mapping and is read-only once constructed.
    """

    alert_name: str
    severity: str = "warning"
    summary: str | None = None
    description: str | None = None
    labels: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))


@dataclass(frozen=True)
class AnalysisRequest:
    """Everything the context builder needs for one alert.

    history is newest-first (index 0 is the most recent full hour) and holds
    at most MAX_HISTORY_ENTRIES entries.
    """

    current: NodeSnapshot
    history: tuple[NodeSnapshot, ...]
    workloads: Mapping[str, WorkloadSnapshot]
    alert: AlertContext

    def __post_init__(self) -> None:
        object.__setattr__(self, "history", tuple(self.history[:MAX_HISTORY_ENTRIES]))
        object.__setattr__(self, "workloads", MappingProxyType(dict(self.workloads)))


@dataclass
class PipelineOutcome:
    """Result of one pipeline run, returned to the transport layer."""

    status: PipelineStatus
    detail: str
    node_name: str | None = None
    alert_name: str | None = None
    analysis: str | None = None
