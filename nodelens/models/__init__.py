"""Data models shared across NodeLens components."""

from nodelens.models.analysis import (
    MAX_HISTORY_ENTRIES,
    AlertContext,
    AnalysisRequest,
    PipelineOutcome,
    PipelineStatus,
)
from nodelens.models.metrics import NodeSnapshot, WorkloadSnapshot

__all__ = [
    "MAX_HISTORY_ENTRIES",
    "AlertContext",
    "AnalysisRequest",
    "NodeSnapshot",
    "PipelineOutcome",
    "PipelineStatus",
    "WorkloadSnapshot",
]
