"""Metrics backend access: query templates, gateway and history accumulation."""

from nodelens.metrics.gateway import MetricsGateway, VectorSample
from nodelens.metrics.history import HistoryAccumulator
from nodelens.metrics.queries import QueryKind, render

__all__ = ["HistoryAccumulator", "MetricsGateway", "QueryKind", "VectorSample", "render"]
