"""Prometheus metrics for NodeLens."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# Alert intake
alerts_received_total = Counter(
    "nodelens_alerts_received_total",
    "Total alerts accepted for analysis",
    ["source"],
)

pipeline_outcomes_total = Counter(
    "nodelens_pipeline_outcomes_total",
    "Terminal pipeline states reached",
    ["status"],
)

pipeline_duration_seconds = Histogram(
    "nodelens_pipeline_duration_seconds",
    "End-to-end alert pipeline duration in seconds",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

# Metrics backend
metrics_queries_total = Counter(
    "nodelens_metrics_queries_total",
    "Total queries issued to the metrics backend",
    ["result"],
)

# LLM metrics
llm_requests_total = Counter(
    "nodelens_llm_requests_total",
    "Total analysis engine requests",
    ["success"],
)

llm_available = Gauge(
    "nodelens_llm_available",
    "Whether the analysis engine is available (0 or 1)",
)

# Notifications
notifications_published_total = Counter(
    "nodelens_notifications_published_total",
    "Total notifications handed to the notification bus",
    ["backend", "success"],
)
