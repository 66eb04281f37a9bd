"""Prometheus HTTP API gateway.

Both query operations are fail-open: a transport error, a non-success
response or an empty result never reaches the caller as an exception.
Scalar and string results are read as a single unlabelled sample.  Point
queries degrade to ``0.0`` and vector queries to ``[]`` so that a
metrics-backend outage can never block alert delivery.  Each call is made
exactly once with a bounded timeout; there is no retry and no caching.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx
import structlog

from nodelens.models.config import PrometheusConfig
from nodelens.observability.metrics import metrics_queries_total

_logger = structlog.get_logger(component="metrics_gateway")

_QUERY_PATH = "/api/v1/query"
_FLAT_RESULT_TYPES = frozenset({"scalar", "string"})


@dataclass(frozen=True)
class VectorSample:
    """One series of an instant-vector result."""

    labels: dict[str, str] = field(default_factory=dict)
    value: float = 0.0


class MetricsGateway:
    """Executes instant queries against the Prometheus HTTP API.

    The underlying httpx.AsyncClient is created once and shared by every
    alert pipeline; it holds no per-alert state.  Pass *client* to supply a
    preconfigured client (tests use httpx.MockTransport).  The caller is
    responsible for calling aclose() during shutdown.
    """

    def __init__(self, config: PrometheusConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(float(config.timeout_seconds)),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
        )

    @property
    def workload_label(self) -> str:
        return self._config.workload_label

    async def query_scalar_at(self, expression: str, timestamp: datetime | None = None) -> float:
        """Evaluate *expression* at *timestamp* and return the first sample value.

        Returns 0.0 when the backend is unreachable, reports an error, or has
        no matching series.
        """
        result = await self._query(expression, timestamp)
        if not result:
            return 0.0

        value = _sample_value(result[0])
        if value is None:
            metrics_queries_total.labels(result="error").inc()
            _logger.warning("metrics_sample_unparseable", query=expression, sample=str(result[0])[:200])
            return 0.0
        return value

    async def query_vector(self, expression: str) -> list[VectorSample]:
        """Evaluate *expression* now and return every series in the result.

        Series whose value cannot be parsed are skipped.  Returns an empty
        list on any failure.
        """
        result = await self._query(expression, None)
        samples: list[VectorSample] = []
        for item in result:
            value = _sample_value(item)
            if value is None:
                _logger.debug("metrics_vector_sample_skipped", query=expression)
                continue
            raw_labels = item.get("metric", {})
            labels = {str(k): str(v) for k, v in raw_labels.items()} if isinstance(raw_labels, dict) else {}
            samples.append(VectorSample(labels=labels, value=value))
        return samples

    async def _query(self, expression: str, timestamp: datetime | None) -> list[dict[str, Any]]:
        """GET /api/v1/query and return ``data.result``, or [] on any failure."""
        params: dict[str, str] = {"query": expression}
        if timestamp is not None:
            params["time"] = str(int(timestamp.timestamp()))

        try:
            response = await self._client.get(f"{self._config.url}{_QUERY_PATH}", params=params)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as exc:
            return self._failed(expression, "timeout", exc)
        except httpx.HTTPStatusError as exc:
            return self._failed(expression, f"HTTP {exc.response.status_code}", exc)
        except httpx.HTTPError as exc:
            return self._failed(expression, "transport_error", exc)
        except ValueError as exc:
            return self._failed(expression, "invalid_json", exc)

        if not isinstance(body, dict) or body.get("status") != "success":
            error = body.get("error", "") if isinstance(body, dict) else ""
            return self._failed(expression, "backend_error", error)

        data = body.get("data")
        if not isinstance(data, dict):
            data = {}
        result = data.get("result")
        if data.get("resultType") in _FLAT_RESULT_TYPES and isinstance(result, list) and result:
            # scalar and string results are a bare [ts, "value"] pair
            result = [{"metric": {}, "value": result}]

        if not isinstance(result, list) or not result:
            metrics_queries_total.labels(result="empty").inc()
            _logger.warning("metrics_query_empty", query=expression)
            return []

        metrics_queries_total.labels(result="ok").inc()
        return [item for item in result if isinstance(item, dict)]

    def _failed(self, expression: str, reason: str, error: object) -> list[dict[str, Any]]:
        metrics_queries_total.labels(result="error").inc()
        _logger.warning("metrics_query_failed", query=expression, reason=reason, error=str(error))
        return []

    async def aclose(self) -> None:
        """Close the underlying HTTP client and release connections."""
        await self._client.aclose()


def _sample_value(item: dict[str, Any]) -> float | None:
    """Extract the float from ``{"value": [ts, "1.23"]}``.  NaN/Inf count as unparseable."""
    pair = item.get("value")
    if not isinstance(pair, list | tuple) or len(pair) < 2:
        return None
    try:
        value = float(pair[1])
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value
