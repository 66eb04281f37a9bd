"""Hourly node history and workload discovery on top of the MetricsGateway."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import structlog

from nodelens.errors import InvalidIdentifierError
from nodelens.metrics.gateway import MetricsGateway
from nodelens.metrics.queries import NODE_QUERY_KINDS, QueryKind, render
from nodelens.models.metrics import NodeSnapshot, WorkloadSnapshot

_logger = structlog.get_logger(component="history_accumulator")

_HOUR = timedelta(hours=1)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


class HistoryAccumulator:
    """Builds newest-first hourly NodeSnapshots and per-workload snapshots.

    Queries are issued sequentially: three per hour for the node, then one
    vector query plus one point query per discovered workload.
    """

    def __init__(
        self,
        gateway: MetricsGateway,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._gateway = gateway
        self._clock = clock

    async def accumulate(self, node_name: str, hours: int) -> tuple[NodeSnapshot | None, list[NodeSnapshot]]:
        """Return ``(current, history)`` for the last *hours* hours.

        history[i] is the snapshot taken ``i`` hours before now, and
        history[0] doubles as the current snapshot.  A fully unreachable
        backend still yields *hours* all-zero snapshots; an empty history
        (with ``current`` None) is returned only for ``hours <= 0`` or when
        the node name cannot be queried at all.
        """
        if hours <= 0:
            return None, []

        try:
            expressions = {kind: render(kind, node_name) for kind in NODE_QUERY_KINDS}
        except InvalidIdentifierError as exc:
            _logger.warning("history_node_name_rejected", node_name=node_name, error=str(exc))
            return None, []

        now = self._clock()
        history: list[NodeSnapshot] = []
        for offset in range(hours):
            timestamp = now - offset * _HOUR
            cpu = await self._gateway.query_scalar_at(expressions[QueryKind.CPU_USAGE], timestamp)
            memory = await self._gateway.query_scalar_at(expressions[QueryKind.MEMORY_USAGE], timestamp)
            disk = await self._gateway.query_scalar_at(expressions[QueryKind.DISK_USAGE], timestamp)
            history.append(
                NodeSnapshot(
                    node_name=node_name,
                    timestamp=timestamp,
                    cpu_usage_percent=_clamp_percent(cpu),
                    memory_usage_percent=_clamp_percent(memory),
                    disk_usage_percent=_clamp_percent(disk),
                )
            )

        _logger.info("node_history_fetched", node_name=node_name, points=len(history))
        return history[0], history

    async def fetch_workloads(self, node_name: str) -> dict[str, WorkloadSnapshot]:
        """Discover workloads on *node_name* and snapshot their CPU and memory.

        Returns an empty mapping when nothing matches or the backend failed;
        the two cases are not distinguished.
        """
        label = self._gateway.workload_label
        try:
            cpu_query = render(QueryKind.WORKLOAD_CPU, node_name, workload_label=label)
        except InvalidIdentifierError as exc:
            _logger.warning("workload_node_name_rejected", node_name=node_name, error=str(exc))
            return {}

        workloads: dict[str, WorkloadSnapshot] = {}
        for sample in await self._gateway.query_vector(cpu_query):
            name = sample.labels.get(label, "")
            if not name or name in workloads:
                continue
            try:
                memory_query = render(QueryKind.WORKLOAD_MEMORY, node_name, workload_name=name, workload_label=label)
            except InvalidIdentifierError as exc:
                _logger.warning("workload_name_rejected", workload=name, error=str(exc))
                continue

            memory_mb = await self._gateway.query_scalar_at(memory_query)
            workloads[name] = WorkloadSnapshot(
                name=name,
                cpu_usage_percent=max(0.0, sample.value),
                memory_usage_mb=max(0.0, memory_mb),
            )

        _logger.info("workloads_fetched", node_name=node_name, count=len(workloads))
        return workloads
