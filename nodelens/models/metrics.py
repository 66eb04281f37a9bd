"""Point-in-time metric snapshots for nodes and their workloads."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class NodeSnapshot:
    """Resource usage of one node at one instant.

    Percentages are always in [0, 100].  A query that failed or returned no
    data is recorded as 0.0, so a snapshot never carries missing values.
    """

    node_name: str
    timestamp: datetime
    cpu_usage_percent: float = 0.0
    memory_usage_percent: float = 0.0
    disk_usage_percent: float = 0.0

    def __post_init__(self) -> None:
        if not self.node_name:
            raise ValueError("NodeSnapshot.node_name must not be empty")


@dataclass(frozen=True)
class WorkloadSnapshot:
    """Resource usage of one container or process running on a node.

    cpu_usage_percent may exceed 100 on multi-core hosts.
    """

    name: str
    cpu_usage_percent: float = 0.0
    memory_usage_mb: float = 0.0

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("WorkloadSnapshot.name must not be empty")
