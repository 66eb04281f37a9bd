"""Alert analysis: node identity resolution and pipeline coordination."""

from nodelens.analyst.coordinator import AlertCoordinator
from nodelens.analyst.identity import merge_labels, resolve_node_name

__all__ = ["AlertCoordinator", "merge_labels", "resolve_node_name"]
